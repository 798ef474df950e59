from .exceptions import GithubError, GithubRateLimitError, GithubSecondaryRateLimitError
from .github_client import GitHubClient, get_github_client
from .locator import RepositoryRef, parse_repository_url
from .retry_policy import RetryPolicy

__all__ = [
    "GitHubClient",
    "get_github_client",
    "RepositoryRef",
    "parse_repository_url",
    "RetryPolicy",
    "GithubError",
    "GithubRateLimitError",
    "GithubSecondaryRateLimitError",
]
