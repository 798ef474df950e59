"""Tests for repository URL parsing."""

import pytest

from extstore.services.errors import InvalidRepositoryUrl
from extstore.services.github.locator import RepositoryRef, parse_repository_url


@pytest.mark.parametrize(
    "url",
    [
        "https://github.com/acme/widget",
        "http://github.com/acme/widget",
        "https://www.github.com/acme/widget",
        "https://github.com/acme/widget/",
        "https://github.com/acme/widget.git",
        "https://github.com/acme/widget/tree/main",
        "https://github.com/acme/widget/releases",
        "github.com/acme/widget",
        "git@github.com:acme/widget.git",
        "acme/widget",
        "  https://github.com/acme/widget  ",
    ],
)
def test_variants_resolve_to_same_ref(url):
    ref = parse_repository_url(url)

    assert ref == RepositoryRef(host="github.com", owner="acme", name="widget")
    assert ref.full_name == "acme/widget"
    assert ref.web_url == "https://github.com/acme/widget"


@pytest.mark.parametrize(
    "url",
    [
        "",
        "   ",
        None,
        "https://gitlab.com/acme/widget",
        "https://github.com/acme",
        "https://github.com/",
        "ftp://github.com/acme/widget",
        "https://github.com/acme/wid get",
        "https://github.com/../widget",
        "not a url",
    ],
)
def test_malformed_urls_are_rejected(url):
    with pytest.raises(InvalidRepositoryUrl):
        parse_repository_url(url)


def test_owner_and_name_keep_allowed_punctuation():
    ref = parse_repository_url("https://github.com/my_org/my.ext-name")

    assert ref.owner == "my_org"
    assert ref.name == "my.ext-name"
