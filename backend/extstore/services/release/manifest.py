"""
extension.json schema and release cross-checks.

Validation never raises on bad input: it returns ``ManifestValid`` or
``ManifestInvalid`` with every problem found, so a submitter can fix them all
in one pass. ``ensure_valid`` converts an invalid result into the matching
domain error for callers that need to stop.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from extstore.services.errors import ManifestSchemaInvalid, ManifestVersionMismatch
from extstore.services.release.versioning import SEMVER_RE, normalize_version

NAME_RE = re.compile(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$", re.IGNORECASE)


class ExtensionManifest(BaseModel):
    """Declared identity, version and permissions of an extension."""

    model_config = ConfigDict(extra="allow", strict=True, populate_by_name=True)

    name: str = Field(..., min_length=2, max_length=100)
    display_name: str = Field(..., alias="displayName", min_length=1, max_length=100)
    version: str = Field(..., min_length=1, max_length=64)
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[Literal["sandboxed", "native"]] = None
    entry_point: Optional[str] = Field(None, alias="entryPoint", max_length=255)
    permissions: List[str] = Field(default_factory=list, max_length=50)
    icon: Optional[str] = Field(None, max_length=255)
    categories: List[str] = Field(default_factory=list, max_length=20)
    license: Optional[str] = Field(None, max_length=64)
    author: Optional[Union[str, Dict[str, Any]]] = None
    homepage: Optional[str] = Field(None, max_length=500)
    repository: Optional[str] = Field(None, max_length=500)
    engines: Optional[Dict[str, str]] = None

    @field_validator("name")
    @classmethod
    def _name_format(cls, value: str) -> str:
        if not NAME_RE.match(value):
            raise ValueError(
                'must be alphanumeric with dots/hyphens (e.g., "publisher.extension-name")'
            )
        return value

    @field_validator("version")
    @classmethod
    def _version_format(cls, value: str) -> str:
        if not SEMVER_RE.match(value):
            raise ValueError('must be valid semver (e.g., "1.0.0" or "1.0.0-beta.1")')
        return value

    @field_validator("permissions", "categories")
    @classmethod
    def _bounded_items(cls, value: List[str]) -> List[str]:
        for item in value:
            if not item or len(item) > 100:
                raise ValueError("entries must be non-empty strings of at most 100 characters")
        return value


@dataclass(frozen=True)
class ManifestValid:
    manifest: ExtensionManifest
    ok: Literal[True] = True


@dataclass(frozen=True)
class ManifestInvalid:
    errors: List[str] = field(default_factory=list)
    version_mismatch: bool = False
    ok: Literal[False] = False


ManifestValidationResult = Union[ManifestValid, ManifestInvalid]


def _format_error(error: Dict[str, Any]) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ()))
    if error.get("type") == "missing":
        return f"extension.json missing required field: {loc}"
    message = error.get("msg", "invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"extension.json {loc}: {message}"


def validate_manifest(raw: Any, release_tag: str) -> ManifestValidationResult:
    """Check a decoded manifest against the schema and its release tag."""
    if not isinstance(raw, dict):
        return ManifestInvalid(errors=["extension.json must be a valid JSON object"])

    errors: List[str] = []
    manifest: Optional[ExtensionManifest] = None
    try:
        manifest = ExtensionManifest.model_validate(raw)
    except ValidationError as exc:
        errors.extend(_format_error(error) for error in exc.errors())

    version_mismatch = False
    declared = raw.get("version")
    if isinstance(declared, str) and declared:
        if normalize_version(declared) != normalize_version(release_tag):
            version_mismatch = True
            errors.append(
                f'extension.json version "{declared}" does not match release tag "{release_tag}"'
            )

    if errors or manifest is None:
        return ManifestInvalid(errors=errors, version_mismatch=version_mismatch)
    return ManifestValid(manifest=manifest)


def ensure_valid(result: ManifestValidationResult, release_tag: str) -> ExtensionManifest:
    """Return the manifest or raise with the full error list attached."""
    if isinstance(result, ManifestValid):
        return result.manifest
    if result.version_mismatch and len(result.errors) == 1:
        raise ManifestVersionMismatch(result.errors[0], details=list(result.errors))
    raise ManifestSchemaInvalid(
        f"extension.json for {release_tag} failed validation ({len(result.errors)} problem(s))",
        details=list(result.errors),
    )
