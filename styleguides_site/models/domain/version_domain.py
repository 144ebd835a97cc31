"""
Version manifest domain models for the style guide versioning pipeline.

The manifest (versions.json) is written with camelCase keys; aliases keep the
on-disk format stable while the Python side uses snake_case.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class VersionIncrement(str, Enum):
    """Semantic version increment types."""

    PATCH = "patch"  # typo fixes, corrections
    MINOR = "minor"  # content additions
    MAJOR = "major"  # structural changes


class VersionHistoryEntry(BaseModel):
    version: str
    date: str
    notes: str


class StyleguideVersionEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str
    title: str
    version: str
    last_updated: str = Field(alias="lastUpdated")
    change_notes: str = Field(alias="changeNotes")
    content_hash: str | None = Field(default=None, alias="contentHash")
    history: list[VersionHistoryEntry] = []


class ManifestSchema(BaseModel):
    version: str = "1.0"
    description: str = "Version manifest for style guides"


class VersionManifest(BaseModel):
    styleguides: dict[str, StyleguideVersionEntry] = {}
    schema_info: ManifestSchema = Field(default_factory=ManifestSchema, alias="schema")

    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class ChangeDetectionResult(BaseModel):
    """Result of comparing a style guide file against its manifest entry."""

    filename: str
    slug: str
    has_changed: bool
    increment_type: VersionIncrement | None = None
    suggested_version: str | None = None
    change_notes: str | None = None
    hash_changed: bool = False
    diff: str | None = None
