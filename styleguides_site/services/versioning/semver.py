"""
Semantic version helpers and manifest entry operations for style guides.
"""

import re
from datetime import date
from typing import Literal, NamedTuple

from styleguides_site.models.domain.version_domain import (
    StyleguideVersionEntry,
    VersionHistoryEntry,
    VersionIncrement,
)

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")
_UMLAUTS = {"ä": "ae", "ö": "oe", "ü": "ue"}

UpdateRecency = Literal["new", "recent", "older"]


class SemanticVersion(NamedTuple):
    major: int
    minor: int
    patch: int


def parse_version(version: str) -> SemanticVersion | None:
    match = _VERSION_RE.match(version)
    if not match:
        return None
    return SemanticVersion(*(int(part) for part in match.groups()))


def format_version(major: int, minor: int, patch: int) -> str:
    return f"{major}.{minor}.{patch}"


def is_valid_version(version: str) -> bool:
    return _VERSION_RE.match(version) is not None


def increment_version(version: str, increment_type: VersionIncrement | str) -> str:
    """
    Bump `version` by `increment_type`.

    An unrecognised increment type returns `version` unchanged.

    Raises:
        ValueError: `version` is not MAJOR.MINOR.PATCH
    """
    parsed = parse_version(version)
    if parsed is None:
        raise ValueError(f"Invalid semantic version: {version}")

    try:
        increment = VersionIncrement(increment_type)
    except ValueError:
        return version

    if increment is VersionIncrement.MAJOR:
        return format_version(parsed.major + 1, 0, 0)
    if increment is VersionIncrement.MINOR:
        return format_version(parsed.major, parsed.minor + 1, 0)
    return format_version(parsed.major, parsed.minor, parsed.patch + 1)


def compare_versions(a: str, b: str) -> int:
    """-1, 0 or 1 as `a` is lower than, equal to or higher than `b`."""
    version_a, version_b = parse_version(a), parse_version(b)
    if version_a is None or version_b is None:
        raise ValueError("Invalid version format")
    return (version_a > version_b) - (version_a < version_b)


def get_latest_version(versions: list[str]) -> str | None:
    valid = [v for v in versions if is_valid_version(v)]
    if not valid:
        return None
    return max(valid, key=parse_version)


def is_major_update(version: str) -> bool:
    """True for x.0.0 releases."""
    parsed = parse_version(version)
    return parsed is not None and parsed.minor == 0 and parsed.patch == 0


def format_version_display(version: str, prefix: str = "v") -> str:
    return f"{prefix}{version}"


def get_version_date(today: date | None = None) -> str:
    return (today or date.today()).isoformat()


def format_date_german(date_string: str) -> str:
    try:
        return date.fromisoformat(date_string[:10]).strftime("%d.%m.%Y")
    except ValueError:
        return date_string


def generate_slug_from_filename(filename: str) -> str:
    slug = re.sub(r"\s+", "-", filename.lower().replace(".md", "", 1))
    for umlaut, replacement in _UMLAUTS.items():
        slug = slug.replace(umlaut, replacement)
    return slug


def create_version_entry(
    filename: str,
    title: str,
    version: str = "1.0.0",
    change_notes: str = "Initial version",
    today: date | None = None,
) -> StyleguideVersionEntry:
    entry_date = get_version_date(today)
    return StyleguideVersionEntry(
        filename=filename,
        title=title,
        version=version,
        last_updated=entry_date,
        change_notes=change_notes,
        content_hash=None,
        history=[VersionHistoryEntry(version=version, date=entry_date, notes=change_notes)],
    )


def add_version_to_history(
    entry: StyleguideVersionEntry,
    new_version: str,
    change_notes: str,
    today: date | None = None,
) -> StyleguideVersionEntry:
    """Copy of `entry` moved to `new_version`, with the release appended to its history."""
    entry_date = get_version_date(today)
    history = [
        *entry.history,
        VersionHistoryEntry(version=new_version, date=entry_date, notes=change_notes),
    ]
    return entry.model_copy(
        update={
            "version": new_version,
            "last_updated": entry_date,
            "change_notes": change_notes,
            "history": history,
        }
    )


def _history_sort_key(item: VersionHistoryEntry) -> SemanticVersion:
    return parse_version(item.version) or SemanticVersion(0, 0, 0)


def get_version_history(entry: StyleguideVersionEntry) -> list[VersionHistoryEntry]:
    """History newest first."""
    return sorted(entry.history, key=_history_sort_key, reverse=True)


def get_recent_versions(entry: StyleguideVersionEntry, count: int = 5) -> list[VersionHistoryEntry]:
    return get_version_history(entry)[:count]


def has_version_in_history(entry: StyleguideVersionEntry, version: str) -> bool:
    return any(item.version == version for item in entry.history)


def format_version_changelog(entry: StyleguideVersionEntry) -> str:
    changelog = f"# Changelog: {entry.title}\n\n"
    for item in get_version_history(entry):
        changelog += f"## Version {item.version} ({item.date})\n{item.notes}\n\n"
    return changelog


def _days_since(date_string: str, today: date | None = None) -> int | None:
    try:
        updated = date.fromisoformat(date_string[:10])
    except ValueError:
        return None
    return ((today or date.today()) - updated).days


def is_recently_updated(last_updated: str, day_threshold: int = 30, today: date | None = None) -> bool:
    days = _days_since(last_updated, today)
    return days is not None and days <= day_threshold


def get_update_recency(last_updated: str, today: date | None = None) -> UpdateRecency:
    days = _days_since(last_updated, today)
    if days is None:
        return "older"
    if days <= 7:
        return "new"
    if days <= 30:
        return "recent"
    return "older"
