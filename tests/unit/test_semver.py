from datetime import date

import pytest

from styleguides_site.models.domain.version_domain import VersionIncrement
from styleguides_site.services.versioning.semver import (
    SemanticVersion,
    add_version_to_history,
    compare_versions,
    create_version_entry,
    format_date_german,
    format_version_changelog,
    format_version_display,
    generate_slug_from_filename,
    get_latest_version,
    get_recent_versions,
    get_update_recency,
    get_version_history,
    has_version_in_history,
    increment_version,
    is_major_update,
    is_recently_updated,
    is_valid_version,
    parse_version,
)

TODAY = date(2025, 3, 10)


@pytest.mark.parametrize(
    "version, increment, expected",
    [
        ("1.0.0", "patch", "1.0.1"),
        ("1.2.3", "major", "2.0.0"),
        ("0.9.5", "minor", "0.10.0"),
        ("1.2.3", VersionIncrement.MINOR, "1.3.0"),
        ("1.2.3", "bogus", "1.2.3"),
    ],
)
def test_increment_version(version, increment, expected):
    assert increment_version(version, increment) == expected


def test_increment_invalid_version_raises():
    with pytest.raises(ValueError, match="Invalid semantic version"):
        increment_version("1.0", "patch")


def test_parse_and_validate():
    assert parse_version("10.20.30") == SemanticVersion(10, 20, 30)
    assert parse_version("v1.0.0") is None
    assert is_valid_version("1.0.0") is True
    assert is_valid_version("1.0.0-beta") is False


def test_compare_versions_is_numeric():
    assert compare_versions("1.10.0", "1.9.0") == 1
    assert compare_versions("1.0.0", "1.0.0") == 0
    assert compare_versions("0.9.9", "1.0.0") == -1
    with pytest.raises(ValueError):
        compare_versions("1.0", "1.0.0")


def test_latest_version_ignores_invalid_entries():
    assert get_latest_version(["1.2.0", "garbage", "1.10.0", "1.9.9"]) == "1.10.0"
    assert get_latest_version(["nope"]) is None


def test_display_helpers():
    assert is_major_update("2.0.0") is True
    assert is_major_update("2.0.1") is False
    assert format_version_display("1.2.3") == "v1.2.3"
    assert format_date_german("2025-03-10") == "10.03.2025"
    assert format_date_german("not a date") == "not a date"


def test_slug_from_filename():
    assert generate_slug_from_filename("Styleguide Prüfungen.md") == "styleguide-pruefungen"
    assert generate_slug_from_filename("KI  Übersicht.md") == "ki-uebersicht"


def test_create_and_extend_history():
    entry = create_version_entry("Guide.md", "Guide", today=date(2025, 1, 1))

    updated = add_version_to_history(entry, "1.1.0", "Neue Beispiele", today=TODAY)

    assert entry.version == "1.0.0"
    assert updated.version == "1.1.0"
    assert updated.last_updated == "2025-03-10"
    assert updated.change_notes == "Neue Beispiele"
    assert [h.version for h in updated.history] == ["1.0.0", "1.1.0"]
    assert has_version_in_history(updated, "1.0.0") is True
    assert has_version_in_history(updated, "2.0.0") is False


def test_history_is_newest_first():
    entry = create_version_entry("Guide.md", "Guide", today=TODAY)
    for version in ("1.0.1", "1.2.0", "1.10.0"):
        entry = add_version_to_history(entry, version, f"Release {version}", today=TODAY)

    assert [h.version for h in get_version_history(entry)] == ["1.10.0", "1.2.0", "1.0.1", "1.0.0"]
    assert [h.version for h in get_recent_versions(entry, 2)] == ["1.10.0", "1.2.0"]


def test_changelog_lists_versions():
    entry = add_version_to_history(
        create_version_entry("Guide.md", "Guide", today=TODAY), "1.0.1", "Tippfehler", today=TODAY
    )

    changelog = format_version_changelog(entry)

    assert changelog.startswith("# Changelog: Guide\n\n## Version 1.0.1 (2025-03-10)\nTippfehler")
    assert "## Version 1.0.0 (2025-03-10)\nInitial version" in changelog


@pytest.mark.parametrize(
    "last_updated, expected",
    [
        ("2025-03-10", "new"),
        ("2025-03-03", "new"),
        ("2025-02-20", "recent"),
        ("2025-01-01", "older"),
        ("garbage", "older"),
    ],
)
def test_update_recency(last_updated, expected):
    assert get_update_recency(last_updated, today=TODAY) == expected


def test_is_recently_updated():
    assert is_recently_updated("2025-02-10", today=TODAY) is True
    assert is_recently_updated("2025-02-07", today=TODAY) is False
