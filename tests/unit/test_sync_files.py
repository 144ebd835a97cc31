from datetime import date

import pytest

from styleguides_site.services.versioning.frontmatter import parse_frontmatter
from styleguides_site.services.versioning.sync_files import copy_version_manifest, sync_files
from styleguides_site.services.versioning.version_manager import VersionManager


@pytest.fixture
def manager(styleguide_workspace):
    guides, versions_file = styleguide_workspace
    return VersionManager(guides, versions_file, git_enabled=False, today=date(2025, 3, 10))


def test_sync_stamps_manifest_versions(tmp_path, manager):
    # The source file disagrees with the manifest; the manifest wins
    source = manager.styleguide_dir / "Social Media.md"
    source.write_text(source.read_text(encoding="utf-8").replace("1.2.0", "0.0.1"), encoding="utf-8")
    target = tmp_path / "public" / "files"

    summary = sync_files(manager, target)

    assert summary.ok is True
    assert (summary.processed, summary.updated, summary.skipped) == (2, 2, 0)
    copied = (target / "Social Media.md").read_text(encoding="utf-8")
    assert parse_frontmatter(copied)["version"] == "1.2.0"
    assert parse_frontmatter(copied)["title"] == "Social Media"
    assert "# Social Media" in copied
    assert not (target / "README.md").exists()
    assert (tmp_path / "public" / "versions.json").read_text(encoding="utf-8") == (
        manager.versions_file.read_text(encoding="utf-8")
    )


def test_sync_skips_guides_without_manifest_entry(tmp_path, manager):
    (manager.styleguide_dir / "Entwurf.md").write_text("# Entwurf\n", encoding="utf-8")

    summary = sync_files(manager, tmp_path / "public" / "files")

    assert (summary.processed, summary.updated, summary.skipped) == (3, 2, 1)
    assert not (tmp_path / "public" / "files" / "Entwurf.md").exists()


def test_copy_version_manifest_missing_source(tmp_path):
    assert copy_version_manifest(tmp_path / "missing.json", tmp_path / "public" / "files") is False
