"""
Copies style guides into the public download directory with the manifest's
version stamped into each copy's frontmatter.
"""

import shutil
from dataclasses import dataclass
from pathlib import Path

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.models.domain.version_domain import StyleguideVersionEntry
from styleguides_site.services.versioning.frontmatter import with_frontmatter
from styleguides_site.services.versioning.version_manager import VersionManager

logger = get_logger(__name__)


@dataclass
class SyncSummary:
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def ok(self) -> bool:
        return self.errors == 0


def sync_file_with_version(
    source_path: Path, target_dir: Path, entry: StyleguideVersionEntry
) -> None:
    content = source_path.read_text(encoding="utf-8")
    stamped = with_frontmatter(
        content,
        {
            "version": entry.version,
            "lastUpdated": entry.last_updated,
            "changeNotes": entry.change_notes,
        },
    )
    target_dir.mkdir(parents=True, exist_ok=True)
    (target_dir / source_path.name).write_text(stamped, encoding="utf-8")


def copy_version_manifest(versions_file: Path, target_dir: Path) -> bool:
    """Copy the manifest next to the public files directory."""
    try:
        target_dir.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(versions_file, target_dir.parent / "versions.json")
        return True
    except OSError as e:
        logger.error("Error copying version manifest", error=str(e))
        return False


def sync_files(
    manager: VersionManager | None = None, target_dir: str | Path | None = None
) -> SyncSummary:
    manager = manager or VersionManager()
    target_dir = Path(target_dir or settings.PUBLIC_FILES_DIR)
    manifest = manager.require_manifest()

    copy_version_manifest(manager.versions_file, target_dir)

    by_filename = {entry.filename: entry for entry in manifest.styleguides.values()}
    summary = SyncSummary()

    for filename in manager.get_styleguide_files():
        summary.processed += 1
        entry = by_filename.get(filename)
        if entry is None:
            logger.warning("No version info for styleguide", filename=filename)
            summary.skipped += 1
            continue

        try:
            sync_file_with_version(manager.styleguide_dir / filename, target_dir, entry)
            summary.updated += 1
        except OSError as e:
            logger.error("Error syncing styleguide", filename=filename, error=str(e))
            summary.errors += 1

    logger.info(
        "Styleguide files synchronized",
        processed=summary.processed,
        updated=summary.updated,
        skipped=summary.skipped,
        errors=summary.errors,
    )
    return summary
