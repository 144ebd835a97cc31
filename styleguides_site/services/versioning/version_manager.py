"""
Version manager for the style guide markdown files.

Detects edited guides (git diff first, content hash as fallback), suggests a
semantic version bump from the shape of the diff, and writes the bump into
both the guide's frontmatter and the versions.json manifest. Also validates
the manifest after a build and assembles the downloadable package.
"""

import hashlib
import json
import re
import shutil
import subprocess
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from pydantic import ValidationError

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.models.domain.version_domain import (
    ChangeDetectionResult,
    VersionHistoryEntry,
    VersionIncrement,
    VersionManifest,
)
from styleguides_site.services.versioning.frontmatter import parse_frontmatter, update_frontmatter
from styleguides_site.services.versioning.semver import (
    format_date_german,
    generate_slug_from_filename,
    get_version_date,
    get_version_history,
    increment_version,
    is_recently_updated,
    is_valid_version,
    parse_version,
)

logger = get_logger(__name__)

MAJOR_LINE_PATTERNS = (
    re.compile(r"^[+-]\s*#{1,3}\s"),  # headings
    re.compile(r"^[+-]\s*\*\*.*\*\*"),  # bold section headers
)
MINOR_LINE_PATTERNS = (
    re.compile(r"^[+-]\s*\*\s"),
    re.compile(r"^[+-]\s*\d+\.\s"),
    re.compile(r"^[+-]\s*-\s"),
    re.compile(r"^[+-]\s*>\s"),
    re.compile(r"^[+-]\s*```"),
)
MAJOR_LINE_THRESHOLD = 50
MINOR_LINE_THRESHOLD = 10

BASE_CHANGE_NOTES = {
    VersionIncrement.MAJOR: "Major structural changes and updates",
    VersionIncrement.MINOR: "Content additions and improvements",
    VersionIncrement.PATCH: "Minor corrections and fixes",
}

PACKAGE_README_NAME = "00-README-ZUERST-LESEN.md"
GIT_TIMEOUT = 30  # seconds


class VersionManagerError(Exception):
    """Raised when the manifest cannot be read or written."""


@dataclass
class PostBuildReport:
    all_valid: bool
    total_guides: int
    valid_versions: int
    latest_update: str | None
    problems: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class PackageResult:
    output_dir: Path
    package_name: str
    archive_path: Path
    guide_count: int
    latest_update: str


def analyze_change_scope(diff: str | None) -> VersionIncrement:
    """
    Classify a unified diff.

    Heading or bold-header edits, or more than 50 added or removed lines, are
    MAJOR. More than 10 lines, or any list, quote or code-fence line, is MINOR.
    Anything else is PATCH.
    """
    if not diff:
        return VersionIncrement.PATCH

    lines = diff.split("\n")
    added = removed = 0
    structural = False

    for line in lines:
        if line.startswith("+") and not line.startswith("+++"):
            added += 1
        elif line.startswith("-") and not line.startswith("---"):
            removed += 1
        else:
            continue
        if any(p.search(line) for p in MAJOR_LINE_PATTERNS):
            structural = True

    if structural or added > MAJOR_LINE_THRESHOLD or removed > MAJOR_LINE_THRESHOLD:
        return VersionIncrement.MAJOR
    if (
        added > MINOR_LINE_THRESHOLD
        or removed > MINOR_LINE_THRESHOLD
        or any(p.search(line) for line in lines for p in MINOR_LINE_PATTERNS)
    ):
        return VersionIncrement.MINOR
    return VersionIncrement.PATCH


def generate_change_notes(diff: str | None, increment_type: VersionIncrement | str) -> str:
    try:
        base_note = BASE_CHANGE_NOTES[VersionIncrement(increment_type)]
    except ValueError:
        base_note = BASE_CHANGE_NOTES[VersionIncrement.PATCH]

    specific: list[str] = []
    if diff:
        lines = diff.split("\n")
        if any("# " in line for line in lines):
            specific.append("Updated section headings")
        if any("```" in line for line in lines):
            specific.append("Modified code examples")
        added = sum(1 for line in lines if line.startswith("+"))
        removed = sum(1 for line in lines if line.startswith("-"))
        if added > removed:
            specific.append("Added new content")

    return f"{base_note}: {', '.join(specific)}" if specific else base_note


class VersionManager:
    def __init__(
        self,
        styleguide_dir: str | Path | None = None,
        versions_file: str | Path | None = None,
        package_output_dir: str | Path | None = None,
        ignored_files: list[str] | None = None,
        git_enabled: bool | None = None,
        today: date | None = None,
    ):
        self.styleguide_dir = Path(styleguide_dir or settings.STYLEGUIDE_DIR)
        self.versions_file = Path(versions_file or settings.VERSIONS_FILE)
        self.package_output_dir = Path(package_output_dir or settings.PACKAGE_OUTPUT_DIR)
        self.ignored_files = settings.VERSION_IGNORED_FILES if ignored_files is None else ignored_files
        self.git_enabled = settings.VERSION_GIT_ENABLED if git_enabled is None else git_enabled
        self._today = today

    def current_date(self) -> str:
        return get_version_date(self._today)

    # ------------------------------------------------------------------
    # Files and manifest
    # ------------------------------------------------------------------

    def get_styleguide_files(self) -> list[str]:
        try:
            return sorted(
                p.name
                for p in self.styleguide_dir.iterdir()
                if p.is_file() and p.suffix == ".md" and p.name not in self.ignored_files
            )
        except OSError as e:
            logger.error("Error reading styleguide directory", path=str(self.styleguide_dir), error=str(e))
            return []

    def read_manifest(self) -> VersionManifest | None:
        try:
            return VersionManifest.model_validate_json(self.versions_file.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.error("Error reading version manifest", path=str(self.versions_file), error=str(e))
            return None

    def require_manifest(self) -> VersionManifest:
        manifest = self.read_manifest()
        if manifest is None:
            raise VersionManagerError(f"Could not read {self.versions_file}")
        return manifest

    def write_manifest(self, manifest: VersionManifest) -> None:
        try:
            self.versions_file.write_text(
                json.dumps(manifest.to_json_dict(), indent=2, ensure_ascii=False), encoding="utf-8"
            )
        except OSError as e:
            raise VersionManagerError(f"Could not write {self.versions_file}: {e}") from e

    def get_git_diff(self, file_path: Path) -> str | None:
        """Uncommitted diff against HEAD, or None if untracked or git is unavailable."""
        try:
            subprocess.run(
                ["git", "ls-files", "--error-unmatch", str(file_path.resolve())],
                cwd=self.styleguide_dir,
                check=True,
                capture_output=True,
                timeout=GIT_TIMEOUT,
            )
            result = subprocess.run(
                ["git", "diff", "HEAD", "--", str(file_path.resolve())],
                cwd=self.styleguide_dir,
                check=True,
                capture_output=True,
                text=True,
                timeout=GIT_TIMEOUT,
            )
            return result.stdout
        except (OSError, subprocess.SubprocessError):
            return None

    def get_file_hash(self, file_path: Path) -> str | None:
        try:
            return hashlib.sha256(file_path.read_bytes()).hexdigest()
        except OSError as e:
            logger.error("Error hashing file", path=str(file_path), error=str(e))
            return None

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------

    def detect_changes(self, filename: str, manifest: VersionManifest) -> ChangeDetectionResult | None:
        """None when the guide has no manifest entry."""
        file_path = self.styleguide_dir / filename
        slug = generate_slug_from_filename(filename)
        entry = manifest.styleguides.get(slug)
        if entry is None:
            logger.info("No manifest entry for styleguide", filename=filename)
            return None

        if self.git_enabled:
            diff = self.get_git_diff(file_path)
            if diff and diff.strip():
                increment_type = analyze_change_scope(diff)
                return ChangeDetectionResult(
                    filename=filename,
                    slug=slug,
                    has_changed=True,
                    increment_type=increment_type,
                    suggested_version=increment_version(entry.version, increment_type),
                    change_notes=generate_change_notes(diff, increment_type),
                    diff=diff,
                )

        current_hash = self.get_file_hash(file_path)
        if entry.content_hash and current_hash != entry.content_hash:
            return ChangeDetectionResult(filename=filename, slug=slug, has_changed=True, hash_changed=True)

        return ChangeDetectionResult(filename=filename, slug=slug, has_changed=False)

    def check_for_changes(self) -> list[ChangeDetectionResult]:
        manifest = self.require_manifest()
        changes = []
        for filename in self.get_styleguide_files():
            result = self.detect_changes(filename, manifest)
            if result and result.has_changed:
                changes.append(result)

        logger.info(
            "Styleguide change check completed",
            changed=[c.filename for c in changes],
        )
        return changes

    def update_content_hashes(self) -> bool:
        """Refresh stored content hashes; True if any changed."""
        manifest = self.require_manifest()
        updated = False

        for filename in self.get_styleguide_files():
            entry = manifest.styleguides.get(generate_slug_from_filename(filename))
            if entry is None:
                logger.warning("No manifest entry for styleguide", filename=filename)
                continue
            file_hash = self.get_file_hash(self.styleguide_dir / filename)
            if file_hash and entry.content_hash != file_hash:
                entry.content_hash = file_hash
                updated = True

        if updated:
            self.write_manifest(manifest)
            logger.info("Content hashes updated")
        return updated

    # ------------------------------------------------------------------
    # Version updates
    # ------------------------------------------------------------------

    def update_styleguide_version(
        self,
        filename: str,
        increment_type: VersionIncrement | str,
        change_notes: str,
        manifest: VersionManifest,
    ) -> bool:
        """
        Bump one guide's frontmatter and manifest entry in place.

        The manifest is not written; callers persist it once all updates are applied.
        """
        file_path = self.styleguide_dir / filename
        entry = manifest.styleguides.get(generate_slug_from_filename(filename))
        if entry is None:
            logger.error("No manifest entry for styleguide", filename=filename)
            return False

        old_version = entry.version
        new_version = increment_version(old_version, increment_type)
        new_date = self.current_date()

        try:
            updated = update_frontmatter(
                file_path,
                {"version": new_version, "lastUpdated": new_date, "changeNotes": change_notes},
            )
        except OSError as e:
            logger.error("Failed to update frontmatter", filename=filename, error=str(e))
            return False
        if not updated:
            return False

        entry.version = new_version
        entry.last_updated = new_date
        entry.change_notes = change_notes
        entry.history.append(VersionHistoryEntry(version=new_version, date=new_date, notes=change_notes))

        new_hash = self.get_file_hash(file_path)
        if new_hash:
            entry.content_hash = new_hash

        logger.info("Styleguide version updated", filename=filename, old=old_version, new=new_version)
        return True

    def apply_version_updates(self) -> int:
        """Apply the suggested bump to every changed guide. Returns the number updated."""
        manifest = self.require_manifest()
        applied = 0

        for change in self.check_for_changes():
            if not (change.increment_type and change.change_notes):
                logger.warning("Skipping styleguide without increment type", filename=change.filename)
                continue
            if self.update_styleguide_version(
                change.filename, change.increment_type, change.change_notes, manifest
            ):
                applied += 1

        if applied:
            self.write_manifest(manifest)
            logger.info("Version updates applied", count=applied)
        return applied

    def update_single_version(
        self, filename: str, increment_type: VersionIncrement | str, custom_notes: str | None = None
    ) -> bool:
        manifest = self.require_manifest()
        change_notes = custom_notes or generate_change_notes(None, increment_type)
        if not self.update_styleguide_version(filename, increment_type, change_notes, manifest):
            return False
        self.write_manifest(manifest)
        return True

    def show_version_history(self, filename: str | None = None) -> str:
        """Printable history for one guide, or a summary of all guides."""
        manifest = self.require_manifest()

        if filename is None:
            lines = ["All Styleguides Version History", ""]
            for entry in manifest.styleguides.values():
                lines += [
                    entry.title,
                    f"   Current: v{entry.version} ({entry.last_updated})",
                    f"   Versions: {len(entry.history) or 1}",
                    f"   Latest: {entry.change_notes}",
                    "",
                ]
            return "\n".join(lines)

        entry = manifest.styleguides.get(generate_slug_from_filename(filename))
        if entry is None:
            raise VersionManagerError(f"No manifest entry found for {filename}")

        lines = [
            f"Version History: {entry.title}",
            f"Current Version: {entry.version} ({entry.last_updated})",
            "-" * 50,
        ]
        if not entry.history:
            lines.append("No version history available.")
            return "\n".join(lines)

        for item in get_version_history(entry):
            lines += ["", f"Version {item.version} ({item.date})", f"   {item.notes}"]
        lines += ["", f"Total versions: {len(entry.history)}"]
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Build checks and packaging
    # ------------------------------------------------------------------

    def post_build_version_check(self) -> PostBuildReport:
        manifest = self.require_manifest()
        report = PostBuildReport(
            all_valid=True,
            total_guides=len(manifest.styleguides),
            valid_versions=0,
            latest_update=_latest_update(manifest.styleguides.values()),
        )

        for entry in manifest.styleguides.values():
            file_path = self.styleguide_dir / entry.filename
            if not file_path.is_file():
                report.problems.append(f"{entry.filename}: File not found")
                report.all_valid = False
                continue

            if is_valid_version(entry.version):
                report.valid_versions += 1
            else:
                report.problems.append(f"{entry.filename}: Invalid version format ({entry.version})")
                report.all_valid = False

            frontmatter = parse_frontmatter(file_path.read_text(encoding="utf-8"))
            if not frontmatter or not frontmatter.get("version"):
                report.warnings.append(f"{entry.filename}: Missing version in frontmatter")

        logger.info(
            "Post-build version check completed",
            all_valid=report.all_valid,
            total=report.total_guides,
            valid_versions=report.valid_versions,
            problems=len(report.problems),
        )
        return report

    def generate_package_readme(self, manifest: VersionManifest) -> str:
        entries = list(manifest.styleguides.values())
        created = format_date_german(self.current_date())
        latest = _latest_update(entries)
        latest_display = format_date_german(latest) if latest else created

        file_list = "\n".join(
            f"- {e.filename} (v{e.version} - {e.last_updated})" for e in entries
        )
        recent = "\n".join(
            f"- **{e.filename}** (v{e.version}): {e.change_notes}"
            for e in entries
            if is_recently_updated(e.last_updated, today=self._today)
        )
        site_url = settings.SITE_URL.rstrip("/")

        return f"""# KI-Styleguides Komplettpaket

Vielen Dank für das Herunterladen!

## Enthaltene Dateien mit Versionen

{file_list}

## Versionsinformationen

- **Paket erstellt am:** {created}
- **Letzte Aktualisierung:** {latest_display}
- **Gesamtanzahl Styleguides:** {len(entries)}

## Verwendung

1. Wählen Sie den passenden Styleguide für Ihr Projekt
2. Kopieren Sie den Inhalt in Ihr KI-Tool (Claude Projects, ChatGPT Custom Instructions, etc.)
3. Schreiben Sie bessere Texte mit konsistenter Qualität

## Weitere Informationen

- Website: {site_url}
- Anleitung: {site_url}/anwendung/
- GitHub: {settings.github_repo_url()}

## Versionshistorie

Die folgenden Styleguides wurden kürzlich aktualisiert:

{recent}

## Lizenz

Alle Inhalte stehen unter der CC BY 4.0 Lizenz.

---
Generiert am: {created}
Paket-Version: {manifest.schema_info.version}
"""

    def generate_versioned_package(self) -> PackageResult:
        """Write README, manifest and guides to the output dir and zip them."""
        manifest = self.require_manifest()
        output_dir = self.package_output_dir
        output_dir.mkdir(parents=True, exist_ok=True)

        (output_dir / PACKAGE_README_NAME).write_text(
            self.generate_package_readme(manifest), encoding="utf-8"
        )
        (output_dir / "versions.json").write_text(
            json.dumps(manifest.to_json_dict(), indent=2, ensure_ascii=False), encoding="utf-8"
        )

        guides = self.get_styleguide_files()
        for filename in guides:
            shutil.copyfile(self.styleguide_dir / filename, output_dir / filename)

        latest = _latest_update(manifest.styleguides.values()) or self.current_date()
        package_name = build_package_name(manifest, latest, len(guides))
        archive = shutil.make_archive(
            str(output_dir.parent / package_name), "zip", root_dir=output_dir
        )

        logger.info(
            "Versioned package generated",
            package=package_name,
            guides=len(guides),
            output_dir=str(output_dir),
        )
        return PackageResult(
            output_dir=output_dir,
            package_name=package_name,
            archive_path=Path(archive),
            guide_count=len(guides),
            latest_update=latest,
        )


def build_package_name(manifest: VersionManifest, latest_update: str, guide_count: int) -> str:
    """
    `ki-styleguides-<latest date>-<n>guides[-Xmajor][-Yminor][-Zpatch]`.

    A guide counts as major above 1.x.x, as minor at 1.y.z with y > 0 (or
    0.y.z), and as patch otherwise.
    """
    counts = {"major": 0, "minor": 0, "patch": 0}
    for entry in manifest.styleguides.values():
        parsed = parse_version(entry.version)
        if parsed and parsed.major > 1:
            counts["major"] += 1
        elif parsed and parsed.minor > 0:
            counts["minor"] += 1
        else:
            counts["patch"] += 1

    summary = "".join(f"-{n}{kind}" for kind, n in counts.items() if n)
    return f"ki-styleguides-{latest_update}-{guide_count}guides{summary}"


def _latest_update(entries) -> str | None:
    dates = [e.last_updated[:10] for e in entries if e.last_updated]
    return max(dates) if dates else None
