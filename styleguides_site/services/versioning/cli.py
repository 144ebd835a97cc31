"""
Command line entrypoint for the style guide version pipeline.

    styleguides-versions check
    styleguides-versions bump "Business Writing.md" minor "Neue Beispiele"
"""

import argparse
import sys

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import setup_logging
from styleguides_site.models.domain.version_domain import VersionIncrement
from styleguides_site.services.versioning.sync_files import sync_files
from styleguides_site.services.versioning.version_manager import VersionManager, VersionManagerError


def _check(manager: VersionManager, args: argparse.Namespace) -> int:
    changes = manager.check_for_changes()
    if not changes:
        print("No changes detected in styleguide files.")
        return 0

    print(f"Found changes in {len(changes)} file(s):")
    for change in changes:
        if change.increment_type:
            print(f"  - {change.filename} ({change.increment_type.value.upper()}: {change.suggested_version})")
        else:
            print(f"  - {change.filename}")
    print("\nTo update versions, run: styleguides-versions update")
    return 0


def _init_hashes(manager: VersionManager, args: argparse.Namespace) -> int:
    updated = manager.update_content_hashes()
    print("Content hashes updated." if updated else "All content hashes are up to date.")
    return 0


def _apply(manager: VersionManager, args: argparse.Namespace) -> int:
    applied = manager.apply_version_updates()
    print(f"Updated {applied} styleguide(s)." if applied else "No changes to apply.")
    return 0


def _update(manager: VersionManager, args: argparse.Namespace) -> int:
    changes = [c for c in manager.check_for_changes() if c.increment_type]
    for change in changes:
        print(f"  {change.filename}: {change.suggested_version} ({change.increment_type.value.upper()})")
        print(f"    Notes: {change.change_notes}")
    return _apply(manager, args)


def _bump(manager: VersionManager, args: argparse.Namespace) -> int:
    if not manager.update_single_version(args.filename, args.increment, args.notes):
        print(f"Could not update {args.filename}", file=sys.stderr)
        return 1
    print("Version updated successfully.")
    return 0


def _history(manager: VersionManager, args: argparse.Namespace) -> int:
    print(manager.show_version_history(args.filename))
    return 0


def _post_build(manager: VersionManager, args: argparse.Namespace) -> int:
    report = manager.post_build_version_check()
    for line in report.problems + report.warnings:
        print(f"  {line}")
    print(f"Total Styleguides: {report.total_guides}")
    print(f"Valid Versions: {report.valid_versions}")
    print(f"Latest Update: {report.latest_update or '-'}")
    return 0 if report.all_valid else 1


def _generate_package(manager: VersionManager, args: argparse.Namespace) -> int:
    result = manager.generate_versioned_package()
    print(f"Package prepared in: {result.output_dir}")
    print(f"Archive: {result.archive_path}")
    print(f"Styleguides: {result.guide_count}, latest update: {result.latest_update}")
    return 0


def _sync(manager: VersionManager, args: argparse.Namespace) -> int:
    summary = sync_files(manager)
    print(
        f"Files processed: {summary.processed}, updated: {summary.updated}, "
        f"skipped: {summary.skipped}, errors: {summary.errors}"
    )
    return 0 if summary.ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="styleguides-versions", description="Style guide version management"
    )
    parser.add_argument("--styleguide-dir", default=None)
    parser.add_argument("--versions-file", default=None)
    parser.add_argument("--no-git", action="store_true", help="Compare content hashes only")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("check").set_defaults(handler=_check)
    subparsers.add_parser("init-hashes").set_defaults(handler=_init_hashes)
    subparsers.add_parser("update").set_defaults(handler=_update)
    subparsers.add_parser("apply").set_defaults(handler=_apply)

    bump = subparsers.add_parser("bump")
    bump.add_argument("filename")
    bump.add_argument("increment", choices=[i.value for i in VersionIncrement])
    bump.add_argument("notes", nargs="?", default=None)
    bump.set_defaults(handler=_bump)

    history = subparsers.add_parser("history")
    history.add_argument("filename", nargs="?", default=None)
    history.set_defaults(handler=_history)

    subparsers.add_parser("post-build").set_defaults(handler=_post_build)
    subparsers.add_parser("generate-package").set_defaults(handler=_generate_package)
    subparsers.add_parser("sync").set_defaults(handler=_sync)

    parser.set_defaults(handler=_check)
    return parser


def main(argv: list[str] | None = None) -> int:
    setup_logging(settings.log_level)
    args = build_parser().parse_args(argv)
    manager = VersionManager(
        styleguide_dir=args.styleguide_dir,
        versions_file=args.versions_file,
        git_enabled=False if args.no_git else None,
    )

    try:
        return args.handler(manager, args)
    except VersionManagerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
