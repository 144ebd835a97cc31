import json

import pytest

from styleguides_site.services.versioning import cli


@pytest.fixture
def run_cli(styleguide_workspace):
    guides, versions_file = styleguide_workspace

    def _run(*args):
        return cli.main(
            ["--styleguide-dir", str(guides), "--versions-file", str(versions_file), "--no-git", *args]
        )

    return _run


def test_default_command_is_check(run_cli, capsys):
    assert run_cli() == 0
    assert "No changes detected" in capsys.readouterr().out


def test_bump_updates_manifest(run_cli, styleguide_workspace, capsys):
    _, versions_file = styleguide_workspace

    assert run_cli("bump", "Business Writing.md", "major", "Neue Struktur") == 0

    entry = json.loads(versions_file.read_text(encoding="utf-8"))["styleguides"]["business-writing"]
    assert entry["version"] == "2.0.0"
    assert entry["changeNotes"] == "Neue Struktur"
    assert "Version updated successfully." in capsys.readouterr().out


def test_bump_rejects_unknown_increment(run_cli):
    with pytest.raises(SystemExit):
        run_cli("bump", "Business Writing.md", "huge")


def test_bump_unknown_file_fails(run_cli, capsys):
    assert run_cli("bump", "Unbekannt.md", "patch") == 1
    assert "Could not update Unbekannt.md" in capsys.readouterr().err


def test_history_for_one_guide(run_cli, capsys):
    assert run_cli("history", "Social Media.md") == 0
    assert "Version History: Social Media" in capsys.readouterr().out


def test_init_hashes_then_check_reports_edit(run_cli, styleguide_workspace, capsys):
    guides, _ = styleguide_workspace
    run_cli("init-hashes")
    (guides / "Social Media.md").write_text("---\nversion: \"1.2.0\"\n---\n\nNeu\n", encoding="utf-8")
    capsys.readouterr()

    assert run_cli("check") == 0
    out = capsys.readouterr().out
    assert "Found changes in 1 file(s):" in out
    assert "- Social Media.md" in out


def test_post_build_exit_code(run_cli, styleguide_workspace):
    guides, _ = styleguide_workspace
    assert run_cli("post-build") == 0

    (guides / "Social Media.md").unlink()
    assert run_cli("post-build") == 1


def test_missing_manifest_is_reported(tmp_path, capsys):
    code = cli.main(["--styleguide-dir", str(tmp_path), "--versions-file", str(tmp_path / "none.json")])

    assert code == 1
    assert "Error: Could not read" in capsys.readouterr().err
