"""Tests for the command line interface."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from documenter_search_index.cli import main

FIXTURE = Path(__file__).parent / "fixtures" / "search_index.js"


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path of a temporary database.

    Args:
        tmp_path: Pytest temporary directory fixture.

    Returns:
        Database file path.
    """
    return tmp_path / "cli.db"


def test_index_and_search(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test indexing a file and searching it."""
    assert main(["--db", str(db_path), "index", str(FIXTURE), "--base-url", "https://example.org/docs"]) == 0
    assert "Indexed 14 entries" in capsys.readouterr().out

    assert main(["--db", str(db_path), "search", "dimnames"]) == 0
    out = capsys.readouterr().out
    assert "[root] NamedDims.dimnames (method, Home)" in out
    assert "https://example.org/docs/#NamedDims.dimnames-Tuple{AxisSets.Dataset}" in out


def test_search_no_results(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test searching an empty index."""
    assert main(["--db", str(db_path), "search", "anything"]) == 0
    assert "No results" in capsys.readouterr().out


def test_stats(db_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test entry counts per build."""
    build_dir = tmp_path / "site" / "stable"
    build_dir.mkdir(parents=True)
    (build_dir / "search_index.js").write_bytes(FIXTURE.read_bytes())
    main(["--db", str(db_path), "index", str(tmp_path / "site")])
    capsys.readouterr()

    assert main(["--db", str(db_path), "stats"]) == 0
    out = capsys.readouterr().out
    assert "stable: 14 entries" in out
    assert "total: 14 entries in 1 builds" in out


def test_export_roundtrip(db_path: Path, tmp_path: Path) -> None:
    """Test that an exported build matches the indexed file."""
    output = tmp_path / "search_index.js"
    main(["--db", str(db_path), "index", str(FIXTURE)])

    assert main(["--db", str(db_path), "export", "root", "-o", str(output)]) == 0
    assert output.read_bytes() == FIXTURE.read_bytes()


def test_export_to_stdout(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test exporting a build to standard output."""
    main(["--db", str(db_path), "index", str(FIXTURE)])
    capsys.readouterr()

    assert main(["--db", str(db_path), "export", "root"]) == 0
    assert capsys.readouterr().out == FIXTURE.read_text(encoding="utf-8")


def test_export_unknown_version(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test exporting a build that was never indexed."""
    assert main(["--db", str(db_path), "export", "v1.0.0"]) == 1
    assert "Unknown build version: v1.0.0" in capsys.readouterr().err


def test_index_missing_path(db_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that a missing path is reported as an error."""
    assert main(["--db", str(db_path), "index", str(tmp_path / "missing")]) == 1
    assert "Documentation path does not exist" in capsys.readouterr().err


def test_index_git_url(db_path: Path) -> None:
    """Test that git URLs are cloned instead of read from disk."""
    with patch("documenter_search_index.cli.DocumenterIndexer.index_from_git", return_value=0) as mock_index:
        assert main(["--db", str(db_path), "index", "https://github.com/invenia/AxisSets.jl.git"]) == 0

    mock_index.assert_called_once_with("https://github.com/invenia/AxisSets.jl.git", "gh-pages")


def test_index_git_failure(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that a failed clone is reported as an error."""
    error = subprocess.CalledProcessError(128, ["git", "clone"], stderr=b"fatal: repository not found")
    with patch("subprocess.run", side_effect=error):
        assert main(["--db", str(db_path), "index", "git@github.com:invenia/Missing.jl.git"]) == 1

    assert "fatal: repository not found" in capsys.readouterr().err


def test_db_path_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that the database location can come from the environment."""
    db_path = tmp_path / "env.db"
    monkeypatch.setenv("DOCUMENTER_SEARCH_INDEX_DB", str(db_path))

    assert main(["index", str(FIXTURE)]) == 0
    assert db_path.exists()


def test_unknown_category(db_path: Path) -> None:
    """Test that argparse rejects categories outside the closed set."""
    with pytest.raises(SystemExit) as excinfo:
        main(["--db", str(db_path), "search", "x", "--category", "widget"])

    assert excinfo.value.code == 2


def test_export_keeps_custom_binding(db_path: Path, tmp_path: Path) -> None:
    """Test that an exported build keeps the variable name it was indexed with."""
    source_file = tmp_path / "search_index.js"
    source = FIXTURE.read_text(encoding="utf-8").replace("var documenterSearchIndex", "var searchData", 1)
    source_file.write_text(source, encoding="utf-8")
    output = tmp_path / "out.js"
    main(["--db", str(db_path), "index", str(source_file)])

    assert main(["--db", str(db_path), "export", "root", "-o", str(output)]) == 0
    assert output.read_text(encoding="utf-8") == source


def test_rebuild_missing_path_keeps_index(db_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that a mistyped path does not wipe stored builds."""
    main(["--db", str(db_path), "index", str(FIXTURE)])

    assert main(["--db", str(db_path), "index", str(tmp_path / "missing"), "--rebuild"]) == 1
    assert "Documentation path does not exist" in capsys.readouterr().err

    assert main(["--db", str(db_path), "stats"]) == 0
    assert "root: 14 entries" in capsys.readouterr().out


@pytest.mark.parametrize("limit", ["0", "-1", "ten"])
def test_search_rejects_bad_limit(db_path: Path, limit: str) -> None:
    """Test that argparse rejects limits below 1."""
    with pytest.raises(SystemExit) as excinfo:
        main(["--db", str(db_path), "search", "x", "--limit", limit])

    assert excinfo.value.code == 2


def test_search_limit(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that the result limit is applied."""
    main(["--db", str(db_path), "index", str(FIXTURE)])
    capsys.readouterr()

    assert main(["--db", str(db_path), "search", "constraints", "--limit", "1"]) == 0
    assert capsys.readouterr().out.count("[root]") == 1


def test_unopenable_database(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that a database in a missing directory is reported as an error."""
    db_path = tmp_path / "missing" / "cli.db"

    assert main(["--db", str(db_path), "stats"]) == 1
    assert "error: database" in capsys.readouterr().err
