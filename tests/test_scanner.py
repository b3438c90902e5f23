"""Tests for repository scanning and language detection."""

from __future__ import annotations

from pathlib import Path

import pytest

from repo_search.scanner import (
    UNKNOWN_LANGUAGE,
    FileScanner,
    ScannedFile,
    detect_language,
    exclude_matching,
)


@pytest.mark.parametrize(
    ("path", "language"),
    [
        ("src/app.ts", "TypeScript"),
        ("lib/Main.JAVA", "Java"),
        ("tool.py", "Python"),
        ("docs/readme.md", "Markdown"),
        ("image.png", UNKNOWN_LANGUAGE),
        ("Makefile", UNKNOWN_LANGUAGE),
    ],
)
def test_detect_language(path: str, language: str) -> None:
    assert detect_language(path) == language


def test_scan_lists_known_files_sorted(repo: Path) -> None:
    (repo / "logo.png").write_bytes(b"\x89PNG")

    files = FileScanner().scan(str(repo))

    assert [f.relative_path for f in files] == [
        "README.md",
        "src/auth.py",
        "src/math_utils.py",
    ]
    assert files[1].language == "Python"
    assert files[1].size_bytes == (repo / "src" / "auth.py").stat().st_size


def test_scan_skips_vendor_directories(repo: Path) -> None:
    (repo / "node_modules" / "pkg").mkdir(parents=True)
    (repo / "node_modules" / "pkg" / "index.js").write_text("module.exports = 1;\n")
    (repo / ".git").mkdir()
    (repo / ".git" / "hook.sh").write_text("echo hi\n")

    paths = {f.relative_path for f in FileScanner().scan(str(repo))}

    assert not any(p.startswith(("node_modules/", ".git/")) for p in paths)


def test_scan_respects_gitignore(repo: Path) -> None:
    (repo / "generated").mkdir()
    (repo / "generated" / "out.js").write_text("var x = 1;\n")
    (repo / ".gitignore").write_text("generated/\n*.md\n")

    paths = {f.relative_path for f in FileScanner().scan(str(repo))}
    unfiltered = {
        f.relative_path for f in FileScanner(respect_gitignore=False).scan(str(repo))
    }

    assert paths == {"src/auth.py", "src/math_utils.py"}
    assert {"generated/out.js", "README.md"} <= unfiltered


def test_scan_skips_large_and_deep_files(repo: Path) -> None:
    (repo / "big.py").write_text("x = 1\n" * 100)
    deep = repo / "a" / "b" / "c"
    deep.mkdir(parents=True)
    (deep / "deep.py").write_text("y = 2\n")

    paths = {
        f.relative_path
        for f in FileScanner(max_depth=2, max_file_size=200).scan(str(repo))
    }

    assert "big.py" not in paths
    assert "a/b/c/deep.py" not in paths
    assert "src/auth.py" in paths


def test_scan_rejects_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(NotADirectoryError):
        FileScanner().scan(str(tmp_path / "missing"))


def test_exclude_matching() -> None:
    files = [
        ScannedFile("src/a.py", "Python", 1),
        ScannedFile("tests/test_a.py", "Python", 1),
        ScannedFile("docs/guide.md", "Markdown", 1),
    ]

    kept = exclude_matching(files, ["tests/", "*.md"])

    assert [f.relative_path for f in kept] == ["src/a.py"]
    assert exclude_matching(files, []) == files
