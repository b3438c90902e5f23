"""
Default repository scanner: finds indexable source files and their language.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import pathspec

log = logging.getLogger("repo_search.scanner")

UNKNOWN_LANGUAGE = "unknown"

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".py": "Python",
    ".pyw": "Python",
    ".java": "Java",
    ".go": "Go",
    ".rs": "Rust",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".cc": "C++",
    ".cxx": "C++",
    ".hpp": "C++",
    ".cs": "C#",
    ".rb": "Ruby",
    ".php": "PHP",
    ".swift": "Swift",
    ".kt": "Kotlin",
    ".kts": "Kotlin",
    ".scala": "Scala",
    ".r": "R",
    ".sh": "Shell",
    ".bash": "Shell",
    ".zsh": "Shell",
    ".ps1": "PowerShell",
    ".sql": "SQL",
    ".html": "HTML",
    ".htm": "HTML",
    ".css": "CSS",
    ".scss": "SCSS",
    ".less": "Less",
    ".json": "JSON",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".toml": "TOML",
    ".xml": "XML",
    ".md": "Markdown",
    ".markdown": "Markdown",
    ".rst": "reStructuredText",
    ".txt": "Text",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".lua": "Lua",
    ".dart": "Dart",
}

SKIPPED_DIRECTORIES: frozenset[str] = frozenset(
    {
        ".git",
        ".svn",
        ".hg",
        "node_modules",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".venv",
        "venv",
        ".env",
        ".tox",
        ".nyc_output",
        "dist",
        "build",
        "coverage",
        ".idea",
        ".vscode",
    }
)

DEFAULT_MAX_FILE_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ScannedFile:
    """An indexable file, relative to the scanned root."""

    relative_path: str
    language: str
    size_bytes: int


def detect_language(path: str) -> str:
    """Map a file path to a language name by extension."""
    return LANGUAGE_BY_EXTENSION.get(Path(path).suffix.lower(), UNKNOWN_LANGUAGE)


def exclude_matching(
    files: Iterable[ScannedFile], patterns: Iterable[str]
) -> list[ScannedFile]:
    """Drop files matched by gitignore-style ``patterns``."""
    pattern_list = [p for p in patterns if p.strip()]
    if not pattern_list:
        return list(files)
    spec = pathspec.GitIgnoreSpec.from_lines(pattern_list)
    return [f for f in files if not spec.match_file(f.relative_path)]


class FileScanner:
    """Walk a repository and list source files with a detectable language."""

    def __init__(
        self,
        *,
        max_depth: int = 10,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        respect_gitignore: bool = True,
    ) -> None:
        self.max_depth = max_depth
        self.max_file_size = max_file_size
        self.respect_gitignore = respect_gitignore

    def scan(self, root: str) -> list[ScannedFile]:
        root_path = Path(root).resolve()
        if not root_path.is_dir():
            raise NotADirectoryError(f"No such directory: {root_path}")

        ignore_spec = self._load_gitignore(root_path) if self.respect_gitignore else None
        files: list[ScannedFile] = []

        for current_root, dirnames, filenames in os.walk(root_path):
            current = Path(current_root)
            depth = len(current.relative_to(root_path).parts)
            if depth >= self.max_depth:
                dirnames[:] = []
            dirnames[:] = sorted(
                d
                for d in dirnames
                if d not in SKIPPED_DIRECTORIES
                and not self._ignored(ignore_spec, (current / d).relative_to(root_path), True)
            )

            for filename in sorted(filenames):
                full_path = current / filename
                relative = full_path.relative_to(root_path)
                if self._ignored(ignore_spec, relative, False):
                    continue
                language = detect_language(filename)
                if language == UNKNOWN_LANGUAGE:
                    continue
                try:
                    size = full_path.stat().st_size
                except OSError as exc:
                    log.warning("Cannot stat %s: %s", relative, exc)
                    continue
                if size > self.max_file_size:
                    log.debug("Skipping %s (%d bytes)", relative, size)
                    continue
                files.append(
                    ScannedFile(
                        relative_path=relative.as_posix(),
                        language=language,
                        size_bytes=size,
                    )
                )

        files.sort(key=lambda f: f.relative_path)
        return files

    def detect_language(self, path: str) -> str:
        return detect_language(path)

    @staticmethod
    def _load_gitignore(root: Path) -> pathspec.PathSpec | None:
        gitignore = root / ".gitignore"
        if not gitignore.is_file():
            return None
        try:
            lines = gitignore.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            log.warning("Cannot read %s: %s", gitignore, exc)
            return None
        return pathspec.GitIgnoreSpec.from_lines(lines)

    @staticmethod
    def _ignored(spec: pathspec.PathSpec | None, relative: Path, is_dir: bool) -> bool:
        if spec is None:
            return False
        candidate = relative.as_posix() + ("/" if is_dir else "")
        return spec.match_file(candidate)
