"""
Chunking utilities for indexing source files.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass


DEFAULT_MAX_CHUNK_SIZE = 2000
DEFAULT_OVERLAP = 200

_BOUNDARY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\s*(export\s+)?(async\s+)?function\s+\w+"),
    re.compile(r"^\s*(export\s+)?class\s+\w+"),
    re.compile(r"^\s*(export\s+)?const\s+\w+\s*=\s*(async\s+)?\("),
    re.compile(r"^\s*(public|private|protected)\s+\w+\s*\("),
    re.compile(r"^\s*(async\s+)?def\s+\w+"),  # Python
    re.compile(r"^\s*func\s+\w+"),  # Go
    re.compile(r"^\s*(pub\s+)?fn\s+\w+"),  # Rust
)


@dataclass(frozen=True)
class Chunk:
    """A contiguous run of file lines prepared for embedding."""

    chunk_id: str
    file_path: str
    content: str
    start_line: int
    end_line: int
    language: str


def _line_cost(line: str) -> int:
    # One extra character for the newline that joins it to the next line.
    return len(line) + 1


def _make_chunk(
    lines: list[str],
    file_path: str,
    language: str,
    start_line: int,
    end_line: int,
) -> Chunk:
    return Chunk(
        chunk_id=f"{file_path}:{start_line}-{end_line}",
        file_path=file_path,
        content="\n".join(lines),
        start_line=start_line,
        end_line=end_line,
        language=language,
    )


class CodeChunker:
    """
    Line-based chunker with overlap.

    Chunks never split a line: a single line longer than the size limit is
    emitted whole as its own chunk.
    """

    def chunk(
        self,
        content: str,
        file_path: str,
        language: str,
        *,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
        respect_boundaries: bool = False,
    ) -> list[Chunk]:
        """Chunk by declaration boundaries or by size, as requested."""
        if respect_boundaries:
            return self.chunk_by_function(
                content, file_path, language, max_chunk_size=max_chunk_size
            )
        return self.chunk_file(
            content,
            file_path,
            language,
            max_chunk_size=max_chunk_size,
            overlap=overlap,
        )

    def chunk_file(
        self,
        content: str,
        file_path: str,
        language: str,
        *,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
    ) -> list[Chunk]:
        """
        Split content into size-bounded chunks of whole lines.

        When the next line would push the current chunk past ``max_chunk_size``
        characters, the chunk is closed and the next one is seeded with the
        trailing lines of the closed chunk that fit within ``overlap``.
        """
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be > 0")
        if overlap < 0:
            raise ValueError("overlap must be >= 0")
        if not content:
            return []

        lines = content.split("\n")
        chunks: list[Chunk] = []
        current: list[str] = []
        current_size = 0
        start_line = 1

        for index, line in enumerate(lines):
            line_size = _line_cost(line)

            if current and current_size + line_size > max_chunk_size:
                chunks.append(_make_chunk(current, file_path, language, start_line, index))

                seed = self._overlap_lines(current, overlap)
                seed_size = sum(_line_cost(item) for item in seed)
                while seed and seed_size + line_size > max_chunk_size:
                    seed_size -= _line_cost(seed.pop(0))

                current = seed
                current_size = seed_size
                start_line = index - len(seed) + 1

            current.append(line)
            current_size += line_size

        if current:
            chunks.append(_make_chunk(current, file_path, language, start_line, len(lines)))

        return chunks

    def chunk_by_function(
        self,
        content: str,
        file_path: str,
        language: str,
        *,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    ) -> list[Chunk]:
        """
        Split content at function/class declarations found at brace depth 0.

        A chunk is force-closed once the next line would exceed
        ``max_chunk_size``. Falls back to :meth:`chunk_file` when no chunk
        could be produced.
        """
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be > 0")
        if not content:
            return []

        lines = content.split("\n")
        chunks: list[Chunk] = []
        current: list[str] = []
        current_size = 0
        start_line = 1
        depth = 0

        for index, line in enumerate(lines):
            line_number = index + 1
            line_size = _line_cost(line)
            is_boundary = any(pattern.match(line) for pattern in _BOUNDARY_PATTERNS)

            if current and (
                (is_boundary and depth <= 0)
                or current_size + line_size > max_chunk_size
            ):
                chunks.append(
                    _make_chunk(current, file_path, language, start_line, line_number - 1)
                )
                current = []
                current_size = 0
                start_line = line_number

            current.append(line)
            current_size += line_size
            depth += line.count("{") - line.count("}")

        if current:
            chunks.append(_make_chunk(current, file_path, language, start_line, len(lines)))

        if not chunks:
            return self.chunk_file(
                content, file_path, language, max_chunk_size=max_chunk_size
            )
        return chunks

    @staticmethod
    def should_chunk(content: str, max_size: int = DEFAULT_MAX_CHUNK_SIZE) -> bool:
        return len(content) > max_size

    def estimate_chunk_count(
        self,
        content: str,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
    ) -> int:
        """Rough chunk count for a file, without chunking it."""
        if not self.should_chunk(content, max_chunk_size):
            return 1
        effective = max(max_chunk_size - overlap, 1)
        return math.ceil(len(content) / effective)

    @staticmethod
    def _overlap_lines(lines: list[str], overlap: int) -> list[str]:
        """Trailing whole lines whose combined cost stays within ``overlap``."""
        selected: list[str] = []
        size = 0
        for line in reversed(lines):
            cost = _line_cost(line)
            if size + cost > overlap:
                break
            selected.insert(0, line)
            size += cost
        return selected
