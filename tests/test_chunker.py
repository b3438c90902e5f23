"""Tests for line-based and boundary-aware chunking."""

from __future__ import annotations

import pytest

from repo_search.indexing.chunker import Chunk, CodeChunker


def _reconstruct(chunks: list[Chunk]) -> list[str]:
    """Stitch chunk lines back together, skipping lines already covered."""
    lines: list[str] = []
    for chunk in chunks:
        chunk_lines = chunk.content.split("\n")
        already_covered = len(lines) - (chunk.start_line - 1)
        assert already_covered >= 0, "chunks must not leave gaps"
        lines.extend(chunk_lines[already_covered:])
    return lines


def test_empty_content_yields_no_chunks() -> None:
    assert CodeChunker().chunk_file("", "empty.py", "Python") == []


def test_small_file_is_single_chunk() -> None:
    content = "import os\n\nprint(os.getcwd())"
    chunks = CodeChunker().chunk_file(content, "main.py", "Python")

    assert len(chunks) == 1
    only = chunks[0]
    assert only.content == content
    assert (only.start_line, only.end_line) == (1, 3)
    assert only.chunk_id == "main.py:1-3"
    assert only.language == "Python"


def test_hundred_line_file_with_small_limit_overlaps() -> None:
    content = "\n".join(f"line {i}" for i in range(1, 101))
    chunks = CodeChunker().chunk_file(
        content, "big.txt", "Text", max_chunk_size=50, overlap=10
    )

    assert len(chunks) >= 2
    for chunk in chunks:
        assert len(chunk.content) <= 50
        assert chunk.start_line <= chunk.end_line
    for previous, current in zip(chunks, chunks[1:]):
        assert current.start_line <= previous.end_line
        last_line = previous.content.split("\n")[-1]
        assert current.content.split("\n")[0] == last_line


def test_chunks_reconstruct_original_lines() -> None:
    content = "\n".join(
        f"{'x' * (i % 17)} statement_{i}();" for i in range(1, 240)
    )
    chunks = CodeChunker().chunk_file(
        content, "gen.js", "JavaScript", max_chunk_size=120, overlap=40
    )

    assert _reconstruct(chunks) == content.split("\n")
    assert chunks[-1].end_line == len(content.split("\n"))


def test_zero_overlap_produces_disjoint_chunks() -> None:
    content = "\n".join(f"value_{i} = {i}" for i in range(60))
    chunks = CodeChunker().chunk_file(
        content, "values.py", "Python", max_chunk_size=64, overlap=0
    )

    for previous, current in zip(chunks, chunks[1:]):
        assert current.start_line == previous.end_line + 1
    assert _reconstruct(chunks) == content.split("\n")


def test_oversized_line_is_kept_whole() -> None:
    long_line = "y" * 500
    content = f"short = 1\n{long_line}\nafter = 2"
    chunks = CodeChunker().chunk_file(
        content, "long.py", "Python", max_chunk_size=100, overlap=20
    )

    assert any(chunk.content == long_line for chunk in chunks)
    assert all(long_line in c.content or len(c.content) <= 100 for c in chunks)
    assert _reconstruct(chunks) == content.split("\n")


def test_trailing_newline_is_preserved() -> None:
    content = "a = 1\nb = 2\n"
    chunks = CodeChunker().chunk_file(content, "t.py", "Python")

    assert chunks[0].content == content
    assert chunks[0].end_line == 3


def test_chunk_ids_are_unique_per_file() -> None:
    content = "\n".join("z" * 30 for _ in range(50))
    chunks = CodeChunker().chunk_file(
        content, "dup.txt", "Text", max_chunk_size=70, overlap=60
    )

    ids = [chunk.chunk_id for chunk in chunks]
    assert len(ids) == len(set(ids))


@pytest.mark.parametrize(
    ("max_chunk_size", "overlap"),
    [(0, 0), (-5, 0), (100, -1)],
)
def test_invalid_options_raise(max_chunk_size: int, overlap: int) -> None:
    with pytest.raises(ValueError):
        CodeChunker().chunk_file(
            "x", "x.py", "Python", max_chunk_size=max_chunk_size, overlap=overlap
        )


def test_chunk_by_function_splits_at_top_level_declarations() -> None:
    content = (
        "import os\n"
        "\n"
        "def first():\n"
        "    return 1\n"
        "\n"
        "class Second:\n"
        "    def method(self):\n"
        "        return 2\n"
    )
    chunks = CodeChunker().chunk_by_function(content, "mod.py", "Python")

    starts = [chunk.content.split("\n")[0] for chunk in chunks]
    assert starts[0] == "import os"
    assert "def first():" in starts
    assert "class Second:" in starts
    assert _reconstruct(chunks) == content.split("\n")


def test_chunk_by_function_ignores_nested_declarations() -> None:
    content = (
        "export class Service {\n"
        "  private helper(x) {\n"
        "    return x;\n"
        "  }\n"
        "}\n"
        "export function run() {\n"
        "  return new Service();\n"
        "}"
    )
    chunks = CodeChunker().chunk_by_function(content, "svc.ts", "TypeScript")

    assert [(c.start_line, c.end_line) for c in chunks] == [(1, 5), (6, 8)]


def test_chunk_by_function_force_closes_large_blocks() -> None:
    body = "\n".join(f"    step_{i}();" for i in range(200))
    content = "function huge() {\n" + body + "\n}"
    chunks = CodeChunker().chunk_by_function(
        content, "huge.js", "JavaScript", max_chunk_size=300
    )

    assert len(chunks) > 1
    assert all(len(chunk.content) <= 300 for chunk in chunks)
    assert _reconstruct(chunks) == content.split("\n")


def test_chunk_by_function_without_boundaries_still_chunks() -> None:
    content = "just some prose\nwithout any code\n"
    chunks = CodeChunker().chunk_by_function(content, "notes.txt", "Text")

    assert len(chunks) == 1
    assert chunks[0].content == content


def test_chunk_dispatches_on_respect_boundaries() -> None:
    content = "def a():\n    pass\n\ndef b():\n    pass"
    chunker = CodeChunker()

    by_size = chunker.chunk(content, "f.py", "Python", respect_boundaries=False)
    by_function = chunker.chunk(content, "f.py", "Python", respect_boundaries=True)

    assert len(by_size) == 1
    assert len(by_function) == 2


def test_estimate_chunk_count() -> None:
    chunker = CodeChunker()

    assert chunker.estimate_chunk_count("tiny") == 1
    assert chunker.should_chunk("a" * 2001)
    assert chunker.estimate_chunk_count("a" * 3600, 2000, 200) == 2
