"""Line-aligned content chunking for full-text retrieval."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MAX_LINES = 120
DEFAULT_MAX_BYTES = 8 * 1024


@dataclass(frozen=True, slots=True)
class ContentChunk:
    """A bounded window of a file. Lines are 1-based and inclusive."""

    index: int
    start_line: int
    end_line: int
    content: str


def chunk_content(
    content: str,
    max_lines: int = DEFAULT_MAX_LINES,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> list[ContentChunk]:
    """Split content on newlines into chunks of at most max_lines / max_bytes.

    A line costs its UTF-8 length plus one for the newline (except the final
    line). The buffer is flushed before a line that would overflow either
    limit, so a single oversized line still forms its own chunk.
    """
    if max_lines <= 0:
        max_lines = DEFAULT_MAX_LINES
    if max_bytes <= 0:
        max_bytes = DEFAULT_MAX_BYTES

    lines = content.split("\n")
    last = len(lines) - 1
    chunks: list[ContentChunk] = []
    buffer: list[str] = []
    current_bytes = 0
    start_line = 1

    def flush() -> None:
        nonlocal current_bytes, start_line
        if not buffer:
            return
        end_line = start_line + len(buffer) - 1
        chunks.append(
            ContentChunk(
                index=len(chunks),
                start_line=start_line,
                end_line=end_line,
                content="\n".join(buffer),
            )
        )
        buffer.clear()
        current_bytes = 0
        start_line = end_line + 1

    for i, line in enumerate(lines):
        line_bytes = len(line.encode("utf-8"))
        if i < last:
            line_bytes += 1
        if len(buffer) >= max_lines or current_bytes + line_bytes > max_bytes:
            flush()
        buffer.append(line)
        current_bytes += line_bytes
    flush()
    return chunks
