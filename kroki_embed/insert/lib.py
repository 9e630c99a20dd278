"""Insert a line of text into diagram source.

Used to inject a fixed preamble, e.g. ``!theme sketchy-outline`` right after
``@startuml``, before the source is encoded.
"""

from kroki_embed.config import InsertDirective
from kroki_embed.core import KrokiEmbedError


class InsertionError(KrokiEmbedError, ValueError):
    """Insertion line is outside the text."""


def insert_after_line(text: str, line_number: int, to_insert: str) -> str:
    """Insert ``to_insert`` as its own line after ``line_number`` lines.

    Line 0 prefixes the text. For any other line the text is split on
    ``"\\n"`` and every line, the inserted one included, is re-emitted with
    a trailing newline:

        >>> insert_after_line("a\\nb\\nc", 1, "X")
        'a\\nX\\nb\\nc\\n'

    Raises:
        InsertionError: If ``line_number`` is negative or not followed by
            another line of ``text``.
    """
    if line_number < 0:
        raise InsertionError(f"Line number must be non-negative, got {line_number}")
    if line_number == 0:
        return to_insert + "\n" + text

    lines = text.split("\n")
    if line_number >= len(lines):
        raise InsertionError(
            f"Cannot insert after line {line_number}: text has {len(lines)} line(s)"
        )

    result: list[str] = []
    for index, line in enumerate(lines):
        if index == line_number:
            result.append(to_insert + "\n")
        result.append(line + "\n")
    return "".join(result)


def apply_directive(text: str, directive: InsertDirective) -> str:
    """Apply an insert directive; a directive without content is a no-op."""
    if not directive.enabled:
        return text
    return insert_after_line(text, directive.after_line, directive.content)


__all__ = ["InsertionError", "apply_directive", "insert_after_line"]
