"""Split text into wire-sized chunks.

Chunks are cut at the most natural break point that still leaves the chunk
at least half full, then numbered ``(i/N)`` so the recipient can follow the
order.
"""
from __future__ import annotations

from whatsapp_gateway.domain.formatting.markup import to_wire_markup

MAX_MESSAGE_LENGTH = 4096
SAFE_MESSAGE_LENGTH = 4000  # leaves room for the "(i/N)" prefix

# Highest priority first; separators in one group compete on position.
BREAK_SEPARATORS: tuple[tuple[str, ...], ...] = (
    ("\n\n",),
    ("\n",),
    (". ", "! ", "? "),
    (", ",),
    (" ",),
)


def chunk_message(text: str) -> list[str]:
    if not text or not text.strip():
        return []
    if len(text) <= MAX_MESSAGE_LENGTH:
        return [text]

    pieces: list[str] = []
    remaining = text.strip()
    while remaining:
        if len(remaining) <= SAFE_MESSAGE_LENGTH:
            pieces.append(remaining)
            break
        cut = _find_cut(remaining)
        piece = remaining[:cut].rstrip()
        remaining = remaining[cut:].lstrip()
        if piece:
            pieces.append(piece)

    if len(pieces) == 1:
        return pieces

    total = len(pieces)
    return [f"({index}/{total})\n\n{piece}" for index, piece in enumerate(pieces, start=1)]


def _find_cut(text: str) -> int:
    """Return the index to cut ``text`` at, never above SAFE_MESSAGE_LENGTH.

    Only the window after the midpoint is searched, so each scan is bounded
    by the chunk size rather than the full text.
    """
    floor = SAFE_MESSAGE_LENGTH // 2
    for group in BREAK_SEPARATORS:
        best = -1
        for separator in group:
            position = text.rfind(separator, floor + 1, SAFE_MESSAGE_LENGTH)
            if position != -1:
                best = max(best, position + len(separator))
        if best != -1:
            return best
    return SAFE_MESSAGE_LENGTH


def format_ai_response(text: str) -> list[str]:
    return chunk_message(to_wire_markup(text))
