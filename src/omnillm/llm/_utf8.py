"""Incremental UTF-8 decoding for byte streams split at arbitrary boundaries."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# Longest prefix of a 4-byte sequence that can still be incomplete.
_MAX_TAIL = 3


def _sequence_length(lead: int) -> int:
    """Return the encoded length announced by a lead byte, or 0 if invalid."""
    if 0xC2 <= lead <= 0xDF:
        return 2
    if 0xE0 <= lead <= 0xEF:
        return 3
    if 0xF0 <= lead <= 0xF4:
        return 4
    return 0


def incomplete_tail_length(data: bytes) -> int:
    """Length of the trailing bytes of ``data`` that start an unfinished character.

    Scans back at most three bytes for a lead byte. Returns 0 when the buffer
    ends on a complete character or on bytes that can never become valid.
    """
    for size in range(1, min(_MAX_TAIL, len(data)) + 1):
        byte = data[-size]
        if byte & 0xC0 == 0x80:
            continue
        needed = _sequence_length(byte)
        return size if size < needed else 0
    return 0


class Utf8StreamDecoder:
    """Turns raw byte chunks into text without ever splitting a character.

    Usage::

        decoder = Utf8StreamDecoder()
        decoder.decode(b"\\xe4\\xb8")  # ""
        decoder.decode(b"\\xad")      # "中"
        decoder.flush()              # ""

    Invalid byte runs are dropped rather than replaced with U+FFFD. A
    decoder belongs to a single stream; call :meth:`reset` before reusing it.
    """

    def __init__(self) -> None:
        self._tail = b""

    def decode(self, chunk: bytes) -> str:
        """Decode ``chunk`` plus any buffered tail, holding back an unfinished character."""
        if not chunk:
            return ""
        data = self._tail + chunk
        cut = len(data) - incomplete_tail_length(data)
        self._tail = data[cut:]
        return self._decode_complete(data[:cut])

    def flush(self) -> str:
        """Finish the stream. A leftover partial character can never complete, so drop it."""
        if self._tail:
            logger.warning(
                "Discarding %d byte(s) of an incomplete UTF-8 sequence at end of stream",
                len(self._tail),
            )
        self._tail = b""
        return ""

    def reset(self) -> None:
        self._tail = b""

    def has_buffered_bytes(self) -> bool:
        return bool(self._tail)

    def buffered_byte_count(self) -> int:
        return len(self._tail)

    @staticmethod
    def _decode_complete(data: bytes) -> str:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            text = data.decode("utf-8", errors="ignore")
            logger.warning(
                "Skipped %d invalid UTF-8 byte(s) in stream",
                len(data) - len(text.encode("utf-8")),
            )
            return text
