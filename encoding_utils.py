# -*- coding: utf-8 -*-
"""
encoding_utils.py - Mojibake detection and trial-decode encoding recovery.

ID3 text frames marked as ISO-8859-1 (Latin-1) often carry raw bytes from
legacy East-Asian encodings (Shift-JIS, EUC-JP, GB18030, ...) written by
non-conforming taggers. This module decides whether such a byte run is
plausibly real Latin-1 text and, when it is not, recovers the original text
by trying a fixed, ordered list of candidate charsets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

# Output capacity, in code-point slots per input byte, for the first attempt.
_INITIAL_SLOTS_PER_BYTE = 4


class Charset(Enum):
    """Candidate source encodings, in priority order.

    Iteration order is the order the guesser tries them in; the first
    charset that decodes a whole byte run without error wins.
    """

    SHIFT_JIS = "shift_jis"
    EUC_JP = "euc_jp"
    CP932 = "cp932"  # "SJIS-open": Shift-JIS with vendor extensions
    GB18030 = "gb18030"
    UTF_8 = "utf_8"
    UTF_16 = "utf_16"

    @property
    def codec(self) -> str:
        return self.value


_CANDIDATES: tuple[Charset, ...] = tuple(Charset)


class CodecError(Exception):
    """Raised by TextCodec when a decode attempt does not succeed."""


class OutputTooSmall(CodecError):
    """The decoded text does not fit the requested output capacity."""

    def __init__(self, needed: int, capacity: int) -> None:
        super().__init__(f"needed {needed} code points, capacity {capacity}")
        self.needed = needed
        self.capacity = capacity


class InvalidSequence(CodecError):
    """The input is not a valid byte sequence for the charset."""


class TextCodec:
    """Thin adapter over Python's codec registry.

    Decoding is all-or-nothing: a byte run either decodes completely into
    canonical code points or the attempt fails. The capacity argument
    bounds the number of code points a single attempt may produce, so the
    caller can grow its output budget and retry.
    """

    def decode(self, data: bytes, charset: Charset, capacity: int) -> str:
        """Decode ``data`` as ``charset``.

        Args:
            data: Raw bytes to decode.
            charset: Candidate charset to try.
            capacity: Maximum number of code points this attempt may return.

        Returns:
            The decoded text.

        Raises:
            InvalidSequence: If ``data`` is not valid in ``charset``.
            OutputTooSmall: If the text is longer than ``capacity``.
        """
        try:
            text = data.decode(charset.codec)
        except (UnicodeDecodeError, LookupError) as e:
            raise InvalidSequence(f"{charset.name}: {e}") from e
        if len(text) > capacity:
            raise OutputTooSmall(len(text), capacity)
        return text

    def to_single_byte(self, text: str) -> bytes:
        """Recover the raw bytes of text that was decoded as Latin-1.

        Raises:
            UnicodeEncodeError: If ``text`` holds characters above U+00FF,
                meaning it is already proper Unicode.
        """
        return text.encode("latin-1")


@dataclass(frozen=True)
class GuessResult:
    """Winning charset and the text it decoded to."""

    charset: Charset
    text: str


def is_plausible_latin1(data: bytes, canonical: bool = False) -> bool:
    """Check whether a byte run reads as printable Latin-1 text.

    Every byte must be printable ASCII (0x20-0x7E) or fall in the high
    Latin-1 block. Control characters and the DEL/C1 gap mark the whole
    run as mis-encoded.

    Args:
        data: Bytes of the field, as stored under its declared encoding.
        canonical: Use the code-point variant of the rule, which also
            accepts 0xA0 (no-break space). The raw single-byte variant
            starts the high block at 0xA1.

    Returns:
        True if the run is empty or entirely printable.
    """
    high_floor = 0xA0 if canonical else 0xA1
    for b in data:
        if 0x20 <= b <= 0x7E or b >= high_floor:
            continue
        return False
    return True


def guess_encoding(
    data: bytes,
    hint: Charset | None = None,
    codec: TextCodec | None = None,
    initial_capacity: int | None = None,
) -> GuessResult | None:
    """Guess the real source encoding of a mislabelled byte run.

    Candidates are tried in priority order starting at ``hint``. Each
    attempt starts with room for ``4 * len(data)`` code points; when the
    codec reports the output is too small the capacity is doubled and the
    same candidate is retried. Any other decode error moves on to the next
    candidate. When a hint is given and every candidate from the hint
    onward fails, the search restarts at the head of the list and tries
    the candidates before the hint.

    Args:
        data: Raw field bytes.
        hint: Charset to start from, usually the last winner in the file.
        codec: Codec adapter, mostly for tests.
        initial_capacity: Override for the first attempt's capacity.

    Returns:
        The first charset that decodes ``data`` cleanly and its text, or
        None if no candidate does. None is not an error: the caller leaves
        the field as it is.
    """
    codec = codec or TextCodec()
    start = _CANDIDATES.index(hint) if hint is not None else 0
    order = _CANDIDATES[start:] + _CANDIDATES[:start]

    for charset in order:
        capacity = initial_capacity if initial_capacity is not None else _INITIAL_SLOTS_PER_BYTE * len(data)
        while True:
            try:
                text = codec.decode(data, charset, capacity)
            except OutputTooSmall:
                capacity = max(capacity * 2, 1)
                logger.debug("  %s: output too small, retrying with %d slots", charset.name, capacity)
                continue
            except InvalidSequence as e:
                logger.debug("  %s", e)
                break
            logger.info("Guessed encoding: %s", charset.name)
            return GuessResult(charset, text)

    logger.warning("Failed to guess encoding of %r", data)
    return None
