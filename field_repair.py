# -*- coding: utf-8 -*-
"""
field_repair.py - Repair mislabelled Latin-1 fields of ID3 text frames.

A text frame declares one encoding for all of its string fields. When a
frame claims Latin-1 but a field's bytes are not plausible Latin-1, each
such field is re-decoded with guess_encoding() and the frame is retagged
as UTF-8.

Fields come in three shapes, each a frozen dataclass. A value is ``bytes``
while it is still in its declared single-byte form and ``str`` once it
has been repaired.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from mutagen.id3 import Encoding

from encoding_utils import Charset, guess_encoding, is_plausible_latin1

logger = logging.getLogger(__name__)

CANONICAL_ENCODING = Encoding.UTF8


@dataclass(frozen=True)
class Scalar:
    """A single string, e.g. the description of a TXXX frame."""

    value: bytes | str


@dataclass(frozen=True)
class FullScalar:
    """A single "full text" string; differs from Scalar only in how the
    container stores it."""

    value: bytes | str


@dataclass(frozen=True)
class StringList:
    """Several strings sharing the frame's declared encoding."""

    values: tuple[bytes | str, ...]


TextField = Union[Scalar, FullScalar, StringList]


class Status(Enum):
    UNCHANGED = "unchanged"
    REPAIRED = "repaired"
    FAILED = "failed"


@dataclass(frozen=True)
class RepairOutcome:
    """Result of repairing one field.

    ``field`` is the field to keep: the new value when repaired, the
    original otherwise. ``charsets`` holds one winning charset per
    repaired string.
    """

    status: Status
    field: TextField
    charsets: tuple[Charset, ...] = ()


@dataclass
class TagFrame:
    """A text frame as seen by the repairer.

    Attributes:
        frame_id: Four-character ID3 frame identifier.
        encoding: Declared text encoding, or None if the frame has no
            encoding sub-field.
        fields: Text-capable fields keyed by attribute name.
        encoded: True for frames whose content is opaque (compressed or
            otherwise pre-encoded) and must not be touched.
    """

    frame_id: str
    encoding: int | None
    fields: dict[str, TextField] = field(default_factory=dict)
    encoded: bool = False


@dataclass(frozen=True)
class FrameRepair:
    outcomes: dict[str, RepairOutcome]
    hint: Charset | None = None

    @property
    def repaired(self) -> bool:
        # A frame with a failed field is rolled back as a whole.
        return not self.unresolved and any(
            o.status is Status.REPAIRED for o in self.outcomes.values()
        )

    @property
    def unresolved(self) -> bool:
        return any(o.status is Status.FAILED for o in self.outcomes.values())


def _is_plausible_value(value: bytes | str) -> bool:
    # Canonical text never needs repair.
    return isinstance(value, str) or is_plausible_latin1(value)


def is_plausible_field(fld: TextField) -> bool:
    """Check whether a field already reads as valid Latin-1.

    A StringList is plausible only if every element is: one implausible
    element sends the whole list back to the guesser.
    """
    if isinstance(fld, StringList):
        return all(_is_plausible_value(v) for v in fld.values)
    return _is_plausible_value(fld.value)


def repair_field(fld: TextField, hint: Charset | None = None) -> RepairOutcome:
    """Re-decode an implausible field with the first charset that fits.

    Scalars are replaced by a scalar of the same shape holding the decoded
    text. Each element of a StringList is guessed on its own, since
    different taggers may have written different elements; the list is
    only replaced if every element decodes, otherwise it is left exactly
    as it was.

    Args:
        fld: Field in its declared single-byte form.
        hint: Charset to start guessing from.

    Returns:
        The outcome, carrying the field value to keep.
    """
    if is_plausible_field(fld):
        return RepairOutcome(Status.UNCHANGED, fld)

    if isinstance(fld, StringList):
        texts: list[str] = []
        charsets: list[Charset] = []
        for i, value in enumerate(fld.values):
            if isinstance(value, str):
                texts.append(value)
                continue
            guess = guess_encoding(value, hint)
            if guess is None:
                logger.warning("    element %d undecodable, keeping the whole list", i)
                return RepairOutcome(Status.FAILED, fld)
            texts.append(guess.text)
            charsets.append(guess.charset)
        return RepairOutcome(Status.REPAIRED, StringList(tuple(texts)), tuple(charsets))

    guess = guess_encoding(fld.value, hint)
    if guess is None:
        return RepairOutcome(Status.FAILED, fld)
    return RepairOutcome(Status.REPAIRED, type(fld)(guess.text), (guess.charset,))


def repair_frame(frame: TagFrame, hint: Charset | None = None) -> FrameRepair:
    """Repair every field of a Latin-1 frame in place.

    Repaired fields replace the originals in ``frame.fields`` and the
    frame's declared encoding is switched to UTF-8. The frame is all-old
    or all-new: if any field cannot be decoded, the repaired fields are
    put back and the frame stays Latin-1. Frames declaring any other
    encoding are passed through.

    Returns:
        Per-field outcomes, plus the last winning charset as the hint for
        the next frame of the same file.
    """
    if frame.encoding != Encoding.LATIN1:
        logger.info("  %s: text encoding not latin-1, leaving alone", frame.frame_id)
        return FrameRepair({}, hint)

    original = dict(frame.fields)
    start_hint = hint
    outcomes: dict[str, RepairOutcome] = {}
    for name, fld in original.items():
        outcome = repair_field(fld, hint)
        outcomes[name] = outcome
        if outcome.status is Status.REPAIRED:
            frame.fields[name] = outcome.field
            hint = outcome.charsets[-1] if outcome.charsets else hint
        logger.debug("    field %s: %s", name, outcome.status.value)

    result = FrameRepair(outcomes, hint)
    if result.unresolved:
        # All-old or all-new.
        frame.fields = original
        return FrameRepair(outcomes, start_hint)
    if result.repaired:
        frame.encoding = CANONICAL_ENCODING
    else:
        logger.info("  %s: actually latin-1", frame.frame_id)
    return result
