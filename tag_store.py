# -*- coding: utf-8 -*-
"""
tag_store.py - mutagen-backed access to the ID3 frames of an MP3 file.

Encapsulates all mutagen interactions in a single class: opening a tag,
turning mutagen frames into TagFrame objects the repairer understands,
and writing repaired values back to disk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from mutagen import MutagenError
from mutagen.id3 import ID3, Frame

from encoding_utils import TextCodec
from field_repair import FullScalar, Scalar, StringList, TagFrame, TextField

logger = logging.getLogger(__name__)

# Frame attributes that hold encoded strings, in mutagen framespec order.
_TEXT_ATTRS = ("desc", "text", "people")


@dataclass
class TagHandle:
    path: str
    tags: ID3
    frames: list[tuple[Frame, TagFrame]] = field(default_factory=list)

    @property
    def version(self) -> str:
        return ".".join(str(v) for v in self.tags.version)


class TagStore:
    """Open, enumerate and save ID3 tags.

    Args:
        codec: Used to turn mutagen's Latin-1 strings back into raw bytes.
    """

    def __init__(self, codec: TextCodec | None = None) -> None:
        self.codec = codec or TextCodec()

    def open(self, path: str) -> TagHandle | None:
        """Load the ID3 tag of ``path``.

        Returns:
            A handle, or None if the file has no readable ID3 tag.
        """
        try:
            tags = ID3(path)
        except MutagenError as e:
            logger.debug("%s: no usable ID3 tag (%s)", path, e)
            return None
        return TagHandle(path, tags)

    def enumerate_frames(self, handle: TagHandle) -> list[TagFrame]:
        """Build a TagFrame for every frame of the tag, in tag order."""
        handle.frames = []
        for frame in handle.tags.values():
            handle.frames.append((frame, self._to_tag_frame(frame)))
        return [tag_frame for _, tag_frame in handle.frames]

    def persist(self, handle: TagHandle) -> bool:
        """Copy repaired values into the mutagen frames and save the tag.

        ID3v2.3 tags are kept at v2.3 (mutagen stores UTF-8 frames as
        UTF-16 there); everything else is written as v2.4.

        Returns:
            True if the tag was written.
        """
        for frame, tag_frame in handle.frames:
            changed = False
            for name, fld in tag_frame.fields.items():
                value = self._from_field(name, fld)
                if value is not None:
                    setattr(frame, name, value)
                    changed = True
            if changed and tag_frame.encoding is not None:
                frame.encoding = tag_frame.encoding

        v2_version = 3 if tuple(handle.tags.version[:2]) == (2, 3) else 4
        try:
            handle.tags.save(handle.path, v2_version=v2_version)
        except MutagenError as e:
            logger.error("%s: failed to save tag: %s", handle.path, e)
            return False
        return True

    def close(self, handle: TagHandle) -> None:
        handle.frames = []

    # ── Conversion ─────────────────────────────────────────────────────────

    def _to_tag_frame(self, frame: Frame) -> TagFrame:
        encoding = getattr(frame, "encoding", None)
        tag_frame = TagFrame(
            frame_id=frame.FrameID,
            encoding=int(encoding) if encoding is not None else None,
            encoded=not any(hasattr(frame, a) for a in _TEXT_ATTRS),
        )
        for name in _TEXT_ATTRS:
            fld = self._to_field(name, getattr(frame, name, None))
            if fld is not None:
                tag_frame.fields[name] = fld
        return tag_frame

    def _to_field(self, name: str, value) -> TextField | None:
        # Values holding characters above U+00FF are already proper Unicode
        # and are not text-capable for repair purposes.
        try:
            if isinstance(value, str):
                raw = self.codec.to_single_byte(value)
                return Scalar(raw) if name == "desc" else FullScalar(raw)
            if isinstance(value, list):
                if name == "people":
                    strings = [s for pair in value for s in pair]
                else:
                    strings = value
                if not all(isinstance(s, str) for s in strings):
                    return None
                return StringList(tuple(self.codec.to_single_byte(s) for s in strings))
        except UnicodeEncodeError:
            return None
        return None

    @staticmethod
    def _from_field(name: str, fld: TextField):
        """Return the mutagen attribute value for a repaired field, or None
        if the field still holds single-byte data."""
        if isinstance(fld, StringList):
            if not all(isinstance(v, str) for v in fld.values):
                return None
            values = list(fld.values)
            if name == "people":
                return [list(values[i:i + 2]) for i in range(0, len(values), 2)]
            return values
        if isinstance(fld.value, str):
            return fld.value
        return None
