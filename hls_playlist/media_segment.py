"""Media segments and the state machine that groups tag lines into them."""

from dataclasses import dataclass, field, replace
from typing import Optional

from pydantic import Field, field_validator

from hls_playlist.exceptions import InvalidInputError
from hls_playlist.segment_tags import (
    ExtInf,
    ExtXByteRange,
    ExtXDateRange,
    ExtXDiscontinuity,
    ExtXKey,
    ExtXMap,
    ExtXProgramDateTime,
)
from hls_playlist.tags import Tag
from hls_playlist.values import DecryptionKey, FrozenModel
from hls_playlist.version import ProtocolVersion, max_version, required_version

SEGMENT_TAG_TYPES: tuple[type[Tag], ...] = (
    ExtInf,
    ExtXByteRange,
    ExtXDateRange,
    ExtXDiscontinuity,
    ExtXKey,
    ExtXMap,
    ExtXProgramDateTime,
)


def check_uri(value: str) -> str:
    if not value:
        raise ValueError("URI must not be empty")
    if value.startswith("#"):
        raise ValueError("URI must not start with '#'")
    if "\r" in value or "\n" in value:
        raise ValueError("URI must not contain CR or LF")
    return value


class MediaSegment(FrozenModel):
    """
    One media segment: its URI plus every tag that applies to it.

    ``keys`` and ``map`` are the keys and initialization section in effect
    for the segment, whether or not they were written right above it.
    """

    duration: ExtInf
    uri: str
    byte_range: Optional[ExtXByteRange] = None
    date_range: Optional[ExtXDateRange] = None
    has_discontinuity: bool = False
    keys: tuple[DecryptionKey, ...] = Field(default=())
    map: Optional[ExtXMap] = None
    program_date_time: Optional[ExtXProgramDateTime] = None

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        return check_uri(v)

    @field_validator("keys")
    @classmethod
    def validate_keys(cls, v: tuple[DecryptionKey, ...]) -> tuple[DecryptionKey, ...]:
        formats = [key.effective_key_format for key in v]
        if any(key.is_none for key in v):
            raise ValueError("active keys must not use METHOD=NONE")
        if len(formats) != len(set(formats)):
            raise ValueError("active keys must have distinct KEYFORMATs")
        return v

    @property
    def seconds(self) -> float:
        return self.duration.duration

    def required_version(self, i_frames_only: bool = False) -> ProtocolVersion:
        return max_version(
            [
                required_version([self.duration, self.byte_range, self.date_range, self.program_date_time]),
                required_version(self.keys),
                None if self.map is None else self.map.required_version(i_frames_only),
            ]
        )


@dataclass(frozen=True)
class SegmentDraft:
    """Tags seen since the last URI line."""

    duration: Optional[ExtInf] = None
    byte_range: Optional[ExtXByteRange] = None
    date_range: Optional[ExtXDateRange] = None
    has_discontinuity: bool = False
    program_date_time: Optional[ExtXProgramDateTime] = None
    touched: bool = False


@dataclass(frozen=True)
class SegmentState:
    """
    Assembler state threaded through ``apply_tag`` and ``seal_segment``.

    Keys and the map outlive a single segment; the draft does not.
    """

    draft: SegmentDraft = field(default_factory=SegmentDraft)
    active_keys: tuple[DecryptionKey, ...] = ()
    active_map: Optional[ExtXMap] = None


def activate_key(active: tuple[DecryptionKey, ...], key: DecryptionKey) -> tuple[DecryptionKey, ...]:
    """
    Apply a key tag to the active key set.

    ``METHOD=NONE`` clears every active key. Any other key replaces the
    active key with the same KEYFORMAT, or is added after the others.
    """
    if key.is_none:
        return ()
    key_format = key.effective_key_format
    if any(current.effective_key_format == key_format for current in active):
        return tuple(key if current.effective_key_format == key_format else current for current in active)
    return (*active, key)


def _set_once(draft: SegmentDraft, name: str, tag: Tag) -> SegmentDraft:
    if getattr(draft, name) is not None:
        raise InvalidInputError("Media segment has more than one of this tag", tag.format())
    return replace(draft, touched=True, **{name: tag})


def apply_tag(state: SegmentState, tag: Tag) -> SegmentState:
    """
    Return the state after one media segment tag.

    Raises:
        InvalidInputError: If a per-segment tag repeats before the URI line
        TypeError: If the tag is not a media segment tag
    """
    draft = state.draft
    if isinstance(tag, ExtInf):
        return replace(state, draft=_set_once(draft, "duration", tag))
    if isinstance(tag, ExtXByteRange):
        return replace(state, draft=_set_once(draft, "byte_range", tag))
    if isinstance(tag, ExtXDateRange):
        return replace(state, draft=_set_once(draft, "date_range", tag))
    if isinstance(tag, ExtXProgramDateTime):
        return replace(state, draft=_set_once(draft, "program_date_time", tag))
    if isinstance(tag, ExtXDiscontinuity):
        return replace(state, draft=replace(draft, has_discontinuity=True, touched=True))
    if isinstance(tag, ExtXKey):
        return replace(
            state,
            active_keys=activate_key(state.active_keys, tag.key),
            draft=replace(draft, touched=True),
        )
    if isinstance(tag, ExtXMap):
        return replace(
            state,
            active_map=tag.replace(keys=state.active_keys),
            draft=replace(draft, touched=True),
        )
    raise TypeError(f"{type(tag).__name__} is not a media segment tag")


def seal_segment(state: SegmentState, uri: str) -> tuple[SegmentState, MediaSegment]:
    """
    Close the draft with its URI line.

    Returns:
        The state for the next segment and the finished segment

    Raises:
        InvalidInputError: If no EXTINF preceded the URI or the segment is invalid
    """
    draft = state.draft
    if draft.duration is None:
        raise InvalidInputError("Media segment is missing #EXTINF", uri)
    segment = MediaSegment.from_parsed(
        uri,
        duration=draft.duration,
        uri=uri,
        byte_range=draft.byte_range,
        date_range=draft.date_range,
        has_discontinuity=draft.has_discontinuity,
        keys=state.active_keys,
        map=state.active_map,
        program_date_time=draft.program_date_time,
    )
    return replace(state, draft=SegmentDraft()), segment
