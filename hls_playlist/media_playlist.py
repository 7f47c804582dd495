"""Media playlists: the model, its validation rules, the builder and the parser."""

import logging
from typing import Any, Iterable, Optional, Sequence

from pydantic import Field, model_validator

from hls_playlist.config import settings
from hls_playlist.exceptions import BuilderError, InvalidInputError, UnexpectedTagError
from hls_playlist.line import TagLine, Uri, playlist_lines
from hls_playlist.master_tags import (
    ExtXIFrameStreamInf,
    ExtXMedia,
    ExtXSessionData,
    ExtXSessionKey,
    ExtXStreamInf,
)
from hls_playlist.media_segment import SEGMENT_TAG_TYPES, MediaSegment, SegmentState, apply_tag, seal_segment
from hls_playlist.segment_tags import ExtXDiscontinuity
from hls_playlist.tags import (
    SINGLETON_TAGS,
    ExtM3u,
    ExtXDiscontinuitySequence,
    ExtXEndList,
    ExtXIFramesOnly,
    ExtXIndependentSegments,
    ExtXMediaSequence,
    ExtXPlaylistType,
    ExtXStart,
    ExtXTargetDuration,
    ExtXVersion,
    Tag,
    UnknownTag,
)
from hls_playlist.values import (
    DecimalInteger,
    DecryptionKey,
    EncryptionMethod,
    FrozenModel,
    PlaylistType,
    round_seconds,
)
from hls_playlist.version import ProtocolVersion, max_version

logger = logging.getLogger(__name__)

MASTER_TAG_TYPES: tuple[type[Tag], ...] = (
    ExtXMedia,
    ExtXStreamInf,
    ExtXIFrameStreamInf,
    ExtXSessionData,
    ExtXSessionKey,
)

# Fields that do not take part in playlist equality
NON_CONTENT_FIELDS = frozenset({"unknown_tags", "allowable_excess_duration"})


def independent_segment_violations(segments: Sequence[MediaSegment]) -> list[str]:
    """Check that AES-128 encryption, once used, covers every independent segment."""
    if not any(key.method is EncryptionMethod.AES_128 for segment in segments for key in segment.keys):
        return []
    return [
        f"Segment {position} ({segment.uri}) is not encrypted with AES-128 only, "
        f"but other independent segments are"
        for position, segment in enumerate(segments)
        if not segment.keys or any(key.method is not EncryptionMethod.AES_128 for key in segment.keys)
    ]


def media_playlist_violations(
    segments: Sequence[MediaSegment],
    target_duration: int,
    allowable_excess_duration: float = 0.0,
    has_independent_segments: bool = False,
) -> list[str]:
    """
    Check the rules that span several segments.

    - A segment may last at most the target duration plus the allowed
      excess; its duration is first rounded to whole seconds, halves up.
    - A byte range without a start continues the previous segment, which
      must be a byte range of the same URI.
    - Once a segment has an initialization section, every later one must.
    - In a playlist of independent segments, once any segment is encrypted
      with AES-128 every segment must be, and with AES-128 only.

    Returns:
        One message per violation, empty if the segments are valid
    """
    violations = []
    limit = target_duration + allowable_excess_duration
    if has_independent_segments:
        violations.extend(independent_segment_violations(segments))
    last_range_uri: Optional[str] = None
    previous_map = None

    for position, segment in enumerate(segments):
        seconds = segment.seconds
        if seconds > limit and round_seconds(seconds) > limit:
            violations.append(
                f"Segment {position} ({segment.uri}) lasts {seconds}s, "
                f"more than the target duration {target_duration}s "
                f"plus {allowable_excess_duration}s"
            )

        if segment.byte_range is None:
            last_range_uri = None
        elif segment.byte_range.range.start is not None:
            last_range_uri = segment.uri
        elif last_range_uri != segment.uri:
            violations.append(
                f"Segment {position} ({segment.uri}) has a byte range without a start "
                f"but does not follow a byte range of the same URI"
            )

        if previous_map is not None and segment.map is None:
            violations.append(
                f"Segment {position} ({segment.uri}) has no EXT-X-MAP after a segment that had one"
            )
        previous_map = segment.map

    return violations


class MediaPlaylist(FrozenModel):
    """
    A validated media playlist.

    Equality compares content only: unknown tags and the excess duration
    setting are ignored.
    """

    target_duration: DecimalInteger
    media_sequence: Optional[DecimalInteger] = None
    discontinuity_sequence: Optional[DecimalInteger] = None
    playlist_type: Optional[PlaylistType] = None
    has_i_frames_only: bool = False
    has_independent_segments: bool = False
    start: Optional[ExtXStart] = None
    has_end_list: bool = False
    segments: tuple[MediaSegment, ...] = Field(default=())
    allowable_excess_duration: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    unknown_tags: tuple[str, ...] = Field(default=())

    @model_validator(mode="after")
    def validate_segments(self) -> "MediaPlaylist":
        violations = media_playlist_violations(
            self.segments,
            self.target_duration,
            self.allowable_excess_duration,
            self.has_independent_segments,
        )
        if violations:
            raise ValueError("; ".join(violations))
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MediaPlaylist):
            return NotImplemented
        return self.content() == other.content()

    def content(self) -> dict[str, Any]:
        return {name: value for name, value in self if name not in NON_CONTENT_FIELDS}

    @property
    def duration(self) -> float:
        """Total playback time of all segments, in seconds."""
        return sum(segment.seconds for segment in self.segments)

    @property
    def version(self) -> ProtocolVersion:
        return self.required_version()

    def required_version(self) -> ProtocolVersion:
        return max_version(
            [
                ExtXIFramesOnly().required_version() if self.has_i_frames_only else None,
                None if self.start is None else self.start.required_version(),
                *(segment.required_version(self.has_i_frames_only) for segment in self.segments),
            ]
        )

    def initialization_vector(self, index: int, key: Optional[DecryptionKey] = None) -> Optional[bytes]:
        """
        Return the IV used to decrypt the segment at ``index``.

        An explicit IV on the key wins. Otherwise the segment's media
        sequence number is used as a big-endian 128-bit integer.

        Args:
            index: Position of the segment in ``segments``
            key: One of the segment's keys; the first one when omitted

        Returns:
            The 16 IV bytes, or None when the segment is not encrypted
        """
        segment = self.segments[index]
        if key is None:
            if not segment.keys:
                return None
            key = segment.keys[0]
        if key.iv is not None:
            return key.iv.data
        sequence_number = (self.media_sequence or 0) + index
        return sequence_number.to_bytes(16, "big")

    @classmethod
    def parse(cls, text: str, allowable_excess_duration: Optional[float] = None) -> "MediaPlaylist":
        """
        Parse media playlist text.

        Args:
            text: Playlist text
            allowable_excess_duration: Seconds a segment may exceed the target
                duration; defaults to the configured value

        Raises:
            InvalidInputError: If the text is not a valid media playlist
        """
        builder = MediaPlaylistBuilder()
        if allowable_excess_duration is not None:
            builder.allowable_excess_duration(allowable_excess_duration)
        return builder.parse(text)


class MediaPlaylistBuilder:
    """
    Mutable draft of a MediaPlaylist.

    Setters return the builder so calls can be chained; ``seal`` validates
    the draft and returns the immutable playlist.
    """

    def __init__(self):
        self._fields: dict[str, Any] = {
            "allowable_excess_duration": settings.allowable_excess_duration,
        }
        self._segments: list[MediaSegment] = []
        self._unknown_tags: list[str] = []

    def target_duration(self, seconds: int) -> "MediaPlaylistBuilder":
        self._fields["target_duration"] = seconds
        return self

    def media_sequence(self, number: int) -> "MediaPlaylistBuilder":
        self._fields["media_sequence"] = number
        return self

    def discontinuity_sequence(self, number: int) -> "MediaPlaylistBuilder":
        self._fields["discontinuity_sequence"] = number
        return self

    def playlist_type(self, playlist_type: PlaylistType) -> "MediaPlaylistBuilder":
        self._fields["playlist_type"] = playlist_type
        return self

    def i_frames_only(self, value: bool = True) -> "MediaPlaylistBuilder":
        self._fields["has_i_frames_only"] = value
        return self

    def independent_segments(self, value: bool = True) -> "MediaPlaylistBuilder":
        self._fields["has_independent_segments"] = value
        return self

    def start(self, start: ExtXStart) -> "MediaPlaylistBuilder":
        self._fields["start"] = start
        return self

    def end_list(self, value: bool = True) -> "MediaPlaylistBuilder":
        self._fields["has_end_list"] = value
        return self

    def allowable_excess_duration(self, seconds: float) -> "MediaPlaylistBuilder":
        self._fields["allowable_excess_duration"] = seconds
        return self

    def push_segment(self, segment: MediaSegment) -> "MediaPlaylistBuilder":
        self._segments.append(segment)
        return self

    def segments(self, segments: Iterable[MediaSegment]) -> "MediaPlaylistBuilder":
        """Replace all segments pushed so far."""
        self._segments = list(segments)
        return self

    def unknown_tag(self, text: str) -> "MediaPlaylistBuilder":
        self._unknown_tags.append(text)
        return self

    def seal(self) -> MediaPlaylist:
        """
        Validate the draft and return the playlist.

        Raises:
            BuilderError: Listing every violated constraint
        """
        if "target_duration" not in self._fields:
            raise BuilderError("MediaPlaylist", ["target_duration: EXT-X-TARGETDURATION is required"])

        violations = media_playlist_violations(
            self._segments,
            self._fields["target_duration"],
            self._fields["allowable_excess_duration"],
            self._fields.get("has_independent_segments", False),
        )
        if violations:
            raise BuilderError("MediaPlaylist", violations)

        return MediaPlaylist.build(
            **self._fields,
            segments=tuple(self._segments),
            unknown_tags=tuple(self._unknown_tags),
        )

    def parse(self, text: str) -> MediaPlaylist:
        """
        Parse media playlist text into this draft and seal it.

        Raises:
            InvalidInputError: If the text is malformed or the result is invalid
        """
        state = SegmentState()
        seen: set[type[Tag]] = {ExtM3u}
        has_discontinuity = False

        for line in playlist_lines(text):
            if isinstance(line, Uri):
                state, segment = seal_segment(state, line.text)
                self.push_segment(segment)
                continue
            if not isinstance(line, TagLine):
                continue

            tag = line.tag
            if isinstance(tag, SINGLETON_TAGS):
                if type(tag) in seen:
                    raise InvalidInputError("Tag may only appear once", line.text)
                seen.add(type(tag))

            if isinstance(tag, SEGMENT_TAG_TYPES):
                if isinstance(tag, ExtXDiscontinuity):
                    has_discontinuity = True
                state = apply_tag(state, tag)
            elif isinstance(tag, ExtXTargetDuration):
                self.target_duration(tag.duration)
            elif isinstance(tag, ExtXMediaSequence):
                self.media_sequence(tag.number)
            elif isinstance(tag, ExtXDiscontinuitySequence):
                if has_discontinuity:
                    raise InvalidInputError(
                        "EXT-X-DISCONTINUITY-SEQUENCE must appear before any EXT-X-DISCONTINUITY",
                        line.text,
                    )
                if self._segments or state.draft.touched:
                    raise InvalidInputError(
                        "EXT-X-DISCONTINUITY-SEQUENCE must appear before the first media segment",
                        line.text,
                    )
                self.discontinuity_sequence(tag.number)
            elif isinstance(tag, ExtXPlaylistType):
                self.playlist_type(tag.playlist_type)
            elif isinstance(tag, ExtXIFramesOnly):
                self.i_frames_only()
            elif isinstance(tag, ExtXIndependentSegments):
                self.independent_segments()
            elif isinstance(tag, ExtXStart):
                self.start(tag)
            elif isinstance(tag, ExtXEndList):
                self.end_list()
            elif isinstance(tag, MASTER_TAG_TYPES):
                raise UnexpectedTagError(line.text, "media")
            elif isinstance(tag, UnknownTag):
                self.unknown_tag(tag.text)
            elif isinstance(tag, ExtXVersion):
                # The version written out is always recomputed from the content
                pass

        if state.draft.touched:
            raise InvalidInputError("Media segment tags at the end of the playlist have no URI line")

        try:
            playlist = self.seal()
        except BuilderError as e:
            raise InvalidInputError("; ".join(e.violations)) from e

        logger.debug(
            f"Parsed media playlist: {len(playlist.segments)} segments, "
            f"{len(playlist.unknown_tags)} unknown tags"
        )
        return playlist


def parse_media_playlist(text: str, allowable_excess_duration: Optional[float] = None) -> MediaPlaylist:
    """Parse text that must be a media playlist."""
    return MediaPlaylist.parse(text, allowable_excess_duration)
