"""Master playlists: variant streams, renditions, the builder and the parser."""

import logging
from collections import Counter
from typing import Any, Optional, Sequence, Union

from pydantic import Field, field_validator, model_validator

from hls_playlist.exceptions import BuilderError, InvalidInputError, UnexpectedTagError
from hls_playlist.line import TagLine, Uri, playlist_lines
from hls_playlist.master_tags import (
    ExtXIFrameStreamInf,
    ExtXMedia,
    ExtXSessionData,
    ExtXSessionKey,
    ExtXStreamInf,
)
from hls_playlist.media_segment import SEGMENT_TAG_TYPES, check_uri
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
from hls_playlist.values import FrozenModel, MediaType
from hls_playlist.version import ProtocolVersion, max_version, required_version

logger = logging.getLogger(__name__)

MEDIA_TAG_TYPES: tuple[type[Tag], ...] = (
    *SEGMENT_TAG_TYPES,
    ExtXTargetDuration,
    ExtXMediaSequence,
    ExtXDiscontinuitySequence,
    ExtXEndList,
    ExtXPlaylistType,
    ExtXIFramesOnly,
)


class VariantStream(FrozenModel):
    """An EXT-X-STREAM-INF tag together with the URI line that follows it."""

    stream_inf: ExtXStreamInf
    uri: str

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        return check_uri(v)

    def format(self) -> str:
        return f"{self.stream_inf.format()}\n{self.uri}"

    def required_version(self) -> ProtocolVersion:
        return self.stream_inf.required_version()


def master_playlist_violations(
    media: Sequence[ExtXMedia],
    variant_streams: Sequence[VariantStream],
    i_frame_streams: Sequence[ExtXIFrameStreamInf],
    session_data: Sequence[ExtXSessionData],
) -> list[str]:
    """
    Check the rules that tie master playlist tags together.

    Returns:
        One message per violation, empty if the playlist is valid
    """
    violations = []
    groups: dict[MediaType, set[str]] = {media_type: set() for media_type in MediaType}
    names: Counter = Counter()

    for rendition in media:
        if rendition.group_id is None or rendition.name is None:
            violations.append(f"{rendition.format()} needs both GROUP-ID and NAME")
            continue
        groups[rendition.media_type].add(rendition.group_id)
        names[(rendition.media_type, rendition.group_id, rendition.name)] += 1

    for (media_type, group_id, name), count in names.items():
        if count > 1:
            violations.append(f"NAME {name!r} appears {count} times in {media_type.value} group {group_id!r}")

    def check_group(reference: Optional[str], media_type: MediaType, source: str):
        if reference is not None and reference not in groups[media_type]:
            violations.append(f"{source} refers to unknown {media_type.value} group {reference!r}")

    for variant in variant_streams:
        stream_inf = variant.stream_inf
        check_group(stream_inf.audio, MediaType.AUDIO, variant.uri)
        check_group(stream_inf.video, MediaType.VIDEO, variant.uri)
        check_group(stream_inf.subtitles, MediaType.SUBTITLES, variant.uri)
        if stream_inf.closed_captions is not None:
            check_group(stream_inf.closed_captions.group_id, MediaType.CLOSED_CAPTIONS, variant.uri)

    for i_frame_stream in i_frame_streams:
        check_group(i_frame_stream.video, MediaType.VIDEO, i_frame_stream.uri)

    closed_captions = [
        variant.stream_inf.closed_captions
        for variant in variant_streams
        if variant.stream_inf.closed_captions is not None
    ]
    if any(value.is_none for value in closed_captions) and not all(
        value.is_none for value in closed_captions
    ):
        violations.append("CLOSED-CAPTIONS=NONE must be used by every variant stream or by none")

    data_keys = Counter((data.data_id, data.language) for data in session_data)
    for (data_id, language), count in data_keys.items():
        if count > 1:
            violations.append(
                f"EXT-X-SESSION-DATA with DATA-ID {data_id!r} and LANGUAGE {language!r} appears {count} times"
            )

    return violations


class MasterPlaylist(FrozenModel):
    """
    A validated master playlist.

    Equality compares content only: unknown tags are ignored.
    """

    media: tuple[ExtXMedia, ...] = Field(default=())
    variant_streams: tuple[VariantStream, ...] = Field(default=())
    i_frame_streams: tuple[ExtXIFrameStreamInf, ...] = Field(default=())
    session_data: tuple[ExtXSessionData, ...] = Field(default=())
    session_keys: tuple[ExtXSessionKey, ...] = Field(default=())
    has_independent_segments: bool = False
    start: Optional[ExtXStart] = None
    unknown_tags: tuple[str, ...] = Field(default=())

    @model_validator(mode="after")
    def validate_references(self) -> "MasterPlaylist":
        violations = master_playlist_violations(
            self.media, self.variant_streams, self.i_frame_streams, self.session_data
        )
        if violations:
            raise ValueError("; ".join(violations))
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MasterPlaylist):
            return NotImplemented
        return self.content() == other.content()

    def content(self) -> dict[str, Any]:
        return {name: value for name, value in self if name != "unknown_tags"}

    @property
    def version(self) -> ProtocolVersion:
        return self.required_version()

    def required_version(self) -> ProtocolVersion:
        return max_version(
            [
                required_version(self.media),
                required_version(self.variant_streams),
                required_version(self.i_frame_streams),
                required_version(self.session_data),
                required_version(self.session_keys),
                None if self.start is None else self.start.required_version(),
            ]
        )

    def associated_media(self, variant: VariantStream) -> list[ExtXMedia]:
        """Return the renditions whose groups the variant refers to."""
        stream_inf = variant.stream_inf
        closed_captions = None if stream_inf.closed_captions is None else stream_inf.closed_captions.group_id
        wanted = {
            MediaType.AUDIO: stream_inf.audio,
            MediaType.VIDEO: stream_inf.video,
            MediaType.SUBTITLES: stream_inf.subtitles,
            MediaType.CLOSED_CAPTIONS: closed_captions,
        }
        return [
            rendition
            for rendition in self.media
            if rendition.group_id is not None and wanted[rendition.media_type] == rendition.group_id
        ]

    def audio_streams(self) -> list[VariantStream]:
        """Return the variants that refer to an audio group."""
        return [variant for variant in self.variant_streams if variant.stream_inf.audio is not None]

    def video_streams(self) -> list[Union[VariantStream, ExtXIFrameStreamInf]]:
        """Return the variants and I-frame streams that refer to a video group."""
        return [variant for variant in self.variant_streams if variant.stream_inf.video is not None] + [
            stream for stream in self.i_frame_streams if stream.video is not None
        ]

    def unassociated_streams(self) -> list[Union[VariantStream, ExtXIFrameStreamInf]]:
        """Return the variants and I-frame streams that refer to no rendition group at all."""
        variants = [
            variant
            for variant in self.variant_streams
            if variant.stream_inf.audio is None
            and variant.stream_inf.video is None
            and variant.stream_inf.subtitles is None
            and variant.stream_inf.closed_captions is None
        ]
        return variants + [stream for stream in self.i_frame_streams if stream.video is None]

    @classmethod
    def parse(cls, text: str) -> "MasterPlaylist":
        """
        Parse master playlist text.

        Raises:
            InvalidInputError: If the text is not a valid master playlist
        """
        return MasterPlaylistBuilder().parse(text)


class MasterPlaylistBuilder:
    """Mutable draft of a MasterPlaylist; ``seal`` validates and freezes it."""

    def __init__(self):
        self._media: list[ExtXMedia] = []
        self._variant_streams: list[VariantStream] = []
        self._i_frame_streams: list[ExtXIFrameStreamInf] = []
        self._session_data: list[ExtXSessionData] = []
        self._session_keys: list[ExtXSessionKey] = []
        self._unknown_tags: list[str] = []
        self._fields: dict[str, Any] = {}

    def push_media(self, media: ExtXMedia) -> "MasterPlaylistBuilder":
        self._media.append(media)
        return self

    def push_variant(self, variant: VariantStream) -> "MasterPlaylistBuilder":
        self._variant_streams.append(variant)
        return self

    def push_i_frame_stream(self, stream: ExtXIFrameStreamInf) -> "MasterPlaylistBuilder":
        self._i_frame_streams.append(stream)
        return self

    def push_session_data(self, data: ExtXSessionData) -> "MasterPlaylistBuilder":
        self._session_data.append(data)
        return self

    def push_session_key(self, key: ExtXSessionKey) -> "MasterPlaylistBuilder":
        self._session_keys.append(key)
        return self

    def independent_segments(self, value: bool = True) -> "MasterPlaylistBuilder":
        self._fields["has_independent_segments"] = value
        return self

    def start(self, start: ExtXStart) -> "MasterPlaylistBuilder":
        self._fields["start"] = start
        return self

    def unknown_tag(self, text: str) -> "MasterPlaylistBuilder":
        self._unknown_tags.append(text)
        return self

    def seal(self) -> MasterPlaylist:
        """
        Validate the draft and return the playlist.

        Raises:
            BuilderError: Listing every violated constraint
        """
        violations = master_playlist_violations(
            self._media, self._variant_streams, self._i_frame_streams, self._session_data
        )
        if violations:
            raise BuilderError("MasterPlaylist", violations)
        return MasterPlaylist.build(
            media=tuple(self._media),
            variant_streams=tuple(self._variant_streams),
            i_frame_streams=tuple(self._i_frame_streams),
            session_data=tuple(self._session_data),
            session_keys=tuple(self._session_keys),
            unknown_tags=tuple(self._unknown_tags),
            **self._fields,
        )

    def parse(self, text: str) -> MasterPlaylist:
        """
        Parse master playlist text into this draft and seal it.

        Raises:
            InvalidInputError: If the text is malformed or the result is invalid
        """
        seen: set[type[Tag]] = {ExtM3u}
        pending: Optional[TagLine] = None

        for line in playlist_lines(text):
            if pending is not None:
                if not isinstance(line, Uri):
                    raise InvalidInputError(
                        "EXT-X-STREAM-INF must be followed directly by its URI line", pending.text
                    )
                self.push_variant(VariantStream.from_parsed(line.text, stream_inf=pending.tag, uri=line.text))
                pending = None
                continue

            if isinstance(line, Uri):
                raise InvalidInputError("URI line without a preceding EXT-X-STREAM-INF", line.text)
            if not isinstance(line, TagLine):
                continue

            tag = line.tag
            if isinstance(tag, SINGLETON_TAGS):
                if type(tag) in seen:
                    raise InvalidInputError("Tag may only appear once", line.text)
                seen.add(type(tag))

            if isinstance(tag, ExtXStreamInf):
                pending = line
            elif isinstance(tag, ExtXMedia):
                self.push_media(tag)
            elif isinstance(tag, ExtXIFrameStreamInf):
                self.push_i_frame_stream(tag)
            elif isinstance(tag, ExtXSessionData):
                self.push_session_data(tag)
            elif isinstance(tag, ExtXSessionKey):
                self.push_session_key(tag)
            elif isinstance(tag, ExtXIndependentSegments):
                self.independent_segments()
            elif isinstance(tag, ExtXStart):
                self.start(tag)
            elif isinstance(tag, MEDIA_TAG_TYPES):
                raise UnexpectedTagError(line.text, "master")
            elif isinstance(tag, UnknownTag):
                self.unknown_tag(tag.text)
            elif isinstance(tag, ExtXVersion):
                # The version written out is always recomputed from the content
                pass

        if pending is not None:
            raise InvalidInputError("EXT-X-STREAM-INF at the end of the playlist has no URI line", pending.text)

        try:
            playlist = self.seal()
        except BuilderError as e:
            raise InvalidInputError("; ".join(e.violations)) from e

        logger.debug(
            f"Parsed master playlist: {len(playlist.variant_streams)} variants, "
            f"{len(playlist.media)} renditions, {len(playlist.unknown_tags)} unknown tags"
        )
        return playlist


def parse_master_playlist(text: str) -> MasterPlaylist:
    """Parse text that must be a master playlist."""
    return MasterPlaylist.parse(text)
