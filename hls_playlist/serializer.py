"""Renders playlist values back to canonical playlist text."""

from typing import Optional, Union

from hls_playlist.master_playlist import MasterPlaylist
from hls_playlist.media_playlist import MediaPlaylist
from hls_playlist.segment_tags import ExtXDiscontinuity, ExtXKey, ExtXMap
from hls_playlist.tags import (
    ExtM3u,
    ExtXDiscontinuitySequence,
    ExtXEndList,
    ExtXIFramesOnly,
    ExtXIndependentSegments,
    ExtXMediaSequence,
    ExtXPlaylistType,
    ExtXTargetDuration,
    ExtXVersion,
)
from hls_playlist.values import DecryptionKey
from hls_playlist.version import ProtocolVersion

Playlist = Union[MediaPlaylist, MasterPlaylist]


def header_lines(version: ProtocolVersion) -> list[str]:
    lines = [ExtM3u().format()]
    if version > ProtocolVersion.V1:
        lines.append(ExtXVersion(version=version).format())
    return lines


def key_transition(
    current: tuple[DecryptionKey, ...], target: tuple[DecryptionKey, ...]
) -> list[str]:
    """
    Return the EXT-X-KEY lines that turn the ``current`` key set into ``target``.

    When a key format has to be dropped the set is cleared with
    ``METHOD=NONE`` first, since a key tag can only add or replace.
    """
    lines = []
    target_formats = {key.effective_key_format for key in target}
    if any(key.effective_key_format not in target_formats for key in current):
        lines.append(ExtXKey.none().format())
        current = ()
    active = {key.effective_key_format: key for key in current}
    for key in target:
        if active.get(key.effective_key_format) != key:
            lines.append(ExtXKey(key=key).format())
    return lines


def render_media_playlist(playlist: MediaPlaylist) -> str:
    lines = header_lines(playlist.required_version())
    lines.append(ExtXTargetDuration(duration=playlist.target_duration).format())
    if playlist.media_sequence is not None:
        lines.append(ExtXMediaSequence(number=playlist.media_sequence).format())
    if playlist.discontinuity_sequence is not None:
        lines.append(ExtXDiscontinuitySequence(number=playlist.discontinuity_sequence).format())
    if playlist.playlist_type is not None:
        lines.append(ExtXPlaylistType(playlist_type=playlist.playlist_type).format())
    if playlist.has_i_frames_only:
        lines.append(ExtXIFramesOnly().format())
    if playlist.has_independent_segments:
        lines.append(ExtXIndependentSegments().format())
    if playlist.start is not None:
        lines.append(playlist.start.format())

    keys: tuple[DecryptionKey, ...] = ()
    current_map: Optional[ExtXMap] = None
    for segment in playlist.segments:
        if segment.map is not None and segment.map != current_map:
            # The map is encrypted with the keys active where it appears
            lines.extend(key_transition(keys, segment.map.keys))
            keys = segment.map.keys
            lines.append(segment.map.format())
            current_map = segment.map
        lines.extend(key_transition(keys, segment.keys))
        keys = segment.keys

        if segment.byte_range is not None:
            lines.append(segment.byte_range.format())
        if segment.date_range is not None:
            lines.append(segment.date_range.format())
        if segment.has_discontinuity:
            lines.append(ExtXDiscontinuity().format())
        if segment.program_date_time is not None:
            lines.append(segment.program_date_time.format())
        lines.append(segment.duration.format())
        lines.append(segment.uri)

    if playlist.has_end_list:
        lines.append(ExtXEndList().format())
    lines.extend(playlist.unknown_tags)
    return "\n".join(lines) + "\n"


def render_master_playlist(playlist: MasterPlaylist) -> str:
    lines = header_lines(playlist.required_version())
    lines.extend(media.format() for media in playlist.media)
    lines.extend(variant.format() for variant in playlist.variant_streams)
    lines.extend(stream.format() for stream in playlist.i_frame_streams)
    lines.extend(data.format() for data in playlist.session_data)
    lines.extend(key.format() for key in playlist.session_keys)
    if playlist.has_independent_segments:
        lines.append(ExtXIndependentSegments().format())
    if playlist.start is not None:
        lines.append(playlist.start.format())
    lines.extend(playlist.unknown_tags)
    return "\n".join(lines) + "\n"


def to_text(playlist: Playlist) -> str:
    """
    Render a playlist as canonical text.

    ``EXT-X-VERSION`` is written only when the content needs more than
    version 1. Unknown tags are written last, as they were read.
    """
    if isinstance(playlist, MediaPlaylist):
        return render_media_playlist(playlist)
    if isinstance(playlist, MasterPlaylist):
        return render_master_playlist(playlist)
    raise TypeError(f"Cannot render {type(playlist).__name__} as a playlist")
