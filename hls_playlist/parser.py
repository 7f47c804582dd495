"""Entry point that parses either kind of playlist."""

import logging
from typing import Literal, Optional, Union

from hls_playlist.line import TAG_TYPES, split_lines
from hls_playlist.master_playlist import MasterPlaylist, parse_master_playlist
from hls_playlist.master_tags import (
    ExtXIFrameStreamInf,
    ExtXMedia,
    ExtXSessionData,
    ExtXSessionKey,
    ExtXStreamInf,
)
from hls_playlist.media_playlist import MediaPlaylist, parse_media_playlist

logger = logging.getLogger(__name__)

PlaylistKind = Literal["media", "master"]

MASTER_MARKERS = (ExtXStreamInf, ExtXIFrameStreamInf, ExtXMedia, ExtXSessionData, ExtXSessionKey)


def _tag_type(line: str):
    for tag_type in TAG_TYPES:
        if tag_type.matches(line):
            return tag_type
    return None


def detect_kind(text: str) -> PlaylistKind:
    """
    Decide which kind of playlist the text holds.

    Any master-only tag makes it a master playlist. The lines are only
    matched against tag prefixes here, not parsed.
    """
    for line in split_lines(text):
        if line.startswith("#EXT") and _tag_type(line) in MASTER_MARKERS:
            return "master"
    return "media"


def parse(
    text: str,
    allowable_excess_duration: Optional[float] = None,
    kind: Optional[PlaylistKind] = None,
) -> Union[MediaPlaylist, MasterPlaylist]:
    """
    Parse playlist text.

    Args:
        text: Playlist text, without a byte order mark
        allowable_excess_duration: Seconds a media segment may exceed the
            target duration; defaults to the configured value
        kind: Force ``"media"`` or ``"master"`` instead of detecting it

    Returns:
        The parsed MediaPlaylist or MasterPlaylist

    Raises:
        InvalidInputError: If the text is not a valid playlist of that kind
    """
    if kind is None:
        kind = detect_kind(text)
    logger.debug(f"Parsing {kind} playlist ({len(text)} characters)")
    if kind == "master":
        return parse_master_playlist(text)
    return parse_media_playlist(text, allowable_excess_duration)
