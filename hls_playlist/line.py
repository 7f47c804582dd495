"""Splits playlist text into classified lines and dispatches tag lines."""

import logging
import re
from dataclasses import dataclass
from typing import Iterator, Union

from hls_playlist.exceptions import InvalidInputError
from hls_playlist.master_tags import (
    ExtXIFrameStreamInf,
    ExtXMedia,
    ExtXSessionData,
    ExtXSessionKey,
    ExtXStreamInf,
)
from hls_playlist.segment_tags import (
    ExtInf,
    ExtXByteRange,
    ExtXDateRange,
    ExtXDiscontinuity,
    ExtXKey,
    ExtXMap,
    ExtXProgramDateTime,
)
from hls_playlist.tags import (
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

logger = logging.getLogger(__name__)

# Control characters other than CR and LF are never valid in a playlist
CONTROL_CHARACTER_PATTERN = re.compile(r"[\x00-\x09\x0b\x0c\x0e-\x1f\x7f-\x9f]")

# A CR is only allowed as part of a CRLF terminator
BARE_CARRIAGE_RETURN_PATTERN = re.compile(r"\r(?!\n)")

BYTE_ORDER_MARK = "\ufeff"

# Order matters: the first tag whose prefix matches wins
TAG_TYPES: tuple[type[Tag], ...] = (
    ExtM3u,
    ExtXVersion,
    ExtInf,
    ExtXByteRange,
    ExtXDiscontinuitySequence,
    ExtXDiscontinuity,
    ExtXKey,
    ExtXMap,
    ExtXProgramDateTime,
    ExtXDateRange,
    ExtXTargetDuration,
    ExtXMediaSequence,
    ExtXEndList,
    ExtXPlaylistType,
    ExtXIFramesOnly,
    ExtXMedia,
    ExtXStreamInf,
    ExtXIFrameStreamInf,
    ExtXSessionData,
    ExtXSessionKey,
    ExtXIndependentSegments,
    ExtXStart,
)


@dataclass(frozen=True)
class Blank:
    pass


@dataclass(frozen=True)
class Comment:
    text: str


@dataclass(frozen=True)
class TagLine:
    text: str
    tag: Tag


@dataclass(frozen=True)
class Uri:
    text: str


Line = Union[Blank, Comment, TagLine, Uri]


def parse_tag(line: str) -> Tag:
    """Parse a ``#EXT`` line with the first matching tag type, or keep it as unknown."""
    for tag_type in TAG_TYPES:
        if tag_type.matches(line):
            return tag_type.parse(line)
    logger.debug(f"Keeping unknown tag {line!r}")
    return UnknownTag.parse(line)


def classify(line: str) -> Line:
    if not line:
        return Blank()
    if line.startswith("#EXT"):
        return TagLine(text=line, tag=parse_tag(line))
    if line.startswith("#"):
        return Comment(text=line)
    return Uri(text=line)


def split_lines(text: str) -> list[str]:
    """Split on LF, dropping the CR of CRLF endings. A final terminator does not open a new line."""
    lines = [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]
    if lines and lines[-1] == "" and text.endswith("\n"):
        lines.pop()
    return lines


def scan_lines(text: str) -> Iterator[Line]:
    """
    Yield the classified lines of a playlist.

    The whole text is checked for control characters before the first line
    is produced.

    Raises:
        InvalidInputError: On a control character, a CR outside a CRLF
            terminator or a malformed tag line
    """
    match = CONTROL_CHARACTER_PATTERN.search(text)
    if match:
        raise InvalidInputError(
            f"Control character U+{ord(match.group()):04X} at offset {match.start()}"
        )
    match = BARE_CARRIAGE_RETURN_PATTERN.search(text)
    if match:
        raise InvalidInputError(f"Carriage return without line feed at offset {match.start()}")
    return (classify(line) for line in split_lines(text))


def playlist_lines(text: str) -> Iterator[Line]:
    """
    Yield the lines that follow the ``#EXTM3U`` header.

    Leading blank lines are allowed; anything else before the header is not.

    Raises:
        InvalidInputError: On a byte order mark, a missing header or any
            error from ``scan_lines``
    """
    if text.startswith(BYTE_ORDER_MARK):
        raise InvalidInputError("Playlist must not start with a byte order mark")

    lines = scan_lines(text)
    for line in lines:
        if isinstance(line, Blank):
            continue
        if isinstance(line, TagLine) and isinstance(line.tag, ExtM3u):
            break
        raise InvalidInputError("Playlist must start with #EXTM3U", getattr(line, "text", ""))
    else:
        raise InvalidInputError("Playlist is empty, expected #EXTM3U")
    return lines
