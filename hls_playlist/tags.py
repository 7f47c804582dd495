"""Tag base class and the basic and playlist-level tags."""

from typing import ClassVar

from pydantic import Field

from hls_playlist.attribute import attribute_dict
from hls_playlist.exceptions import InvalidInputError
from hls_playlist.values import (
    DecimalInteger,
    Float,
    FrozenModel,
    PlaylistType,
    format_float,
    format_yes_no,
    optional_attribute,
    parse_decimal_integer,
    parse_enumerated,
    parse_float,
    parse_yes_no,
    required_attribute,
)
from hls_playlist.version import ProtocolVersion


class Tag(FrozenModel):
    """
    A single playlist tag.

    Subclasses set ``PREFIX`` to the literal text the tag line starts with,
    implement ``parse`` and ``format``, and override ``required_version``
    when the tag or some of its attributes need more than version 1.
    """

    PREFIX: ClassVar[str]

    @classmethod
    def matches(cls, line: str) -> bool:
        return line.startswith(cls.PREFIX)

    @classmethod
    def strip_prefix(cls, line: str) -> str:
        if not line.startswith(cls.PREFIX):
            raise InvalidInputError(f"Expected a {cls.PREFIX} tag", line)
        return line[len(cls.PREFIX):]

    @classmethod
    def parse(cls, line: str) -> "Tag":
        raise NotImplementedError

    def format(self) -> str:
        raise NotImplementedError

    def required_version(self) -> ProtocolVersion:
        return ProtocolVersion.V1

    def __str__(self) -> str:
        return self.format()


class BareTag(Tag):
    """A tag without a value; the whole line must equal the prefix."""

    @classmethod
    def matches(cls, line: str) -> bool:
        return line == cls.PREFIX

    @classmethod
    def parse(cls, line: str) -> "BareTag":
        if line != cls.PREFIX:
            raise InvalidInputError(f"{cls.PREFIX} does not take a value", line)
        return cls()

    def format(self) -> str:
        return self.PREFIX


class UnknownTag(Tag):
    """Any ``#EXT`` line that no known tag claims; kept verbatim."""

    PREFIX: ClassVar[str] = "#EXT"

    text: str

    @classmethod
    def parse(cls, line: str) -> "UnknownTag":
        return cls.from_parsed(line, text=line)

    def format(self) -> str:
        return self.text


class ExtM3u(BareTag):
    PREFIX: ClassVar[str] = "#EXTM3U"


class ExtXVersion(Tag):
    PREFIX: ClassVar[str] = "#EXT-X-VERSION:"

    version: ProtocolVersion

    @classmethod
    def parse(cls, line: str) -> "ExtXVersion":
        raw = cls.strip_prefix(line)
        number = parse_decimal_integer(raw, "EXT-X-VERSION")
        try:
            version = ProtocolVersion(number)
        except ValueError:
            raise InvalidInputError("Unsupported protocol version", line) from None
        return cls(version=version)

    def format(self) -> str:
        return f"{self.PREFIX}{int(self.version)}"


class ExtXTargetDuration(Tag):
    """Upper bound on segment durations, in whole seconds."""

    PREFIX: ClassVar[str] = "#EXT-X-TARGETDURATION:"

    duration: DecimalInteger

    @classmethod
    def parse(cls, line: str) -> "ExtXTargetDuration":
        raw = cls.strip_prefix(line)
        return cls.from_parsed(line, duration=parse_decimal_integer(raw, "EXT-X-TARGETDURATION"))

    def format(self) -> str:
        return f"{self.PREFIX}{self.duration}"


class ExtXMediaSequence(Tag):
    PREFIX: ClassVar[str] = "#EXT-X-MEDIA-SEQUENCE:"

    number: DecimalInteger

    @classmethod
    def parse(cls, line: str) -> "ExtXMediaSequence":
        raw = cls.strip_prefix(line)
        return cls.from_parsed(line, number=parse_decimal_integer(raw, "EXT-X-MEDIA-SEQUENCE"))

    def format(self) -> str:
        return f"{self.PREFIX}{self.number}"


class ExtXDiscontinuitySequence(Tag):
    PREFIX: ClassVar[str] = "#EXT-X-DISCONTINUITY-SEQUENCE:"

    number: DecimalInteger

    @classmethod
    def parse(cls, line: str) -> "ExtXDiscontinuitySequence":
        raw = cls.strip_prefix(line)
        return cls.from_parsed(
            line, number=parse_decimal_integer(raw, "EXT-X-DISCONTINUITY-SEQUENCE")
        )

    def format(self) -> str:
        return f"{self.PREFIX}{self.number}"


class ExtXEndList(BareTag):
    PREFIX: ClassVar[str] = "#EXT-X-ENDLIST"


class ExtXPlaylistType(Tag):
    PREFIX: ClassVar[str] = "#EXT-X-PLAYLIST-TYPE:"

    playlist_type: PlaylistType

    @classmethod
    def parse(cls, line: str) -> "ExtXPlaylistType":
        raw = cls.strip_prefix(line)
        return cls(playlist_type=parse_enumerated(raw, PlaylistType, "EXT-X-PLAYLIST-TYPE"))

    def format(self) -> str:
        return f"{self.PREFIX}{self.playlist_type.value}"


class ExtXIFramesOnly(BareTag):
    PREFIX: ClassVar[str] = "#EXT-X-I-FRAMES-ONLY"

    def required_version(self) -> ProtocolVersion:
        return ProtocolVersion.V4


class ExtXIndependentSegments(BareTag):
    PREFIX: ClassVar[str] = "#EXT-X-INDEPENDENT-SEGMENTS"


class ExtXStart(Tag):
    """
    Preferred point at which to start playing.

    A negative TIME-OFFSET counts back from the end of the playlist.
    """

    PREFIX: ClassVar[str] = "#EXT-X-START:"

    time_offset: Float
    precise: bool = Field(default=False)

    @classmethod
    def parse(cls, line: str) -> "ExtXStart":
        attributes = attribute_dict(cls.strip_prefix(line))
        return cls.from_parsed(
            line,
            time_offset=required_attribute(attributes, "TIME-OFFSET", parse_float, line),
            precise=optional_attribute(attributes, "PRECISE", parse_yes_no) or False,
        )

    def format(self) -> str:
        text = f"{self.PREFIX}TIME-OFFSET={format_float(self.time_offset)}"
        if self.precise:
            text += f",PRECISE={format_yes_no(True)}"
        return text


# Tags that can only appear once in a playlist
SINGLETON_TAGS: tuple[type[Tag], ...] = (
    ExtM3u,
    ExtXVersion,
    ExtXTargetDuration,
    ExtXMediaSequence,
    ExtXDiscontinuitySequence,
    ExtXPlaylistType,
    ExtXStart,
    ExtXIndependentSegments,
)
