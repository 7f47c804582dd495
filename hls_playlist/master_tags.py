"""Tags that only appear in master playlists."""

from typing import Any, ClassVar, Optional

from pydantic import model_validator

from hls_playlist.attribute import attribute_dict
from hls_playlist.exceptions import InvalidInputError
from hls_playlist.tags import Tag
from hls_playlist.values import (
    ClosedCaptions,
    DecimalInteger,
    DecimalResolution,
    DecryptionKey,
    EncryptionMethod,
    HdcpLevel,
    InStreamId,
    MediaType,
    QuotedString,
    UFloat,
    format_float,
    format_yes_no,
    optional_attribute,
    parse_decimal_integer,
    parse_enumerated,
    parse_quoted_string,
    parse_ufloat,
    parse_yes_no,
    quote,
    required_attribute,
)
from hls_playlist.version import ProtocolVersion


class ExtXMedia(Tag):
    """
    An alternative rendition: an audio track, a video angle, subtitles or
    closed captions.
    """

    PREFIX: ClassVar[str] = "#EXT-X-MEDIA:"

    media_type: MediaType
    group_id: Optional[QuotedString] = None
    name: Optional[QuotedString] = None
    uri: Optional[QuotedString] = None
    language: Optional[QuotedString] = None
    assoc_language: Optional[QuotedString] = None
    default: bool = False
    autoselect: Optional[bool] = None
    forced: Optional[bool] = None
    instream_id: Optional[InStreamId] = None
    characteristics: Optional[QuotedString] = None
    channels: Optional[QuotedString] = None

    @model_validator(mode="after")
    def validate_rendition(self) -> "ExtXMedia":
        violations = []
        if self.media_type is MediaType.CLOSED_CAPTIONS:
            if self.uri is not None:
                violations.append("CLOSED-CAPTIONS rendition must not have a URI")
            if self.instream_id is None:
                violations.append("CLOSED-CAPTIONS rendition requires INSTREAM-ID")
        elif self.instream_id is not None:
            violations.append("INSTREAM-ID is only allowed for CLOSED-CAPTIONS renditions")
        if self.media_type is MediaType.SUBTITLES and self.uri is None:
            violations.append("SUBTITLES rendition requires URI")
        if self.forced is not None and self.media_type is not MediaType.SUBTITLES:
            violations.append("FORCED is only allowed for SUBTITLES renditions")
        if self.default and self.autoselect is False:
            violations.append("DEFAULT=YES requires AUTOSELECT=YES")
        if violations:
            raise ValueError("; ".join(violations))
        return self

    @classmethod
    def parse(cls, line: str) -> "ExtXMedia":
        attributes = attribute_dict(cls.strip_prefix(line))
        return cls.from_parsed(
            line,
            media_type=required_attribute(
                attributes, "TYPE", lambda raw, name: parse_enumerated(raw, MediaType, name), line
            ),
            group_id=optional_attribute(attributes, "GROUP-ID", parse_quoted_string),
            name=optional_attribute(attributes, "NAME", parse_quoted_string),
            uri=optional_attribute(attributes, "URI", parse_quoted_string),
            language=optional_attribute(attributes, "LANGUAGE", parse_quoted_string),
            assoc_language=optional_attribute(attributes, "ASSOC-LANGUAGE", parse_quoted_string),
            default=optional_attribute(attributes, "DEFAULT", parse_yes_no) or False,
            autoselect=optional_attribute(attributes, "AUTOSELECT", parse_yes_no),
            forced=optional_attribute(attributes, "FORCED", parse_yes_no),
            instream_id=optional_attribute(attributes, "INSTREAM-ID", parse_quoted_string),
            characteristics=optional_attribute(attributes, "CHARACTERISTICS", parse_quoted_string),
            channels=optional_attribute(attributes, "CHANNELS", parse_quoted_string),
        )

    def format(self) -> str:
        parts = [f"TYPE={self.media_type.value}"]
        quoted = (
            ("URI", self.uri),
            ("GROUP-ID", self.group_id),
            ("LANGUAGE", self.language),
            ("ASSOC-LANGUAGE", self.assoc_language),
            ("NAME", self.name),
        )
        parts.extend(f"{name}={quote(value)}" for name, value in quoted if value is not None)
        if self.default:
            parts.append("DEFAULT=YES")
        if self.autoselect is not None:
            parts.append(f"AUTOSELECT={format_yes_no(self.autoselect)}")
        if self.forced is not None:
            parts.append(f"FORCED={format_yes_no(self.forced)}")
        if self.instream_id is not None:
            parts.append(f"INSTREAM-ID={quote(self.instream_id)}")
        if self.characteristics is not None:
            parts.append(f"CHARACTERISTICS={quote(self.characteristics)}")
        if self.channels is not None:
            parts.append(f"CHANNELS={quote(self.channels)}")
        return self.PREFIX + ",".join(parts)

    def required_version(self) -> ProtocolVersion:
        if self.instream_id is not None and self.instream_id.startswith("SERVICE"):
            return ProtocolVersion.V7
        return ProtocolVersion.V1


class StreamAttributes(Tag):
    """Attributes shared by EXT-X-STREAM-INF and EXT-X-I-FRAME-STREAM-INF."""

    bandwidth: DecimalInteger
    average_bandwidth: Optional[DecimalInteger] = None
    codecs: Optional[QuotedString] = None
    resolution: Optional[DecimalResolution] = None
    hdcp_level: Optional[HdcpLevel] = None
    video: Optional[QuotedString] = None

    @classmethod
    def stream_fields(cls, attributes: dict[str, str], line: str) -> dict[str, Any]:
        return {
            "bandwidth": required_attribute(attributes, "BANDWIDTH", parse_decimal_integer, line),
            "average_bandwidth": optional_attribute(
                attributes, "AVERAGE-BANDWIDTH", parse_decimal_integer
            ),
            "codecs": optional_attribute(attributes, "CODECS", parse_quoted_string),
            "resolution": optional_attribute(attributes, "RESOLUTION", DecimalResolution.parse),
            "hdcp_level": optional_attribute(
                attributes, "HDCP-LEVEL", lambda raw, name: parse_enumerated(raw, HdcpLevel, name)
            ),
            "video": optional_attribute(attributes, "VIDEO", parse_quoted_string),
        }

    def stream_parts(self) -> list[str]:
        parts = [f"BANDWIDTH={self.bandwidth}"]
        if self.average_bandwidth is not None:
            parts.append(f"AVERAGE-BANDWIDTH={self.average_bandwidth}")
        if self.codecs is not None:
            parts.append(f"CODECS={quote(self.codecs)}")
        if self.resolution is not None:
            parts.append(f"RESOLUTION={self.resolution.format()}")
        if self.hdcp_level is not None:
            parts.append(f"HDCP-LEVEL={self.hdcp_level.value}")
        if self.video is not None:
            parts.append(f"VIDEO={quote(self.video)}")
        return parts


class ExtXStreamInf(StreamAttributes):
    """
    A variant stream. The URI of the variant is the line that follows the
    tag, see ``VariantStream``.
    """

    PREFIX: ClassVar[str] = "#EXT-X-STREAM-INF:"

    frame_rate: Optional[UFloat] = None
    audio: Optional[QuotedString] = None
    subtitles: Optional[QuotedString] = None
    closed_captions: Optional[ClosedCaptions] = None

    @classmethod
    def parse(cls, line: str) -> "ExtXStreamInf":
        attributes = attribute_dict(cls.strip_prefix(line))
        return cls.from_parsed(
            line,
            frame_rate=optional_attribute(attributes, "FRAME-RATE", parse_ufloat),
            audio=optional_attribute(attributes, "AUDIO", parse_quoted_string),
            subtitles=optional_attribute(attributes, "SUBTITLES", parse_quoted_string),
            closed_captions=optional_attribute(attributes, "CLOSED-CAPTIONS", ClosedCaptions.parse),
            **cls.stream_fields(attributes, line),
        )

    def format(self) -> str:
        parts = self.stream_parts()
        if self.frame_rate is not None:
            parts.append(f"FRAME-RATE={format_float(self.frame_rate)}")
        if self.audio is not None:
            parts.append(f"AUDIO={quote(self.audio)}")
        if self.subtitles is not None:
            parts.append(f"SUBTITLES={quote(self.subtitles)}")
        if self.closed_captions is not None:
            parts.append(f"CLOSED-CAPTIONS={self.closed_captions.format()}")
        return self.PREFIX + ",".join(parts)


class ExtXIFrameStreamInf(StreamAttributes):
    """A variant stream made only of I-frames, e.g. for trick play."""

    PREFIX: ClassVar[str] = "#EXT-X-I-FRAME-STREAM-INF:"

    uri: QuotedString

    @classmethod
    def parse(cls, line: str) -> "ExtXIFrameStreamInf":
        attributes = attribute_dict(cls.strip_prefix(line))
        return cls.from_parsed(
            line,
            uri=required_attribute(attributes, "URI", parse_quoted_string, line),
            **cls.stream_fields(attributes, line),
        )

    def format(self) -> str:
        return self.PREFIX + ",".join([f"URI={quote(self.uri)}", *self.stream_parts()])


class ExtXSessionData(Tag):
    """Arbitrary session data; carries either a VALUE or a URI to a JSON file."""

    PREFIX: ClassVar[str] = "#EXT-X-SESSION-DATA:"

    data_id: QuotedString
    value: Optional[QuotedString] = None
    uri: Optional[QuotedString] = None
    language: Optional[QuotedString] = None

    @model_validator(mode="after")
    def validate_payload(self) -> "ExtXSessionData":
        if (self.value is None) == (self.uri is None):
            raise ValueError("exactly one of VALUE or URI is required")
        return self

    @classmethod
    def parse(cls, line: str) -> "ExtXSessionData":
        attributes = attribute_dict(cls.strip_prefix(line))
        return cls.from_parsed(
            line,
            data_id=required_attribute(attributes, "DATA-ID", parse_quoted_string, line),
            value=optional_attribute(attributes, "VALUE", parse_quoted_string),
            uri=optional_attribute(attributes, "URI", parse_quoted_string),
            language=optional_attribute(attributes, "LANGUAGE", parse_quoted_string),
        )

    def format(self) -> str:
        parts = [f"DATA-ID={quote(self.data_id)}"]
        if self.value is not None:
            parts.append(f"VALUE={quote(self.value)}")
        if self.uri is not None:
            parts.append(f"URI={quote(self.uri)}")
        if self.language is not None:
            parts.append(f"LANGUAGE={quote(self.language)}")
        return self.PREFIX + ",".join(parts)


class ExtXSessionKey(Tag):
    """A key the client may preload before reading any media playlist."""

    PREFIX: ClassVar[str] = "#EXT-X-SESSION-KEY:"

    key: DecryptionKey

    @model_validator(mode="after")
    def validate_method(self) -> "ExtXSessionKey":
        if self.key.method is EncryptionMethod.NONE:
            raise ValueError("EXT-X-SESSION-KEY must not use METHOD=NONE")
        return self

    @classmethod
    def parse(cls, line: str) -> "ExtXSessionKey":
        key = DecryptionKey.parse_attributes(cls.strip_prefix(line), line)
        if key.is_none:
            raise InvalidInputError("EXT-X-SESSION-KEY must not use METHOD=NONE", line)
        return cls(key=key)

    def format(self) -> str:
        return f"{self.PREFIX}{self.key.format_attributes()}"

    def required_version(self) -> ProtocolVersion:
        return self.key.required_version()
