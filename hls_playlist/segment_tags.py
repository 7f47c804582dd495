"""Tags that describe a single media segment."""

import re
from datetime import datetime
from typing import ClassVar, Optional

from pydantic import Field, field_validator, model_validator

from hls_playlist.attribute import attribute_pairs
from hls_playlist.exceptions import InvalidInputError
from hls_playlist.tags import BareTag, Tag
from hls_playlist.values import (
    ByteRange,
    DecryptionKey,
    EncryptionMethod,
    HexadecimalSequence,
    QuotedString,
    UFloat,
    format_date_time,
    format_float,
    parse_date_time,
    parse_quoted_string,
    parse_ufloat,
    parse_yes_no,
    quote,
)
from hls_playlist.version import ProtocolVersion, max_version, required_version

CLIENT_ATTRIBUTE_PATTERN = re.compile(r"^X-[A-Z0-9-]+$")


class ExtInf(Tag):
    """Duration in seconds and optional title of the next media segment."""

    PREFIX: ClassVar[str] = "#EXTINF:"

    duration: UFloat
    title: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and ("\r" in v or "\n" in v):
            raise ValueError("title must not contain CR or LF")
        return v

    @classmethod
    def parse(cls, line: str) -> "ExtInf":
        raw_duration, comma, title = cls.strip_prefix(line).partition(",")
        if not comma:
            raise InvalidInputError("EXTINF requires a comma after the duration", line)
        return cls.from_parsed(
            line,
            duration=parse_ufloat(raw_duration.strip(" "), "EXTINF duration"),
            title=title or None,
        )

    def format(self) -> str:
        return f"{self.PREFIX}{format_float(self.duration)},{self.title or ''}"

    def required_version(self) -> ProtocolVersion:
        # Integer durations are all version 1 and 2 clients understand
        if float(self.duration).is_integer():
            return ProtocolVersion.V1
        return ProtocolVersion.V3


class ExtXByteRange(Tag):
    PREFIX: ClassVar[str] = "#EXT-X-BYTERANGE:"

    range: ByteRange

    @classmethod
    def parse(cls, line: str) -> "ExtXByteRange":
        return cls(range=ByteRange.parse(cls.strip_prefix(line), "EXT-X-BYTERANGE"))

    def format(self) -> str:
        return f"{self.PREFIX}{self.range.format()}"

    def required_version(self) -> ProtocolVersion:
        return ProtocolVersion.V4


class ExtXDiscontinuity(BareTag):
    PREFIX: ClassVar[str] = "#EXT-X-DISCONTINUITY"


class ExtXKey(Tag):
    """
    Decryption key for the segments that follow, until the next key of the
    same KEYFORMAT or a ``METHOD=NONE`` key.
    """

    PREFIX: ClassVar[str] = "#EXT-X-KEY:"

    key: DecryptionKey

    @classmethod
    def parse(cls, line: str) -> "ExtXKey":
        return cls(key=DecryptionKey.parse_attributes(cls.strip_prefix(line), line))

    @classmethod
    def none(cls) -> "ExtXKey":
        return cls(key=DecryptionKey(method=EncryptionMethod.NONE))

    def format(self) -> str:
        return f"{self.PREFIX}{self.key.format_attributes()}"

    def required_version(self) -> ProtocolVersion:
        return self.key.required_version()


class ExtXMap(Tag):
    """
    Media initialization section for the segments that follow.

    ``keys`` records the keys that were active when the map appeared; they
    encrypt the initialization section and are not part of the tag text.
    """

    PREFIX: ClassVar[str] = "#EXT-X-MAP:"

    uri: QuotedString
    byte_range: Optional[ByteRange] = None
    keys: tuple[DecryptionKey, ...] = Field(default=())

    @classmethod
    def parse(cls, line: str) -> "ExtXMap":
        uri = None
        byte_range = None
        for name, value in attribute_pairs(cls.strip_prefix(line)):
            if name == "URI":
                uri = parse_quoted_string(value, name)
            elif name == "BYTERANGE":
                byte_range = ByteRange.parse(parse_quoted_string(value, name), name)
        if uri is None:
            raise InvalidInputError("Missing required attribute URI", line)
        return cls.from_parsed(line, uri=uri, byte_range=byte_range)

    def format(self) -> str:
        text = f"{self.PREFIX}URI={quote(self.uri)}"
        if self.byte_range is not None:
            text += f",BYTERANGE={quote(self.byte_range.format())}"
        return text

    def required_version(self, i_frames_only: bool = False) -> ProtocolVersion:
        """Version 5 suffices inside an I-frames-only playlist, otherwise 6 is needed."""
        own = ProtocolVersion.V5 if i_frames_only else ProtocolVersion.V6
        return max_version([own, required_version(self.keys)])


class ExtXProgramDateTime(Tag):
    PREFIX: ClassVar[str] = "#EXT-X-PROGRAM-DATE-TIME:"

    date_time: datetime

    @classmethod
    def parse(cls, line: str) -> "ExtXProgramDateTime":
        raw = cls.strip_prefix(line)
        return cls(date_time=parse_date_time(raw, "EXT-X-PROGRAM-DATE-TIME"))

    def format(self) -> str:
        return f"{self.PREFIX}{format_date_time(self.date_time)}"


class ExtXDateRange(Tag):
    """
    A date range with attributes, e.g. an ad break signalled with SCTE-35.

    Client-defined ``X-`` attributes are kept with their raw values, in the
    order they were written.
    """

    PREFIX: ClassVar[str] = "#EXT-X-DATERANGE:"

    id: QuotedString
    class_: Optional[QuotedString] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    duration: Optional[UFloat] = None
    planned_duration: Optional[UFloat] = None
    scte35_cmd: Optional[HexadecimalSequence] = None
    scte35_out: Optional[HexadecimalSequence] = None
    scte35_in: Optional[HexadecimalSequence] = None
    end_on_next: bool = False
    client_attributes: dict[str, str] = Field(default_factory=dict)

    @field_validator("client_attributes")
    @classmethod
    def validate_client_attributes(cls, v: dict[str, str]) -> dict[str, str]:
        for name, value in v.items():
            if not CLIENT_ATTRIBUTE_PATTERN.match(name):
                raise ValueError(f"client attribute {name!r} must start with X-")
            if not value or (not value.startswith('"') and "," in value):
                raise ValueError(f"client attribute {name} has an invalid value")
        return v

    @model_validator(mode="after")
    def validate_range(self) -> "ExtXDateRange":
        violations = []
        if self.end_on_next:
            if self.class_ is None:
                violations.append("END-ON-NEXT requires CLASS")
            if self.duration is not None or self.end_date is not None:
                violations.append("END-ON-NEXT must not be combined with DURATION or END-DATE")
        if self.end_date is not None:
            if (self.end_date.tzinfo is None) != (self.start_date.tzinfo is None):
                violations.append("START-DATE and END-DATE must both carry a time zone or neither")
            elif self.end_date < self.start_date:
                violations.append("END-DATE must not be before START-DATE")
        if violations:
            raise ValueError("; ".join(violations))
        return self

    @classmethod
    def parse(cls, line: str) -> "ExtXDateRange":
        fields: dict = {}
        client_attributes: dict[str, str] = {}
        for name, value in attribute_pairs(cls.strip_prefix(line)):
            if name == "ID":
                fields["id"] = parse_quoted_string(value, name)
            elif name == "CLASS":
                fields["class_"] = parse_quoted_string(value, name)
            elif name == "START-DATE":
                fields["start_date"] = parse_date_time(parse_quoted_string(value, name), name)
            elif name == "END-DATE":
                fields["end_date"] = parse_date_time(parse_quoted_string(value, name), name)
            elif name == "DURATION":
                fields["duration"] = parse_ufloat(value, name)
            elif name == "PLANNED-DURATION":
                fields["planned_duration"] = parse_ufloat(value, name)
            elif name == "SCTE35-CMD":
                fields["scte35_cmd"] = HexadecimalSequence.parse(value, name)
            elif name == "SCTE35-OUT":
                fields["scte35_out"] = HexadecimalSequence.parse(value, name)
            elif name == "SCTE35-IN":
                fields["scte35_in"] = HexadecimalSequence.parse(value, name)
            elif name == "END-ON-NEXT":
                fields["end_on_next"] = parse_yes_no(value, name)
            elif name.startswith("X-"):
                client_attributes[name] = value

        for required, name in (("id", "ID"), ("start_date", "START-DATE")):
            if required not in fields:
                raise InvalidInputError(f"Missing required attribute {name}", line)
        return cls.from_parsed(line, client_attributes=client_attributes, **fields)

    def format(self) -> str:
        parts = [f"ID={quote(self.id)}"]
        if self.class_ is not None:
            parts.append(f"CLASS={quote(self.class_)}")
        parts.append(f"START-DATE={quote(format_date_time(self.start_date))}")
        if self.end_date is not None:
            parts.append(f"END-DATE={quote(format_date_time(self.end_date))}")
        if self.duration is not None:
            parts.append(f"DURATION={format_float(self.duration)}")
        if self.planned_duration is not None:
            parts.append(f"PLANNED-DURATION={format_float(self.planned_duration)}")
        for name, value in self.client_attributes.items():
            parts.append(f"{name}={value}")
        for name, value in (
            ("SCTE35-CMD", self.scte35_cmd),
            ("SCTE35-OUT", self.scte35_out),
            ("SCTE35-IN", self.scte35_in),
        ):
            if value is not None:
                parts.append(f"{name}={value.format()}")
        if self.end_on_next:
            parts.append("END-ON-NEXT=YES")
        return self.PREFIX + ",".join(parts)
