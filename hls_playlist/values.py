"""Typed values that appear inside playlist tags."""

import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Callable, Optional, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from hls_playlist.attribute import attribute_dict
from hls_playlist.exceptions import BuilderError, InvalidInputError
from hls_playlist.version import ProtocolVersion

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound="FrozenModel")

DECIMAL_INTEGER_PATTERN = re.compile(r"^[0-9]{1,20}$")
DECIMAL_FLOAT_PATTERN = re.compile(r"^-?[0-9]+(\.[0-9]*)?$")
HEXADECIMAL_PATTERN = re.compile(r"^0[xX](?:[0-9a-fA-F]{2})+$")
RESOLUTION_PATTERN = re.compile(r"^([0-9]+)x([0-9]+)$")
BYTE_RANGE_PATTERN = re.compile(r"^([0-9]+)(?:@([0-9]+))?$")
INSTREAM_ID_PATTERN = re.compile(r"^(?:CC[1-4]|SERVICE(?:[1-9]|[1-5][0-9]|6[0-3]))$")

MAX_DECIMAL_INTEGER = 2**64 - 1
IDENTITY_KEY_FORMAT = "identity"


def _violations(error: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into readable constraint messages."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        message = item["msg"].removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return messages


class FrozenModel(BaseModel):
    """Immutable value; every construction path runs full validation."""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def build(cls: type[ModelT], **fields) -> ModelT:
        """
        Construct a value, reporting failed constraints as a BuilderError.

        Raises:
            BuilderError: If any field or cross-field constraint is violated
        """
        try:
            return cls(**fields)
        except ValidationError as e:
            raise BuilderError(cls.__name__, _violations(e)) from e

    @classmethod
    def from_parsed(cls: type[ModelT], line: str, **fields) -> ModelT:
        """
        Construct a value from parsed text, reporting failures as InvalidInputError.

        Args:
            line: The text the fields were parsed from, kept for error context
        """
        try:
            return cls(**fields)
        except ValidationError as e:
            raise InvalidInputError("; ".join(_violations(e)), line) from e

    def replace(self: ModelT, **changes) -> ModelT:
        """Return a copy with some fields replaced, validated again."""
        fields = {name: getattr(self, name) for name in type(self).model_fields}
        return self.build(**{**fields, **changes})


# ---------------------------------------------------------------------------
# Scalar parsers and formatters
# ---------------------------------------------------------------------------


def parse_decimal_integer(raw: str, name: str) -> int:
    """Parse a decimal-integer (0 to 2^64-1)."""
    if not DECIMAL_INTEGER_PATTERN.match(raw) or int(raw) > MAX_DECIMAL_INTEGER:
        raise InvalidInputError(f"{name} must be a decimal integer", raw)
    return int(raw)


def parse_float(raw: str, name: str) -> float:
    """Parse a signed-decimal-floating-point number."""
    if not DECIMAL_FLOAT_PATTERN.match(raw):
        raise InvalidInputError(f"{name} must be a decimal floating point number", raw)
    return float(raw)


def parse_ufloat(raw: str, name: str) -> float:
    """Parse a non-negative decimal-floating-point number."""
    value = parse_float(raw, name)
    if raw.startswith("-"):
        raise InvalidInputError(f"{name} must not be negative", raw)
    return value


def format_float(value: float) -> str:
    """
    Format a float without exponent and without a redundant fractional part.

    The shortest repr is used as the source of digits, so parsing the result
    yields exactly the same float.
    """
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def round_seconds(value: float) -> int:
    """Round a duration to whole seconds, halves rounding up."""
    return int(Decimal(repr(float(value))).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def check_quoted_string(value: str) -> str:
    if any(char in value for char in '"\r\n'):
        raise ValueError("quoted string must not contain '\"', CR or LF")
    return value


def parse_quoted_string(raw: str, name: str) -> str:
    """Strip the surrounding double quotes of a quoted-string."""
    if len(raw) < 2 or raw[0] != '"' or raw[-1] != '"':
        raise InvalidInputError(f"{name} must be a quoted string", raw)
    value = raw[1:-1]
    if '"' in value:
        raise InvalidInputError(f"{name} contains a stray double quote", raw)
    return value


def quote(value: str) -> str:
    return f'"{value}"'


def parse_yes_no(raw: str, name: str) -> bool:
    """Parse an enumerated YES/NO attribute; nothing else is accepted."""
    if raw == "YES":
        return True
    if raw == "NO":
        return False
    raise InvalidInputError(f"{name} must be YES or NO", raw)


def format_yes_no(value: bool) -> str:
    return "YES" if value else "NO"


def parse_enumerated(raw: str, enum_type: type[T], name: str) -> T:
    try:
        return enum_type(raw)
    except ValueError:
        raise InvalidInputError(f"Unknown {name} value", raw) from None


def parse_date_time(raw: str, name: str) -> datetime:
    """Parse an ISO-8601 date-time such as ``2010-02-19T14:54:23.031+08:00``."""
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise InvalidInputError(f"{name} must be an ISO-8601 date", raw) from None


def format_date_time(value: datetime) -> str:
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def optional_attribute(
    attributes: dict[str, str], name: str, parser: Callable[[str, str], T]
) -> Optional[T]:
    """Parse an attribute with ``parser(raw, name)`` when it is present."""
    raw = attributes.get(name)
    if raw is None:
        return None
    return parser(raw, name)


def required_attribute(
    attributes: dict[str, str], name: str, parser: Callable[[str, str], T], line: str
) -> T:
    raw = attributes.get(name)
    if raw is None:
        raise InvalidInputError(f"Missing required attribute {name}", line)
    return parser(raw, name)


# ---------------------------------------------------------------------------
# Constrained scalar types
# ---------------------------------------------------------------------------


def check_instream_id(value: str) -> str:
    if not INSTREAM_ID_PATTERN.match(value):
        raise ValueError(f"invalid INSTREAM-ID {value!r}, expected CC1-CC4 or SERVICE1-SERVICE63")
    return value


QuotedString = Annotated[str, AfterValidator(check_quoted_string)]
InStreamId = Annotated[str, AfterValidator(check_instream_id)]
Float = Annotated[float, Field(allow_inf_nan=False)]
UFloat = Annotated[float, Field(ge=0, allow_inf_nan=False)]
DecimalInteger = Annotated[int, Field(ge=0, le=MAX_DECIMAL_INTEGER)]


class EncryptionMethod(str, Enum):
    """METHOD attribute of EXT-X-KEY and EXT-X-SESSION-KEY."""

    NONE = "NONE"
    AES_128 = "AES-128"
    SAMPLE_AES = "SAMPLE-AES"


class MediaType(str, Enum):
    """TYPE attribute of EXT-X-MEDIA."""

    AUDIO = "AUDIO"
    VIDEO = "VIDEO"
    SUBTITLES = "SUBTITLES"
    CLOSED_CAPTIONS = "CLOSED-CAPTIONS"


class PlaylistType(str, Enum):
    """Value of EXT-X-PLAYLIST-TYPE."""

    EVENT = "EVENT"
    VOD = "VOD"


class HdcpLevel(str, Enum):
    """HDCP-LEVEL attribute of the stream-inf tags."""

    TYPE_0 = "TYPE-0"
    TYPE_1 = "TYPE-1"
    NONE = "NONE"


# ---------------------------------------------------------------------------
# Compound values
# ---------------------------------------------------------------------------


class HexadecimalSequence(FrozenModel):
    """An unquoted ``0x``-prefixed string of hex digit pairs."""

    data: bytes = Field(min_length=1)

    @classmethod
    def parse(cls, raw: str, name: str = "hexadecimal-sequence"):
        if not HEXADECIMAL_PATTERN.match(raw):
            raise InvalidInputError(f"{name} must be an even-length 0x-prefixed hex sequence", raw)
        return cls.from_parsed(raw, data=bytes.fromhex(raw[2:]))

    def format(self) -> str:
        return "0x" + self.data.hex()

    def __str__(self) -> str:
        return self.format()


class InitializationVector(HexadecimalSequence):
    """The 128-bit IV attribute of a decryption key."""

    @field_validator("data")
    @classmethod
    def validate_length(cls, v: bytes) -> bytes:
        if len(v) != 16:
            raise ValueError(f"initialization vector must be 16 bytes, got {len(v)}")
        return v


class DecimalResolution(FrozenModel):
    """RESOLUTION attribute, written ``<width>x<height>``."""

    width: DecimalInteger
    height: DecimalInteger

    @classmethod
    def parse(cls, raw: str, name: str = "RESOLUTION") -> "DecimalResolution":
        match = RESOLUTION_PATTERN.match(raw)
        if not match:
            raise InvalidInputError(f"{name} must be <width>x<height>", raw)
        return cls.from_parsed(raw, width=int(match.group(1)), height=int(match.group(2)))

    def format(self) -> str:
        return f"{self.width}x{self.height}"

    def __str__(self) -> str:
        return self.format()


class ByteRange(FrozenModel):
    """
    A sub-range of a resource, written ``<length>[@<start>]``.

    Without a start the range continues right after the previous range of
    the same resource.
    """

    length: DecimalInteger
    start: Optional[DecimalInteger] = None

    @classmethod
    def parse(cls, raw: str, name: str = "byte range") -> "ByteRange":
        match = BYTE_RANGE_PATTERN.match(raw)
        if not match:
            raise InvalidInputError(f"{name} must be <length>[@<start>]", raw)
        start = match.group(2)
        return cls.from_parsed(
            raw, length=int(match.group(1)), start=None if start is None else int(start)
        )

    @property
    def end(self) -> Optional[int]:
        """Exclusive end offset, when the start is known."""
        if self.start is None:
            return None
        return self.start + self.length

    def format(self) -> str:
        if self.start is None:
            return str(self.length)
        return f"{self.length}@{self.start}"

    def __str__(self) -> str:
        return self.format()


class ClosedCaptions(FrozenModel):
    """CLOSED-CAPTIONS attribute of EXT-X-STREAM-INF: a group id or ``NONE``."""

    group_id: Optional[QuotedString] = None

    @property
    def is_none(self) -> bool:
        return self.group_id is None

    @classmethod
    def parse(cls, raw: str, name: str = "CLOSED-CAPTIONS") -> "ClosedCaptions":
        if raw == "NONE":
            return cls()
        return cls(group_id=parse_quoted_string(raw, name))

    def format(self) -> str:
        return "NONE" if self.group_id is None else quote(self.group_id)


def parse_key_format_versions(raw: str, name: str = "KEYFORMATVERSIONS") -> tuple[int, ...]:
    """Parse a quoted ``/``-separated list of positive integers, e.g. ``"1/2/5"``."""
    versions = []
    for part in parse_quoted_string(raw, name).split("/"):
        version = parse_decimal_integer(part, name)
        if version == 0:
            raise InvalidInputError(f"{name} entries must be positive", raw)
        versions.append(version)
    return tuple(versions)


class DecryptionKey(FrozenModel):
    """
    Attribute set shared by EXT-X-KEY and EXT-X-SESSION-KEY.

    ``METHOD=NONE`` means the following segments are not encrypted and must
    not carry any other attribute.
    """

    method: EncryptionMethod
    uri: Optional[QuotedString] = None
    iv: Optional[InitializationVector] = None
    key_format: Optional[QuotedString] = None
    key_format_versions: Optional[tuple[int, ...]] = None

    @field_validator("key_format_versions")
    @classmethod
    def validate_key_format_versions(cls, v: Optional[tuple[int, ...]]) -> Optional[tuple[int, ...]]:
        if v is not None and (not v or any(version < 1 for version in v)):
            raise ValueError("KEYFORMATVERSIONS must list positive integers")
        return v

    @model_validator(mode="after")
    def validate_method(self) -> "DecryptionKey":
        if self.method is EncryptionMethod.NONE:
            if any(
                value is not None
                for value in (self.uri, self.iv, self.key_format, self.key_format_versions)
            ):
                raise ValueError("METHOD=NONE must not have URI, IV, KEYFORMAT or KEYFORMATVERSIONS")
        elif self.uri is None:
            raise ValueError(f"METHOD={self.method.value} requires URI")
        return self

    @property
    def is_none(self) -> bool:
        return self.method is EncryptionMethod.NONE

    @property
    def effective_key_format(self) -> str:
        """KEYFORMAT, defaulting to ``identity`` when absent."""
        return self.key_format if self.key_format is not None else IDENTITY_KEY_FORMAT

    def required_version(self) -> ProtocolVersion:
        if self.key_format is not None or self.key_format_versions is not None:
            return ProtocolVersion.V5
        if self.iv is not None:
            return ProtocolVersion.V2
        return ProtocolVersion.V1

    @classmethod
    def parse_attributes(cls, text: str, line: str) -> "DecryptionKey":
        """
        Parse the attribute list of a key tag.

        Args:
            text: Attribute list after the tag prefix
            line: Full tag line for error context
        """
        attributes = attribute_dict(text)
        method = required_attribute(
            attributes,
            "METHOD",
            lambda raw, name: parse_enumerated(raw, EncryptionMethod, name),
            line,
        )
        return cls.from_parsed(
            line,
            method=method,
            uri=optional_attribute(attributes, "URI", parse_quoted_string),
            iv=optional_attribute(attributes, "IV", InitializationVector.parse),
            key_format=optional_attribute(attributes, "KEYFORMAT", parse_quoted_string),
            key_format_versions=optional_attribute(
                attributes, "KEYFORMATVERSIONS", parse_key_format_versions
            ),
        )

    def format_attributes(self) -> str:
        parts = [f"METHOD={self.method.value}"]
        if self.uri is not None:
            parts.append(f"URI={quote(self.uri)}")
        if self.iv is not None:
            parts.append(f"IV={self.iv.format()}")
        if self.key_format is not None:
            parts.append(f"KEYFORMAT={quote(self.key_format)}")
        if self.key_format_versions is not None:
            versions = "/".join(str(version) for version in self.key_format_versions)
            parts.append(f"KEYFORMATVERSIONS={quote(versions)}")
        return ",".join(parts)
