"""Tests for typed playlist values."""

from datetime import datetime, timedelta, timezone

import pytest

from hls_playlist.exceptions import BuilderError, InvalidInputError
from hls_playlist.values import (
    ByteRange,
    ClosedCaptions,
    DecimalResolution,
    DecryptionKey,
    EncryptionMethod,
    HexadecimalSequence,
    InitializationVector,
    format_date_time,
    format_float,
    parse_date_time,
    parse_decimal_integer,
    parse_float,
    parse_key_format_versions,
    parse_quoted_string,
    parse_ufloat,
    parse_yes_no,
    round_seconds,
)
from hls_playlist.version import ProtocolVersion

IV_TEXT = "0x000102030405060708090a0b0c0d0e0f"


class TestScalars:
    """Test suite for scalar parsers and formatters."""

    def test_decimal_integer(self):
        """Test decimal integers within 64 bits are accepted."""
        assert parse_decimal_integer("0", "N") == 0
        assert parse_decimal_integer("18446744073709551615", "N") == 2**64 - 1

    @pytest.mark.parametrize("raw", ["", "-1", "1.5", "18446744073709551616", " 1"])
    def test_decimal_integer_rejected(self, raw):
        """Test malformed or out-of-range decimal integers are rejected."""
        with pytest.raises(InvalidInputError):
            parse_decimal_integer(raw, "N")

    def test_floats(self):
        """Test signed and unsigned floats."""
        assert parse_float("-2.5", "F") == -2.5
        assert parse_ufloat("9.009", "F") == 9.009
        assert parse_ufloat("10", "F") == 10.0

    @pytest.mark.parametrize("raw", ["-1", "1e3", "nan", "inf", "", "."])
    def test_ufloat_rejected(self, raw):
        """Test negative, exponent and non-finite values are rejected."""
        with pytest.raises(InvalidInputError):
            parse_ufloat(raw, "F")

    @pytest.mark.parametrize(
        "value, text",
        [(9.009, "9.009"), (10.0, "10"), (0.1, "0.1"), (1e-05, "0.00001"), (-2.5, "-2.5")],
    )
    def test_format_float(self, value, text):
        """Test floats are written without exponent or redundant fraction."""
        assert format_float(value) == text

    def test_round_half_up(self):
        """Test rounding to whole seconds rounds halves up."""
        assert round_seconds(9.5) == 10
        assert round_seconds(8.5) == 9
        assert round_seconds(9.4999) == 9
        assert round_seconds(9.009) == 9

    def test_quoted_string(self):
        """Test quotes are stripped and embedded commas kept."""
        assert parse_quoted_string('"a,b"', "Q") == "a,b"
        assert parse_quoted_string('""', "Q") == ""

    @pytest.mark.parametrize("raw", ["abc", '"abc', 'a"', '"a"b"', '"'])
    def test_quoted_string_rejected(self, raw):
        """Test unquoted or broken quoted strings are rejected."""
        with pytest.raises(InvalidInputError):
            parse_quoted_string(raw, "Q")

    def test_yes_no(self):
        """Test only the exact literals YES and NO are accepted."""
        assert parse_yes_no("YES", "B") is True
        assert parse_yes_no("NO", "B") is False
        with pytest.raises(InvalidInputError):
            parse_yes_no("yes", "B")
        with pytest.raises(InvalidInputError):
            parse_yes_no("TRUE", "B")

    def test_date_time_utc_written_as_z(self):
        """Test UTC date-times are written with a Z suffix."""
        value = parse_date_time("2010-02-19T14:54:23.031Z", "D")

        assert value == datetime(2010, 2, 19, 14, 54, 23, 31000, tzinfo=timezone.utc)
        assert format_date_time(value) == "2010-02-19T14:54:23.031000Z"

    def test_date_time_offset_kept(self):
        """Test non-UTC offsets are kept."""
        value = parse_date_time("2010-02-19T14:54:23+08:00", "D")

        assert value.utcoffset() == timedelta(hours=8)
        assert format_date_time(value) == "2010-02-19T14:54:23+08:00"

    def test_date_time_rejected(self):
        """Test a malformed date is rejected."""
        with pytest.raises(InvalidInputError):
            parse_date_time("yesterday", "D")


class TestCompoundValues:
    """Test suite for compound value types."""

    def test_hexadecimal_sequence(self):
        """Test hex sequences accept either prefix and format lowercase."""
        value = HexadecimalSequence.parse("0XABCD")

        assert value.data == b"\xab\xcd"
        assert value.format() == "0xabcd"

    @pytest.mark.parametrize("raw", ["ABCD", "0xABC", "0x", "0xZZ"])
    def test_hexadecimal_sequence_rejected(self, raw):
        """Test odd-length, unprefixed or non-hex sequences are rejected."""
        with pytest.raises(InvalidInputError):
            HexadecimalSequence.parse(raw)

    def test_initialization_vector_length(self):
        """Test an IV must be exactly 16 bytes."""
        assert InitializationVector.parse(IV_TEXT).data == bytes(range(16))
        with pytest.raises(InvalidInputError):
            InitializationVector.parse("0x0001")

    def test_resolution(self):
        """Test WIDTHxHEIGHT resolutions."""
        resolution = DecimalResolution.parse("1920x1080")

        assert (resolution.width, resolution.height) == (1920, 1080)
        assert str(resolution) == "1920x1080"
        with pytest.raises(InvalidInputError):
            DecimalResolution.parse("1920X1080")

    def test_byte_range(self):
        """Test byte ranges with and without a start."""
        with_start = ByteRange.parse("82112@752321")
        without_start = ByteRange.parse("69864")

        assert with_start == ByteRange(length=82112, start=752321)
        assert with_start.end == 834433
        assert without_start.start is None
        assert without_start.end is None
        assert with_start.format() == "82112@752321"
        assert without_start.format() == "69864"

    def test_closed_captions(self):
        """Test CLOSED-CAPTIONS accepts a quoted group or NONE."""
        assert ClosedCaptions.parse("NONE").is_none
        assert ClosedCaptions.parse('"cc"').group_id == "cc"
        assert ClosedCaptions.parse("NONE").format() == "NONE"
        with pytest.raises(InvalidInputError):
            ClosedCaptions.parse("cc")

    def test_key_format_versions(self):
        """Test slash-separated key format versions."""
        assert parse_key_format_versions('"1/2/5"') == (1, 2, 5)
        with pytest.raises(InvalidInputError):
            parse_key_format_versions('"1/0"')


class TestDecryptionKey:
    """Test suite for decryption key attributes."""

    def test_parse_and_format(self):
        """Test a full key round trips through its attribute text."""
        text = f'METHOD=AES-128,URI="k",IV={IV_TEXT},KEYFORMAT="com.apple",KEYFORMATVERSIONS="1/2"'
        key = DecryptionKey.parse_attributes(text, text)

        assert key.method is EncryptionMethod.AES_128
        assert key.key_format_versions == (1, 2)
        assert key.format_attributes() == text

    def test_versions(self):
        """Test IV needs version 2 and key format attributes need version 5."""
        assert DecryptionKey(method="AES-128", uri="k").required_version() is ProtocolVersion.V1
        iv = InitializationVector.parse(IV_TEXT)
        assert DecryptionKey(method="AES-128", uri="k", iv=iv).required_version() is ProtocolVersion.V2
        assert (
            DecryptionKey(method="SAMPLE-AES", uri="k", key_format="x").required_version()
            is ProtocolVersion.V5
        )

    def test_default_key_format(self):
        """Test an absent KEYFORMAT counts as identity."""
        assert DecryptionKey(method="AES-128", uri="k").effective_key_format == "identity"

    def test_method_none_forbids_attributes(self):
        """Test METHOD=NONE must not carry a URI."""
        with pytest.raises(InvalidInputError):
            DecryptionKey.parse_attributes('METHOD=NONE,URI="k"', "line")

    def test_method_requires_uri(self):
        """Test encrypting methods require a URI."""
        with pytest.raises(BuilderError) as exc_info:
            DecryptionKey.build(method=EncryptionMethod.AES_128)

        assert exc_info.value.model == "DecryptionKey"
        assert any("URI" in violation for violation in exc_info.value.violations)

    def test_unknown_method_rejected(self):
        """Test an unknown METHOD literal is rejected."""
        with pytest.raises(InvalidInputError):
            DecryptionKey.parse_attributes('METHOD=aes-128,URI="k"', "line")

    def test_missing_method_rejected(self):
        """Test METHOD is required."""
        with pytest.raises(InvalidInputError):
            DecryptionKey.parse_attributes('URI="k"', "line")

    def test_replace_revalidates(self):
        """Test replacing a field runs validation again."""
        key = DecryptionKey(method="AES-128", uri="k")

        assert key.replace(uri="other").uri == "other"
        with pytest.raises(BuilderError):
            key.replace(method=EncryptionMethod.NONE)
