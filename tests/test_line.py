"""Tests for the line scanner."""

import pytest

from hls_playlist.exceptions import InvalidInputError
from hls_playlist.line import Blank, Comment, TagLine, Uri, playlist_lines, scan_lines, split_lines
from hls_playlist.segment_tags import ExtInf
from hls_playlist.tags import ExtXTargetDuration, UnknownTag


class TestScanLines:
    """Test suite for splitting and classifying lines."""

    def test_classification(self):
        """Test blank, comment, tag and URI lines are told apart."""
        lines = list(scan_lines("#EXTINF:10,\n\n# a comment\n#EXT-X-FOO\nsegment.ts"))

        assert isinstance(lines[0], TagLine)
        assert isinstance(lines[0].tag, ExtInf)
        assert lines[1] == Blank()
        assert lines[2] == Comment(text="# a comment")
        assert isinstance(lines[3].tag, UnknownTag)
        assert lines[4] == Uri(text="segment.ts")

    def test_crlf_terminators(self):
        """Test CRLF line endings are handled like LF."""
        assert split_lines("a\r\nb\r\n") == ["a", "b"]

    def test_final_terminator_optional(self):
        """Test a missing final line terminator is accepted."""
        assert split_lines("a\nb") == ["a", "b"]
        assert split_lines("a\nb\n") == ["a", "b"]

    def test_blank_lines_kept(self):
        """Test blank lines are produced, including a trailing one."""
        assert split_lines("a\n\nb\n\n") == ["a", "", "b", ""]

    @pytest.mark.parametrize("char", ["\x00", "\t", "\x1b", "\x7f", "\x85", "\x9f"])
    def test_control_characters_rejected(self, char):
        """Test control characters other than CR and LF fail the whole scan."""
        with pytest.raises(InvalidInputError):
            scan_lines(f"#EXTM3U\nsegment{char}.ts\n")

    @pytest.mark.parametrize("text", ["#EXTM3U\n#EXT-X-FOO:a\rb\n", "#EXTM3U\rsegment.ts\n", "#EXTM3U\n\r"])
    def test_bare_carriage_return_rejected(self, text):
        """Test a CR that does not start a CRLF terminator is rejected."""
        with pytest.raises(InvalidInputError):
            scan_lines(text)

    def test_control_character_stops_before_first_line(self):
        """Test the control character check happens before any line is produced."""
        with pytest.raises(InvalidInputError):
            scan_lines("#EXTM3U\n#EXT-X-TARGETDURATION:10\n\x01")


class TestPlaylistLines:
    """Test suite for the #EXTM3U header check."""

    def test_header_consumed(self):
        """Test the lines after the header are returned."""
        lines = list(playlist_lines("\n#EXTM3U\n#EXT-X-TARGETDURATION:10\n"))

        assert len(lines) == 1
        assert isinstance(lines[0].tag, ExtXTargetDuration)

    def test_missing_header_rejected(self):
        """Test a playlist must start with #EXTM3U."""
        with pytest.raises(InvalidInputError):
            list(playlist_lines("#EXT-X-TARGETDURATION:10\n#EXTM3U\n"))

    def test_comment_before_header_rejected(self):
        """Test a comment before the header is rejected."""
        with pytest.raises(InvalidInputError):
            list(playlist_lines("# hello\n#EXTM3U\n"))

    def test_empty_rejected(self):
        """Test empty text is rejected."""
        with pytest.raises(InvalidInputError):
            list(playlist_lines(""))

    def test_byte_order_mark_rejected(self):
        """Test a leading byte order mark is rejected."""
        with pytest.raises(InvalidInputError):
            list(playlist_lines("\ufeff#EXTM3U\n"))
