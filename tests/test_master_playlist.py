"""Tests for master playlist parsing, validation and the builder."""

import pytest

from hls_playlist.exceptions import BuilderError, InvalidInputError, UnexpectedTagError
from hls_playlist.master_playlist import MasterPlaylistBuilder, VariantStream, parse_master_playlist
from hls_playlist.master_tags import ExtXIFrameStreamInf, ExtXMedia, ExtXSessionData, ExtXStreamInf
from hls_playlist.values import ClosedCaptions, MediaType
from hls_playlist.version import ProtocolVersion

MASTER = """#EXTM3U
#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="aac",NAME="English",LANGUAGE="en",DEFAULT=YES,AUTOSELECT=YES,URI="eng/index.m3u8"
#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="aac",NAME="Deutsch",LANGUAGE="de",URI="ger/index.m3u8"
#EXT-X-MEDIA:TYPE=CLOSED-CAPTIONS,GROUP-ID="cc",NAME="English",INSTREAM-ID="CC1"
#EXT-X-STREAM-INF:BANDWIDTH=1280000,CODECS="avc1.4d401e,mp4a.40.2",AUDIO="aac",CLOSED-CAPTIONS="cc"
low/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=2560000,RESOLUTION=1280x720,AUDIO="aac",CLOSED-CAPTIONS="cc"
mid/index.m3u8
#EXT-X-I-FRAME-STREAM-INF:BANDWIDTH=86000,URI="low/iframe.m3u8"
#EXT-X-SESSION-DATA:DATA-ID="com.example.title",VALUE="Example"
#EXT-X-INDEPENDENT-SEGMENTS
"""


def _variant(uri: str, **fields) -> VariantStream:
    return VariantStream(stream_inf=ExtXStreamInf(bandwidth=1000, **fields), uri=uri)


class TestMasterPlaylistParsing:
    """Test suite for parsing master playlists."""

    def test_parse(self):
        """Test every kind of master tag is collected."""
        playlist = parse_master_playlist(MASTER)

        assert len(playlist.media) == 3
        assert [variant.uri for variant in playlist.variant_streams] == ["low/index.m3u8", "mid/index.m3u8"]
        assert playlist.variant_streams[0].stream_inf.codecs == "avc1.4d401e,mp4a.40.2"
        assert playlist.i_frame_streams[0].uri == "low/iframe.m3u8"
        assert playlist.session_data[0].value == "Example"
        assert playlist.has_independent_segments

    def test_stream_inf_followed_by_blank(self):
        """Test the URI must be the line right after EXT-X-STREAM-INF."""
        with pytest.raises(InvalidInputError):
            parse_master_playlist("#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1000\n\nlow.m3u8\n")

    def test_stream_inf_followed_by_comment(self):
        """Test a comment between EXT-X-STREAM-INF and its URI is rejected."""
        with pytest.raises(InvalidInputError):
            parse_master_playlist("#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1000\n# note\nlow.m3u8\n")

    def test_stream_inf_at_end(self):
        """Test EXT-X-STREAM-INF without any following line is rejected."""
        with pytest.raises(InvalidInputError):
            parse_master_playlist("#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1000\n")

    def test_stray_uri(self):
        """Test a URI line without EXT-X-STREAM-INF is rejected."""
        with pytest.raises(InvalidInputError):
            parse_master_playlist("#EXTM3U\nlow.m3u8\n")

    def test_media_tag_unexpected(self):
        """Test media-only tags are rejected as unexpected."""
        with pytest.raises(UnexpectedTagError):
            parse_master_playlist("#EXTM3U\n#EXT-X-TARGETDURATION:10\n")

    def test_unknown_group(self):
        """Test a variant must refer to a declared rendition group."""
        text = '#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1000,AUDIO="missing"\nlow.m3u8\n'
        with pytest.raises(InvalidInputError):
            parse_master_playlist(text)

    def test_group_of_wrong_type(self):
        """Test a group reference must match the rendition type."""
        text = (
            '#EXTM3U\n#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="g",NAME="a"\n'
            '#EXT-X-STREAM-INF:BANDWIDTH=1000,VIDEO="g"\nlow.m3u8\n'
        )
        with pytest.raises(InvalidInputError):
            parse_master_playlist(text)

    def test_rendition_needs_group_and_name(self):
        """Test renditions in a master playlist need GROUP-ID and NAME."""
        text = '#EXTM3U\n#EXT-X-MEDIA:TYPE=CLOSED-CAPTIONS,INSTREAM-ID="CC1"\n'
        with pytest.raises(InvalidInputError):
            parse_master_playlist(text)

    def test_duplicate_name_in_group(self):
        """Test NAME must be unique within a group."""
        text = (
            '#EXTM3U\n#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="g",NAME="a"\n'
            '#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="g",NAME="a"\n'
        )
        with pytest.raises(InvalidInputError):
            parse_master_playlist(text)

    def test_unknown_tags_kept(self):
        """Test unknown tags are preserved."""
        playlist = parse_master_playlist("#EXTM3U\n#EXT-X-VENDOR:1\n")

        assert playlist.unknown_tags == ("#EXT-X-VENDOR:1",)


class TestMasterPlaylistBuilder:
    """Test suite for building master playlists explicitly."""

    def test_closed_captions_none_consistency(self):
        """Test CLOSED-CAPTIONS=NONE must be used by all variants that declare it."""
        cc = ExtXMedia(media_type=MediaType.CLOSED_CAPTIONS, group_id="cc", name="en", instream_id="CC1")
        builder = (
            MasterPlaylistBuilder()
            .push_media(cc)
            .push_variant(_variant("a.m3u8", closed_captions=ClosedCaptions()))
            .push_variant(_variant("b.m3u8", closed_captions=ClosedCaptions(group_id="cc")))
        )
        with pytest.raises(BuilderError):
            builder.seal()

    def test_closed_captions_none_everywhere(self):
        """Test CLOSED-CAPTIONS=NONE on every variant is accepted."""
        playlist = (
            MasterPlaylistBuilder()
            .push_variant(_variant("a.m3u8", closed_captions=ClosedCaptions()))
            .push_variant(_variant("b.m3u8", closed_captions=ClosedCaptions()))
            .seal()
        )

        assert len(playlist.variant_streams) == 2

    def test_duplicate_session_data(self):
        """Test DATA-ID and LANGUAGE pairs must be unique."""
        data = ExtXSessionData(data_id="com.example", value="v", language="en")
        with pytest.raises(BuilderError):
            MasterPlaylistBuilder().push_session_data(data).push_session_data(data).seal()

    def test_session_data_other_language(self):
        """Test the same DATA-ID in another language is accepted."""
        playlist = (
            MasterPlaylistBuilder()
            .push_session_data(ExtXSessionData(data_id="com.example", value="v", language="en"))
            .push_session_data(ExtXSessionData(data_id="com.example", value="w", language="de"))
            .seal()
        )

        assert len(playlist.session_data) == 2

    def test_associated_media(self):
        """Test the renditions of a variant are found by group."""
        playlist = parse_master_playlist(MASTER)

        names = [media.name for media in playlist.associated_media(playlist.variant_streams[0])]
        assert names == ["English", "Deutsch", "English"]

    def test_stream_queries(self):
        """Test variants and I-frame streams are grouped by the renditions they use."""
        audio = ExtXMedia(media_type=MediaType.AUDIO, group_id="aac", name="en")
        video = ExtXMedia(media_type=MediaType.VIDEO, group_id="cam", name="main")
        i_frame_video = ExtXIFrameStreamInf(bandwidth=100, uri="cam-iframe.m3u8", video="cam")
        i_frame_plain = ExtXIFrameStreamInf(bandwidth=100, uri="iframe.m3u8")
        playlist = (
            MasterPlaylistBuilder()
            .push_media(audio)
            .push_media(video)
            .push_variant(_variant("audio.m3u8", audio="aac"))
            .push_variant(_variant("video.m3u8", video="cam"))
            .push_variant(_variant("plain.m3u8"))
            .push_i_frame_stream(i_frame_video)
            .push_i_frame_stream(i_frame_plain)
            .seal()
        )

        assert [variant.uri for variant in playlist.audio_streams()] == ["audio.m3u8"]
        assert [stream.uri for stream in playlist.video_streams()] == ["video.m3u8", "cam-iframe.m3u8"]
        assert [stream.uri for stream in playlist.unassociated_streams()] == ["plain.m3u8", "iframe.m3u8"]

    def test_closed_captions_none_is_associated(self):
        """Test a variant declaring CLOSED-CAPTIONS=NONE is not unassociated."""
        playlist = MasterPlaylistBuilder().push_variant(_variant("a.m3u8", closed_captions=ClosedCaptions())).seal()

        assert playlist.unassociated_streams() == []

    def test_version(self):
        """Test a SERVICE INSTREAM-ID raises the master playlist version."""
        cc = ExtXMedia(media_type=MediaType.CLOSED_CAPTIONS, group_id="cc", name="en", instream_id="SERVICE2")
        playlist = MasterPlaylistBuilder().push_media(cc).seal()

        assert playlist.version is ProtocolVersion.V7
        assert MasterPlaylistBuilder().seal().version is ProtocolVersion.V1

    def test_variant_uri_validated(self):
        """Test a variant URI must not start with '#'."""
        with pytest.raises(BuilderError):
            VariantStream.build(stream_inf=ExtXStreamInf(bandwidth=1), uri="#x")
