"""Tests for API endpoints."""

from unittest.mock import patch

from fastapi.testclient import TestClient

from hls_playlist.main import app

client = TestClient(app)

MEDIA = "#EXTM3U\n#EXT-X-TARGETDURATION:10\n#EXTINF:9.009,\nfirst.ts\n#EXT-X-ENDLIST"
LONG_SEGMENT = "#EXTM3U\n#EXT-X-TARGETDURATION:8\n#EXTINF:9.509,\nfirst.ts\n#EXT-X-ENDLIST"
MASTER = (
    "#EXTM3U\n"
    '#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="aac",NAME="English",URI="eng.m3u8"\n'
    '#EXT-X-STREAM-INF:BANDWIDTH=1280000,AUDIO="aac"\n'
    "low.m3u8\n"
)


class TestParseEndpoint:
    """Test suite for the parse endpoint."""

    def test_parse_media_playlist(self):
        """Test a media playlist is summarized."""
        response = client.post("/api/v1/playlist/parse", json={"content": MEDIA})

        assert response.status_code == 200
        data = response.json()
        assert data["kind"] == "media"
        assert data["version"] == 3
        assert data["target_duration"] == 10
        assert data["segment_count"] == 1
        assert data["total_duration"] == 9.009
        assert data["canonical"].startswith("#EXTM3U\n#EXT-X-VERSION:3\n")

    def test_parse_master_playlist(self):
        """Test a master playlist is detected and summarized."""
        response = client.post("/api/v1/playlist/parse", json={"content": MASTER})

        assert response.status_code == 200
        data = response.json()
        assert data["kind"] == "master"
        assert data["variant_count"] == 1
        assert data["media_count"] == 1
        assert data["target_duration"] is None

    def test_parse_unknown_tags(self):
        """Test unknown tags are reported."""
        response = client.post("/api/v1/playlist/parse", json={"content": MEDIA + "\n#EXT-X-VENDOR:1"})

        assert response.status_code == 200
        assert response.json()["unknown_tags"] == ["#EXT-X-VENDOR:1"]

    def test_parse_rejected(self):
        """Test an invalid playlist returns 422 with the reason."""
        response = client.post("/api/v1/playlist/parse", json={"content": LONG_SEGMENT})

        assert response.status_code == 422
        assert response.json()["detail"].startswith("Playlist rejected:")

    def test_parse_allowable_excess_duration(self):
        """Test the request can allow longer segments."""
        response = client.post(
            "/api/v1/playlist/parse",
            json={"content": LONG_SEGMENT, "allowable_excess_duration": 2},
        )

        assert response.status_code == 200
        assert response.json()["segment_count"] == 1

    def test_parse_forced_kind(self):
        """Test forcing the media kind on a master playlist fails."""
        response = client.post("/api/v1/playlist/parse", json={"content": MASTER, "kind": "media"})

        assert response.status_code == 422

    def test_parse_invalid_request(self):
        """Test request validation errors."""
        response = client.post("/api/v1/playlist/parse", json={"content": "   "})
        assert response.status_code == 422

        response = client.post("/api/v1/playlist/parse", json={"content": MEDIA, "kind": "other"})
        assert response.status_code == 422

        response = client.post(
            "/api/v1/playlist/parse",
            json={"content": MEDIA, "allowable_excess_duration": -1},
        )
        assert response.status_code == 422

    def test_parse_too_large(self):
        """Test oversized playlists are rejected with 413."""
        with patch("hls_playlist.main.settings.max_playlist_bytes", 16):
            response = client.post("/api/v1/playlist/parse", json={"content": MEDIA})

        assert response.status_code == 413


class TestNormalizeEndpoint:
    """Test suite for the normalize endpoint."""

    def test_normalize(self):
        """Test the canonical text is returned as a playlist document."""
        response = client.post("/api/v1/playlist/normalize", json={"content": MEDIA})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/vnd.apple.mpegurl")
        assert response.text == (
            "#EXTM3U\n#EXT-X-VERSION:3\n#EXT-X-TARGETDURATION:10\n"
            "#EXTINF:9.009,\nfirst.ts\n#EXT-X-ENDLIST\n"
        )

    def test_normalize_rejected(self):
        """Test an invalid playlist is not normalized."""
        response = client.post("/api/v1/playlist/normalize", json={"content": "not a playlist"})

        assert response.status_code == 422


class TestHealthEndpoint:
    """Test suite for health check endpoint."""

    def test_health_check(self):
        """Test health check returns healthy status."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
