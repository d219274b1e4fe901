"""Tests for target URL extraction and validation."""

import pytest

from core.exceptions import InvalidTargetURL, MalformedTargetURL
from core.target import TargetResolver, extract_target_segment


class TestExtractTargetSegment:
    def test_strips_prefix(self):
        path = "/api/proxy/https://api.example.com/v1/items"
        assert extract_target_segment(path, "/api/proxy") == "https://api.example.com/v1/items"

    def test_prefix_with_trailing_slash(self):
        assert extract_target_segment("/api/proxy/http://x.io", "/api/proxy/") == "http://x.io"

    def test_keeps_encoding(self):
        path = "/api/proxy/https%3A%2F%2Fapi.example.com%2Fv1"
        assert extract_target_segment(path, "/api/proxy") == "https%3A%2F%2Fapi.example.com%2Fv1"

    def test_missing_prefix(self):
        assert extract_target_segment("/other/https://x.io", "/api/proxy") == ""


class TestTargetResolver:
    def test_plain_url(self):
        target = TargetResolver().resolve("https://api.example.com/v1/items")
        assert target.url == "https://api.example.com/v1/items"
        assert target.scheme == "https"
        assert target.host == "api.example.com"

    def test_percent_encoded_url(self):
        target = TargetResolver().resolve("https%3A%2F%2Fapi.example.com%2Fv1%3Fq%3D1")
        assert target.url == "https://api.example.com/v1?q=1"
        assert target.host == "api.example.com"

    def test_host_keeps_port(self):
        target = TargetResolver().resolve("http://localhost:8000/health")
        assert target.scheme == "http"
        assert target.host == "localhost:8000"

    @pytest.mark.parametrize(
        "segment",
        [
            "",
            "api.example.com/v1",
            "ftp://files.example.com/a.txt",
            "http://",
            "https:/api.example.com",
            "HTTPS://api.example.com",
            "//api.example.com",
        ],
    )
    def test_invalid_target(self, segment):
        with pytest.raises(InvalidTargetURL) as exc_info:
            TargetResolver().resolve(segment)
        assert exc_info.value.status_code == 400
        assert exc_info.value.kind == "InvalidTargetURL"

    def test_missing_host_is_malformed(self):
        with pytest.raises(MalformedTargetURL) as exc_info:
            TargetResolver().resolve("https://:80/path")
        assert exc_info.value.status_code == 400

    def test_undecodable_segment_falls_back_to_raw(self, logger):
        segment = "https://example.com/%E0%A4%A"
        target = TargetResolver(logger).resolve(segment)
        assert target.host == "example.com"
        assert target.url == segment
        assert logger.warnings and logger.warnings[0][0] == "target"

    def test_query_appended(self):
        target = TargetResolver().resolve("https://example.com/search", "q=proxy&page=2")
        assert target.url == "https://example.com/search?q=proxy&page=2"

    def test_query_merged_with_existing(self):
        target = TargetResolver().resolve("https%3A%2F%2Fexample.com%2Fsearch%3Fq%3Da", "page=2")
        assert target.url == "https://example.com/search?q=a&page=2"

    def test_query_inserted_before_fragment(self):
        target = TargetResolver().resolve("https%3A%2F%2Fexample.com%2Fdocs%23intro", "page=2")
        assert target.url == "https://example.com/docs?page=2#intro"

    def test_query_merged_before_fragment(self):
        target = TargetResolver().resolve("https://example.com/docs?q=a#intro", "page=2")
        assert target.url == "https://example.com/docs?q=a&page=2#intro"
