"""Tests for content-type aware body transcoding."""

from dataclasses import replace

import pytest

from core.request_types import ABSENT, BinaryBody, TextBody
from core.transform import BodyTranscoder, declared_length


def body_headers(content_type, body):
    headers = {"content-length": str(len(body))}
    if content_type is not None:
        headers["content-type"] = content_type
    return headers


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS"])
async def test_bodyless_methods_never_read(inbound, method):
    reads = []

    async def tracking_read():
        reads.append(True)
        return b"{}"

    request = replace(
        inbound(method=method, headers=body_headers("application/json", b"{}")),
        read_body=tracking_read,
    )

    assert await BodyTranscoder().transcode(request) is ABSENT
    assert reads == []


@pytest.mark.asyncio
async def test_missing_content_length_means_no_body(inbound):
    request = inbound(headers={"content-type": "text/plain"}, body=b"hello")
    assert await BodyTranscoder().transcode(request) is ABSENT


@pytest.mark.asyncio
async def test_zero_content_length_means_no_body(inbound):
    request = inbound(headers={"content-type": "text/plain", "content-length": "0"}, body=b"")
    assert await BodyTranscoder().transcode(request) is ABSENT


@pytest.mark.asyncio
async def test_json_is_canonicalized(inbound):
    raw = b'{ "a" : 1,\n  "b" : [ true ] }'
    request = inbound(headers=body_headers("application/json", raw), body=raw)
    assert await BodyTranscoder().transcode(request) == TextBody('{"a":1,"b":[true]}')


@pytest.mark.asyncio
async def test_json_content_type_is_case_insensitive(inbound):
    raw = b"{a: 'b',}"
    request = inbound(headers=body_headers("Application/JSON; charset=UTF-8", raw), body=raw)
    assert await BodyTranscoder().transcode(request) == TextBody('{"a":"b"}')


@pytest.mark.asyncio
async def test_text_json_repairs_escaped_payload(inbound):
    raw = b'"{\\"a\\":1}"'
    request = inbound(method="PUT", headers=body_headers("text/json", raw), body=raw)
    assert await BodyTranscoder().transcode(request) == TextBody('{"a":1}')


@pytest.mark.asyncio
async def test_unrepairable_json_forwarded_raw(inbound, logger):
    raw = b"definitely { not json"
    request = inbound(headers=body_headers("application/json", raw), body=raw)
    body = await BodyTranscoder(logger).transcode(request)
    assert body == TextBody("definitely { not json")
    assert logger.warnings[0][0] == "body"
    assert "All JSON parsing strategies failed" in logger.warnings[0][1]


@pytest.mark.asyncio
async def test_delete_carries_body(inbound):
    raw = b'{"id": 7}'
    request = inbound(method="DELETE", headers=body_headers("application/json", raw), body=raw)
    assert await BodyTranscoder().transcode(request) == TextBody('{"id":7}')


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content_type,raw,expected",
    [
        ("application/x-www-form-urlencoded", b"a=1&b=%7Bx%7D", TextBody("a=1&b=%7Bx%7D")),
        ("multipart/form-data; boundary=xyz", b"--xyz\r\n\xff\xfe\r\n--xyz--", BinaryBody(b"--xyz\r\n\xff\xfe\r\n--xyz--")),
        ("application/soap+xml", b"<Envelope/>", TextBody("<Envelope/>")),
        ("text/xml", b"<a>1</a>", TextBody("<a>1</a>")),
        ("text/plain", b"{a: 1}", TextBody("{a: 1}")),
        ("text/html; charset=utf-8", b"<p>hi</p>", TextBody("<p>hi</p>")),
        ("application/octet-stream", b"\x00\x01\x02", BinaryBody(b"\x00\x01\x02")),
        ("image/png", b"\x89PNG", BinaryBody(b"\x89PNG")),
        (None, b"\x00raw", BinaryBody(b"\x00raw")),
    ],
)
async def test_content_type_dispatch(inbound, content_type, raw, expected):
    request = inbound(method="PATCH", headers=body_headers(content_type, raw), body=raw)
    assert await BodyTranscoder().transcode(request) == expected


@pytest.mark.asyncio
async def test_read_failure_means_no_body(inbound, logger):
    request = inbound(headers=body_headers("text/plain", b"abc"))

    async def broken_read():
        raise RuntimeError("client disconnected")

    request = replace(request, read_body=broken_read)
    assert await BodyTranscoder(logger).transcode(request) is ABSENT
    assert "client disconnected" in logger.warnings[0][1]


def test_body_variants_encode():
    assert TextBody("é").encode() == "é".encode("utf-8")
    assert BinaryBody(b"\x00").encode() == b"\x00"
    assert ABSENT.encode() is None


@pytest.mark.parametrize(
    "value,expected",
    [(None, 0), ("", 0), ("12", 12), ("12abc", 12), (" 7", 7), ("abc", 0), ("-5", 0)],
)
def test_declared_length(value, expected):
    assert declared_length(value) == expected


@pytest.mark.parametrize(
    "content_type,raw,expected",
    [
        ("application/json", '\ufeff{"a": 1}'.encode(), TextBody('{"a":1}')),
        ("text/plain", "\ufeffhello".encode(), TextBody("hello")),
        ("application/x-www-form-urlencoded", "\ufeffa=1".encode(), TextBody("a=1")),
    ],
)
def test_leading_byte_order_mark_dropped(content_type, raw, expected):
    assert BodyTranscoder().encode(raw, content_type) == expected
