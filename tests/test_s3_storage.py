"""Tests for the S3-compatible storage backend with a mocked HTTP session."""

import base64
import hashlib
import io
from unittest.mock import MagicMock
from xml.etree import ElementTree

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from filestore.storage.base import ObjectNotFoundError
from filestore.storage.s3 import (
    S3DeleteError,
    S3DownloadError,
    S3ListError,
    S3ObjectNotFoundError,
    S3RequestsStorage,
    S3UploadError,
    decode_header_value,
    encode_header_value,
)

BUCKET = "bucket"
ENDPOINT = "http://s3.local"

LIST_PAGE_1 = b"""<?xml version="1.0" encoding="UTF-8"?>
<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">
  <Contents><Key>process/p/a</Key></Contents>
  <Contents><Key>process/p/b</Key></Contents>
  <IsTruncated>true</IsTruncated>
  <NextContinuationToken>token-1</NextContinuationToken>
</ListBucketResult>"""

LIST_PAGE_2 = b"""<?xml version="1.0" encoding="UTF-8"?>
<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">
  <Contents><Key>process/p/c</Key></Contents>
  <IsTruncated>false</IsTruncated>
</ListBucketResult>"""


def make_response(status_code: int = 200, headers: dict | None = None, content: bytes = b""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.content = content
    resp.text = content.decode("utf-8")
    resp.iter_content.return_value = [content]
    return resp


@pytest.fixture
def storage() -> S3RequestsStorage:
    s3 = S3RequestsStorage(ENDPOINT, "access", "secret", max_retries=3, timeout=5)
    s3.session = MagicMock()
    return s3


def test_put_sends_content_and_metadata_headers(storage):
    storage.session.put.return_value = make_response(200)
    storage.session.head.return_value = make_response(
        200,
        {
            "Content-Length": "5",
            "Content-Type": "text/plain",
            "x-amz-meta-id": "process/p/f",
            "x-amz-meta-fieldname": "documents",
        },
    )

    metadata = storage.put(
        BUCKET,
        "process/p/f",
        "text/plain",
        {"id": "process/p/f", "fieldName": "documents"},
        io.BytesIO(b"Hello"),
    )

    args, kwargs = storage.session.put.call_args
    assert args[0] == f"{ENDPOINT}/{BUCKET}/process/p/f"
    assert kwargs["data"] == b"Hello"
    assert kwargs["headers"]["Content-Type"] == "text/plain"
    assert kwargs["headers"]["x-amz-meta-fieldName"] == "documents"
    assert metadata.content_length == 5
    assert metadata.user_metadata == {"id": "process/p/f", "fieldname": "documents"}


def test_put_defaults_content_type(storage):
    storage.session.put.return_value = make_response(200)
    storage.session.head.return_value = make_response(404)

    metadata = storage.put(BUCKET, "key", None, {}, io.BytesIO(b"abc"))

    assert storage.session.put.call_args.kwargs["headers"]["Content-Type"] == (
        "application/octet-stream"
    )
    assert metadata.content_length == 3


def test_put_rejects_wrong_declared_length(storage):
    with pytest.raises(S3UploadError):
        storage.put(BUCKET, "key", None, {}, io.BytesIO(b"abc"), content_length=10)

    storage.session.put.assert_not_called()


def test_put_retries_timeouts(storage, monkeypatch):
    monkeypatch.setattr("filestore.storage.s3.time.sleep", lambda seconds: None)
    storage.session.put.side_effect = [requests.exceptions.Timeout(), make_response(200)]
    storage.session.head.return_value = make_response(200, {"Content-Length": "3"})

    metadata = storage.put(BUCKET, "key", None, {}, io.BytesIO(b"abc"))

    assert storage.session.put.call_count == 2
    assert metadata.content_length == 3


def test_put_gives_up_after_max_retries(storage, monkeypatch):
    monkeypatch.setattr("filestore.storage.s3.time.sleep", lambda seconds: None)
    storage.session.put.side_effect = requests.exceptions.ConnectionError()

    with pytest.raises(S3UploadError, match="after 3 attempts"):
        storage.put(BUCKET, "key", None, {}, io.BytesIO(b"abc"))


def test_put_fails_on_error_status(storage):
    storage.session.put.return_value = make_response(403, content=b"AccessDenied")

    with pytest.raises(S3UploadError, match="403"):
        storage.put(BUCKET, "key", None, {}, io.BytesIO(b"abc"))


def test_get_missing_returns_none(storage):
    storage.session.get.return_value = make_response(404)

    assert storage.get(BUCKET, "missing") is None


def test_get_returns_content_and_metadata(storage):
    storage.session.get.return_value = make_response(
        200,
        {"Content-Length": "5", "Content-Type": "text/plain", "X-Amz-Meta-Formkey": "form"},
        b"Hello",
    )

    stored = storage.get(BUCKET, "key")

    assert stored.content.read() == b"Hello"
    assert stored.metadata.content_type == "text/plain"
    assert stored.metadata.user_metadata == {"formkey": "form"}


def test_key_is_url_encoded(storage):
    storage.session.get.return_value = make_response(404)

    storage.get(BUCKET, "process/p/my file.txt")

    assert storage.session.get.call_args.args[0] == (
        f"{ENDPOINT}/{BUCKET}/process/p/my%20file.txt"
    )


def test_set_user_metadata_copies_object_onto_itself(storage):
    storage.session.head.side_effect = [
        make_response(200, {"Content-Length": "5", "Content-Type": "text/plain"}),
        make_response(
            200,
            {"Content-Length": "5", "Content-Type": "text/plain", "x-amz-meta-filename": "a.txt"},
        ),
    ]
    storage.session.put.return_value = make_response(200, content=b"<CopyObjectResult/>")

    metadata = storage.set_user_metadata(BUCKET, "process/p/f", {"filename": "a.txt"})

    headers = storage.session.put.call_args.kwargs["headers"]
    assert headers["x-amz-copy-source"] == f"/{BUCKET}/process/p/f"
    assert headers["x-amz-metadata-directive"] == "REPLACE"
    assert headers["Content-Type"] == "text/plain"
    assert headers["x-amz-meta-filename"] == "a.txt"
    assert metadata.user_metadata == {"filename": "a.txt"}


def test_set_user_metadata_missing_key(storage):
    storage.session.head.return_value = make_response(404)

    with pytest.raises(S3ObjectNotFoundError) as exc_info:
        storage.set_user_metadata(BUCKET, "missing", {})

    assert isinstance(exc_info.value, ObjectNotFoundError)
    storage.session.put.assert_not_called()


def test_set_user_metadata_error_body(storage):
    storage.session.head.return_value = make_response(200, {"Content-Length": "1"})
    storage.session.put.return_value = make_response(
        200, content=b"<Error><Code>InternalError</Code></Error>"
    )

    with pytest.raises(S3UploadError):
        storage.set_user_metadata(BUCKET, "key", {})


def test_get_metadata_skips_missing_keys(storage):
    storage.session.head.side_effect = [
        make_response(200, {"Content-Length": "1"}),
        make_response(404),
    ]

    result = storage.get_metadata(BUCKET, ["a", "b"])

    assert [m.key for m in result] == ["a"]


def test_get_keys_follows_pagination(storage):
    storage.session.get.side_effect = [
        make_response(200, content=LIST_PAGE_1),
        make_response(200, content=LIST_PAGE_2),
    ]

    keys = storage.get_keys(BUCKET, "process/p/")

    assert keys == {"process/p/a", "process/p/b", "process/p/c"}
    second_params = storage.session.get.call_args_list[1].kwargs["params"]
    assert second_params["continuation-token"] == "token-1"
    assert second_params["prefix"] == "process/p/"


def test_list_fails_on_error_status(storage):
    storage.session.get.return_value = make_response(500)

    with pytest.raises(S3ListError):
        storage.get_keys(BUCKET, "")


def test_delete_sends_multi_object_request(storage):
    storage.session.post.return_value = make_response(200, content=b"")

    storage.delete(BUCKET, {"process/p/a", "process/p/b"})

    kwargs = storage.session.post.call_args.kwargs
    body = kwargs["data"]
    root = ElementTree.fromstring(body)
    assert [key.text for key in root.iter("Key")] == ["process/p/a", "process/p/b"]
    assert kwargs["params"] == {"delete": ""}
    assert kwargs["headers"]["Content-MD5"] == base64.b64encode(
        hashlib.md5(body).digest()
    ).decode("ascii")


def test_delete_batches_large_key_sets(storage):
    storage.session.post.return_value = make_response(200)

    storage.delete(BUCKET, [f"key-{i:04d}" for i in range(1001)])

    assert storage.session.post.call_count == 2


def test_delete_empty_key_set_sends_nothing(storage):
    storage.delete(BUCKET, set())

    storage.session.post.assert_not_called()


def test_delete_ignores_missing_keys_but_reports_other_errors(storage):
    missing = (
        b'<DeleteResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">'
        b"<Error><Key>a</Key><Code>NoSuchKey</Code></Error></DeleteResult>"
    )
    denied = (
        b'<DeleteResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">'
        b"<Error><Key>b</Key><Code>AccessDenied</Code></Error></DeleteResult>"
    )
    storage.session.post.return_value = make_response(200, content=missing)
    storage.delete(BUCKET, ["a"])

    storage.session.post.return_value = make_response(200, content=denied)
    with pytest.raises(S3DeleteError, match="AccessDenied"):
        storage.delete(BUCKET, ["b"])


def test_ensure_bucket_missing(storage):
    storage.session.head.return_value = make_response(404)

    with pytest.raises(ValueError, match="does not exist"):
        storage.ensure_bucket(BUCKET)


def test_put_encodes_non_ascii_metadata(storage):
    """Non-ASCII values travel as RFC 2047 encoded words and decode on read."""
    storage.session.put.return_value = make_response(200)
    storage.session.head.return_value = make_response(404)

    storage.put(BUCKET, "key", "application/pdf", {"filename": "звіт.pdf"}, io.BytesIO(b"x"))

    header = storage.session.put.call_args.kwargs["headers"]["x-amz-meta-filename"]
    assert header.isascii()
    assert header.startswith("=?UTF-8?B?")

    storage.session.get.return_value = make_response(
        200, {"Content-Length": "1", "x-amz-meta-filename": header}, b"x"
    )
    stored = storage.get(BUCKET, "key")

    assert stored.metadata.user_metadata == {"filename": "звіт.pdf"}


@pytest.mark.parametrize(
    "value",
    ["report.pdf", "звіт.pdf", " padded ", "line\nbreak", "=?UTF-8?B?abc?=", ""],
)
def test_header_value_encoding_is_reversible(value):
    encoded = encode_header_value(value)

    assert encoded.isascii()
    assert "\n" not in encoded
    assert decode_header_value(encoded) == value


def test_plain_ascii_values_are_sent_unchanged():
    assert encode_header_value("report.pdf") == "report.pdf"


@pytest.mark.parametrize("status_code", [404, 500])
def test_get_closes_response_without_content(storage, status_code):
    resp = make_response(status_code)
    storage.session.get.return_value = resp

    if status_code == 404:
        assert storage.get(BUCKET, "key") is None
    else:
        with pytest.raises(S3DownloadError):
            storage.get(BUCKET, "key")

    resp.__exit__.assert_called_once()


def test_get_closes_response_after_reading(storage):
    resp = make_response(200, {"Content-Length": "5"}, b"Hello")
    storage.session.get.return_value = resp

    storage.get(BUCKET, "key")

    resp.__exit__.assert_called_once()
