"""S3-compatible storage backend using requests (works with Ceph RGW, MinIO, Storadera)."""

import base64
import hashlib
import io
import logging
import re
import time
from typing import BinaryIO, Iterable, Iterator, Mapping
from urllib.parse import quote
from xml.etree import ElementTree

import requests
from requests.adapters import HTTPAdapter
from requests_aws4auth import AWS4Auth
from urllib3.util.retry import Retry

from filestore.storage.base import ObjectMetadata, ObjectNotFoundError, StoredObject

logger = logging.getLogger(__name__)

META_PREFIX = "x-amz-meta-"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
DELETE_BATCH_SIZE = 1000  # S3 multi-object delete limit

# RFC 2047 encoded word for header values that are not printable ASCII
_ENCODED_WORD = re.compile(r"=\?UTF-8\?B\?([A-Za-z0-9+/=]*)\?=", re.IGNORECASE)

_NS = {"s3": "http://s3.amazonaws.com/doc/2006-03-01/"}
_REDIRECT_CODES = (301, 302, 307, 308)


class S3StorageError(Exception):
    """Base exception for S3 storage operations."""
    pass


class S3UploadError(S3StorageError):
    """Error during S3 upload."""
    pass


class S3DownloadError(S3StorageError):
    """Error during S3 download or metadata lookup."""
    pass


class S3ListError(S3StorageError):
    """Error during S3 list operation."""
    pass


class S3DeleteError(S3StorageError):
    """Error during S3 delete operation."""
    pass


class S3ObjectNotFoundError(ObjectNotFoundError, S3StorageError):
    """Object required by the operation does not exist."""
    pass


def _strip_namespace(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def encode_header_value(value: str) -> str:
    """Encode a metadata value so it can travel in an HTTP header."""
    if (
        value.isascii()
        and value.isprintable()
        and value == value.strip()
        and not value.startswith("=?")
    ):
        return value
    encoded = base64.b64encode(value.encode("utf-8")).decode("ascii")
    return f"=?UTF-8?B?{encoded}?="


def decode_header_value(value: str) -> str:
    """Reverse encode_header_value. Plain values are returned unchanged."""
    match = _ENCODED_WORD.fullmatch(value)
    if match is None:
        return value
    return base64.b64decode(match.group(1)).decode("utf-8")


class S3RequestsStorage:
    """Storage backend using requests + AWS4Auth (works with Ceph and other providers)."""

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        region: str | None = None,
        max_retries: int = 5,
        timeout: int = 300,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.max_retries = max_retries
        self.timeout = timeout

        # AWS4Auth with empty region (works for most S3-compatible providers)
        self.auth = AWS4Auth(access_key, secret_key, region or "", "s3")
        self.session = requests.Session()
        self.session.auth = self.auth

        # Configure retries for connection errors and server errors
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=2,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "PUT", "DELETE", "POST"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        # Disable automatic redirect following
        self.session.max_redirects = 0

        self.name = f"S3 endpoint {endpoint}"

    def _url(self, bucket: str, key: str | None = None) -> str:
        if key is None:
            return f"{self.endpoint}/{bucket}"
        return f"{self.endpoint}/{bucket}/{quote(key, safe='/~')}"

    @staticmethod
    def _check_redirect(resp: requests.Response, error_cls: type[S3StorageError], action: str) -> None:
        if resp.status_code in _REDIRECT_CODES:
            location = resp.headers.get("Location", "unknown")
            raise error_cls(f"S3 {action} redirected to: {location}")

    @staticmethod
    def _meta_headers(user_metadata: Mapping[str, str]) -> dict[str, str]:
        return {
            f"{META_PREFIX}{name}": encode_header_value(str(value))
            for name, value in user_metadata.items()
        }

    @staticmethod
    def _parse_metadata(key: str, headers: Mapping[str, str]) -> ObjectMetadata:
        user_metadata = {}
        for name, value in headers.items():
            lowered = name.lower()
            if lowered.startswith(META_PREFIX):
                user_metadata[lowered[len(META_PREFIX):]] = decode_header_value(value)

        return ObjectMetadata(
            key=key,
            content_length=int(headers.get("Content-Length", 0)),
            content_type=headers.get("Content-Type"),
            user_metadata=user_metadata,
        )

    def ensure_bucket(self, bucket: str) -> None:
        """Check bucket exists."""
        resp = self.session.head(self._url(bucket), timeout=10, allow_redirects=False)
        if resp.status_code == 404:
            raise ValueError(f"Bucket '{bucket}' does not exist. Create it first.")
        elif resp.status_code in _REDIRECT_CODES:
            location = resp.headers.get("Location", "unknown")
            raise ValueError(
                f"S3 endpoint returned redirect ({resp.status_code}) to: {location}\n"
                f"Check your endpoint and bucket configuration."
            )
        elif resp.status_code != 200:
            raise ValueError(f"Cannot access bucket: {resp.status_code}")

    def head(self, bucket: str, key: str) -> ObjectMetadata | None:
        """Load object metadata. Returns None if not found."""
        try:
            resp = self.session.head(
                self._url(bucket, key), timeout=self.timeout, allow_redirects=False
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise S3DownloadError(f"Metadata lookup failed for {key}: {e}") from e

        if resp.status_code == 404:
            return None
        self._check_redirect(resp, S3DownloadError, "metadata lookup")
        if resp.status_code != 200:
            raise S3DownloadError(f"S3 metadata lookup failed: {resp.status_code}")
        return self._parse_metadata(key, resp.headers)

    def put(
        self,
        bucket: str,
        key: str,
        content_type: str | None,
        user_metadata: dict[str, str],
        content: BinaryIO,
        content_length: int | None = None,
    ) -> ObjectMetadata:
        """Save content to S3 with retry logic."""
        data = content.read()
        if content_length is not None and content_length != len(data):
            raise S3UploadError(
                f"Declared content length {content_length} does not match "
                f"{len(data)} bytes read for {key}"
            )

        url = self._url(bucket, key)
        headers = {"Content-Type": content_type or DEFAULT_CONTENT_TYPE}
        headers.update(self._meta_headers(user_metadata))

        # Manual retry with exponential backoff for timeout errors
        for attempt in range(self.max_retries):
            try:
                resp = self.session.put(
                    url,
                    data=data,
                    headers=headers,
                    timeout=self.timeout,
                    allow_redirects=False,
                )
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                if attempt < self.max_retries - 1:
                    wait_time = 2 ** attempt
                    logger.warning(
                        "Upload timeout for %s, retrying in %ss (attempt %d/%d)",
                        key, wait_time, attempt + 1, self.max_retries,
                    )
                    time.sleep(wait_time)
                    continue
                raise S3UploadError(
                    f"Upload failed after {self.max_retries} attempts: {e}"
                ) from e
            except requests.exceptions.RequestException as e:
                raise S3UploadError(f"Upload failed: {e}") from e

            self._check_redirect(resp, S3UploadError, "upload")
            if resp.status_code not in (200, 201):
                raise S3UploadError(f"S3 upload failed: {resp.status_code} {resp.text}")
            break

        metadata = self.head(bucket, key)
        if metadata is None:
            metadata = ObjectMetadata(
                key=key,
                content_length=len(data),
                content_type=headers["Content-Type"],
                user_metadata=dict(user_metadata),
            )
        return metadata

    def get(self, bucket: str, key: str) -> StoredObject | None:
        """Load content from S3 with retry logic. Returns None if not found."""
        url = self._url(bucket, key)

        for attempt in range(self.max_retries):
            try:
                resp = self.session.get(
                    url, timeout=self.timeout, allow_redirects=False, stream=True
                )
                with resp:
                    if resp.status_code == 404:
                        return None
                    self._check_redirect(resp, S3DownloadError, "download")
                    if resp.status_code != 200:
                        raise S3DownloadError(f"S3 download failed: {resp.status_code}")

                    chunks = []
                    for chunk in resp.iter_content(chunk_size=64 * 1024):
                        if chunk:
                            chunks.append(chunk)

                    return StoredObject(
                        metadata=self._parse_metadata(key, resp.headers),
                        content=io.BytesIO(b"".join(chunks)),
                    )

            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                if attempt < self.max_retries - 1:
                    wait_time = 2 ** attempt
                    logger.warning(
                        "Download timeout for %s, retrying in %ss (attempt %d/%d)",
                        key, wait_time, attempt + 1, self.max_retries,
                    )
                    time.sleep(wait_time)
                else:
                    raise S3DownloadError(
                        f"Download failed after {self.max_retries} attempts: {e}"
                    ) from e

        return None

    def set_user_metadata(
        self, bucket: str, key: str, user_metadata: dict[str, str]
    ) -> ObjectMetadata:
        """Replace user metadata by copying the object onto itself."""
        current = self.head(bucket, key)
        if current is None:
            raise S3ObjectNotFoundError(bucket, key)

        # REPLACE drops every stored header, so content type is sent again
        headers = {
            "x-amz-copy-source": quote(f"/{bucket}/{key}", safe="/~"),
            "x-amz-metadata-directive": "REPLACE",
            "Content-Type": current.content_type or DEFAULT_CONTENT_TYPE,
        }
        headers.update(self._meta_headers(user_metadata))

        try:
            resp = self.session.put(
                self._url(bucket, key), headers=headers, timeout=self.timeout, allow_redirects=False
            )
        except requests.exceptions.RequestException as e:
            raise S3UploadError(f"Metadata update failed: {e}") from e

        self._check_redirect(resp, S3UploadError, "metadata update")
        if resp.status_code != 200:
            raise S3UploadError(f"S3 metadata update failed: {resp.status_code} {resp.text}")
        # Copy requests may report failure in a 200 body
        if resp.content and _strip_namespace(ElementTree.fromstring(resp.content).tag) == "Error":
            raise S3UploadError(f"S3 metadata update failed: {resp.text}")

        metadata = self.head(bucket, key)
        if metadata is None:
            metadata = ObjectMetadata(
                key=key,
                content_length=current.content_length,
                content_type=current.content_type,
                user_metadata=dict(user_metadata),
            )
        return metadata

    def get_metadata(self, bucket: str, keys: Iterable[str]) -> list[ObjectMetadata]:
        """Load metadata for the given keys, skipping missing ones."""
        result = []
        for key in keys:
            metadata = self.head(bucket, key)
            if metadata is not None:
                result.append(metadata)
        return result

    def get_metadata_by_prefix(self, bucket: str, prefix: str) -> list[ObjectMetadata]:
        """Load metadata for every key with the given prefix."""
        return self.get_metadata(bucket, self.list_keys(bucket, prefix))

    def get_keys(self, bucket: str, prefix: str) -> set[str]:
        """List all keys with the given prefix."""
        return set(self.list_keys(bucket, prefix))

    def list_keys(self, bucket: str, prefix: str = "") -> Iterator[str]:
        """Iterate over all keys with the given prefix."""
        continuation_token = None

        while True:
            params = {"list-type": "2", "prefix": prefix}
            if continuation_token:
                params["continuation-token"] = continuation_token

            try:
                resp = self.session.get(
                    self._url(bucket), params=params, timeout=30, allow_redirects=False
                )
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                raise S3ListError(f"List operation failed: {e}") from e

            self._check_redirect(resp, S3ListError, "list")
            if resp.status_code != 200:
                raise S3ListError(f"S3 list failed: {resp.status_code}")

            root = ElementTree.fromstring(resp.content)
            for content in root.findall(".//s3:Contents", _NS):
                key_elem = content.find("s3:Key", _NS)
                if key_elem is not None and key_elem.text:
                    yield key_elem.text

            # Check for more pages
            is_truncated = root.find(".//s3:IsTruncated", _NS)
            if is_truncated is None or is_truncated.text != "true":
                break
            token_elem = root.find(".//s3:NextContinuationToken", _NS)
            if token_elem is None:
                break
            continuation_token = token_elem.text

    def delete(self, bucket: str, keys: Iterable[str]) -> None:
        """Delete keys with multi-object delete requests."""
        keys = sorted(set(keys))
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            self._delete_batch(bucket, keys[start:start + DELETE_BATCH_SIZE])

    def _delete_batch(self, bucket: str, keys: list[str]) -> None:
        root = ElementTree.Element("Delete")
        ElementTree.SubElement(root, "Quiet").text = "true"
        for key in keys:
            obj = ElementTree.SubElement(root, "Object")
            ElementTree.SubElement(obj, "Key").text = key
        body = ElementTree.tostring(root)

        headers = {
            "Content-Type": "application/xml",
            "Content-MD5": base64.b64encode(hashlib.md5(body).digest()).decode("ascii"),
        }
        try:
            resp = self.session.post(
                self._url(bucket),
                params={"delete": ""},
                data=body,
                headers=headers,
                timeout=self.timeout,
                allow_redirects=False,
            )
        except requests.exceptions.RequestException as e:
            raise S3DeleteError(f"Delete operation failed: {e}") from e

        self._check_redirect(resp, S3DeleteError, "delete")
        if resp.status_code != 200:
            raise S3DeleteError(f"S3 delete failed: {resp.status_code} {resp.text}")

        failed = []
        if resp.content:
            for error in ElementTree.fromstring(resp.content).findall("s3:Error", _NS):
                code = error.findtext("s3:Code", default="", namespaces=_NS)
                if code != "NoSuchKey":
                    failed.append(f"{error.findtext('s3:Key', default='', namespaces=_NS)} ({code})")
        if failed:
            raise S3DeleteError(f"S3 delete failed for: {', '.join(failed)}")
        logger.debug("Deleted %d keys from bucket %s", len(keys), bucket)
