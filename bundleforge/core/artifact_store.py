"""Remote artifact stores — existence check and upload of packaged archives.

Artifacts are content-addressed: a key names exactly one archive and is never
overwritten with different bytes.  ``exists`` reports a tri-state
``RemoteExistence``; a failed query is ``QUERY_FAILED``, never ``ABSENT``.

Two backends:
    - ``LocalArtifactStore``: a directory, for tests and offline builds.
    - ``S3ArtifactStore``: an S3 bucket via boto3.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from bundleforge.core.hasher import sha256_file
from bundleforge.models.artifacts import RemoteExistence

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class ArtifactIntegrityError(RuntimeError):
    """Raised when a stored artifact differs from the bytes written under its key."""


class ArtifactUploadError(RuntimeError):
    """Raised when an archive cannot be written to the store."""


@runtime_checkable
class ArtifactStore(Protocol):
    """Contract of the remote artifact store."""

    def exists(self, key: str) -> RemoteExistence: ...

    def put(self, key: str, path: Path) -> None: ...


class LocalArtifactStore:
    """Directory-backed, immutable artifact store.

    Storing the same key twice is a no-op when the bytes match; different
    bytes under an existing key raise ``ArtifactIntegrityError``.  There is
    no delete.

    Parameters
    ----------
    base_path:
        Root directory for stored archives.  Created on the first ``put``.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)

    def _path(self, key: str) -> Path:
        return self._base / key.lstrip("/")

    def exists(self, key: str) -> RemoteExistence:
        try:
            found = self._path(key).is_file()
        except OSError as exc:
            logger.error("Existence check for %s failed: %s", key, exc)
            return RemoteExistence.QUERY_FAILED
        return RemoteExistence.PRESENT if found else RemoteExistence.ABSENT

    def put(self, key: str, path: Path) -> None:
        dest = self._path(key)
        if dest.exists():
            if sha256_file(dest) != sha256_file(path):
                raise ArtifactIntegrityError(
                    f"Stored artifact {key} differs from {path}"
                )
            return
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, dest)
        except OSError as exc:
            raise ArtifactUploadError(f"Could not store {key}: {exc}") from exc
        logger.info("Stored %s", dest)


class S3ArtifactStore:
    """S3 bucket store.

    Works with AWS S3 and S3-compatible services.  ``client`` may be injected
    (tests pass a stub); otherwise one is built from the region and endpoint.
    """

    def __init__(
        self,
        bucket: str,
        *,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        self.bucket = bucket
        if client is None:
            client_kwargs: dict[str, Any] = {
                "service_name": "s3",
                "region_name": region,
                "config": Config(
                    signature_version="s3v4",
                    retries={"max_attempts": 5, "mode": "standard"},
                ),
            }
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client(**client_kwargs)
        self.client = client

    def url(self, key: str) -> str:
        return f"s3://{self.bucket}/{key}"

    def exists(self, key: str) -> RemoteExistence:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                return RemoteExistence.ABSENT
            logger.error("head_object %s failed: %s", self.url(key), exc)
            return RemoteExistence.QUERY_FAILED
        except BotoCoreError as exc:
            logger.error("head_object %s failed: %s", self.url(key), exc)
            return RemoteExistence.QUERY_FAILED
        return RemoteExistence.PRESENT

    def put(self, key: str, path: Path) -> None:
        try:
            self.client.upload_file(str(path), self.bucket, key)
        except (ClientError, BotoCoreError) as exc:
            raise ArtifactUploadError(f"Upload to {self.url(key)} failed: {exc}") from exc
        logger.info("Uploaded %s", self.url(key))
