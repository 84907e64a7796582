"""Storage of uploaded bytes under random, unguessable names.

Blob names never derive from the user supplied filename, which rules out
path traversal and collisions between uploads of the same name.
"""

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from filevault.core.errors import CapacityError, NotFoundError, PolicyError, StorageIOError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
DEFAULT_SIZE_LIMIT = 10 * 1024 * 1024


@dataclass(frozen=True)
class BlobHandle:
    name: str
    size: int


def get_extension(filename: str) -> str:
    """Lower-case text after the last dot of the base name, '' if there is none.

    A file named just ".txt" counts as a txt file.
    """
    name = Path(filename).name
    return name.rsplit(".", 1)[1].lower() if "." in name else ""


class BlobBackend(ABC):
    @abstractmethod
    def write(self, name: str, chunks: Iterable[bytes], content_type: str) -> None:
        """Write all chunks under ``name``. Nothing may remain if iteration raises."""

    @abstractmethod
    def open(self, name: str) -> BinaryIO:
        """Open a blob for reading, raise NotFoundError if it does not exist."""

    @abstractmethod
    def delete(self, name: str) -> None:
        """Delete a blob; a missing blob is not an error."""


class LocalBlobBackend(BlobBackend):
    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        return self.directory / name

    def write(self, name, chunks, content_type):
        path = self._path(name)
        try:
            with path.open("xb") as f:
                for chunk in chunks:
                    f.write(chunk)
        except BaseException:
            path.unlink(missing_ok=True)
            raise

    def open(self, name):
        try:
            return self._path(name).open("rb")
        except FileNotFoundError:
            raise NotFoundError(f"Blob {name} is missing", token="file-not-found")

    def delete(self, name):
        self._path(name).unlink(missing_ok=True)


class S3BlobBackend(BlobBackend):
    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    def write(self, name, chunks, content_type):
        # The size limit keeps this bounded, so buffer and send in one request
        body = b"".join(chunks)
        self.client.put_object(Bucket=self.bucket, Key=name, Body=body, ContentType=content_type)

    def open(self, name):
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=name)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise NotFoundError(f"Blob {name} is missing", token="file-not-found") from e
            raise
        return obj["Body"]

    def delete(self, name):
        # S3 deletes are idempotent already
        self.client.delete_object(Bucket=self.bucket, Key=name)


class BlobManager:
    def __init__(
        self,
        backend: BlobBackend,
        size_limit: int = DEFAULT_SIZE_LIMIT,
        allowed_extensions: Iterable[str] | None = None,
    ):
        self.backend = backend
        self.size_limit = size_limit
        self.allowed_extensions = {e.lower().lstrip(".") for e in allowed_extensions} if allowed_extensions else None

    def store(
        self,
        stream: BinaryIO,
        filename: str,
        content_type: str = "application/octet-stream",
        size_limit: int | None = None,
        allowed_extensions: Iterable[str] | None = None,
    ) -> BlobHandle:
        """Copy an upload stream into storage and return its handle.

        Only the filename suffix is checked against the allow-list; the
        content is not sniffed, so a renamed file passes.
        """
        if size_limit is None:
            size_limit = self.size_limit
        allowed = {e.lower().lstrip(".") for e in allowed_extensions} if allowed_extensions else self.allowed_extensions
        if allowed is not None and get_extension(filename) not in allowed:
            raise PolicyError(f"File type of {filename!r} is not allowed")

        name = secrets.token_hex(16)
        written = 0

        def chunks() -> Iterator[bytes]:
            nonlocal written
            while chunk := stream.read(CHUNK_SIZE):
                written += len(chunk)
                if written > size_limit:
                    raise CapacityError(f"Upload exceeds {size_limit} bytes")
                yield chunk

        try:
            self.backend.write(name, chunks(), content_type)
        except (OSError, BotoCoreError, ClientError) as e:
            logger.exception("Failed to store blob %s", name)
            raise StorageIOError(f"Cannot store blob {name}") from e
        logger.info("Stored blob %s (%d bytes)", name, written)
        return BlobHandle(name=name, size=written)

    def retrieve(self, name: str) -> BinaryIO:
        try:
            return self.backend.open(name)
        except (OSError, BotoCoreError, ClientError) as e:
            logger.exception("Failed to open blob %s", name)
            raise StorageIOError(f"Cannot read blob {name}") from e

    def remove(self, name: str) -> None:
        try:
            self.backend.delete(name)
        except (OSError, BotoCoreError, ClientError) as e:
            raise StorageIOError(f"Cannot delete blob {name}") from e
        logger.info("Removed blob %s", name)


def make_backend(settings) -> BlobBackend:
    if settings.blob_backend == "s3":
        client = boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
        )
        return S3BlobBackend(client, settings.aws_s3_bucket_name)
    return LocalBlobBackend(settings.blob_dir)
