"""
Durable object storage for uploaded documents.

One backend is active per process. Objects are written private and read
through time-limited URLs minted from the stored object key.
"""
import logging
import os
import shutil
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import boto3
from azure.core.exceptions import AzureError
from azure.storage.blob import BlobSasPermissions, BlobServiceClient, ContentSettings, generate_blob_sas
from botocore.exceptions import BotoCoreError, ClientError

from scholarhub.config import Settings
from scholarhub.errors import UpstreamFailure
from scholarhub.utils.filesystem import object_key

logger = logging.getLogger("scholarhub.storage")

UPLOAD_FAILED = "Failed to upload document"


@dataclass(frozen=True)
class StoredObject:
    key: str
    url: str


class StorageBackend:
    name = "base"

    def __init__(self, ttl_seconds: int = 3600):
        self.ttl_seconds = ttl_seconds

    def upload(self, local_path: str | Path, desired_filename: str, mime_type: str) -> StoredObject:
        path = Path(local_path)
        if not path.is_file():
            raise UpstreamFailure(UPLOAD_FAILED, detail=f"local file missing: {path}")
        key = object_key(desired_filename)
        self._put(path, key, mime_type)
        logger.info("Stored %s as %s on %s backend", path.name, key, self.name)
        return StoredObject(key=key, url=self.signed_url(key))

    def signed_url(self, key: str) -> str:
        raise NotImplementedError

    def _put(self, path: Path, key: str, mime_type: str) -> None:
        raise NotImplementedError


class S3StorageBackend(StorageBackend):
    name = "s3"

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        ttl_seconds: int = 3600,
        client=None,
    ):
        super().__init__(ttl_seconds)
        self.bucket = bucket
        self.client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    def _put(self, path: Path, key: str, mime_type: str) -> None:
        try:
            with open(path, "rb") as body:
                self.client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=body,
                    ContentType=mime_type,
                    ACL="private",
                )
        except (BotoCoreError, ClientError, OSError) as exc:
            raise UpstreamFailure(UPLOAD_FAILED, detail=f"S3 put_object {key}: {exc}") from exc

    def signed_url(self, key: str) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.ttl_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamFailure("Failed to create document link", detail=f"S3 presign {key}: {exc}") from exc


class AzureBlobStorageBackend(StorageBackend):
    name = "azure"

    def __init__(
        self,
        connection_string: str | None,
        container: str,
        ttl_seconds: int = 3600,
        service_client: BlobServiceClient | None = None,
    ):
        super().__init__(ttl_seconds)
        if service_client is None and not connection_string:
            raise ValueError("Azure storage connection string must be set.")
        self.container = container
        self.service_client = service_client or BlobServiceClient.from_connection_string(connection_string)

    def _put(self, path: Path, key: str, mime_type: str) -> None:
        blob = self.service_client.get_blob_client(container=self.container, blob=key)
        try:
            with open(path, "rb") as data:
                blob.upload_blob(
                    data,
                    overwrite=True,
                    content_settings=ContentSettings(content_type=mime_type),
                )
        except (AzureError, OSError) as exc:
            raise UpstreamFailure(UPLOAD_FAILED, detail=f"Azure upload_blob {key}: {exc}") from exc

    def signed_url(self, key: str) -> str:
        blob = self.service_client.get_blob_client(container=self.container, blob=key)
        credential = self.service_client.credential
        try:
            sas = generate_blob_sas(
                account_name=blob.account_name,
                container_name=self.container,
                blob_name=key,
                account_key=credential.account_key,
                permission=BlobSasPermissions(read=True),
                expiry=datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds),
            )
        except (AzureError, AttributeError, ValueError) as exc:
            raise UpstreamFailure("Failed to create document link", detail=f"Azure SAS {key}: {exc}") from exc
        return f"{blob.url}?{sas}"


class LocalStorageBackend(StorageBackend):
    """Degraded mode used when no cloud store is configured."""

    name = "local"

    def __init__(self, root: Path, ttl_seconds: int = 3600):
        super().__init__(ttl_seconds)
        self.root = root

    def _put(self, path: Path, key: str, mime_type: str) -> None:
        dest = self.root / key
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, dest)
            os.chmod(dest, 0o444)
        except OSError as exc:
            raise UpstreamFailure(UPLOAD_FAILED, detail=f"local copy {key}: {exc}") from exc

    def signed_url(self, key: str) -> str:
        return (self.root / key).resolve().as_uri()


def build_storage_backend(config: Settings) -> StorageBackend:
    backend = config.storage_backend.lower()
    if backend == "s3":
        return S3StorageBackend(
            bucket=config.s3_bucket_name,
            region=config.aws_region,
            access_key_id=config.aws_access_key_id,
            secret_access_key=config.aws_secret_access_key,
            ttl_seconds=config.signed_url_ttl_seconds,
        )
    if backend == "azure":
        if config.azure_storage_connection_string:
            return AzureBlobStorageBackend(
                connection_string=config.azure_storage_connection_string,
                container=config.azure_container,
                ttl_seconds=config.signed_url_ttl_seconds,
            )
        logger.warning("Azure storage selected but no connection string set; using local storage only.")
    elif backend != "local":
        raise ValueError(f"Unknown storage backend: {config.storage_backend}")
    return LocalStorageBackend(config.storage_dir, ttl_seconds=config.signed_url_ttl_seconds)
