import io
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.config import Config

from ..settings import settings


@dataclass
class PutResult:
    key: str
    public_url: str


def key_from_url(public_base_url: str, url: str) -> Optional[str]:
    """Object key for a URL this store handed out, None for foreign URLs."""
    prefix = public_base_url.rstrip("/") + "/"
    if not url or not url.startswith(prefix):
        return None
    return url[len(prefix):] or None


class S3CompatStore:
    def __init__(
        self,
        endpoint_url: str,
        region_name: str,
        access_key_id: str,
        secret_access_key: str,
        bucket: str,
        public_base_url: str,
    ):
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.s3 = boto3.client(
            service_name="s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region_name,
            config=Config(signature_version="s3v4", retries={"max_attempts": 3, "mode": "standard"}),
        )

    def put_bytes(self, *, key: str, content_type: str, data: bytes) -> PutResult:
        # keys are never reused
        self.s3.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=io.BytesIO(data),
            ContentType=content_type,
            CacheControl="public, max-age=31536000, immutable",
        )
        return PutResult(key=key, public_url=f"{self.public_base_url}/{key}")

    def key_for_url(self, url: str) -> Optional[str]:
        return key_from_url(self.public_base_url, url)

    def delete(self, key: str) -> None:
        self.s3.delete_object(Bucket=self.bucket, Key=key)

    def healthcheck(self) -> bool:
        # raises if creds/bucket are wrong
        self.s3.head_bucket(Bucket=self.bucket)
        return True


def get_s3_store() -> S3CompatStore:
    return S3CompatStore(
        endpoint_url=settings.object_store_endpoint,
        region_name=settings.object_store_region,
        access_key_id=settings.object_store_access_key_id,
        secret_access_key=settings.object_store_secret_access_key,
        bucket=settings.object_store_bucket,
        public_base_url=settings.object_public_base_url,
    )


def get_store():
    """Backend chosen by `settings.storage_backend` ("local" or "s3")."""
    if settings.storage_backend == "s3":
        return get_s3_store()
    from .local import LocalStore

    return LocalStore()
