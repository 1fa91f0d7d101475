# imgconvert/blob_store.py
import logging

from botocore.exceptions import BotoCoreError, ClientError

from .config import create_s3_client, get_bucket
from .exceptions import BlobStoreError

logger = logging.getLogger(__name__)


class S3BlobStore:
    """Path-addressed bytes in one S3 bucket."""

    def __init__(self, bucket: str | None = None, client=None):
        self.bucket = bucket or get_bucket()
        self._s3 = client if client is not None else create_s3_client()

    def download(self, path: str) -> bytes:
        try:
            resp = self._s3.get_object(Bucket=self.bucket, Key=path)
            body = resp["Body"].read()
        except ClientError as e:
            err = e.response.get("Error", {})
            raise BlobStoreError(
                f"S3 get {self.bucket}/{path}: {err.get('Code', 'ClientError')}: {err.get('Message', e)}"
            ) from e
        except BotoCoreError as e:
            raise BlobStoreError(f"S3 get {self.bucket}/{path}: {e}") from e
        logger.info(f"[BlobStore] Downloaded s3://{self.bucket}/{path} ({len(body)} bytes)")
        return body

    def exists(self, path: str) -> bool:
        try:
            self._s3.head_object(Bucket=self.bucket, Key=path)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise BlobStoreError(f"S3 head {self.bucket}/{path}: {e}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"S3 head {self.bucket}/{path}: {e}") from e
        return True

    def upload(self, path: str, data: bytes, content_type: str, overwrite: bool = True) -> str:
        if not overwrite and self.exists(path):
            raise BlobStoreError(f"s3://{self.bucket}/{path} already exists")
        try:
            self._s3.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except ClientError as e:
            err = e.response.get("Error", {})
            raise BlobStoreError(
                f"S3 put {self.bucket}/{path}: {err.get('Code', 'ClientError')}: {err.get('Message', e)}"
            ) from e
        except BotoCoreError as e:
            raise BlobStoreError(f"S3 put {self.bucket}/{path}: {e}") from e
        logger.info(f"[BlobStore] Uploaded -> s3://{self.bucket}/{path} ({len(data)} bytes, {content_type})")
        return path
