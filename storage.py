"""
storage.py — where sealed link bodies go when they are too big for the table.

Keys are link lookup keys plus a random suffix. A blob lives exactly as long
as its secure_links row. MinIO is used when USE_MINIO=true and the bucket is
reachable at startup; otherwise, or when a MinIO write fails, blobs land in
UPLOAD_DIR.
"""

import os
import logging
import boto3
from botocore.exceptions import ClientError
from botocore.config import Config

from config import (
    MINIO_ENDPOINT,
    MINIO_ACCESS_KEY,
    MINIO_SECRET_KEY,
    MINIO_BUCKET,
    USE_MINIO,
    UPLOAD_DIR,
)

logger = logging.getLogger(__name__)

_PREFIX = "secure-links/"
_MISSING = ("NoSuchKey", "404")


def _connect_minio():
    s3 = boto3.client(
        "s3",
        endpoint_url=MINIO_ENDPOINT,
        aws_access_key_id=MINIO_ACCESS_KEY,
        aws_secret_access_key=MINIO_SECRET_KEY,
        config=Config(
            signature_version="s3v4",
            connect_timeout=5,
            read_timeout=30,
            retries={"max_attempts": 3, "mode": "standard"},
        ),
        region_name="us-east-1",
    )
    try:
        s3.head_bucket(Bucket=MINIO_BUCKET)
    except ClientError as e:
        if e.response["Error"]["Code"] not in _MISSING:
            raise
        s3.create_bucket(Bucket=MINIO_BUCKET)
        logger.info(f"Created bucket {MINIO_BUCKET} for sealed links")
    return s3


class SealedBlobStore:

    def __init__(self, local_dir: str = UPLOAD_DIR, use_minio: bool = USE_MINIO, s3=None):
        self.local_dir = local_dir
        self.use_minio = use_minio
        self._s3 = s3
        if use_minio and s3 is None:
            try:
                self._s3 = _connect_minio()
                logger.info(f"Sealed links stored in MinIO {MINIO_ENDPOINT}/{MINIO_BUCKET}")
            except Exception as e:
                logger.warning(f"MinIO unavailable ({e}); sealed links stored in {local_dir}")

    def _file(self, key: str) -> str:
        return os.path.join(self.local_dir, f"{key}.sealed")

    def put(self, key: str, sealed: bytes) -> bool:
        if self._s3 is not None:
            try:
                self._s3.put_object(Bucket=MINIO_BUCKET, Key=_PREFIX + key, Body=sealed)
                return True
            except Exception as e:
                logger.error(f"MinIO write of {key[:12]} failed ({e}), writing to disk")

        try:
            os.makedirs(self.local_dir, exist_ok=True)
            with open(self._file(key), "wb") as f:
                f.write(sealed)
            return True
        except OSError as e:
            logger.error(f"Disk write of {key[:12]} failed: {e}")
            return False

    def get(self, key: str):
        """Sealed bytes, or None when absent. Raises OSError on a failed disk read."""
        if self._s3 is not None:
            try:
                return self._s3.get_object(Bucket=MINIO_BUCKET, Key=_PREFIX + key)["Body"].read()
            except ClientError as e:
                if e.response["Error"]["Code"] not in _MISSING:
                    logger.error(f"MinIO read of {key[:12]} failed: {e}")
            except Exception as e:
                logger.error(f"MinIO read of {key[:12]} failed: {e}")

        # Also covers blobs written to disk while MinIO was failing
        try:
            with open(self._file(key), "rb") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def delete(self, key: str) -> bool:
        removed = True
        if self._s3 is not None:
            try:
                self._s3.delete_object(Bucket=MINIO_BUCKET, Key=_PREFIX + key)
            except Exception as e:
                logger.error(f"MinIO delete of {key[:12]} failed: {e}")
                removed = False

        try:
            os.remove(self._file(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Disk delete of {key[:12]} failed: {e}")
            removed = False
        return removed

    def health(self) -> dict:
        if not self.use_minio:
            return {"status": "local_disk", "path": self.local_dir}
        if self._s3 is None:
            return {"status": "fallback", "backend": "LocalDisk", "path": self.local_dir}
        try:
            self._s3.head_bucket(Bucket=MINIO_BUCKET)
            return {"status": "healthy", "backend": "MinIO", "endpoint": MINIO_ENDPOINT}
        except Exception as e:
            return {"status": "degraded", "backend": "MinIO", "error": str(e)}


# Singleton
storage = SealedBlobStore()
