# casetrack/services/attachment_service.py

import os
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from casetrack.core.config import settings
from casetrack.core.logger import logger
from casetrack.utils.exceptions import DependencyError, NotFoundOrDeniedError

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/jpg",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",  # .xlsx
    "application/vnd.ms-excel",  # .xls
}

ALLOWED_EXTENSIONS = {".pdf", ".png", ".jpeg", ".jpg", ".xlsx", ".xls"}

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


@dataclass
class IncomingFile:
    filename: str
    content_type: Optional[str]
    data: bytes


@dataclass
class AttachmentCheck:
    valid: bool
    error: Optional[str] = None


def stored_name_for(original_name: str) -> str:
    """
    ``report (final).pdf`` -> ``report__final_-1718000000000-1a2b3c4d5e6f.pdf``.
    Millisecond clock plus a random suffix, so concurrent uploads of the same
    file never collide.
    """
    base = os.path.basename(original_name or "attachment")
    stem, ext = os.path.splitext(base)
    safe_stem = _UNSAFE_CHARS.sub("_", stem) or "attachment"
    return f"{safe_stem}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}{ext.lower()}"


class AttachmentService:
    """
    Attachment store for proceeding documents.
    Files live in S3 by default (ATTACHMENT_STORAGE=s3) or on local disk.
    """

    def __init__(
        self,
        storage: Optional[str] = None,
        local_dir: Optional[str] = None,
        s3_client=None,
        bucket: Optional[str] = None,
        prefix: Optional[str] = None,
        max_bytes: Optional[int] = None,
    ):
        self.storage = storage or settings.ATTACHMENT_STORAGE
        self.local_dir = Path(local_dir or settings.ATTACHMENT_LOCAL_DIR)
        self.bucket = bucket or settings.S3_BUCKET_NAME
        self.prefix = (prefix if prefix is not None else settings.ATTACHMENT_S3_PREFIX).strip("/")
        self.max_bytes = max_bytes or settings.ATTACHMENT_MAX_BYTES
        self._s3_client = s3_client

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = boto3.client(
                's3',
                region_name=settings.AWS_REGION,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None
            )
        return self._s3_client

    def _key(self, filename: str) -> str:
        return f"{self.prefix}/{filename}" if self.prefix else filename

    def _local_path(self, filename: str) -> Path:
        # stored names never contain separators; refuse anything that does
        safe = os.path.basename(filename)
        if safe != filename or safe in ("", ".", ".."):
            raise ValueError(f"Invalid attachment name: {filename!r}")
        return self.local_dir / safe

    def validate(self, filename: str, content_type: Optional[str], size: int) -> AttachmentCheck:
        if size > self.max_bytes:
            return AttachmentCheck(False, f"File size exceeds {self.max_bytes // 1024} KB limit")

        if (content_type or "").lower() not in ALLOWED_MIME_TYPES:
            return AttachmentCheck(
                False,
                "Invalid file type. Only PDF, PNG, JPEG, JPG, and Excel files are allowed."
            )

        ext = os.path.splitext(filename or "")[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            return AttachmentCheck(
                False,
                "Invalid file extension. Only PDF, PNG, JPEG, JPG, and Excel files are allowed."
            )

        return AttachmentCheck(True)

    def save(self, filename: str, content_type: Optional[str], data: bytes) -> str:
        """Persist the file and return its stored name."""
        stored = stored_name_for(filename)

        if self.storage == "local":
            try:
                self.local_dir.mkdir(parents=True, exist_ok=True)
                self._local_path(stored).write_bytes(data)
            except OSError as e:
                logger.error(f"Failed to save attachment locally: {str(e)}")
                raise DependencyError("Attachment store", str(e))
        else:
            try:
                self.s3_client.put_object(
                    Bucket=self.bucket,
                    Key=self._key(stored),
                    Body=data,
                    ContentType=content_type or "application/octet-stream",
                )
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Failed to upload attachment to S3: {str(e)}")
                raise DependencyError("Attachment store", str(e))

        logger.info(f"Attachment stored: {stored}")
        return stored

    def path(self, filename: str, expires_in: int = 3600) -> str:
        """
        Where the file can be fetched from: a filesystem path for local
        storage, a pre-signed GET URL for S3.
        """
        if self.storage == "local":
            return str(self._local_path(filename))
        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': self._key(filename)},
                ExpiresIn=expires_in
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate download URL: {str(e)}")
            raise DependencyError("Attachment store", str(e))

    def exists(self, filename: str) -> bool:
        if self.storage == "local":
            return self._local_path(filename).is_file()
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=self._key(filename))
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            logger.error(f"Failed to look up attachment: {str(e)}")
            raise DependencyError("Attachment store", str(e))

    def delete(self, filename: str) -> None:
        if self.storage == "local":
            target = self._local_path(filename)
            if target.exists():
                target.unlink()
            return
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=self._key(filename))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete attachment: {str(e)}")
            raise DependencyError("Attachment store", str(e))


def resolve_attachment(store: AttachmentService, filename: str) -> str:
    """Download location of a stored attachment, or NotFoundOrDeniedError."""
    try:
        if not store.exists(filename):
            raise NotFoundOrDeniedError("Attachment")
        return store.path(filename)
    except ValueError:
        raise NotFoundOrDeniedError("Attachment")


def get_attachment_service() -> AttachmentService:
    return AttachmentService()
