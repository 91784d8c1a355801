"""Profile picture storage: Supabase Storage, or S3 when configured.

Uploads refuse to replace an existing object unless ``overwrite`` is set and
raise ``FileExistsError`` instead, so a caller only ever deletes what it wrote.
"""
import logging
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import ClientError
from supabase import Client

from garden_backend.config import settings

logger = logging.getLogger(__name__)

PROFILE_KEY_PREFIX = "profiles"


def profile_image_key(email: str) -> str:
    return f"{PROFILE_KEY_PREFIX}/{email}"


class SupabaseImageStorage:
    def __init__(self, supabase: Client, bucket_name: Optional[str] = None):
        self.supabase = supabase
        self.bucket_name = bucket_name or settings.profile_images_bucket

    def upload_file(self, file_content: bytes, key: str, content_type: str = "image/jpeg",
                    overwrite: bool = False) -> str:
        """Upload file to Supabase Storage and return its public URL"""
        bucket = self.supabase.storage.from_(self.bucket_name)
        try:
            bucket.upload(
                key,
                file_content,
                file_options={"content-type": content_type, "upsert": "true" if overwrite else "false"}
            )
        except Exception as e:
            error_message = str(e)
            if "409" in error_message or "duplicate" in error_message.lower() or "already exists" in error_message.lower():
                raise FileExistsError(key) from e
            logger.error(f"Failed to upload file to Supabase Storage: {error_message}")
            raise
        return bucket.get_public_url(key)

    def delete_file(self, key: str) -> bool:
        try:
            self.supabase.storage.from_(self.bucket_name).remove([key])
            return True
        except Exception as e:
            logger.warning("Failed to delete from Supabase Storage (%s): %s", key, e)
            return False


class S3ImageStorage:
    def __init__(self):
        if not settings.s3_configured:
            raise ValueError("AWS S3 credentials and bucket name must be configured")

        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region
        )
        self.bucket_name = settings.s3_bucket_name

    def upload_file(self, file_content: bytes, key: str, content_type: str = "image/jpeg",
                    overwrite: bool = False) -> str:
        """Upload file to S3 and return its public https URL"""
        params = {
            "Bucket": self.bucket_name,
            "Key": key,
            "Body": file_content,
            "ContentType": content_type,
        }
        if not overwrite:
            params["IfNoneMatch"] = "*"
        try:
            self.s3_client.put_object(**params)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("PreconditionFailed", "ConditionalRequestConflict"):
                raise FileExistsError(key) from e
            logger.error(f"Failed to upload file to S3: {str(e)}")
            raise
        return f"https://{self.bucket_name}.s3.{settings.aws_region}.amazonaws.com/{quote(key)}"

    def delete_file(self, key: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            logger.error(f"Failed to delete file from S3: {str(e)}")
            return False


def get_image_storage(supabase: Client):
    """S3 when fully configured, otherwise Supabase Storage."""
    if settings.s3_configured:
        try:
            storage = S3ImageStorage()
            logger.info("S3 storage initialized for profile images")
            return storage
        except Exception as e:
            logger.warning(f"S3 storage initialization failed ({str(e)}), will use Supabase Storage")
    return SupabaseImageStorage(supabase)
