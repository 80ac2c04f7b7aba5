import asyncio
from datetime import timedelta
from functools import lru_cache
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from fastapi import HTTPException, UploadFile
from minio import Minio
from minio.error import S3Error

from app.config.settings import settings
from app.utils.datetime_utils import utc_now
from app.utils.logging import get_logger

logger = get_logger()


class MinIOService:
    """Stores submission files in MinIO; the client is synchronous so calls run in the executor"""

    def __init__(self, client: Optional[Minio] = None):
        self.client = client or Minio(
            endpoint=settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
        )
        self.bucket_name = settings.MINIO_BUCKET_NAME
        self._bucket_checked = False

    async def _run(self, func: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    async def ensure_bucket(self):
        """Create the bucket on first use"""
        if self._bucket_checked:
            return

        def _ensure_sync():
            if not self.client.bucket_exists(self.bucket_name):
                self.client.make_bucket(self.bucket_name)

        try:
            await self._run(_ensure_sync)
            self._bucket_checked = True
        except S3Error as e:
            logger.error(
                "Failed to ensure bucket exists", bucket=self.bucket_name, error=str(e)
            )
            raise HTTPException(
                status_code=500, detail=f"Failed to ensure bucket exists: {str(e)}"
            )

    @staticmethod
    def build_object_name(prefix: Optional[str], filename: str) -> str:
        """Unique object key: <prefix>/<uuid>_<timestamp>_<filename>"""
        timestamp = utc_now().strftime("%Y%m%d_%H%M%S")
        object_name = f"{uuid4()}_{timestamp}_{filename}"
        return f"{prefix}/{object_name}" if prefix else object_name

    async def upload_file(
        self,
        file: UploadFile,
        prefix: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Upload a submission file.

        Args:
            file: FastAPI UploadFile object
            prefix: Folder-like prefix, e.g. submissions/<faculty_id>
            filename: Name to store under, defaults to the uploaded name

        Returns:
            Dict with object_name, bucket_name, size and content_type
        """
        if file.size is None:
            raise HTTPException(
                status_code=400, detail="File size is required for upload"
            )

        await self.ensure_bucket()

        object_name = self.build_object_name(prefix, filename or file.filename)
        content_type = file.content_type or "application/octet-stream"

        def _upload_sync():
            return self.client.put_object(
                bucket_name=self.bucket_name,
                object_name=object_name,
                data=file.file,
                length=file.size,
                content_type=content_type,
            )

        try:
            result = await self._run(_upload_sync)
        except S3Error as e:
            logger.error(
                "Failed to upload file to MinIO", object_name=object_name, error=str(e)
            )
            raise HTTPException(
                status_code=500, detail=f"Failed to upload file to MinIO: {str(e)}"
            )

        logger.info("File uploaded to MinIO", object_name=object_name, size=file.size)
        return {
            "object_name": object_name,
            "bucket_name": self.bucket_name,
            "size": file.size,
            "content_type": content_type,
            "etag": result.etag,
        }

    async def delete_file(self, object_name: str) -> bool:
        def _delete_sync():
            self.client.remove_object(self.bucket_name, object_name)

        try:
            await self._run(_delete_sync)
        except S3Error as e:
            if e.code == "NoSuchKey":
                raise HTTPException(
                    status_code=404, detail=f"File '{object_name}' not found"
                )
            raise HTTPException(
                status_code=500, detail=f"Failed to delete file from MinIO: {str(e)}"
            )

        logger.info("File deleted from MinIO", object_name=object_name)
        return True

    async def generate_presigned_url(
        self, object_name: str, expires_in_hours: int = 24
    ) -> Dict[str, Any]:
        """
        Generate a presigned download URL for an existing object.

        Returns:
            Dict with presigned_url, expires_at and the object's size/content type
        """

        def _stat_sync():
            return self.client.stat_object(self.bucket_name, object_name)

        def _presign_sync():
            return self.client.presigned_get_object(
                bucket_name=self.bucket_name,
                object_name=object_name,
                expires=timedelta(hours=expires_in_hours),
            )

        try:
            object_stat = await self._run(_stat_sync)
            presigned_url = await self._run(_presign_sync)
        except S3Error as e:
            if e.code == "NoSuchKey":
                raise HTTPException(
                    status_code=404, detail=f"File '{object_name}' not found"
                )
            raise HTTPException(
                status_code=500, detail=f"Failed to generate presigned URL: {str(e)}"
            )

        return {
            "object_name": object_name,
            "presigned_url": presigned_url,
            "expires_at": (utc_now() + timedelta(hours=expires_in_hours)).isoformat(),
            "expires_in_hours": expires_in_hours,
            "file_size": object_stat.size,
            "content_type": object_stat.content_type,
        }


@lru_cache()
def get_minio_service() -> MinIOService:
    """Dependency to get MinIO service instance"""
    return MinIOService()
