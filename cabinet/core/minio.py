from minio import Minio
from minio.error import S3Error
from fastapi.concurrency import run_in_threadpool
from datetime import timedelta
import io

from cabinet.core.config import settings
from cabinet.core.storage import ObjectStorage


class MinioClient(ObjectStorage):
    def __init__(self):
        self.client = Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ROOT_USER,
            secret_key=settings.MINIO_ROOT_PASSWORD,
            secure=settings.MINIO_SECURE
        )
        self.bucket_name = settings.MINIO_BUCKET_NAME

        scheme = "https" if settings.MINIO_SECURE else "http"
        self.public_base_url = (settings.MINIO_PUBLIC_URL or f"{scheme}://{settings.MINIO_ENDPOINT}").rstrip("/")

    async def ensure_bucket_exists(self):
        """Ensure the bucket exists, create if not"""
        exists = await run_in_threadpool(self.client.bucket_exists, self.bucket_name)
        if not exists:
            await run_in_threadpool(self.client.make_bucket, self.bucket_name)

    async def put_object(self, path: str, data: bytes, content_type: str) -> None:
        """Upload bytes under the given object name"""
        await run_in_threadpool(
            self.client.put_object,
            self.bucket_name,
            path,
            io.BytesIO(data),
            len(data),
            content_type=content_type or "application/octet-stream",
        )

    async def get_object(self, path: str) -> bytes:
        """Download an object's bytes"""
        def _read() -> bytes:
            response = self.client.get_object(self.bucket_name, path)
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()

        return await run_in_threadpool(_read)

    async def remove_object(self, path: str) -> None:
        """Delete an object; S3 semantics make a missing key a no-op"""
        try:
            await run_in_threadpool(self.client.remove_object, self.bucket_name, path)
        except S3Error as e:
            if e.code != "NoSuchKey":
                raise

    async def presigned_get_url(self, path: str, expires: int) -> str:
        """Get a presigned URL for an object"""
        return await run_in_threadpool(
            self.client.presigned_get_object,
            self.bucket_name,
            path,
            expires=timedelta(seconds=expires),
        )

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{self.bucket_name}/{path}"


# Process-wide MinIO client, handed to services through get_minio
minio_client = MinioClient()


async def get_minio() -> MinioClient:
    """Dependency to get MinIO client"""
    return minio_client
