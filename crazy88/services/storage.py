"""
Object storage port and S3-compatible adapter for evidence files
"""
from abc import ABC, abstractmethod
from typing import Any, Optional

from crazy88.config import StorageSettings


class ObjectStorage(ABC):
    """Opaque media store: takes bytes, returns a durable public URL"""

    @abstractmethod
    def upload(self, data: bytes, path: str, content_type: Optional[str] = None) -> str:
        """
        Store an object

        Args:
            data: Object content
            path: Key inside the bucket
            content_type: MIME type to store with the object

        Returns:
            Public URL of the stored object

        Raises:
            Exception: Whatever the backend raises; the caller decides on retries
        """
        ...


class S3ObjectStorage(ObjectStorage):
    """S3 / R2 object storage via boto3"""

    def __init__(self, settings: StorageSettings, client: Any = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            import boto3

            self._client = boto3.client(
                "s3",
                endpoint_url=self.settings.endpoint_url,
                aws_access_key_id=self.settings.access_key,
                aws_secret_access_key=self.settings.secret_key,
                region_name=self.settings.region,
            )
        return self._client

    def public_url(self, path: str) -> str:
        if self.settings.public_base_url:
            return f"{self.settings.public_base_url.rstrip('/')}/{path}"
        if self.settings.endpoint_url:
            return f"{self.settings.endpoint_url.rstrip('/')}/{self.settings.bucket}/{path}"
        return f"https://{self.settings.bucket}.s3.amazonaws.com/{path}"

    def upload(self, data: bytes, path: str, content_type: Optional[str] = None) -> str:
        extra = {"Bucket": self.settings.bucket, "Key": path, "Body": data}
        if content_type:
            extra["ContentType"] = content_type
        self.client.put_object(**extra)
        return self.public_url(path)
