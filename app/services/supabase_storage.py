from typing import Optional

from supabase import create_client, Client

from app.core.config import settings
from app.utils.logger import storage_logger


class StorageError(Exception):
    """Raised when the object store rejects or fails an operation."""


class SupabaseStorageService:
    """Service for handling Supabase Storage operations on uploaded blog files."""

    _client: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        """Get Supabase client."""
        if cls._client is None:
            if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
                raise StorageError("Supabase URL and key must be configured")

            cls._client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)

        return cls._client

    @staticmethod
    def _check_response(response, action: str, storage_key: str) -> None:
        # The client returns different shapes across versions, look for an error either way
        error = None
        if hasattr(response, 'error') and response.error:
            error = response.error
        elif isinstance(response, dict) and response.get('error'):
            error = response['error']

        if error:
            raise StorageError(f"Failed to {action} '{storage_key}': {error}")

    @classmethod
    def delete_object(cls, storage_key: str) -> None:
        """
        Delete an object from the bucket.

        Args:
            storage_key: Key of the object, e.g. uploads/image/2024/01/<uuid>.png

        Raises:
            StorageError: If the object could not be deleted
        """
        try:
            bucket = cls.get_client().storage.from_(settings.SUPABASE_BUCKET_NAME)
            response = bucket.remove([storage_key])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete '{storage_key}': {e}") from e

        cls._check_response(response, "delete", storage_key)
        storage_logger.info("Object deleted", "DELETE", key=storage_key)

    @classmethod
    def download_object(cls, storage_key: str) -> bytes:
        """
        Fetch the raw bytes of an object.

        Raises:
            StorageError: If the object could not be downloaded
        """
        try:
            bucket = cls.get_client().storage.from_(settings.SUPABASE_BUCKET_NAME)
            data = bucket.download(storage_key)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to download '{storage_key}': {e}") from e

        cls._check_response(data, "download", storage_key)
        return data

    @classmethod
    def create_signed_url(cls, storage_key: str, expires_in: Optional[int] = None) -> Optional[str]:
        """
        Create a time-limited download URL for an object.

        Returns:
            The signed URL, or None if one could not be created
        """
        expires_in = expires_in or settings.SIGNED_URL_EXPIRE_SECONDS
        try:
            bucket = cls.get_client().storage.from_(settings.SUPABASE_BUCKET_NAME)
            response = bucket.create_signed_url(storage_key, expires_in)
        except Exception as e:
            storage_logger.warning("Could not create signed URL", "SIGN", key=storage_key, error=str(e))
            return None

        if isinstance(response, dict):
            return response.get('signedURL') or response.get('signedUrl')
        return None
