from filegate.schemas.health import HealthResponse
from filegate.schemas.storage import PresignedUrlResponse, UploadUrlResponse

__all__ = [
    "HealthResponse",
    "PresignedUrlResponse",
    "UploadUrlResponse",
]
