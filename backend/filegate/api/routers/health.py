from fastapi import APIRouter, Depends

from filegate.schemas import HealthResponse
from filegate.services.storage import StorageService, get_storage_service

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(storage: StorageService = Depends(get_storage_service)) -> HealthResponse:
    return HealthResponse(bucket=storage.bucket)
