from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import PlainTextResponse, StreamingResponse

from filegate.models import AccessType, HttpMethod
from filegate.schemas import PresignedUrlResponse, UploadUrlResponse
from filegate.services.naming import build_file_name
from filegate.services.storage import StorageService, get_storage_service

router = APIRouter(prefix="/files", tags=["files"])

MISSING_OBJECT_CODES = {"NoSuchKey", "404", "NotFound"}


@router.get("/download/{file_name}", name="download_file", response_class=StreamingResponse)
async def download_file(
    file_name: str,
    storage: StorageService = Depends(get_storage_service),
) -> StreamingResponse:
    try:
        return await storage.download_file_response(file_name)
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") in MISSING_OBJECT_CODES:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found") from None
        raise


@router.get("/{file_name}", response_model=PresignedUrlResponse)
async def get_download_url(
    file_name: str,
    storage: StorageService = Depends(get_storage_service),
) -> PresignedUrlResponse:
    try:
        url = storage.generate_presigned_url(file_name, HttpMethod.GET)
    except (BotoCoreError, ClientError) as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR) from exc
    return PresignedUrlResponse(url=url)


@router.post("/pre-signed-url", response_model=UploadUrlResponse)
async def generate_upload_url(
    filename: str = Query(default=""),
    access_type: AccessType = Query(default=AccessType.PRIVATE, alias="accessType"),
    storage: StorageService = Depends(get_storage_service),
) -> UploadUrlResponse:
    object_key = build_file_name(filename)
    try:
        url = storage.generate_presigned_url(object_key, HttpMethod.PUT, access_type)
    except (BotoCoreError, ClientError) as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR) from exc
    return UploadUrlResponse(url=url, file=object_key)


@router.post("/upload", response_class=PlainTextResponse)
async def upload_file(
    file: UploadFile = File(...),
    access_type: AccessType = Query(default=AccessType.PRIVATE, alias="accessType"),
    storage: StorageService = Depends(get_storage_service),
) -> PlainTextResponse:
    if not file.size:
        await file.close()
        return PlainTextResponse("Empty file", status_code=status.HTTP_400_BAD_REQUEST)

    object_key = await storage.upload_file(file.file, file.filename, file.size, access_type)
    return PlainTextResponse(object_key)
