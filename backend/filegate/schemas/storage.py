from pydantic import BaseModel


class PresignedUrlResponse(BaseModel):
    url: str


class UploadUrlResponse(BaseModel):
    url: str
    file: str
