import importlib
import io
import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError
from botocore.response import StreamingBody
from httpx import AsyncClient, ASGITransport

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from filegate.core.config import get_settings
from filegate.services import storage as storage_service


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 client calls the gateway makes."""

    def __init__(self) -> None:
        self.objects: dict[str, dict] = {}
        self.presign_calls: list[dict] = []
        self.put_calls: list[dict] = []

    def add_object(self, key: str, data: bytes, etag: str | None = None) -> None:
        self.objects[key] = {"Body": data, "ETag": etag}

    def generate_presigned_url(self, ClientMethod, Params=None, ExpiresIn=3600, HttpMethod=None):
        params = dict(Params or {})
        self.presign_calls.append(
            {"ClientMethod": ClientMethod, "Params": params, "ExpiresIn": ExpiresIn}
        )
        url = (
            f"https://{params['Bucket']}.s3.test/{params['Key']}"
            f"?op={ClientMethod}&expires={ExpiresIn}"
        )
        if "ACL" in params:
            url += f"&acl={params['ACL']}"
        return url

    def put_object(self, **kwargs):
        data = kwargs["Body"].read()
        self.put_calls.append({k: v for k, v in kwargs.items() if k != "Body"})
        self.objects[kwargs["Key"]] = {
            "Body": data,
            "ETag": '"fake-etag"',
            "ACL": kwargs.get("ACL"),
            "ContentLength": kwargs.get("ContentLength"),
        }
        return {"ETag": '"fake-etag"'}

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            )
        stored = self.objects[Key]
        data = stored["Body"]
        response = {
            "Body": StreamingBody(io.BytesIO(data), len(data)),
            "ContentLength": len(data),
        }
        if stored.get("ETag") is not None:
            response["ETag"] = stored["ETag"]
        return response


@pytest.fixture(scope="session", autouse=True)
def configure_environment():
    os.environ["ENV"] = "test"
    os.environ["S3_ACCESS_KEY"] = "test"
    os.environ["S3_SECRET_KEY"] = "test"
    os.environ["S3_REGION"] = "us-east-1"
    os.environ["S3_BUCKET"] = "test-bucket"
    get_settings.cache_clear()
    storage_service.reset_storage_service()


@pytest.fixture
def fake_s3(configure_environment):
    client = FakeS3Client()
    storage_service._storage_service = storage_service.StorageService(
        "test-bucket", client=client, settings=get_settings()
    )
    yield client
    storage_service.reset_storage_service()


@pytest.fixture(scope="session")
def app_instance(configure_environment):
    from filegate import main as app_module

    importlib.reload(app_module)
    return app_module.app


@pytest_asyncio.fixture
async def client(app_instance, fake_s3):
    transport = ASGITransport(app=app_instance)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
