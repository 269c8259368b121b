import io
import pytest
from PIL import Image

from balchhi.utils import s3_service


class RecordingClient:
    def __init__(self):
        self.uploads = []

    def upload_fileobj(self, buffer, bucket, key, ExtraArgs=None):
        self.uploads.append((bucket, key, ExtraArgs, buffer.read()))

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        if Params["Key"].startswith("missing/"):
            raise RuntimeError("signing failed")
        return f"https://r2.example.test/{Params['Bucket']}/{Params['Key']}?expires={ExpiresIn}"


@pytest.fixture
def client(monkeypatch):
    recorder = RecordingClient()
    monkeypatch.setenv("R2_BUCKET", "balchhi-test")
    monkeypatch.setattr(s3_service, "get_s3_client", lambda: recorder)
    return recorder


def image_bytes(width, height, fmt="PNG"):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(10, 120, 200)).save(buffer, format=fmt)
    return buffer.getvalue()


def test_compress_shrinks_wide_images():
    buffer, ext = s3_service.compress_image(image_bytes(2800, 1000))

    assert ext in ("webp", "jpg")
    assert Image.open(buffer).size == (1400, 500)


def test_compress_keeps_small_images():
    buffer, _ = s3_service.compress_image(image_bytes(300, 200))

    assert Image.open(buffer).size == (300, 200)


def test_compress_rejects_non_images():
    with pytest.raises(OSError):
        s3_service.compress_image(b"%PDF-1.4 not really an image")


def test_object_key_uses_folder_and_stem():
    key = s3_service.object_key("documents", "/tmp/PAN certificate.png", "webp")

    assert key.startswith("documents/PAN certificate-")
    assert key.endswith(".webp")
    assert s3_service.object_key("evidence", None, "jpg").startswith("evidence/upload-")


def test_upload_sets_content_type(client):
    key = s3_service.upload_to_s3(io.BytesIO(b"bytes"), "webp", "receipt.png", folder="evidence")

    bucket, stored_key, extra, body = client.uploads[0]
    assert bucket == "balchhi-test"
    assert stored_key == key
    assert extra == {"ContentType": "image/webp"}
    assert body == b"bytes"


def test_upload_rejects_unknown_folder(client):
    with pytest.raises(ValueError):
        s3_service.upload_to_s3(io.BytesIO(b"bytes"), "jpg", "x.png", folder="backups")

    assert client.uploads == []


def test_signed_url_failure_returns_none(client):
    assert s3_service.generate_signed_url("items/phone.webp", expires_in=60).endswith("?expires=60")
    assert s3_service.generate_signed_url("missing/phone.webp") is None
