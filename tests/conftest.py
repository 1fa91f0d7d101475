import io
import subprocess

import pytest
from PIL import Image

from imgconvert import config, invoker
from imgconvert.exceptions import BlobStoreError
from imgconvert.models import ImageRecord
from imgconvert.record_store import RecordStore, _MemoryStore


def _png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (4, 3), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


PNG_BYTES = _png_bytes()


class FakeBlobStore:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.fail_uploads = False

    def download(self, path: str) -> bytes:
        if path not in self.objects:
            raise BlobStoreError(f"S3 get test-bucket/{path}: NoSuchKey: missing")
        return self.objects[path]

    def upload(self, path: str, data: bytes, content_type: str, overwrite: bool = True) -> str:
        if self.fail_uploads:
            raise BlobStoreError(f"S3 put test-bucket/{path}: AccessDenied: denied")
        if not overwrite and path in self.objects:
            raise BlobStoreError(f"{path} already exists")
        self.objects[path] = data
        self.content_types[path] = content_type
        return path


class FakeTool:
    """Stands in for subprocess.run; each call consumes one queued response.

    Responses: ("ok", bytes) writes the output file, ("fail", stderr),
    ("timeout", None), ("missing", None). With nothing queued the call succeeds
    and writes a small PNG.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self.timeouts: list[float] = []
        self.responses: list[tuple] = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def __call__(self, cmd, capture_output=False, timeout=None):
        self.calls.append(list(cmd))
        self.timeouts.append(timeout)
        kind, payload = self.responses.pop(0) if self.responses else ("ok", PNG_BYTES)
        if kind == "timeout":
            raise subprocess.TimeoutExpired(cmd, timeout, output=b"", stderr=b"still decoding")
        if kind == "missing":
            raise FileNotFoundError(2, "No such file or directory", cmd[0])
        if kind == "fail":
            return subprocess.CompletedProcess(cmd, 1, b"", payload)
        out = cmd[cmd.index("-Z") + 1] if "-Z" in cmd else cmd[-1]
        with open(out, "wb") as f:
            f.write(payload)
        return subprocess.CompletedProcess(cmd, 0, b"", b"")


@pytest.fixture
def records():
    return RecordStore(backend=_MemoryStore())


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
def tool(monkeypatch):
    fake = FakeTool()
    monkeypatch.setattr(invoker.subprocess, "run", fake)
    return fake


@pytest.fixture
def tmp_dir(tmp_path, monkeypatch):
    d = tmp_path / "work"
    monkeypatch.setattr(config, "TMP_DIR", d)
    return d


@pytest.fixture
def add_image(records, blobs):
    def _add(image_id, source_format="cr2", target_format="jpg", *, path=None, data=b"RAWDATA", **fields):
        path = path or f"user-1/{image_id}.{source_format}"
        record = ImageRecord(
            id=image_id,
            source_file_url=path,
            source_format=source_format,
            target_format=target_format,
            **fields,
        )
        records.put(record)
        if data is not None:
            blobs.objects[path] = data
        return record

    return _add
