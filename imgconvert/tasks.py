# imgconvert/tasks.py

import os
import uuid
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import config
from .exceptions import (
    BlobStoreError,
    DownloadError,
    EmptyOutputError,
    PersistenceError,
    RecordStoreError,
    UploadError,
)
from .invoker import InvocationPlan, perform_conversion, select_plan
from .models import ConversionResult, ConversionStatus, ImageRecord
from .probe import probe_image
from .utils import cleanup_files, converted_path_for, get_content_type, get_file_extension

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionJob:
    """Local temp files for one image; removed when processing ends."""

    download_path: str
    converted_path: str
    plan: InvocationPlan

    @classmethod
    def for_record(cls, record: ImageRecord, tmp_dir: Path) -> "ConversionJob":
        temp_id = uuid.uuid4().hex
        # keep the source extension so the tool can identify the container
        source_ext = get_file_extension(record.source_file_url) or record.source_format
        return cls(
            download_path=str(tmp_dir / f"{temp_id}_source.{source_ext}"),
            converted_path=str(tmp_dir / f"{temp_id}.{record.target_format}"),
            plan=select_plan(record.source_format),
        )

    @property
    def paths(self) -> list[str]:
        return [self.download_path, self.converted_path]


def mark_failed(records, image_id: str) -> None:
    """Set status to failed; a store error here is logged, never raised."""
    try:
        records.update(image_id, conversion_status=ConversionStatus.FAILED)
    except RecordStoreError as e:
        logger.error(f"[Task:{image_id}] Could not record failed status: {e}")


def _download(record: ImageRecord, blobs, job: ConversionJob) -> None:
    logger.info(f"[Download] {record.source_file_url}")
    try:
        body = blobs.download(record.source_file_url)
    except BlobStoreError as e:
        raise DownloadError(f"Failed to download file: {e}") from e
    if not body:
        raise DownloadError("Downloaded file is empty")

    try:
        with open(job.download_path, "wb") as f:
            f.write(body)
    except OSError as e:
        raise DownloadError(f"Failed to write downloaded file: {e}") from e
    logger.info(f"[Download] {len(body)} bytes -> {job.download_path}")


def _verify_output(job: ConversionJob) -> int:
    if not os.path.exists(job.converted_path):
        raise EmptyOutputError("Conversion produced no output file")
    size = os.path.getsize(job.converted_path)
    if size == 0:
        raise EmptyOutputError("Conversion produced empty file")
    logger.info(f"[Convert] Converted file size: {size} bytes")
    probe_image(job.converted_path)
    return size


def _upload(record: ImageRecord, blobs, job: ConversionJob) -> str:
    dest = converted_path_for(record.source_file_url, record.target_format)
    with open(job.converted_path, "rb") as f:
        data = f.read()
    try:
        blobs.upload(dest, data, content_type=get_content_type(record.target_format), overwrite=True)
    except BlobStoreError as e:
        raise UploadError(f"Failed to upload converted file: {e}") from e
    logger.info(f"[Upload] {dest} ({len(data)} bytes)")
    return dest


def convert_image(
    record: ImageRecord,
    records,
    blobs,
    tmp_dir: Optional[Path] = None,
) -> ConversionResult:
    """
    Download -> convert -> upload -> persist for one image record.

    On any failure the record is marked failed before the error propagates.
    Temp files are removed on every exit path.
    """
    tmp_dir = Path(tmp_dir or config.TMP_DIR)
    tmp_dir.mkdir(parents=True, exist_ok=True)
    job = ConversionJob.for_record(record, tmp_dir)
    pair = f"{record.source_format} → {record.target_format}"
    logger.info(f"[Task:{record.id}] Converting {pair} (source={record.source_file_url})")

    try:
        _download(record, blobs, job)
        perform_conversion(job.download_path, job.converted_path, record.source_format, record.target_format)
        _verify_output(job)
        converted_url = _upload(record, blobs, job)

        try:
            records.update(
                record.id,
                file_url=converted_url,
                conversion_status=ConversionStatus.COMPLETED,
            )
        except RecordStoreError as e:
            # the uploaded object stays in the bucket without a record reference
            raise PersistenceError(f"Database update failed: {e}") from e
    except Exception as e:
        logger.error(f"[Task:{record.id}] {getattr(e, 'code', type(e).__name__)}: {e}")
        mark_failed(records, record.id)
        raise
    finally:
        cleanup_files(job.paths)

    logger.info(f"[Task:{record.id}] Success -> {converted_url}")
    return ConversionResult(
        original_url=record.source_file_url,
        converted_url=converted_url,
        format=pair,
    )
