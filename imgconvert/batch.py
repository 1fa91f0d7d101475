import logging
from pathlib import Path
from typing import Optional, Sequence

from .exceptions import InvalidInputError, NotFoundError
from .models import BatchResult, ConversionStatus, ImageRecord, ItemFailure, ItemOutcome, ItemSuccess
from .tasks import convert_image, mark_failed

logger = logging.getLogger(__name__)


def validate_image_ids(image_ids) -> list[str]:
    if not isinstance(image_ids, (list, tuple)) or not image_ids:
        raise InvalidInputError("imageIds array is required and must contain at least one ID")
    if not all(isinstance(i, str) and i.strip() for i in image_ids):
        raise InvalidInputError("imageIds must be non-empty strings")
    return list(dict.fromkeys(i.strip() for i in image_ids))


def _process_one(record: ImageRecord, records, blobs, tmp_dir: Optional[Path]) -> ItemOutcome:
    logger.info(f"[Batch] Processing image {record.id}")
    try:
        records.update(record.id, conversion_status=ConversionStatus.PROCESSING)
        result = convert_image(record, records, blobs, tmp_dir=tmp_dir)
    except Exception as e:
        # one image failing never stops the batch
        logger.error(f"[Batch] Error converting image {record.id}: {e}")
        mark_failed(records, record.id)
        return ItemFailure(image_id=record.id, error=str(e))
    return ItemSuccess(image_id=record.id, result=result)


def run_batch(image_ids: Sequence[str], records, blobs, tmp_dir: Optional[Path] = None) -> BatchResult:
    """Convert every convertible image in ``image_ids``, one after the other.

    Raises InvalidInputError for a malformed id list, NotFoundError when no
    record matches with ``requires_conversion`` set, and RecordStoreError when
    the records can't be fetched. Per-image failures are reported in the
    result instead of raised.
    """
    ids = validate_image_ids(image_ids)
    logger.info(f"[Batch] Starting conversion for {len(ids)} images")

    found = records.fetch_convertible(ids)
    if not found:
        raise NotFoundError("No convertible images found")
    logger.info(f"[Batch] Found {len(found)} images to convert")

    batch = BatchResult()
    for record in found:
        batch.results.append(_process_one(record, records, blobs, tmp_dir))

    summary = batch.summary
    logger.info(
        f"[Batch] Done: total={summary.total} successful={summary.successful} failed={summary.failed}"
    )
    return batch
