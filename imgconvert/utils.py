import os
import time
import logging
from pathlib import PurePosixPath
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "tiff": "image/tiff",
    "tif": "image/tiff",
    "bmp": "image/bmp",
    "gif": "image/gif",
    "avif": "image/avif",
}


def get_file_extension(file_path: str) -> Optional[str]:
    """Suffix of the last path segment without the dot, or None."""
    suffix = PurePosixPath(file_path).suffix
    return suffix[1:] if len(suffix) > 1 else None


def get_content_type(fmt: str) -> str:
    return CONTENT_TYPES.get(fmt.lower(), "image/jpeg")


def converted_path_for(source_path: str, target_format: str) -> str:
    """
    Destination for a converted file: same folder as the source, name cut at
    its first dot and suffixed, e.g. ``a/b/IMG_1.ARW`` -> ``a/b/IMG_1_converted.jpg``.
    """
    folder, sep, filename = source_path.rpartition("/")
    stem = filename.split(".")[0]
    new_name = f"{stem}_converted.{target_format}"
    return f"{folder}/{new_name}" if sep else new_name


def cleanup_files(file_paths: Iterable[str]) -> None:
    """Best-effort removal of temp files. Never raises."""
    for file_path in file_paths:
        try:
            os.remove(file_path)
            logger.info(f"[Cleanup] Removed temp file: {file_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[Cleanup] Could not delete {file_path}: {e}")


def cleanup_stale_temp_files(base_dir: str, max_age: int) -> int:
    """
    Delete files in base_dir older than max_age seconds.
    Safety net for temp files left behind by crashed processes.
    """
    now = time.time()
    if not os.path.isdir(base_dir):
        return 0

    removed = 0
    for name in os.listdir(base_dir):
        path = os.path.join(base_dir, name)
        try:
            if os.path.isfile(path) and now - os.path.getmtime(path) > max_age:
                os.remove(path)
                removed += 1
                logger.info(f"[Cleanup] Removed stale temp file: {path}")
        except OSError as e:
            logger.warning(f"[Cleanup] Failed to delete {path}: {e}")
    return removed
