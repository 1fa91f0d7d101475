from typing import Optional
import logging

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


def probe_image(path: str) -> Optional[tuple[str, int, int]]:
    """Return (format, width, height) of an image file, or None if Pillow can't read it."""
    try:
        with Image.open(path) as image:
            fmt, (width, height) = image.format, image.size
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"[Probe] Could not identify {path}: {e}")
        return None
    logger.info(f"[Probe] {path}: {fmt} {width}x{height}")
    return fmt, width, height
