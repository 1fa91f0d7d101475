import os
import logging
import tempfile
from pathlib import Path
from dotenv import load_dotenv

# --- Load .env from project root (../.env relative to this file) ---
PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")

# ---------------------------
# Service
# ---------------------------
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# ---------------------------
# Temp files
# ---------------------------
TMP_DIR = Path(os.getenv("TMP_DIR", Path(tempfile.gettempdir()) / "imgconvert"))
TMP_MAX_AGE = int(os.getenv("TMP_MAX_AGE", "3600"))

# ---------------------------
# Conversion tools
# ---------------------------
MAGICK_BIN = os.getenv("MAGICK_BIN", "magick")
DCRAW_EMU_BIN = os.getenv("DCRAW_EMU_BIN", "dcraw_emu")
CONVERT_TIMEOUT_SECS = int(os.getenv("CONVERT_TIMEOUT_SECS", "120"))
HEAVY_CONVERT_TIMEOUT_SECS = int(os.getenv("HEAVY_CONVERT_TIMEOUT_SECS", "180"))
MAX_TOOL_OUTPUT_BYTES = int(os.getenv("MAX_TOOL_OUTPUT_BYTES", str(50 * 1024 * 1024)))

# ---------------------------
# Redis (record store)
# ---------------------------
REDIS_URL = os.getenv("REDIS_URL", "").strip()
RECORD_KEY_PREFIX = os.getenv("RECORD_KEY_PREFIX", "selection_image:")


# ---------------------------
# S3 (blob store)
# ---------------------------
def get_region() -> str:
    # support both AWS_REGION and legacy AWS_DEFAULT_REGION
    return os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION", "us-east-1")


def get_bucket() -> str:
    # prefer AWS_S3_BUCKET, fall back to S3_BUCKET
    return os.getenv("AWS_S3_BUCKET") or os.getenv("S3_BUCKET") or "selection-images"


S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL") or None


def create_s3_client():
    # Lazy import so module import stays fast
    import boto3

    return boto3.client("s3", region_name=get_region(), endpoint_url=S3_ENDPOINT_URL)


def configure_logging() -> None:
    if LOG_LEVEL in {"DEBUG", "INFO", "WARNING", "ERROR"}:
        level = getattr(logging, LOG_LEVEL)
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
