# imgconvert/main.py

import logging
from datetime import datetime, timezone
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from . import __version__
from .batch import run_batch
from .blob_store import S3BlobStore
from .config import CORS_ORIGINS, ENVIRONMENT, TMP_DIR, TMP_MAX_AGE, configure_logging
from .exceptions import InvalidInputError, NotFoundError, RecordStoreError
from .models import ConvertRequest, ConvertResponse, HealthResponse, StatusResponse
from .record_store import RecordStore
from .utils import cleanup_stale_temp_files

INVALID_IDS_MESSAGE = "imageIds array is required and must contain at least one ID"

# -------------------- App / Logger --------------------

configure_logging()
logger = logging.getLogger("uvicorn.error")
app = FastAPI(
    title="Image Conversion API",
    version=__version__,
    description="Converts RAW/HEIC/raster images stored in S3 and tracks per-image status.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

# -------------------- Collaborators --------------------


@lru_cache
def get_record_store() -> RecordStore:
    return RecordStore()


@lru_cache
def get_blob_store() -> S3BlobStore:
    return S3BlobStore()


# -------------------- Startup cleanup --------------------


@app.on_event("startup")
def cleanup_tmp_dir():
    """Remove temp files left behind by earlier processes."""
    TMP_DIR.mkdir(parents=True, exist_ok=True)
    logger.info(f"[Startup] Environment: {ENVIRONMENT}")
    removed = cleanup_stale_temp_files(str(TMP_DIR), TMP_MAX_AGE)
    logger.info(f"[Startup] Removed {removed} stale temp files from {TMP_DIR}")


# -------------------- Validation errors --------------------


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content={"error": INVALID_IDS_MESSAGE, "detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may hold exception instances that aren't JSON serializable
    return [{k: v for k, v in err.items() if k in {"type", "loc", "msg"}} for err in exc.errors()]


# -------------------- Health / Root --------------------


@app.get("/", include_in_schema=False)
def root():
    return {"ok": True, "service": "image-conversion-api", "docs": "/docs"}


@app.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="OK", timestamp=datetime.now(timezone.utc).isoformat())


# -------------------- Convert --------------------


@app.post("/convert", response_model=ConvertResponse)
def convert(
    body: ConvertRequest,
    records: RecordStore = Depends(get_record_store),
    blobs: S3BlobStore = Depends(get_blob_store),
):
    try:
        batch = run_batch(body.image_ids, records, blobs)
    except InvalidInputError as e:
        return JSONResponse(status_code=HTTP_400_BAD_REQUEST, content={"error": str(e)})
    except NotFoundError as e:
        return JSONResponse(status_code=HTTP_404_NOT_FOUND, content={"error": str(e)})
    except RecordStoreError as e:
        logger.error(f"[Convert] Error fetching images: {e}")
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to fetch images"},
        )
    except Exception:
        logger.exception("[Convert] Unexpected server error")
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    return ConvertResponse(message=batch.message, results=batch.results, summary=batch.summary)


# -------------------- Status --------------------


@app.get("/status/{image_id}", response_model=StatusResponse)
def status(image_id: str, records: RecordStore = Depends(get_record_store)):
    try:
        record = records.get(image_id)
    except Exception:
        logger.exception(f"[Status] Error checking status for {image_id}")
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )
    if record is None:
        return JSONResponse(status_code=HTTP_404_NOT_FOUND, content={"error": "Image not found"})

    return StatusResponse(
        image_id=image_id,
        status=record.conversion_status,
        source_url=record.source_file_url,
        converted_url=record.file_url,
    )


def run() -> None:
    """Serve the API with uvicorn on HOST:PORT."""
    import uvicorn

    from .config import HOST, PORT

    uvicorn.run("imgconvert.main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run()
