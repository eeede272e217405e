from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, PlainTextResponse, Response

from .errors import JobRejectedError
from .models import ConversionJob, UploadedItem
from .service import ConversionService
from .utils import content_disposition

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"

conversion_service = ConversionService()

app = FastAPI(title="Image to PDF API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=conversion_service.settings.server.origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Page-Count", "X-Skipped-Items"],
)


def get_conversion_service() -> ConversionService:
    return conversion_service


@app.exception_handler(JobRejectedError)
async def job_rejected_handler(request: Request, exc: JobRejectedError) -> PlainTextResponse:
    logger.info(f"Rejected conversion request: {exc}")
    return PlainTextResponse(str(exc), status_code=400)


@app.get("/")
def upload_page(service: ConversionService = Depends(get_conversion_service)) -> FileResponse:
    cache_seconds = service.settings.server.static_cache_seconds
    return FileResponse(
        STATIC_DIR / "index.html",
        media_type="text/html; charset=utf-8",
        headers={"Cache-Control": f"public, max-age={cache_seconds}"},
    )


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


def _items_from_uploads(uploads: List[UploadFile]) -> List[UploadedItem]:
    items: List[UploadedItem] = []
    for upload in uploads:
        # A form submitted without a chosen file still sends one empty part
        if not upload.filename and not upload.size:
            continue
        items.append(
            UploadedItem(
                name=upload.filename or f"image-{len(items) + 1}",
                content_type=upload.content_type or "",
                source=upload,
                declared_size=upload.size,
            )
        )
    return items


@app.post("/convert")
async def convert_images(
    images: Optional[List[UploadFile]] = File(None),
    file_name: Optional[str] = Form(None, alias="fileName"),
    service: ConversionService = Depends(get_conversion_service),
) -> Response:
    uploads = images or []
    job = ConversionJob(items=_items_from_uploads(uploads), requested_name=file_name)
    try:
        result = await service.convert(job)
    except JobRejectedError:
        raise
    except Exception:
        logger.exception("Conversion failed")
        return PlainTextResponse("conversion failed", status_code=500)
    finally:
        for upload in uploads:
            await upload.close()

    headers = {
        "Content-Disposition": content_disposition(result.filename),
        "X-Page-Count": str(result.page_count),
        "X-Skipped-Items": str(result.skipped_count),
    }
    return Response(content=result.content, media_type=result.media_type, headers=headers)


def run() -> None:
    """Run the API with uvicorn (HOST, PORT, RELOAD and LOG_LEVEL from the environment)."""
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "false").lower() in {"1", "true", "yes", "on"}
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    uvicorn.run("imagepdf_backend.main:app", host=host, port=port, reload=reload, log_level=log_level)
