"""FastAPI app exposing painting recognition."""

from __future__ import annotations

import base64
import binascii
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from artlens.config import Settings, load_settings
from artlens.errors import RecognitionError
from artlens.logging import configure_logging, get_logger
from artlens.models.attribution import AttributionResult
from artlens.orchestrator.pipeline import RecognitionPipeline
from artlens.utils.ids import new_request_id

IMAGE_DATA_URL_RE = re.compile(r"^data:(image/(?:jpeg|jpg|png|gif|webp));base64,([A-Za-z0-9+/=\s]+)$", re.IGNORECASE)


class RecognizeRequest(BaseModel):
    """Recognition request: a base64 image data URL."""

    image_base64: str = ""


def decode_image_data_url(value: str) -> tuple[bytes, str]:
    """Split a ``data:image/...;base64,...`` URL into bytes and media type.

    Raises:
        RecognitionError: ``bad_request`` if the URL is missing or malformed.
    """

    value = (value or "").strip()
    if not value:
        raise RecognitionError("bad_request", "image_base64 is required in request body.")
    m = IMAGE_DATA_URL_RE.match(value)
    if not m:
        raise RecognitionError(
            "bad_request",
            "image_base64 must be a valid data URL (data:image/jpeg;base64,... or data:image/png;base64,...).",
        )
    try:
        image = base64.b64decode(re.sub(r"\s+", "", m.group(2)), validate=True)
    except (binascii.Error, ValueError) as e:
        raise RecognitionError("bad_request", "image_base64 is not valid base64.") from e
    return image, m.group(1).lower()


def _error_response(err: RecognitionError, request_id: str) -> JSONResponse:
    return JSONResponse(status_code=err.http_status, content={**err.to_dict(), "request_id": request_id})


def create_app(settings: Settings | None = None, pipeline: RecognitionPipeline | None = None) -> FastAPI:
    """Create FastAPI app.

    The pipeline (and its result cache) is created once per process and shared by all requests.
    """

    settings = settings or load_settings()
    configure_logging(settings.log_level, plain=settings.app_env == "prod")
    logger = get_logger(__name__)
    shared = pipeline or RecognitionPipeline.from_settings(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await shared.aclose()

    app = FastAPI(title="ArtLens", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "mode": shared.mode}

    @app.post("/recognize", response_model=AttributionResult)
    async def recognize(
        req: RecognizeRequest,
        x_request_id: str | None = Header(default=None),
    ) -> AttributionResult | JSONResponse:
        request_id = x_request_id or new_request_id()
        logger.info("API recognize requested", extra={"payload_len": len(req.image_base64)})
        try:
            image, media_type = decode_image_data_url(req.image_base64)
            return await shared.recognize(image, media_type, request_id=request_id)
        except RecognitionError as e:
            return _error_response(e, request_id)

    return app
