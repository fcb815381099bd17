"""HTTP surface: multipart POST /scan → Report JSON, plus GET /health."""
import logging
from typing import Any, Callable

from fastapi import FastAPI, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skinscan.config import Config
from skinscan.constants import DEFAULT_CONTENT_TYPE, MSG_INVALID_REQUEST, MSG_REJECTED
from skinscan.coordinator import RequestCoordinator, build_coordinator
from skinscan.errors import ValidationError
from skinscan.models import ImageInput, ScanRequest

logger = logging.getLogger(__name__)

CoordinatorFactory = Callable[[Config], RequestCoordinator]


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": MSG_INVALID_REQUEST, "message": message},
    )


async def _read_images(uploads: list[UploadFile | None]) -> list[ImageInput]:
    # image2/image3 without image1 is still a missing primary
    if uploads[0] is None:
        return []
    images = []
    for idx, upload in enumerate(uploads):
        if upload is None:
            continue
        data = await upload.read()
        # an unselected optional file input arrives as an empty part
        if idx > 0 and not data:
            continue
        images.append(
            ImageInput(
                data=data,
                content_type=upload.content_type or DEFAULT_CONTENT_TYPE,
                filename=upload.filename or "",
            )
        )
    return images


def create_app(config: Config, coordinator_factory: CoordinatorFactory = build_coordinator) -> FastAPI:
    app = FastAPI(title="skinscan")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "vision": bool(config.youcam_api_key),
            "narrative": bool(config.openai_api_key or config.anthropic_api_key),
        }

    @app.post("/scan")
    async def scan(
        image1: UploadFile | None = File(None),
        image2: UploadFile | None = File(None),
        image3: UploadFile | None = File(None),
    ) -> Any:
        try:
            request = ScanRequest.create(await _read_images([image1, image2, image3]))
        except ValidationError as exc:
            logger.info(MSG_REJECTED, exc)
            return _error(str(exc), 400)

        report = await coordinator_factory(config).run(request)
        return report.to_dict()

    return app
