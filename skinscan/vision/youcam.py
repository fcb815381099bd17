"""YouCamVisionClient — YouCam HD skin-analysis backend over httpx."""
import logging

import httpx

from skinscan.constants import (
    CALL_TIMEOUT_SECONDS,
    MSG_TASK_STARTED,
    YOUCAM_DEFAULT_FILENAME,
    YOUCAM_FILE_PATH,
    YOUCAM_HD_ACTIONS,
    YOUCAM_MINISERVER_ARGS,
    YOUCAM_TASK_PATH,
)
from skinscan.errors import SubmissionError, TransientTransportError, VendorTerminalError
from skinscan.models import TaskPoll, TaskStatus
from skinscan.vision.client import VisionClient

logger = logging.getLogger(__name__)


def _parse_status(raw: object) -> TaskStatus:
    match raw:
        case "success":
            return TaskStatus.SUCCESS
        case "error":
            return TaskStatus.ERROR
        case _:
            return TaskStatus.PENDING


def _error_code(data: dict) -> str | None:
    match data:
        case {"error": str() as code}:
            return code
        case {"error_message": str() as code}:
            return code
        case _:
            return None


class YouCamVisionClient(VisionClient):

    def __init__(
        self,
        api_key: str,
        base_url: str,
        channels: tuple[str, ...] = YOUCAM_HD_ACTIONS,
        timeout: float = CALL_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._channels = channels
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def channels(self) -> tuple[str, ...]:
        return self._channels

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}

    async def _post_json(self, path: str, payload: dict, step: str) -> dict:
        r = await self._http.post(f"{self._base_url}{path}", headers=self._headers(), json=payload)
        try:
            body = r.json()
        except ValueError:
            raise SubmissionError(f"YouCam {step} returned non-JSON ({r.status_code})") from None
        if not isinstance(body, dict):
            raise SubmissionError(f"YouCam {step} returned a malformed body")
        if r.is_error or body.get("status") != 200:
            raise SubmissionError(f"YouCam {step} failed: {r.status_code} {body}")
        return body

    async def init_upload(self, content_type: str, size: int, name: str) -> tuple[str, str]:
        payload = {
            "files": [{
                "content_type": content_type,
                "file_name": name or YOUCAM_DEFAULT_FILENAME,
                "file_size": size,
            }],
        }
        body = await self._post_json(YOUCAM_FILE_PATH, payload, "file init")
        match body.get("data"):
            case {"files": [{"file_id": str() as file_id, "requests": [{"url": str() as url}, *_]}, *_]}:
                return file_id, url
            case _:
                raise SubmissionError("YouCam file init missing file_id/upload url")

    async def upload_binary(self, upload_url: str, data: bytes, content_type: str) -> None:
        r = await self._http.put(
            upload_url,
            headers={"Content-Type": content_type, "Content-Length": str(len(data))},
            content=data,
        )
        if r.is_error:
            raise SubmissionError(f"YouCam PUT failed: {r.status_code} {r.text[:200]}")

    async def create_task(self, asset_id: str, channels: tuple[str, ...]) -> str:
        payload = {
            "src_file_id": asset_id,
            "dst_actions": list(channels),
            "miniserver_args": YOUCAM_MINISERVER_ARGS,
            "format": "json",
        }
        body = await self._post_json(YOUCAM_TASK_PATH, payload, "task create")
        match body.get("data"):
            case {"task_id": str() as task_id} if task_id:
                logger.info(MSG_TASK_STARTED, task_id)
                return task_id
            case _:
                raise SubmissionError(f"YouCam task create returned no task_id: {body}")

    async def get_task_status(self, task_id: str) -> TaskPoll:
        try:
            r = await self._http.get(
                f"{self._base_url}{YOUCAM_TASK_PATH}/{task_id}", headers=self._headers()
            )
        except httpx.HTTPError as exc:
            raise TransientTransportError(f"YouCam poll transport error: {exc}") from exc

        if r.status_code >= 500:
            raise TransientTransportError(f"YouCam poll returned {r.status_code}")
        try:
            body = r.json()
        except ValueError:
            raise TransientTransportError("YouCam poll returned non-JSON") from None
        if not isinstance(body, dict):
            raise TransientTransportError("YouCam poll returned a malformed body")
        data = body.get("data")
        data = data if isinstance(data, dict) else {}
        if r.is_error or body.get("status") != 200:
            raise VendorTerminalError(
                f"YouCam poll rejected: {r.status_code} {body}", code=_error_code(data)
            )
        return TaskPoll(status=_parse_status(data.get("task_status")), payload=body, code=_error_code(data))

    async def aclose(self) -> None:
        await self._http.aclose()
