"""VisionClient — abstract base for skin-analysis vendors (upload, create task, poll)."""
from abc import abstractmethod

from skinscan.models import ImageInput, TaskPoll
from skinscan.tasks.client import TaskBackend


class VisionClient(TaskBackend):
    @abstractmethod
    async def init_upload(self, content_type: str, size: int, name: str) -> tuple[str, str]:
        """Reserve an upload slot. Returns (asset_id, upload_url)."""
        ...

    @abstractmethod
    async def upload_binary(self, upload_url: str, data: bytes, content_type: str) -> None:
        """Upload the image bytes. Raises on failure."""
        ...

    @abstractmethod
    async def create_task(self, asset_id: str, channels: tuple[str, ...]) -> str:
        """Start the analysis job for an uploaded asset. Returns the task id."""
        ...

    @abstractmethod
    async def get_task_status(self, task_id: str) -> TaskPoll:
        ...

    async def submit(self, payload: ImageInput) -> str:
        asset_id, upload_url = await self.init_upload(
            payload.content_type, payload.size, payload.filename
        )
        await self.upload_binary(upload_url, payload.data, payload.content_type)
        return await self.create_task(asset_id, self.channels)

    async def fetch_status(self, task_id: str) -> TaskPoll:
        return await self.get_task_status(task_id)

    @property
    @abstractmethod
    def channels(self) -> tuple[str, ...]:
        ...

    async def aclose(self) -> None:
        """Release any connections held by the client."""
