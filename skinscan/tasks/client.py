"""AsyncTaskClient — submit a remote job, then poll it to a terminal state under a ceiling."""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, TypeVar

from skinscan.backoff import BackoffPolicy
from skinscan.constants import (
    CALL_TIMEOUT_SECONDS,
    MIN_CALL_SLOT_SECONDS,
    MSG_POLL_STATUS,
    MSG_POLL_TRANSIENT,
)
from skinscan.errors import (
    SubmissionError,
    TaskTimeoutError,
    TransientTransportError,
    VendorTerminalError,
)
from skinscan.models import Clock, ExternalTaskHandle, PipelineStage, TaskPoll, TaskStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]


class TaskBackend(ABC):
    """Remote capability behind an AsyncTaskClient: create a job, read its status."""

    @abstractmethod
    async def submit(self, payload: Any) -> str:
        """Create the remote job and return its id. Raises on failure."""
        ...

    @abstractmethod
    async def fetch_status(self, task_id: str) -> TaskPoll:
        """Read the job's current status once. Raises on transport failure."""
        ...


class AsyncTaskClient:

    def __init__(
        self,
        backend: TaskBackend | None,
        stage: PipelineStage,
        backoff: BackoffPolicy | None = None,
        call_timeout: float = CALL_TIMEOUT_SECONDS,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._stage = stage
        self._backoff = backoff or BackoffPolicy()
        self._call_timeout = call_timeout
        self._clock = clock
        self._sleep = sleep

    def _slot(self, ceiling: float | None) -> float:
        match ceiling:
            case None:
                return self._call_timeout
            case c:
                return max(0.0, min(self._call_timeout, c))

    async def submit(self, payload: Any, ceiling: float | None = None) -> ExternalTaskHandle:
        """One attempt, no retry. Any failure is a SubmissionError."""
        try:
            async with asyncio.timeout(self._slot(ceiling)):
                task_id = await self._backend.submit(payload)
        except SubmissionError:
            raise
        except TimeoutError:
            raise SubmissionError(f"{self._stage.value} submit timed out") from None
        except Exception as exc:
            raise SubmissionError(f"{self._stage.value} submit failed: {exc}") from exc

        match task_id:
            case str() as t if t:
                return ExternalTaskHandle(task_id=t, stage=self._stage)
            case _:
                raise SubmissionError(f"{self._stage.value} submit returned no task id")

    async def poll_until_terminal(self, handle: ExternalTaskHandle, ceiling: float) -> TaskPoll:
        """Poll with backoff until success/error, or fail with TaskTimeoutError at the ceiling."""
        start = self._clock()

        def left() -> float:
            return ceiling - (self._clock() - start)

        while True:
            if left() < MIN_CALL_SLOT_SECONDS:
                handle.status = TaskStatus.TIMEOUT
                raise TaskTimeoutError(
                    f"{self._stage.value} task {handle.task_id} not terminal "
                    f"after {handle.attempts} polls"
                )

            attempt = handle.attempts
            handle.attempts += 1
            try:
                async with asyncio.timeout(self._slot(left())):
                    poll = await self._backend.fetch_status(handle.task_id)
            except TimeoutError:
                logger.warning(MSG_POLL_TRANSIENT, self._stage.value, attempt, "call timeout")
                poll = None
            except (VendorTerminalError, SubmissionError):
                handle.status = TaskStatus.ERROR
                raise
            except Exception as exc:
                logger.warning(MSG_POLL_TRANSIENT, self._stage.value, attempt, exc)
                poll = None

            match poll:
                case TaskPoll(status=TaskStatus.SUCCESS):
                    handle.status = TaskStatus.SUCCESS
                    return poll
                case TaskPoll(status=TaskStatus.ERROR, code=code):
                    handle.status = TaskStatus.ERROR
                    raise VendorTerminalError(
                        f"{self._stage.value} task {handle.task_id} failed",
                        code=code,
                    )
                case TaskPoll(status=status):
                    logger.debug(MSG_POLL_STATUS, self._stage.value, attempt, status.value)
                case None:
                    pass

            delay = self._backoff.next_delay(attempt)
            if delay + MIN_CALL_SLOT_SECONDS > left():
                handle.status = TaskStatus.TIMEOUT
                raise TaskTimeoutError(
                    f"{self._stage.value} task {handle.task_id} would overrun its "
                    f"{ceiling:.1f}s ceiling"
                )
            await self._sleep(delay)

    async def run_once(self, call: Callable[[], Awaitable[T]], ceiling: float) -> T:
        """One-shot variant: a single request/response call bounded by the ceiling."""
        try:
            async with asyncio.timeout(self._slot(ceiling)):
                return await call()
        except TimeoutError:
            raise TaskTimeoutError(f"{self._stage.value} call exceeded {ceiling:.1f}s") from None
        except Exception as exc:
            raise TransientTransportError(f"{self._stage.value} call failed: {exc}") from exc

