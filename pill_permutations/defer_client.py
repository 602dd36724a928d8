"""Hand large prescriptions to the deferred-task service."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Callable

import httpx

from .config import DEFAULT_REQUEST_TIMEOUT
from .errors import SubmissionError

__all__ = ["DeferredTask", "DeferClient", "new_task_id"]

logger = logging.getLogger(__name__)


def new_task_id() -> str:
    return str(uuid.uuid1())


@dataclass(frozen=True, slots=True)
class DeferredTask:
    """Identifier and access URL of a submitted deferred task."""

    id: str
    pills: int
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "url": self.url}


class DeferClient:
    """Submit ``{id, pills}`` jobs to the deferred-task endpoint.

    The identifier is generated locally before the POST so the value handed
    back to the caller is the one the remote service received, even when its
    confirmation never arrives.
    """

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient,
        *,
        id_factory: Callable[[], str] = new_task_id,
        timeout: float | None = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._url = url
        self._client = client
        self._timeout = timeout
        self._id_factory = id_factory

    def task_url(self, task_id: str) -> str:
        return f"{self._url}/{task_id}"

    async def submit(self, pills: int) -> DeferredTask:
        task_id = self._id_factory()
        try:
            response = await self._client.post(
                self._url, json={"id": task_id, "pills": pills}, timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            raise SubmissionError(
                f"Error making POST request to defer service for task {task_id}: {exc}"
            ) from exc

        if response.status_code != 200:
            raise SubmissionError(
                f"POST request to defer service failed with HTTP {response.status_code}"
                f" for task {task_id}",
                status_code=response.status_code,
            )

        logger.info("defer.submitted", extra={"task_id": task_id, "pills": pills})
        return DeferredTask(id=task_id, pills=pills, url=self.task_url(task_id))
