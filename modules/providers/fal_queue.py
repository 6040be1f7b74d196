"""fal.ai queue client exposing a job as a finite async event stream.

Processing flow:
    1. Submit the input payload to ``{queue_base_url}/{model_id}``.
    2. Poll the returned status URL (with logs) until ``COMPLETED``.
    3. Fetch the response URL and yield it as the single terminal event.

Every HTTP, transport or protocol failure is raised as
``ProviderRequestFailed``; nothing is retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from config.settings import AppConfig
from modules.pipelines.errors import ProviderRequestFailed

logger = logging.getLogger(__name__)


class QueueStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


_STATUS_MAP = {
    "IN_QUEUE": QueueStatus.QUEUED,
    "IN_PROGRESS": QueueStatus.IN_PROGRESS,
    "COMPLETED": QueueStatus.COMPLETED,
}


@dataclass(frozen=True, slots=True)
class QueueUpdate:
    """Progress notification emitted while the job is queued or running."""

    status: QueueStatus
    logs: List[str] = field(default_factory=list)
    queue_position: Optional[int] = None


@dataclass(frozen=True, slots=True)
class JobCompleted:
    """Terminal event carrying the provider-shaped payload."""

    request_id: str
    data: Any


QueueEvent = Union[QueueUpdate, JobCompleted]


class FalQueueClient:
    """Submit jobs to the fal.ai queue and follow them to completion."""

    def __init__(
        self,
        config: AppConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.fal_key:
            headers["Authorization"] = f"Key {self.config.fal_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self._headers(),
            timeout=self.config.request_timeout,
            transport=self._transport,
        )

    async def _request_json(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> Any:
        try:
            resp = await client.request(method, url, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text
            raise ProviderRequestFailed(
                f"请求失败（{exc.response.status_code}）：{detail}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.RequestError as exc:
            raise ProviderRequestFailed(f"无法连接生成服务：{exc}") from exc

        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderRequestFailed("生成服务返回了非 JSON 响应") from exc

    async def stream(self, model_id: str, arguments: Dict[str, Any]) -> AsyncIterator[QueueEvent]:
        """Run one job, yielding progress updates then exactly one ``JobCompleted``."""
        base_url = self.config.queue_base_url.rstrip("/")
        async with self._client() as client:
            submitted = await self._request_json(
                client, "POST", f"{base_url}/{model_id}", json=arguments
            )
            if not isinstance(submitted, dict):
                raise ProviderRequestFailed(f"提交响应格式异常：{submitted!r}")

            request_id = submitted.get("request_id")
            status_url = submitted.get("status_url")
            response_url = submitted.get("response_url")
            if not request_id or not status_url or not response_url:
                raise ProviderRequestFailed(f"提交响应缺少任务信息：{submitted!r}")
            logger.debug("Submitted %s as request %s", model_id, request_id)

            seen_logs = 0
            while True:
                status_data = await self._request_json(
                    client, "GET", status_url, params={"logs": 1}
                )
                if not isinstance(status_data, dict):
                    raise ProviderRequestFailed(f"状态响应格式异常：{status_data!r}")

                raw_status = status_data.get("status")
                status = _STATUS_MAP.get(str(raw_status))
                if status is None:
                    raise ProviderRequestFailed(f"未知任务状态：{raw_status!r}")

                entries = status_data.get("logs") or []
                messages = [
                    str(entry.get("message", "")) if isinstance(entry, dict) else str(entry)
                    for entry in entries
                ]
                # status 接口每次返回完整日志，只下发新增部分
                new_logs = messages[seen_logs:]
                seen_logs = max(seen_logs, len(messages))

                yield QueueUpdate(
                    status=status,
                    logs=new_logs,
                    queue_position=status_data.get("queue_position"),
                )

                if status is QueueStatus.COMPLETED:
                    break
                await asyncio.sleep(self.config.poll_interval)

            data = await self._request_json(client, "GET", response_url)
            yield JobCompleted(request_id=str(request_id), data=data)
