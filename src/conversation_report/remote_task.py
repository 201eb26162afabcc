"""
Generic client for the remote services' asynchronous task contract.

Every operation on the remote side follows the same four steps:

1. upload    POST {upload_path}   multipart `file`           -> document id
2. trigger   POST {trigger_path}  JSON {documentId, ...}      -> task id
3. poll      GET  {poll_path}     until COMPLETED / FAILED    -> result document id
4. download  GET  {download_path}                             -> raw bytes

The conversion and optimization pipelines are both instances of
RemoteTaskPipeline with different TaskEndpoints.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, Optional

import httpx
from pydantic import BaseModel

from conversation_report.errors import (
    DownloadError,
    PollTransportError,
    ProtocolError,
    RemoteTaskError,
    TaskTimeoutError,
    TransportError,
    TriggerError,
    UploadError,
)
from conversation_report.schema import PipelineResult, TaskState, TaskStatus
from conversation_report.settings import RemoteServiceSettings

logger = logging.getLogger(__name__)

_MISSING = object()


class TaskEndpoints(BaseModel):
    trigger_path: str
    upload_path: str = "/documents/upload"
    poll_path: str = "/tasks/{task_id}"
    download_path: str = "/documents/{document_id}/download"

    trigger_params: dict[str, Any] = {}
    result_field: str = "resultDocumentId"

    upload_filename: str = "input.bin"
    upload_content_type: str = "application/octet-stream"
    download_accept: str = "application/pdf"


def _lookup(payload: Any, path: str) -> Any:
    cur = payload
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return _MISSING
        cur = cur[part]
    return cur


def extract_identifier(
    payload: Any, candidates: Iterable[str]
) -> tuple[Optional[str], Optional[str]]:
    """
    Return (value, field) for the first candidate field present in payload.

    Candidates are dotted paths ("data.documentId"). Empty values are skipped.
    """
    candidates = list(candidates)
    for i, field in enumerate(candidates):
        value = _lookup(payload, field)
        # nested objects are not identifiers
        if isinstance(value, bool) or not isinstance(value, (str, int)) or value == "":
            continue
        if i > 0:
            logger.warning(
                f"Identifier found under non-primary field. field={field} primary={candidates[0]}"
            )
        return str(value), field
    return None, None


def decode_error_body(response: httpx.Response) -> str:
    content = response.content
    if not content:
        return str(response.status_code)

    # raw text, then binary buffer, then JSON
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        pass
    if "json" not in response.headers.get("content-type", ""):
        return content.decode("utf-8", errors="replace")
    try:
        return json.dumps(response.json())
    except ValueError:
        return content.decode("utf-8", errors="replace")


class RemoteTaskPipeline:
    def __init__(
        self,
        name: str,
        service: RemoteServiceSettings,
        endpoints: TaskEndpoints,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.name = name
        self.service = service
        self.endpoints = endpoints
        self._transport = transport
        self._clock = clock
        self._sleep = sleep

    def client(self) -> httpx.AsyncClient:
        # one client per invocation; nothing is shared between requests
        return httpx.AsyncClient(
            base_url=self.service.base_url,
            headers=self.service.auth_headers,
            transport=self._transport,
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        step: str,
        error_cls: type[TransportError],
        timeout: float,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await client.request(method, url, timeout=timeout, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = decode_error_body(e.response)
            raise error_cls(
                f"[{self.name}] {step} failed (HTTP {e.response.status_code}): {body}",
                step=step,
                status_code=e.response.status_code,
                body=body,
            ) from e
        except httpx.HTTPError as e:
            raise error_cls(
                f"[{self.name}] {step} failed (HTTP N/A): {e!r}",
                step=step,
            ) from e
        return response

    def _json(self, response: httpx.Response, step: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(
                f"[{self.name}] {step} returned a non-JSON body: {response.text[:200]}",
                step=step,
                raw=response.text,
            ) from e

    async def submit(
        self,
        client: httpx.AsyncClient,
        payload: bytes | str,
        *,
        content_type: str | None = None,
        filename: str | None = None,
    ) -> str:
        data = payload.encode("utf-8") if isinstance(payload, str) else payload
        files = {
            "file": (
                filename or self.endpoints.upload_filename,
                data,
                content_type or self.endpoints.upload_content_type,
            )
        }
        logger.info(f"[{self.name}] Step 1 upload. path={self.endpoints.upload_path} bytes={len(data)}")
        response = await self._request(
            client,
            "POST",
            self.endpoints.upload_path,
            step="upload",
            error_cls=UploadError,
            timeout=self.service.upload_timeout_seconds,
            files=files,
        )
        body = self._json(response, "upload")
        document_id, _ = extract_identifier(body, self.service.document_id_fields)
        if not document_id:
            raise ProtocolError(
                f"[{self.name}] upload succeeded but no document id in response: {json.dumps(body)}",
                step="upload",
                raw=body,
            )
        logger.info(f"[{self.name}] Step 1 done. document_id={document_id}")
        return document_id

    async def trigger(
        self,
        client: httpx.AsyncClient,
        document_id: str,
        params: dict[str, Any] | None = None,
    ) -> str:
        request_body = {"documentId": document_id, **self.endpoints.trigger_params, **(params or {})}
        logger.info(f"[{self.name}] Step 2 trigger. path={self.endpoints.trigger_path}")
        response = await self._request(
            client,
            "POST",
            self.endpoints.trigger_path,
            step="trigger",
            error_cls=TriggerError,
            timeout=self.service.trigger_timeout_seconds,
            json=request_body,
        )
        body = self._json(response, "trigger")
        task_id, _ = extract_identifier(body, self.service.task_id_fields)
        if not task_id:
            raise ProtocolError(
                f"[{self.name}] trigger succeeded but no task id in response: {json.dumps(body)}",
                step="trigger",
                raw=body,
            )
        logger.info(f"[{self.name}] Step 2 done. task_id={task_id}")
        return task_id

    async def await_completion(
        self,
        client: httpx.AsyncClient,
        task_id: str,
        *,
        poll_interval: float | None = None,
        timeout: float | None = None,
    ) -> str:
        interval = poll_interval if poll_interval is not None else self.service.poll_interval_seconds
        budget = timeout if timeout is not None else self.service.poll_timeout_seconds
        path = self.endpoints.poll_path.format(task_id=task_id)
        deadline = self._clock() + budget
        polls = 0

        logger.info(f"[{self.name}] Step 3 polling. path={path} interval={interval}s timeout={budget}s")

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                break

            polls += 1
            try:
                # a slow poll must not stretch the overall budget
                response = await asyncio.wait_for(
                    self._request(
                        client,
                        "GET",
                        path,
                        step="poll",
                        error_cls=PollTransportError,
                        timeout=min(self.service.poll_request_timeout_seconds, remaining),
                    ),
                    timeout=remaining,
                )
            except asyncio.TimeoutError as e:
                raise TaskTimeoutError(
                    f"[{self.name}] timed out after {budget:g}s waiting for task {task_id}",
                    step="poll",
                ) from e
            except PollTransportError as e:
                if isinstance(e.__cause__, httpx.TimeoutException) and self._clock() >= deadline:
                    raise TaskTimeoutError(
                        f"[{self.name}] timed out after {budget:g}s waiting for task {task_id}",
                        step="poll",
                    ) from e
                raise

            body = self._json(response, "poll")
            if not isinstance(body, dict):
                raise ProtocolError(
                    f"[{self.name}] poll returned an unexpected body: {json.dumps(body)}",
                    step="poll",
                    raw=body,
                )
            status = TaskStatus.from_payload(body, self.endpoints.result_field)
            progress = "?" if status.progress is None else f"{status.progress:g}"
            logger.info(f"[{self.name}] poll={polls} status={status.status} progress={progress}%")

            if status.state is TaskState.COMPLETED:
                if not status.result_document_id:
                    raise ProtocolError(
                        f"[{self.name}] task COMPLETED but no {self.endpoints.result_field} in response",
                        step="poll",
                        raw=body,
                    )
                logger.info(f"[{self.name}] Step 3 done. result_document_id={status.result_document_id}")
                return status.result_document_id

            if status.state is TaskState.FAILED:
                raise RemoteTaskError(
                    f"[{self.name}] task {task_id} FAILED: {json.dumps(body)}",
                    payload=body,
                )

            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            await self._sleep(min(interval, remaining))

        raise TaskTimeoutError(
            f"[{self.name}] timed out after {budget:g}s waiting for task {task_id}",
            step="poll",
        )

    async def retrieve(self, client: httpx.AsyncClient, document_id: str) -> bytes:
        path = self.endpoints.download_path.format(document_id=document_id)
        logger.info(f"[{self.name}] Step 4 download. path={path}")
        response = await self._request(
            client,
            "GET",
            path,
            step="download",
            error_cls=DownloadError,
            timeout=self.service.download_timeout_seconds,
            headers={"Accept": self.endpoints.download_accept},
        )
        content = response.content
        logger.info(f"[{self.name}] Step 4 done. bytes={len(content)}")
        return content

    async def run(self, payload: bytes | str) -> PipelineResult:
        logger.info(f"[{self.name}] pipeline start")
        async with self.client() as client:
            document_id = await self.submit(client, payload)
            task_id = await self.trigger(client, document_id)
            result_id = await self.await_completion(client, task_id)
            content = await self.retrieve(client, result_id)
        result = PipelineResult(content=content)
        logger.info(f"[{self.name}] pipeline complete. bytes={result.byte_length}")
        return result
