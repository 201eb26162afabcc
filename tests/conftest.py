import json

import httpx
import pytest

from conversation_report.remote_task import RemoteTaskPipeline
from conversation_report.services import CONVERSION_ENDPOINTS, optimization_endpoints
from conversation_report.settings import RemoteServiceSettings


@pytest.fixture(autouse=True)
def pin_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("FOXIT_DOCGEN_BASE_URL", "https://docgen.test/pdf-services/api/")
    monkeypatch.setenv("FOXIT_DOCGEN_CLIENT_ID", "docgen-id")
    monkeypatch.setenv("FOXIT_DOCGEN_CLIENT_SECRET", "docgen-secret")
    monkeypatch.setenv("FOXIT_PDFSERVICES_BASE_URL", "https://pdfservices.test/pdf-services/api")
    monkeypatch.setenv("FOXIT_PDFSERVICES_CLIENT_ID", "pdf-id")
    monkeypatch.setenv("FOXIT_PDFSERVICES_CLIENT_SECRET", "pdf-secret")
    for name in (
        "REPORT_POLL_INTERVAL_SECONDS",
        "REPORT_POLL_TIMEOUT_SECONDS",
        "REPORT_DOCUMENT_ID_FIELDS",
        "REPORT_TASK_ID_FIELDS",
        "REPORT_COMPRESSION_LEVEL",
        "REPORT_OPTIMIZE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("REPORT_OUT_DIR", str(tmp_path / "out"))


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeRemoteService:
    """
    In-memory stand-in for the remote upload/trigger/poll/download contract.

    Override the *_response attributes to script non-happy paths.
    """

    def __init__(self, *, statuses=None, result=b"%PDF-1.7 result"):
        self.calls = []
        self.upload_response = httpx.Response(200, json={"documentId": "doc-1"})
        self.trigger_response = httpx.Response(200, json={"taskId": "task-1"})
        self.statuses = list(statuses or [{"status": "COMPLETED", "progress": 100, "resultDocumentId": "doc-2"}])
        self.download_response = httpx.Response(200, content=result, headers={"Content-Type": "application/pdf"})
        self.uploads = []
        self.trigger_bodies = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))

        if path.endswith("/documents/upload"):
            self.uploads.append(request)
            return self.upload_response
        if request.method == "POST":
            self.trigger_bodies.append(json.loads(request.content))
            return self.trigger_response
        if "/tasks/" in path:
            # the last status repeats forever
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            if isinstance(status, httpx.Response):
                return status
            return httpx.Response(200, json=status)
        if path.endswith("/download"):
            return self.download_response
        return httpx.Response(404, text=f"unexpected path {path}")

    def steps(self):
        out = []
        for method, path in self.calls:
            if path.endswith("/documents/upload"):
                out.append("upload")
            elif method == "POST":
                out.append("trigger")
            elif "/tasks/" in path:
                out.append("poll")
            elif path.endswith("/download"):
                out.append("download")
        return out


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service_settings():
    return RemoteServiceSettings(
        base_url="https://remote.test/pdf-services/api",
        client_id="cid",
        client_secret="csecret",
        poll_interval_seconds=3.0,
        poll_timeout_seconds=120.0,
    )


@pytest.fixture
def make_pipeline(service_settings, clock):
    def _make(remote: FakeRemoteService, *, kind="conversion", settings=None):
        endpoints = CONVERSION_ENDPOINTS if kind == "conversion" else optimization_endpoints("HIGH")
        return RemoteTaskPipeline(
            kind,
            settings or service_settings,
            endpoints,
            transport=httpx.MockTransport(remote),
            clock=clock,
            sleep=clock.sleep,
        )

    return _make


@pytest.fixture
def remote_service():
    return FakeRemoteService
