from typing import Any


class ReportPipelineError(RuntimeError):
    def __init__(self, message: str, *, step: str | None = None, raw: Any = None):
        super().__init__(message)
        self.step = step
        self.raw = raw


class ConfigurationError(ReportPipelineError):
    pass


class TransportError(ReportPipelineError):
    """Network failure or non-2xx response from a remote service."""

    def __init__(
        self,
        message: str,
        *,
        step: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message, step=step, raw=body)
        self.status_code = status_code
        self.body = body


class UploadError(TransportError):
    pass


class TriggerError(TransportError):
    pass


class PollTransportError(TransportError):
    pass


class DownloadError(TransportError):
    pass


class ProtocolError(ReportPipelineError):
    """The remote answered successfully but not in the expected shape. Do not retry."""


class RemoteTaskError(ReportPipelineError):
    def __init__(self, message: str, *, payload: dict | None = None):
        super().__init__(message, step="poll", raw=payload)
        self.payload = payload or {}


class TaskTimeoutError(ReportPipelineError, TimeoutError):
    pass


class StageError(ReportPipelineError):
    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"{stage} stage failed: {cause}", raw=getattr(cause, "raw", None))
        self.stage = stage
        self.cause = cause
