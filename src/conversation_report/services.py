from __future__ import annotations

from typing import Any

from conversation_report.remote_task import RemoteTaskPipeline, TaskEndpoints
from conversation_report.settings import Settings, get_settings

CONVERSION_ENDPOINTS = TaskEndpoints(
    trigger_path="/documents/create/pdf-from-html",
    upload_filename="report.html",
    upload_content_type="text/html",
)


def optimization_endpoints(compression_level: str = "MEDIUM") -> TaskEndpoints:
    return TaskEndpoints(
        trigger_path="/documents/modify/pdf-compress",
        trigger_params={"compressionLevel": compression_level},
        upload_filename="input.pdf",
        upload_content_type="application/pdf",
    )


def build_conversion_pipeline(settings: Settings | None = None, **kwargs: Any) -> RemoteTaskPipeline:
    """HTML -> PDF. Raises ConfigurationError if the FOXIT_DOCGEN_* triple is incomplete."""
    s = settings or get_settings()
    return RemoteTaskPipeline("conversion", s.conversion_service(), CONVERSION_ENDPOINTS, **kwargs)


def build_optimization_pipeline(settings: Settings | None = None, **kwargs: Any) -> RemoteTaskPipeline:
    """PDF -> compressed PDF. Raises ConfigurationError if the FOXIT_PDFSERVICES_* triple is incomplete."""
    s = settings or get_settings()
    return RemoteTaskPipeline(
        "optimization",
        s.optimization_service(),
        optimization_endpoints(s.compression_level.strip().upper() or "MEDIUM"),
        **kwargs,
    )
