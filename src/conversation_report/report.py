from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

from conversation_report.errors import StageError
from conversation_report.render import load_template, render
from conversation_report.schema import PipelineResult, ReportData
from conversation_report.services import build_conversion_pipeline, build_optimization_pipeline
from conversation_report.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class Pipeline(Protocol):
    name: str

    async def run(self, payload: bytes | str) -> PipelineResult: ...


def _reduction_pct(before: int, after: int) -> int:
    if before <= 0:
        return 0
    return round((1 - after / before) * 100)


class ReportGenerator:
    """
    Render -> conversion -> optimization.

    Conversion failures abort the report. Optimization is best-effort: on any
    failure the unoptimized PDF is returned.
    """

    def __init__(
        self,
        conversion: Pipeline,
        optimization: Optional[Pipeline] = None,
        *,
        template: str | None = None,
    ):
        self.conversion = conversion
        self.optimization = optimization
        self._template = template

    async def generate(self, data: ReportData | Mapping[str, Any]) -> bytes:
        try:
            template = self._template if self._template is not None else load_template()
            context = data.to_template_context() if isinstance(data, ReportData) else dict(data)
            html = render(template, context)
        except Exception as e:
            logger.error(f"Report render failed: {e}")
            raise StageError("render", e) from e

        logger.info(f"Template rendered. chars={len(html)}")
        return await self.generate_from_html(html)

    async def generate_from_html(self, html: str) -> bytes:
        logger.info("Stage 1 conversion (HTML -> PDF)")
        try:
            initial = await self.conversion.run(html)
        except Exception as e:
            logger.error(f"Stage 1 conversion failed: {e}")
            raise StageError("conversion", e) from e
        logger.info(f"Stage 1 conversion complete. bytes={initial.byte_length}")

        if self.optimization is None:
            logger.info("Stage 2 optimization disabled; returning unoptimized PDF")
            return initial.content

        logger.info("Stage 2 optimization (compress)")
        try:
            optimized = await self.optimization.run(initial.content)
        except Exception as e:
            logger.warning(f"Stage 2 optimization failed, returning unoptimized PDF: {e}")
            return initial.content

        logger.info(
            f"Stage 2 optimization complete. bytes_in={initial.byte_length} "
            f"bytes_out={optimized.byte_length} "
            f"reduction={_reduction_pct(initial.byte_length, optimized.byte_length)}%"
        )
        return optimized.content


def build_report_generator(settings: Settings | None = None, **pipeline_kwargs: Any) -> ReportGenerator:
    """Wire both pipelines from settings. Raises ConfigurationError on missing credentials."""
    s = settings or get_settings()
    conversion = build_conversion_pipeline(s, **pipeline_kwargs)
    optimization = build_optimization_pipeline(s, **pipeline_kwargs) if s.optimize_enabled else None
    return ReportGenerator(conversion, optimization)
