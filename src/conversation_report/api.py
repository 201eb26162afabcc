from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from conversation_report.errors import StageError
from conversation_report.extract import build_report_data
from conversation_report.report import ReportGenerator, build_report_generator
from conversation_report.schema import GenerateReportRequest
from conversation_report.settings import get_settings

logger = logging.getLogger(__name__)

REPORT_FILENAME = "historai-conversation-summary.pdf"


def create_app(generator: Optional[ReportGenerator] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.generator is None:
            # ConfigurationError here aborts startup
            app.state.generator = build_report_generator(get_settings())
        yield

    app = FastAPI(
        title="Conversation Report PDF Generator",
        version="0.1.0",
        description="Renders conversation reports and converts them to optimized PDFs.",
        lifespan=lifespan,
    )
    app.state.generator = generator

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "service": "conversation-report"}

    @app.post("/api/generate-report")
    async def generate_report(req: GenerateReportRequest, request: Request) -> Response:
        name = req.character_name.strip()
        if not name:
            return JSONResponse(status_code=400, content={"status": "error", "error": "characterName is required"})

        generator: ReportGenerator | None = request.app.state.generator
        if generator is None:
            return JSONResponse(status_code=503, content={"status": "error", "error": "Report generator is not configured."})

        logger.info(f"Generating report. character={name!r}")
        try:
            data = build_report_data(req)
            pdf = await generator.generate(data)
        except StageError as e:
            logger.error(f"Report generation failed. stage={e.stage} error={e}")
            return JSONResponse(
                status_code=500 if e.stage == "render" else 502,
                content={"status": "error", "stage": e.stage, "error": str(e)},
            )
        except Exception as e:
            logger.exception("Report generation failed unexpectedly")
            return JSONResponse(status_code=500, content={"status": "error", "error": f"Unexpected error: {e}"})

        return Response(
            content=pdf,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{REPORT_FILENAME}"'},
        )

    return app


app = create_app()
