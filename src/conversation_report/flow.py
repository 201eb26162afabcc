import asyncio
import logging
from pathlib import Path
from typing import Optional

from prefect import flow, task, get_run_logger

from conversation_report.errors import StageError
from conversation_report.extract import build_report_data
from conversation_report.persist import persist_report
from conversation_report.persist_failures import persist_failure
from conversation_report.report import ReportGenerator, build_report_generator
from conversation_report.results import ReportResult
from conversation_report.schema import GenerateReportRequest
from conversation_report.settings import get_settings


def _unwrap_stage(e: BaseException) -> BaseException:
    cur = e
    while isinstance(cur, StageError):
        cur = cur.cause
    return cur


async def generate_one(
    req: GenerateReportRequest,
    generator: ReportGenerator,
    *,
    out_dir: Path,
    keep_raw: bool = False,
    logger: Optional[logging.Logger] = None,
) -> ReportResult:
    """
    Best-effort wrapper:
    - never raises for pipeline failures; it returns a failed result instead
    - failures leave a JSON artifact under out_dir/fail
    """
    logger = logger or logging.getLogger(__name__)
    key_material = req.model_dump_json(by_alias=True)
    name = req.character_name.strip()

    try:
        if not name:
            raise ValueError("characterName is required")
        data = build_report_data(req)
        pdf = await generator.generate(data)

    except (StageError, ValueError) as e:
        stage = e.stage if isinstance(e, StageError) else None
        root = _unwrap_stage(e)
        fail_path = persist_failure(
            key_material=key_material,
            out_dir=out_dir,
            stage=stage,
            error_type=type(root).__name__,
            error_message=str(e),
            raw_output=getattr(root, "raw", None),
            keep_raw=keep_raw,
        )
        logger.error(f"Report failed; wrote failure artifact: {fail_path}")
        return ReportResult(
            status="failed",
            character_name=name or None,
            error_type=type(root).__name__,
            error_message=str(e),
            failed_stage=stage,
            failure_artifact=str(fail_path),
        )

    out_path = persist_report(pdf, key_material=key_material, out_dir=out_dir)
    logger.info(f"Persisted report to: {out_path} bytes={len(pdf)}")
    return ReportResult(
        status="ok",
        character_name=name,
        out_path=str(out_path),
        byte_length=len(pdf),
    )


@task(retries=0)  # no Prefect retries; remote task failures are not transient
async def t_generate_one(req: GenerateReportRequest) -> ReportResult:
    logger = get_run_logger()
    s = get_settings()
    generator = build_report_generator(s)
    return await generate_one(
        req,
        generator,
        out_dir=Path(s.out_dir),
        keep_raw=s.keep_raw_remote_output == "1",
        logger=logger,
    )


@flow(name="conversation-report-batch", retries=0)
async def report_batch_flow(requests: list[GenerateReportRequest]) -> list[ReportResult]:
    logger = get_run_logger()
    logger.info(f"Starting batch report flow. count={len(requests)}")

    # fail fast on missing credentials before fanning out
    build_report_generator(get_settings())

    results: list[ReportResult] = list(await asyncio.gather(*(t_generate_one(r) for r in requests)))

    ok = sum(1 for r in results if r.status == "ok")
    failed = len(results) - ok
    logger.info(f"Batch complete. ok={ok} failed={failed}")

    return results
