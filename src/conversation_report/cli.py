import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import List

from pydantic import ValidationError

from conversation_report.flow import report_batch_flow
from conversation_report.results import ReportResult
from conversation_report.schema import GenerateReportRequest
from conversation_report.settings import get_settings


def read_requests(path: Path) -> List[GenerateReportRequest]:
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    text = path.read_text(encoding="utf-8").strip()
    if not text:
        raise ValueError("Input file is empty.")

    payload = json.loads(text)
    items = payload if isinstance(payload, list) else [payload]

    try:
        return [GenerateReportRequest.model_validate(item) for item in items]
    except ValidationError as e:
        raise ValueError(f"Invalid report request in {path}: {e}") from e


def print_summary(results: List[ReportResult]) -> None:
    ok = sum(1 for r in results if r.status == "ok")
    failed = len(results) - ok

    print("\nBatch Summary")
    print("=" * 40)
    print(f"Total   : {len(results)}")
    print(f"Success : {ok}")
    print(f"Failed  : {failed}")
    print()

    if ok:
        print("Reports:")
        for r in results:
            if r.status == "ok":
                print(f"- {r.character_name}: {r.out_path} ({r.byte_length} bytes)")
        print()

    if failed:
        print("Failures:")
        for i, r in enumerate(results, 1):
            if r.status == "failed":
                print(
                    f"- #{i} [{r.failed_stage or 'input'}] {r.error_type}: {r.error_message}\n"
                    f"  artifact: {r.failure_artifact}"
                )
        print()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate conversation report PDFs from a JSON file"
    )
    parser.add_argument(
        "input_file",
        type=Path,
        help="Path to a JSON file holding one report request or a list of them",
    )

    args = parser.parse_args()
    logging.basicConfig(level=get_settings().log_level.upper())

    requests = read_requests(args.input_file)
    results = asyncio.run(report_batch_flow(requests))

    print_summary(results)


if __name__ == "__main__":
    main()
