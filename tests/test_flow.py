import json
from pathlib import Path

import pytest
from prefect.testing.utilities import prefect_test_harness

from conversation_report.errors import ConfigurationError, StageError, TaskTimeoutError
from conversation_report.flow import generate_one, report_batch_flow
from conversation_report.schema import GenerateReportRequest


class FakeGenerator:
    def __init__(self, *, pdf=b"%PDF-1.7 batch", error=None):
        self.pdf = pdf
        self.error = error
        self.calls = 0

    async def generate(self, data):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.pdf


@pytest.mark.asyncio
async def test_generate_one_persists_pdf(tmp_path):
    req = GenerateReportRequest(characterName="Ada")

    result = await generate_one(req, FakeGenerator(), out_dir=tmp_path)

    assert result.status == "ok"
    assert result.byte_length == len(b"%PDF-1.7 batch")
    assert Path(result.out_path).read_bytes() == b"%PDF-1.7 batch"


@pytest.mark.asyncio
async def test_generate_one_is_idempotent_per_request(tmp_path):
    req = GenerateReportRequest(characterName="Ada")

    first = await generate_one(req, FakeGenerator(), out_dir=tmp_path)
    second = await generate_one(req, FakeGenerator(pdf=b"%PDF-1.7 again"), out_dir=tmp_path)

    assert first.out_path == second.out_path
    assert Path(second.out_path).read_bytes() == b"%PDF-1.7 again"
    assert list(tmp_path.glob("*.tmp")) == []


@pytest.mark.asyncio
async def test_generate_one_records_stage_failure(tmp_path):
    cause = TaskTimeoutError("timed out after 120s", step="poll")
    try:
        raise StageError("conversion", cause) from cause
    except StageError as e:
        error = e

    result = await generate_one(
        GenerateReportRequest(characterName="Ada"), FakeGenerator(error=error), out_dir=tmp_path
    )

    assert result.status == "failed"
    assert result.failed_stage == "conversion"
    assert result.error_type == "TaskTimeoutError"

    artifact = json.loads(Path(result.failure_artifact).read_text(encoding="utf-8"))
    assert artifact["stage"] == "conversion"
    assert artifact["error_type"] == "TaskTimeoutError"
    assert artifact["raw_output_preview"] == ""


@pytest.mark.asyncio
async def test_generate_one_rejects_missing_character(tmp_path):
    generator = FakeGenerator()

    result = await generate_one(GenerateReportRequest(), generator, out_dir=tmp_path)

    assert result.status == "failed"
    assert result.error_type == "ValueError"
    assert generator.calls == 0
    assert (tmp_path / "fail").exists()


@pytest.fixture(scope="module")
def prefect_backend():
    with prefect_test_harness():
        yield


@pytest.mark.asyncio
async def test_batch_flow_reports_each_request(prefect_backend, monkeypatch, tmp_path):
    built = []

    def fake_builder(settings=None, **kwargs):
        generator = FakeGenerator(pdf=b"%PDF-1.7 flow")
        built.append(generator)
        return generator

    monkeypatch.setattr("conversation_report.flow.build_report_generator", fake_builder)

    results = await report_batch_flow(
        [GenerateReportRequest(characterName="Grace Hopper"), GenerateReportRequest(characterName="")]
    )

    assert [r.status for r in results] == ["ok", "failed"]
    assert Path(results[0].out_path).read_bytes() == b"%PDF-1.7 flow"
    assert Path(results[0].out_path).parent == tmp_path / "out"
    assert results[1].error_type == "ValueError"
    # one preflight build plus one per task
    assert len(built) == 3


@pytest.mark.asyncio
async def test_batch_flow_fails_fast_without_credentials(prefect_backend, monkeypatch, tmp_path):
    monkeypatch.delenv("FOXIT_DOCGEN_BASE_URL")

    with pytest.raises(ConfigurationError):
        await report_batch_flow([GenerateReportRequest(characterName="Katherine Johnson")])

    assert not (tmp_path / "out").exists()
