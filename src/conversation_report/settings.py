from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv
import os

from conversation_report.errors import ConfigurationError

load_dotenv()


def _env(name: str, default: str | None = None):
    return Field(default_factory=lambda: os.getenv(name, default))


def _split_fields(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class RemoteServiceSettings(BaseModel):
    base_url: str
    client_id: str
    client_secret: str

    poll_interval_seconds: float = Field(default=3.0, gt=0)
    poll_timeout_seconds: float = Field(default=120.0, gt=0)

    # per-call transport timeouts, distinct from the polling deadline
    upload_timeout_seconds: float = 30.0
    trigger_timeout_seconds: float = 30.0
    poll_request_timeout_seconds: float = 15.0
    download_timeout_seconds: float = 60.0

    document_id_fields: list[str] = ["documentId", "id", "data.documentId"]
    task_id_fields: list[str] = ["taskId", "id", "data.taskId"]

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def auth_headers(self) -> dict[str, str]:
        return {"client_id": self.client_id, "client_secret": self.client_secret}


class Settings(BaseModel):
    docgen_base_url: str | None = _env("FOXIT_DOCGEN_BASE_URL")
    docgen_client_id: str | None = _env("FOXIT_DOCGEN_CLIENT_ID")
    docgen_client_secret: str | None = _env("FOXIT_DOCGEN_CLIENT_SECRET")

    pdfservices_base_url: str | None = _env("FOXIT_PDFSERVICES_BASE_URL")
    pdfservices_client_id: str | None = _env("FOXIT_PDFSERVICES_CLIENT_ID")
    pdfservices_client_secret: str | None = _env("FOXIT_PDFSERVICES_CLIENT_SECRET")

    poll_interval_seconds: str = _env("REPORT_POLL_INTERVAL_SECONDS", "3")
    poll_timeout_seconds: str = _env("REPORT_POLL_TIMEOUT_SECONDS", "120")
    document_id_fields: str = _env("REPORT_DOCUMENT_ID_FIELDS", "documentId,id,data.documentId")
    task_id_fields: str = _env("REPORT_TASK_ID_FIELDS", "taskId,id,data.taskId")

    compression_level: str = _env("REPORT_COMPRESSION_LEVEL", "MEDIUM")
    optimize: str = _env("REPORT_OPTIMIZE", "1")

    out_dir: str = _env("REPORT_OUT_DIR", "out")
    keep_raw_remote_output: str = _env("KEEP_RAW_REMOTE_OUTPUT", "0")
    log_level: str = _env("REPORT_LOG_LEVEL", "INFO")

    @property
    def optimize_enabled(self) -> bool:
        return self.optimize.strip() != "0"

    def conversion_service(self) -> RemoteServiceSettings:
        return self._service(
            "FOXIT_DOCGEN",
            self.docgen_base_url,
            self.docgen_client_id,
            self.docgen_client_secret,
        )

    def optimization_service(self) -> RemoteServiceSettings:
        return self._service(
            "FOXIT_PDFSERVICES",
            self.pdfservices_base_url,
            self.pdfservices_client_id,
            self.pdfservices_client_secret,
        )

    def _service(
        self,
        prefix: str,
        base_url: str | None,
        client_id: str | None,
        client_secret: str | None,
    ) -> RemoteServiceSettings:
        values = {
            f"{prefix}_BASE_URL": base_url,
            f"{prefix}_CLIENT_ID": client_id,
            f"{prefix}_CLIENT_SECRET": client_secret,
        }
        missing = [name for name, value in values.items() if not (value or "").strip()]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

        try:
            interval = float(self.poll_interval_seconds)
            timeout = float(self.poll_timeout_seconds)
        except ValueError as e:
            raise ConfigurationError(f"Poll interval/timeout must be numbers: {e}") from e

        document_fields = _split_fields(self.document_id_fields)
        task_fields = _split_fields(self.task_id_fields)
        if not document_fields or not task_fields:
            raise ConfigurationError("Identifier candidate field lists must not be empty.")

        try:
            return RemoteServiceSettings(
                base_url=base_url.strip(),
                client_id=client_id.strip(),
                client_secret=client_secret.strip(),
                poll_interval_seconds=interval,
                poll_timeout_seconds=timeout,
                document_id_fields=document_fields,
                task_id_fields=task_fields,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid {prefix} configuration: {e}") from e


def get_settings() -> Settings:
    # re-read env each time (good for tests)
    return Settings()
