from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_path: Path = Path.home() / "ScholarHub"
    api_prefix: str = "/api/v1"
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]
    log_level: str = "INFO"

    # Uploads are rejected before any side effect when they break these limits.
    max_upload_bytes: int = 10 * 1024 * 1024  # 10 MiB
    allowed_mime_types: list[str] = [
        "application/pdf",
        "image/jpeg",
        "image/jpg",
        "image/png",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ]

    # Exactly one backend is active: "s3", "azure" or "local".
    storage_backend: str = "local"
    signed_url_ttl_seconds: int = 3600
    s3_bucket_name: str = "scholarhub-docs"
    aws_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    azure_storage_connection_string: str | None = None
    azure_container: str = "documents"

    jwt_secret: str = "change_me_in_production"
    jwt_algorithm: str = "HS256"
    access_token_ttl_minutes: int = 60 * 24

    ocr_lang: str = "eng"
    tesseract_cmd: str | None = None
    ocr_timeout_seconds: int = 60
    pdf_dpi: int = 300

    email_connection_string: str | None = None
    email_sender: str = "DoNotReply@scholarhub.example"

    scheduler_enabled: bool = False
    scheduler_timezone: str = "UTC"
    reminder_window_days: int = 7
    new_scholarship_lookback_days: int = 7

    @property
    def db_path(self) -> Path:
        return self.data_path / "db.sqlite"

    @property
    def upload_dir(self) -> Path:
        return self.data_path / "uploads"

    @property
    def storage_dir(self) -> Path:
        return self.data_path / "storage"

    model_config = {"env_prefix": "SCHOLARHUB_"}


settings = Settings()
