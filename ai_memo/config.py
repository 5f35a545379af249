"""Application settings.

Values come from, in order of precedence, environment variables, Google Cloud
Secret Manager (secret fields only, see ``ai_memo.secret_manager``) and the
``.env`` file.
"""

import os
from functools import lru_cache
from typing import Any

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_emails(raw: str) -> list[str]:
    return [email.strip().lower() for email in raw.split(",") if email.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Google Cloud / Vertex AI
    google_project_id: str
    google_location: str = "us-central1"
    environment: str = "dev"
    llm_model: str = "gemini-2.0-flash-001"
    llm_model_lite: str = "gemini-2.0-flash-lite"
    llm_temperature: float = 0.3
    use_lite_model: bool = True  # tags and connection checks on flash-lite

    # AI processing
    ai_max_input_tokens: int = 8192  # estimated, title + content
    ai_max_retries: int = 3
    ai_retry_base_delay: float = 1.0  # seconds, doubled per attempt

    # Notes
    draft_ttl_days: int = 7
    summary_max_length: int = 2000
    max_manual_tags: int = 10

    # PostgreSQL; a db_host starting with "/" is a Cloud SQL unix socket dir
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "ai_memo"
    db_user: str = "postgres"
    db_password: str = ""

    # Sign-in
    google_oauth_client_id: str = ""
    google_oauth_client_secret: str = ""
    session_secret_key: str = ""
    allowed_emails: str = ""  # comma separated, empty admits everyone
    admin_emails: str = ""  # comma separated

    @model_validator(mode="before")
    @classmethod
    def _fill_from_secret_manager(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        from ai_memo.secret_manager import load_missing_secrets

        project_id = data.get("google_project_id") or os.environ.get("GOOGLE_PROJECT_ID")
        return load_missing_secrets(data, project_id)

    @property
    def is_production(self) -> bool:
        return self.environment == "prod"

    @property
    def allowed_emails_list(self) -> list[str]:
        return _split_emails(self.allowed_emails)

    @property
    def admin_emails_list(self) -> list[str]:
        return _split_emails(self.admin_emails)

    @property
    def db_connection_string(self) -> str:
        credentials = f"{self.db_user}:{self.db_password}"
        if self.db_host.startswith("/"):
            return f"postgresql://{credentials}@/{self.db_name}?host={self.db_host}"
        return f"postgresql://{credentials}@{self.db_host}:{self.db_port}/{self.db_name}"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
