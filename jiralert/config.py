from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process settings loaded from environment variables.

    Per-receiver Jira settings live in the YAML file named by ``config_file``
    (see ``jiralert.schemas.load_config``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── Application ──────────────────────────────────────
    app_name: str = "Jiralert"
    app_env: str = "development"
    log_level: str = "INFO"

    # ── Receivers ────────────────────────────────────────
    config_file: str = "config/jiralert.yml"
    # Identity labels become JIRALERT{sha512} instead of ALERT{...}; keeps
    # large label sets under Jira's 255 character label limit.
    hash_jira_label: bool = False

    # ── Jira ─────────────────────────────────────────────
    jira_timeout_seconds: float = 30.0

    # ── Server ───────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 9097


@lru_cache
def get_settings() -> Settings:
    return Settings()
