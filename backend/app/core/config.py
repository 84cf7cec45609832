from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()
    if scheme in {"postgres", "postgresql"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("target_session_attrs", "read-write")
    return urlunparse(parsed._replace(scheme=scheme, query=urlencode(query_params, doseq=True)))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///./data/matka.db",
        description="SQLAlchemy compatible database URL",
    )
    timezone: str = Field(
        default="Asia/Kolkata",
        description="IANA zone whose calendar day a bid timestamp belongs to",
    )
    default_page_size: int = Field(
        default=50,
        description="Rows returned by listing endpoints when no limit is given",
        ge=1,
    )
    max_page_size: int = Field(
        default=200,
        description="Upper bound for the limit query parameter",
        ge=1,
    )
    settlement_credit_description: str = Field(
        default="Winning amount for {game_name} {bid_kind} on {result_date}",
        description="Ledger description template for settlement credits",
    )

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone {value!r}") from exc
        return value

    @field_validator("settlement_credit_description")
    @classmethod
    def _validate_description_template(cls, value: str) -> str:
        try:
            value.format(game_name="", bid_kind="", result_date="")
        except (KeyError, IndexError) as exc:
            raise ValueError(
                "settlement_credit_description may only use {game_name}, {bid_kind} and {result_date}"
            ) from exc
        return value

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if isinstance(value, str) and value.startswith("postgres://"):
            return "postgresql://" + value[len("postgres://") :]
        return value

    @property
    def resolved_database_url(self) -> str:
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
