from typing import Optional
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import PostgresDsn


class PostgresSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    host: str = Field(default="localhost", alias="POSTGRES_HOST")
    port: int = Field(default=5432, alias="POSTGRES_DB_PORT")
    db_name: str = Field(default="deckforge", alias="POSTGRES_DB_NAME")
    user: str = Field(default="postgres", alias="POSTGRES_DB_USER")
    password: str = Field(default="postgres", alias="POSTGRES_DB_PASSWORD")

    @computed_field
    def connection_string(self) -> PostgresDsn:
        return PostgresDsn(
            f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db_name}"
        )


class GenerationSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    model_name: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")
    api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    temperature: float = Field(default=0.7, alias="GEMINI_TEMPERATURE")
    max_output_tokens: int = Field(default=16384, alias="GEMINI_MAX_OUTPUT_TOKENS")

    call_timeout_seconds: float = Field(default=120.0, alias="GENERATION_CALL_TIMEOUT")
    malformed_retries: int = Field(default=2, alias="GENERATION_MALFORMED_RETRIES")
    retry_backoff_seconds: float = Field(default=1.0, alias="GENERATION_RETRY_BACKOFF")

    # Defensive limits per PDF
    max_text_length: int = Field(default=500_000, alias="MAX_TEXT_LENGTH")
    max_chunks: int = Field(default=50, alias="MAX_CHUNKS_PER_PDF")
    max_concurrent_calls: int = Field(default=20, alias="MAX_GEMINI_CALLS_PER_PDF")
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    # Language the cards are written in; stored in deck metadata
    deck_language: str = Field(default="pt-BR", alias="DECK_LANGUAGE")


class BillingSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    # "credits" debits per page; "quota" consumes one PDF of the monthly allowance
    mode: str = Field(default="credits", alias="BILLING_MODE")
    credits_per_page: float = Field(default=1.0, alias="CREDITS_PER_PAGE")
    min_credits_per_generation: int = Field(default=1, alias="MIN_CREDITS_PER_GENERATION")
    default_credits: int = Field(default=2, alias="DEFAULT_CREDITS")
    max_pdf_pages: int = Field(default=30, alias="MAX_PDF_PAGES")

    free_pdfs_per_month: int = Field(default=2, alias="FREE_PDFS_PER_MONTH")
    paid_pdfs_per_month: int = Field(default=20, alias="PAID_PDFS_PER_MONTH")

    @computed_field
    def plan_limits(self) -> dict[str, int]:
        return {
            "free": self.free_pdfs_per_month,
            "paid": self.paid_pdfs_per_month,
        }

    @computed_field
    def plan_densities(self) -> dict[str, list[str]]:
        return {
            "free": ["low"],
            "paid": ["low", "medium", "high"],
        }


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    name: str = Field(default="deckforge", alias="APP_NAME")
    version: str = Field(default="v1", alias="API_VERSION")
    port: int = Field(default=9000, alias="APP_PORT")
    mode: str = Field(default="prod", alias="MODE")

    @computed_field
    def is_production(self) -> bool:
        return self.mode != "dev"

    @computed_field
    def is_testing(self) -> bool:
        return self.mode == "test"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=lambda: AppSettings())
    postgres: PostgresSettings = Field(default_factory=lambda: PostgresSettings())
    generation: GenerationSettings = Field(default_factory=lambda: GenerationSettings())
    billing: BillingSettings = Field(default_factory=lambda: BillingSettings())


settings = Settings()
