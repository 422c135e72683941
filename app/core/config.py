from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, Field
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from the environment / .env file"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Ignore extra fields from environment
    )

    # Application
    app_name: str = "SurveyPulseAPI"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    port: int = Field(default=8000, alias="PORT")

    # Response store - asyncpg direct connections
    database_host: str = Field(default="localhost", alias="DATABASE_HOST")
    database_port: int = Field(default=5432, alias="DATABASE_PORT")
    database_name: str = Field(default="postgres", alias="DATABASE_NAME")
    database_user: str = Field(default="postgres", alias="DATABASE_USER")
    database_password: str = Field(..., alias="DATABASE_PASSWORD")  # REQUIRED - privileged service key

    database_pool_min_size: int = Field(default=2, alias="DATABASE_POOL_MIN_SIZE")
    database_pool_max_size: int = Field(default=10, alias="DATABASE_POOL_MAX_SIZE")
    database_statement_timeout: int = Field(default=30, alias="DATABASE_STATEMENT_TIMEOUT")

    @property
    def database_url(self) -> str:
        """Construct asyncpg DSN from individual components"""
        return f"postgresql://{self.database_user}:{self.database_password}@{self.database_host}:{self.database_port}/{self.database_name}"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if v is None or v == "":
            return "INFO"
        return str(v).strip().upper()

    # Completion service (OpenAI-compatible chat completions)
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    chat_model: str = Field(default="gpt-4o", alias="CHAT_MODEL")
    chat_temperature: float = Field(default=0.7, alias="CHAT_TEMPERATURE")
    chat_max_tokens: int = Field(default=2000, alias="CHAT_MAX_TOKENS")

    # Chat context bounds
    chat_record_limit: int = Field(default=200, alias="CHAT_RECORD_LIMIT")
    chat_sample_size: int = Field(default=50, alias="CHAT_SAMPLE_SIZE")
    chat_payload_chars: int = Field(default=300, alias="CHAT_PAYLOAD_CHARS")
    chat_history_messages: int = Field(default=10, alias="CHAT_HISTORY_MESSAGES")

    # Analysis reports
    report_max_tokens: int = Field(default=2500, alias="REPORT_MAX_TOKENS")
    leadership_report_max_tokens: int = Field(default=8000, alias="LEADERSHIP_REPORT_MAX_TOKENS")
    report_comments_per_question: int = Field(default=3, alias="REPORT_COMMENTS_PER_QUESTION")
    report_comment_questions: int = Field(default=8, alias="REPORT_COMMENT_QUESTIONS")


# Create settings instance
settings = Settings()
