from typing import Literal, Optional
from urllib.parse import quote_plus

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Database configuration"""

    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: SecretStr = Field(default=SecretStr("postgres"))
    database: str = "voicecare"
    schema_name: Optional[str] = None
    serverless: bool = Field(
        default=True,
        description="If true, disable connection pooling so serverless DBs can pause.",
    )

    @property
    def url(self) -> str:
        """Get database URL"""
        username = quote_plus(self.username)
        password = quote_plus(self.password.get_secret_value())
        return (
            "postgresql+asyncpg://"
            f"{username}:{password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class DeepgramConfig(BaseSettings):
    """Deepgram speech-to-text configuration."""

    api_key: SecretStr | None = None
    base_url: str = "https://api.deepgram.com/v1/listen"
    model: str = "nova-2"
    language: str = "en-US"

    model_config = SettingsConfigDict(
        env_prefix="DEEPGRAM_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class AssemblyAIConfig(BaseSettings):
    """AssemblyAI speech-to-text configuration (fallback provider)."""

    api_key: SecretStr | None = None
    base_url: str = "https://api.assemblyai.com/v2"
    language_code: str = "en_us"
    poll_interval_seconds: float = Field(default=2.0, ge=0.0)
    max_poll_attempts: int = Field(default=60, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="ASSEMBLYAI_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class TranscriptionConfig(BaseSettings):
    """Provider selection, retry and payload limits for transcription."""

    primary_provider: Literal["deepgram", "assemblyai"] = "deepgram"
    fallback_enabled: bool = True
    max_retries: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=1.0, ge=0.0)
    timeout_seconds: float = Field(default=60.0, gt=0.0)
    min_audio_bytes: int = Field(default=1024, ge=0)
    max_audio_bytes: int = Field(default=10 * 1024 * 1024, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="TRANSCRIPTION_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class BedrockConfig(BaseSettings):
    """Amazon Bedrock configuration."""

    region: str = Field(
        default="us-east-1",
        validation_alias="BEDROCK_REGION",
    )
    model_id: str = Field(
        default="anthropic.claude-3-5-sonnet-20240620-v1:0",
        validation_alias="BEDROCK_MODEL_ID",
    )
    max_tokens: int = Field(
        default=2000,
        validation_alias="BEDROCK_MAX_TOKENS",
        ge=1,
        le=8192,
    )
    temperature: float = Field(
        default=0.0,
        validation_alias="BEDROCK_TEMPERATURE",
        ge=0.0,
        le=1.0,
    )
    top_p: float = Field(
        default=0.9,
        validation_alias="BEDROCK_TOP_P",
        ge=0.0,
        le=1.0,
    )
    access_key: SecretStr | None = Field(
        default=None,
        validation_alias="BEDROCK_ACCESS_KEY",
    )
    secret_key: SecretStr | None = Field(
        default=None,
        validation_alias="BEDROCK_SECRET_KEY",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class AnalysisConfig(BaseSettings):
    """Stage retry policy and cost estimation rates."""

    stage_retries: int = Field(default=2, ge=0)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0.0)
    input_cost_per_1k: float = Field(default=0.003, ge=0.0)
    output_cost_per_1k: float = Field(default=0.015, ge=0.0)

    model_config = SettingsConfigDict(
        env_prefix="ANALYSIS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class JobStoreConfig(BaseSettings):
    """Backend used to track report generation jobs."""

    backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "voicecare:job:"
    ttl_seconds: Optional[int] = Field(
        default=None,
        ge=1,
        description="Expire job records after this many seconds. Unset keeps them until deleted.",
    )

    model_config = SettingsConfigDict(
        env_prefix="JOBS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "VoiceCare Report Service"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_file: str = "logs/app.log"
    pipeline_log_file: str = "logs/report_pipeline.log"
    transcript_log_file: str = "logs/transcripts.log"
    default_patient_id: str = "demo-patient"
    persistence_enabled: bool = True

    # Database
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # Speech-to-text
    deepgram: DeepgramConfig = Field(default_factory=DeepgramConfig)
    assemblyai: AssemblyAIConfig = Field(default_factory=AssemblyAIConfig)
    transcription: TranscriptionConfig = Field(default_factory=TranscriptionConfig)

    # Bedrock
    bedrock: BedrockConfig = Field(default_factory=BedrockConfig)

    # Analysis
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)

    # Jobs
    jobs: JobStoreConfig = Field(default_factory=JobStoreConfig)

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
