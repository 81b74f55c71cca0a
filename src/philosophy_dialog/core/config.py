"""Application configuration using Pydantic Settings.

Environment variables are loaded with the PHILOSOPHY_DIALOG_ prefix.
Vendor API keys are read by the vendor SDKs themselves
(OPENAI_API_KEY, ANTHROPIC_API_KEY, Google application credentials).
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service configuration
    service_name: str = "philosophy-dialog"
    environment: str = Field(default="development", description="Runtime environment")
    log_level: str = Field(default="INFO", description="Logging level")

    # Filesystem layout
    log_dir: Path = Field(default=Path("./logs"), description="Conversation log directory")
    data_dir: Path = Field(default=Path("./data"), description="Participant data directory")
    docs_dir: Path = Field(default=Path("./docs"), description="Rendered transcript directory")
    source_code_path: Path = Field(
        default=Path(__file__).resolve().parent.parent / "conversation" / "orchestrator.py",
        description="Source file returned by get_main_source_codes",
    )

    # Participants
    openai_model: str = Field(default="gpt-5.1", description="OpenAI model id")
    anthropic_model: str = Field(default="claude-haiku-4-5", description="Anthropic model id")
    openai_name: str = Field(default="GPT 5.1", description="OpenAI participant display name")
    anthropic_name: str = Field(
        default="Claude Haiku 4.5",
        description="Anthropic participant display name",
    )

    # Third-party consultation
    gcp_project_id: str = Field(default="default", description="Vertex AI project for Gemini")
    gemini_model: str = Field(default="gemini-2.5-flash", description="Gemini model id")

    # Neo4j configuration
    neo4j_uri: str = Field(
        default="neo4j://localhost:7687",
        description="Neo4j URI"
    )
    neo4j_user: str = Field(default="neo4j", description="Neo4j username")
    neo4j_password: SecretStr = Field(
        default=SecretStr("neo4j"),
        description="Neo4j password"
    )
    neo4j_database: str = Field(default="neo4j", description="Neo4j database name")

    # Pacing and timeouts
    turn_interval_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Pause between two turns",
    )
    vendor_timeout_seconds: float = Field(
        default=600.0,
        gt=0.0,
        description="Request timeout for vendor SDK clients",
    )

    model_config = SettingsConfigDict(
        env_prefix="PHILOSOPHY_DIALOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def tool_stats_dir(self) -> Path:
        """Directory holding the per-run tool usage cache files."""
        return self.data_dir / "tool-stats"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings singleton
    """
    return Settings()
