"""Configuration management for the Butler context engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # OpenAI configuration (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")

    # Environment
    BUTLER_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")
    EMBEDDING_MAX_INPUT_CHARS: int = Field(
        default=8000, description="Input is truncated to this many characters before embedding"
    )
    EMBEDDING_TIMEOUT_SECONDS: float = Field(
        default=3.0, description="Query embedding is abandoned after this many seconds"
    )
    EMBEDDING_CACHE_SIZE: int = Field(default=1000, description="Max cached query embeddings")
    EMBEDDING_CACHE_TTL_SECONDS: int = Field(
        default=86_400, description="Cached query embeddings expire after this many seconds"
    )

    # Context gathering
    GATHER_TIMEOUT_SECONDS: float = Field(
        default=10.0, description="Global deadline for the source fan-out"
    )
    CONFIDENCE_MAX_SOURCES: int = Field(
        default=16, description="Result count at which context confidence saturates"
    )

    # Vector store / RAG
    VECTOR_CACHE_TTL_SECONDS: int = Field(
        default=1800, description="Per-user vector cache lifetime (30 minutes)"
    )
    VECTOR_CHUNK_MAX_CHARS: int = Field(
        default=2000,
        le=2000,
        description="Chunk content is truncated to this size before storage; may only lower the 2000-char cap",
    )
    VECTOR_SEARCH_LIMIT: int = Field(
        default=5, description="Vector matches included in a gathered context bundle"
    )
    VECTOR_SEARCH_THRESHOLD: float = Field(
        default=0.7, description="Minimum cosine similarity for a vector match"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
