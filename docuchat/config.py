
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    ALLOWED_ORIGINS: str = "*"
    LOG_LEVEL: str = "info"

    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "docuchat"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_CREATE_TABLES: bool = False

    # LLM provider selection: "openai" or "perplexity"
    LLM_PROVIDER: str = "openai"
    LLM_TEMPERATURE: float = 0.2

    # Perplexity (chat) settings
    PERPLEXITY_API_KEY: str = ""
    PERPLEXITY_MODEL: str = "sonar"

    # OpenAI (chat and embeddings)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_EMBED_MODEL: str = "text-embedding-3-small"
    EMBED_DIM: int = 1536

    # Uploaded files live here, addressed by Document.file_path
    STORAGE_DIR: str = "./storage"
    MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024

    # Ingestion and retrieval tuning
    CHUNK_SIZE: int = 1000
    MATCH_THRESHOLD: float = 0.3
    MATCH_COUNT: int = 5
    HISTORY_LIMIT: int = 10
    CHAT_FALLBACK_DOCUMENTS: int = 100
    VOICE_FALLBACK_DOCUMENTS: int = 5
    VOICE_CONTEXT_CHUNKS: int = 100
    # A claim older than this belongs to a task that died; it may be taken over
    INGESTION_LEASE_SECONDS: int = 30 * 60

    DEFAULT_SYSTEM_PROMPT: str = "You are a helpful AI assistant."

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

settings = Settings()
