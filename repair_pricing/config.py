"""Configuration management for the repair pricing engine."""
import os
from pathlib import Path
from pydantic import BaseModel
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

class EmbeddingConfig(BaseModel):
    """Embedding provider configuration."""
    provider: str = os.getenv("EMBEDDING_PROVIDER", "sentence-transformers")
    model_name: str = os.getenv("EMBEDDING_MODEL", "paraphrase-multilingual-MiniLM-L12-v2")
    api_url: str = os.getenv("EMBEDDING_API_URL", "http://127.0.0.1:11434")
    timeout: float = float(os.getenv("EMBEDDING_TIMEOUT", "30"))
    max_retries: int = int(os.getenv("EMBEDDING_MAX_RETRIES", "3"))
    retry_delay: float = 2.0  # seconds, doubled on every retry
    batch_size: int = int(os.getenv("EMBEDDING_BATCH_SIZE", "10"))
    batch_delay: float = float(os.getenv("EMBEDDING_BATCH_DELAY", "0.15"))

class MatchingConfig(BaseModel):
    """Similarity thresholds and result sizes."""
    primary_threshold: float = float(os.getenv("PRIMARY_SIMILARITY_THRESHOLD", "0.12"))
    secondary_threshold: float = float(os.getenv("SECONDARY_SIMILARITY_THRESHOLD", "0.25"))
    default_limit: int = int(os.getenv("DEFAULT_RESULT_LIMIT", "20"))
    load_wait_timeout: float = float(os.getenv("LOAD_WAIT_TIMEOUT", "30"))

class CatalogConfig(BaseModel):
    """Catalog source and vector cache locations."""
    csv_path: Path = Path(os.getenv("CATALOG_CSV_PATH", "pricing.csv"))
    cache_path: Path = Path(os.getenv("VECTOR_CACHE_PATH", "./data/vector-cache.json"))

class AppConfig(BaseModel):
    """Main application configuration."""
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    embedding: EmbeddingConfig = EmbeddingConfig()
    matching: MatchingConfig = MatchingConfig()
    catalog: CatalogConfig = CatalogConfig()

# Global config instance
config = AppConfig()
