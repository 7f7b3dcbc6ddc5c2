from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseModel):
    store_dir: Path = Path("data/store")
    max_pdf_pages: int | None = None


class VectorStoreConfig(BaseModel):
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    persist_dir: Path = Path("data/chroma")
    collection: str = "lectures"


class ChunkingConfig(BaseModel):
    mode: str = Field(default="window", pattern="^(window|recursive)$")
    chunk_size: int = 800
    chunk_overlap: int = 150


class RetrievalConfig(BaseModel):
    k: int = 5
    max_context_chars: int = 8000


class LLMConfig(BaseModel):
    provider: str = "ollama"
    model_name: str = "llama3.2"
    temperature: float = 0.2
    max_tokens: int = 3000
    request_timeout: int = 300


class StreamingConfig(BaseModel):
    min_workers: int = 2
    max_workers: int = 4
    queue_capacity: int = 20
    keep_alive_seconds: float = 60.0
    max_input_chars: int = 12000


class QuizConfig(BaseModel):
    default_questions: int = 10
    max_questions: int = 20
    max_input_chars: int = 10000
    ttl_minutes: int | None = None  # None = quiz sets never expire


class GlobalYAMLConfig(BaseModel):
    app: AppConfig = Field(default_factory=AppConfig)
    vectorstore: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    llm_summary: LLMConfig = Field(default_factory=LLMConfig)
    llm_qa: LLMConfig = Field(
        default_factory=lambda: LLMConfig(
            temperature=0.1, max_tokens=1024, request_timeout=120
        )
    )
    llm_quiz: LLMConfig = Field(
        default_factory=lambda: LLMConfig(
            temperature=0.3, max_tokens=2048, request_timeout=180
        )
    )
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)
    quiz: QuizConfig = Field(default_factory=QuizConfig)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LECTERN_", env_file=".env", extra="ignore"
    )

    config_path: Path = Path("config/config.yaml")
    ollama_base_url: str = "http://localhost:11434"
    log_level: str = "INFO"


def load_yaml_config(path: Path = Path("config/config.yaml")) -> GlobalYAMLConfig:
    # Missing file means defaults, so library use does not depend on cwd.
    if not Path(path).exists():
        return GlobalYAMLConfig()
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    return GlobalYAMLConfig(**raw)


settings = Settings()
yaml_config = load_yaml_config(settings.config_path)
