from __future__ import annotations

from typing import Any, Iterator

from langchain_core.language_models import BaseLanguageModel
from langchain_ollama import OllamaLLM

from common.config import settings, yaml_config
from common.errors import ProviderError
from common.logger import get_logger

log = get_logger(__name__)


def load_local_llm(config_section="llm_summary") -> BaseLanguageModel:
    """
    Load an LLM based on config section (llm_summary, llm_qa or llm_quiz).
    The request timeout bounds every call; exceeding it is a transport failure.
    """
    cfg = getattr(yaml_config, config_section)

    if cfg.provider == "ollama":
        return OllamaLLM(
            model=cfg.model_name,
            temperature=cfg.temperature,
            num_predict=cfg.max_tokens,
            base_url=settings.ollama_base_url,
            client_kwargs={"timeout": cfg.request_timeout},
        )
    else:
        raise ValueError(f"Unsupported provider: {cfg.provider}")


def provider_tag(config_section="llm_summary") -> str:
    cfg = getattr(yaml_config, config_section)
    return f"{cfg.provider}:{cfg.model_name}"


def _as_text(out: Any) -> str:
    # Chat models return messages, completion models return plain strings.
    content = getattr(out, "content", out)
    return content if isinstance(content, str) else str(content)


def invoke_llm(llm: BaseLanguageModel, prompt: str) -> str:
    """Single synchronous generation call; any failure is a ProviderError."""
    try:
        out = llm.invoke(prompt)
    except Exception as e:
        log.error("LLM invocation failed: %s", e, exc_info=True)
        raise ProviderError(f"Generation failed: {e}") from e
    return _as_text(out)


def stream_llm(llm: BaseLanguageModel, prompt: str) -> Iterator[Any]:
    """
    Yield raw fragments in arrival order. Errors raised while the stream is
    being consumed (connection drop, timeout) surface as ProviderError.
    """
    try:
        for fragment in llm.stream(prompt):
            yield fragment
    except Exception as e:
        raise ProviderError(f"Streaming generation failed: {e}") from e
