"""Configuration loading and component wiring."""

import os
from pathlib import Path
from typing import Optional

import structlog
import yaml

from .config_models import LifegraphConfig

logger = structlog.get_logger()


def find_config() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / "config.yaml",
        Path.home() / ".lifegraph" / "config.yaml",
    ]
    for loc in locations:
        if loc.exists():
            return loc
    return None


def load_config(config_path: Optional[Path] = None) -> LifegraphConfig:
    """Load configuration from file or defaults, validated."""
    base_config = {}

    path = config_path or find_config()
    if path and path.exists():
        try:
            with open(path) as f:
                base_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}")

    try:
        return LifegraphConfig.from_dict(base_config)
    except Exception as e:
        raise ValueError(f"Config validation failed: {e}")


def _build_provider(config: LifegraphConfig):
    """Cheap-tier provider from config, or None when nothing is configured."""
    from llm import LLMError, create_cheap_provider

    llm = config.llm
    provider = llm.provider
    if provider == "auto" and llm.ollama_url and not llm.api_key:
        provider = "ollama"
    try:
        if provider == "ollama":
            from llm.providers.ollama import OllamaProvider

            return OllamaProvider(
                base_url=llm.ollama_url or os.getenv("OLLAMA_URL"),
                model=llm.model or os.getenv("OLLAMA_MODEL"),
                timeout=llm.timeout_seconds,
                max_attempts=config.retry.max_attempts,
                min_wait=config.retry.min_wait,
                max_wait=config.retry.max_wait,
            )
        return create_cheap_provider(
            provider=provider,
            api_key=llm.api_key,
            model=llm.model,
            timeout=llm.timeout_seconds,
        )
    except LLMError as e:
        logger.info("llm.not_configured", error=str(e))
        return None


def build_pipeline(config: LifegraphConfig):
    """Wire store, resolver, merger and synthesizer from config."""
    from memory.arbiter import LLMArbiter, NullArbiter
    from memory.batch import BatchResolver
    from memory.extractor import MentionExtractor
    from memory.merger import FactMerger
    from memory.pipeline import MemoryPipeline
    from memory.resolver import EntityResolver
    from memory.store import EntityStore
    from memory.summarizer import ConcatSummarizer, LLMSummarizer
    from memory.synthesis import MemorySynthesizer

    mem = config.memory
    store = EntityStore(config.paths.db_path)
    provider = _build_provider(config)

    arbiter = NullArbiter()
    if provider is not None and mem.arbitration_enabled:
        arbiter = LLMArbiter(
            provider,
            max_tokens=mem.arbitration_max_tokens,
            max_source_chars=mem.max_source_chars,
        )

    summarizer = ConcatSummarizer()
    if provider is not None and mem.summarization_enabled:
        summarizer = LLMSummarizer(provider, max_tokens=mem.summary_max_tokens)

    extractor = None
    if provider is not None:
        extractor = MentionExtractor(provider, max_chars=mem.extraction_max_chars)

    return MemoryPipeline(
        store,
        resolver=BatchResolver(store, EntityResolver(arbiter)),
        merger=FactMerger(store),
        synthesizer=MemorySynthesizer(
            store,
            summarizer,
            hot_days=mem.hot_days,
            warm_days=mem.warm_days,
            high_access_threshold=mem.high_access_threshold,
        ),
        extractor=extractor,
        regenerate_on_merge=mem.regenerate_on_merge,
    )
