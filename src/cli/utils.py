"""Shared CLI utilities."""

import sys
from typing import Optional

import structlog
from rich.console import Console

from cli.config_models import AppConfig

console = Console()
logger = structlog.get_logger()


def get_components(config_model: Optional[AppConfig] = None, with_explainer: bool = False) -> dict:
    """Initialize stores, gateways and the decision service from config.

    Args:
        config_model: Loaded config; None loads it from the standard locations.
        with_explainer: Also build the LLM explainer (needs an API key).
    """
    from cli.config import load_config_model
    from decisions import DecisionService, DecisionStore, UserSettingsStore
    from engine import ParameterLearner
    from fragments import ChromaEmbedder, FragmentIndex
    from values import ValueGraphStore, ValueImportanceStore

    config = config_model or load_config_model()
    paths = config.paths

    store = DecisionStore(paths.db_path)
    settings_store = UserSettingsStore(
        paths.db_path,
        default_sensitivity=config.engine.default_sensitivity_weight,
        default_baseline=config.engine.default_baseline_regret_rate,
    )
    importance_store = ValueImportanceStore(paths.db_path)
    graph_store = ValueGraphStore(paths.db_path)

    embedder = ChromaEmbedder()
    try:
        index = FragmentIndex(paths.chroma_dir, embedder)
    except Exception as e:
        err = str(e).lower()
        if "dimension" in err or "mismatch" in err:
            console.print(
                "[red]ChromaDB dimension mismatch: embedding model may have changed.[/]\n"
                f"Remove {paths.chroma_dir} and re-add fragments."
            )
            sys.exit(1)
        raise

    explainer = build_explainer(config) if with_explainer else None

    service = DecisionService(
        store=store,
        settings_store=settings_store,
        importance_store=importance_store,
        graph_store=graph_store,
        embedder=embedder,
        search=index,
        explainer=explainer,
        learner=ParameterLearner(
            sensitivity_rate=config.learner.sensitivity_rate,
            prior_rate=config.learner.prior_rate,
        ),
        engine_overrides=config.engine.overrides(),
        search_k=config.engine.search_k,
        embed_timeout=config.timeouts.embed,
        read_timeout=config.timeouts.read,
        explain_timeout=config.timeouts.explain,
        cas_attempts=config.learner.cas_attempts,
    )

    return {
        "config_model": config,
        "user_id": config.user_id,
        "store": store,
        "settings_store": settings_store,
        "importance_store": importance_store,
        "graph_store": graph_store,
        "embedder": embedder,
        "index": index,
        "service": service,
    }


def build_explainer(config: AppConfig):
    """LLM explainer from the llm config section; exits with a message if no key is set."""
    from explain import LLMExplainer
    from llm import LLMError, create_cheap_provider

    try:
        provider = create_cheap_provider(
            provider=config.llm.provider,
            api_key=config.llm.api_key,
            model=config.llm.model,
        )
    except LLMError as e:
        console.print(f"[red]Config error:[/] {e}")
        sys.exit(1)
    return LLMExplainer(
        provider,
        max_tokens=config.llm.max_tokens,
        temperature=config.llm.temperature,
        retry_config=config.retry,
    )
