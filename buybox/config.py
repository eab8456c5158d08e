"""Settings read from the environment and the engine registry built from them."""
from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

from buybox.engines import AnalysisEngine, CompletionEngine, LocalEngine, ResultBuilder
from buybox.hybrid import HybridEngine
from buybox.llm import CompletionClient
from buybox.orchestrator import EngineOrchestrator
from buybox.prompts import METHODOLOGIES

log = logging.getLogger(__name__)


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        log.warning("Ignoring non-numeric %s=%r", name, value)
        return default


class Settings(BaseModel):
    default_engine: str = "traditional"
    engine_timeout: float = 120.0
    data_dir: Path = Path(__file__).parent / "data"

    enable_claude: bool = False
    anthropic_api_key: str | None = None
    claude_model: str = "claude-haiku-4-5-20251001"

    enable_openai: bool = False
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str | None = None

    enable_gemini: bool = False
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.0-flash"

    enable_ollama: bool = False
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.1"

    enable_hybrid: bool = False
    hybrid_remote: str = "openai"

    # Framework remote engines follow unless a submission names its own
    analysis_methodology: str | None = None

    response_formats: dict[str, str] = Field(default_factory=lambda: {
        "claude": "sections",
        "openai": "markdown",
        "gemini": "markdown",
        "ollama": "advisor",
    })

    @classmethod
    def from_env(cls) -> Settings:
        kwargs = {
            "default_engine": os.environ.get("DEFAULT_AI_ENGINE", "traditional"),
            "engine_timeout": _env_float("BUYBOX_ENGINE_TIMEOUT", 120.0),
            "enable_claude": _env_flag("ENABLE_CLAUDE"),
            "anthropic_api_key": os.environ.get("ANTHROPIC_API_KEY") or None,
            "enable_openai": _env_flag("ENABLE_OPENAI"),
            "openai_api_key": os.environ.get("OPENAI_API_KEY") or None,
            "openai_base_url": os.environ.get("OPENAI_BASE_URL") or None,
            "enable_gemini": _env_flag("ENABLE_GEMINI"),
            "gemini_api_key": os.environ.get("GEMINI_API_KEY") or None,
            "enable_ollama": _env_flag("ENABLE_OLLAMA"),
            "enable_hybrid": _env_flag("ENABLE_HYBRID"),
            "hybrid_remote": os.environ.get("HYBRID_REMOTE_ENGINE", "openai"),
        }
        for field, env in (
            ("data_dir", "BUYBOX_DATA_DIR"),
            ("claude_model", "CLAUDE_MODEL"),
            ("openai_model", "OPENAI_MODEL"),
            ("gemini_model", "GEMINI_MODEL"),
            ("ollama_base_url", "OLLAMA_BASE_URL"),
            ("ollama_model", "OLLAMA_MODEL"),
        ):
            if os.environ.get(env):
                kwargs[field] = os.environ[env]
        methodology = os.environ.get("ANALYSIS_METHODOLOGY")
        if methodology in METHODOLOGIES:
            kwargs["analysis_methodology"] = methodology
        elif methodology:
            log.warning("Ignoring unknown ANALYSIS_METHODOLOGY=%r", methodology)
        return cls(**kwargs)


def build_registry(settings: Settings) -> dict[str, AnalysisEngine]:
    """Create every known engine; disabled or unconfigured ones report unavailable."""
    builder = ResultBuilder()
    local = LocalEngine(builder=builder)
    engines: dict[str, AnalysisEngine] = {local.engine_id: local}

    claude_client = None
    if settings.enable_claude and settings.anthropic_api_key:
        claude_client = CompletionClient("anthropic", settings.claude_model, api_key=settings.anthropic_api_key)
    engines["claude"] = CompletionEngine(
        "claude", claude_client, name="Anthropic Claude",
        response_format=settings.response_formats["claude"],
        enabled=settings.enable_claude,
        requirements=("Anthropic API key", "Internet connectivity"),
        methodology=settings.analysis_methodology,
        builder=builder,
    )

    openai_client = None
    if settings.enable_openai and (settings.openai_api_key or settings.openai_base_url):
        openai_client = CompletionClient(
            "openai", settings.openai_model,
            api_key=settings.openai_api_key, base_url=settings.openai_base_url,
        )
    engines["openai"] = CompletionEngine(
        "openai", openai_client, name="OpenAI",
        response_format=settings.response_formats["openai"],
        enabled=settings.enable_openai,
        requirements=("OpenAI API key", "Internet connectivity"),
        methodology=settings.analysis_methodology,
        builder=builder,
    )

    gemini_client = None
    if settings.enable_gemini and settings.gemini_api_key:
        gemini_client = CompletionClient("gemini", settings.gemini_model, api_key=settings.gemini_api_key)
    engines["gemini"] = CompletionEngine(
        "gemini", gemini_client, name="Google Gemini",
        response_format=settings.response_formats["gemini"],
        enabled=settings.enable_gemini,
        requirements=("Gemini API key", "Internet connectivity"),
        methodology=settings.analysis_methodology,
        builder=builder,
    )

    ollama_client = None
    if settings.enable_ollama:
        ollama_client = CompletionClient("ollama", settings.ollama_model, base_url=settings.ollama_base_url)
    engines["ollama"] = CompletionEngine(
        "ollama", ollama_client, name="Ollama (local LLM)",
        response_format=settings.response_formats["ollama"],
        enabled=settings.enable_ollama,
        requirements=("Ollama server running", f"Model {settings.ollama_model} pulled"),
        methodology=settings.analysis_methodology,
        builder=builder,
    )

    remote = engines.get(settings.hybrid_remote)
    if remote is None or remote is local:
        log.warning("Hybrid remote engine %r is not a remote engine; using openai", settings.hybrid_remote)
        remote = engines["openai"]
    engines["hybrid"] = HybridEngine(local, remote, enabled=settings.enable_hybrid, builder=builder)
    return engines


def build_orchestrator(settings: Settings | None = None) -> EngineOrchestrator:
    settings = settings or Settings.from_env()
    engines = build_registry(settings)
    default = settings.default_engine if settings.default_engine in engines else "traditional"
    if default != settings.default_engine:
        log.warning("Unknown DEFAULT_AI_ENGINE %r, falling back to traditional", settings.default_engine)
    return EngineOrchestrator(engines, default_engine=default, timeout=settings.engine_timeout or None)
