"""
Runtime configuration for the voice creation server.

Everything is read from environment variables (a ``.env`` file is loaded by
the server entry point before ``AppConfig.from_env()`` runs).
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_AGENT_URL = "wss://agent.deepgram.com/v1/agent/converse"
DEFAULT_CODEGEN_MODELS = {
    "anthropic": "claude-3-5-sonnet-20241022",
    "openai": "gpt-4o",
}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def parse_port_range(value: str) -> tuple[int, int]:
    """Parse ``"4000-4100"`` into an inclusive ``(start, end)`` tuple."""
    try:
        start_text, end_text = value.split("-", 1)
        start, end = int(start_text), int(end_text)
    except ValueError:
        raise ValueError(f"Port range must look like '4000-4100', got {value!r}") from None
    if not (0 < start <= end <= 65535):
        raise ValueError(f"Invalid port range {start}-{end}")
    return start, end


@dataclass
class AppConfig:
    """Configuration for the server, the preview supervisor and the model providers."""
    # Web server
    host: str = "0.0.0.0"
    port: int = 3000

    # Generated projects live under {generation_root}/{session_id}/repo
    generation_root: Path = Path("generated")

    # Preview supervision
    preview_port_start: int = 4000
    preview_port_end: int = 4100
    preview_host: str = "localhost"
    install_command: list[str] = field(
        default_factory=lambda: ["npm", "install", "--ignore-scripts"]
    )
    serve_command: list[str] = field(
        default_factory=lambda: ["npm", "run", "dev", "--", "--port", "{port}"]
    )
    install_timeout: float = 600.0
    ready_timeout: float = 180.0
    ready_keywords: tuple[str, ...] = ("ready",)
    http_probe: bool = True

    # Code generation model
    codegen_provider: str = "anthropic"
    codegen_model: Optional[str] = None
    codegen_max_tokens: int = 8000
    codegen_temperature: float = 0.1
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None

    # Upstream speech agent
    deepgram_api_key: Optional[str] = None
    agent_url: str = DEFAULT_AGENT_URL
    agent_think_model: str = "gpt-4o-mini"
    agent_listen_model: str = "nova-3"
    agent_speak_model: str = "aura-2-arcas-en"
    agent_sample_rate: int = 24000

    # Housekeeping
    session_ttl_seconds: int = 3600
    log_level: str = "INFO"

    def __post_init__(self):
        self.generation_root = Path(self.generation_root)
        if self.preview_port_start > self.preview_port_end:
            raise ValueError(
                f"preview port range is inverted: "
                f"{self.preview_port_start}-{self.preview_port_end}"
            )
        if self.codegen_provider not in DEFAULT_CODEGEN_MODELS:
            raise ValueError(
                f"Unknown CODEGEN_PROVIDER {self.codegen_provider!r} "
                f"(expected one of {', '.join(DEFAULT_CODEGEN_MODELS)})"
            )
        if not self.codegen_model:
            self.codegen_model = DEFAULT_CODEGEN_MODELS[self.codegen_provider]

    @property
    def port_range(self) -> tuple[int, int]:
        return self.preview_port_start, self.preview_port_end

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build a config from the process environment."""
        port_start, port_end = parse_port_range(
            os.environ.get("PREVIEW_PORT_RANGE", "4000-4100")
        )
        keywords = tuple(
            k.strip().lower()
            for k in os.environ.get("PREVIEW_READY_KEYWORDS", "ready").split(",")
            if k.strip()
        )

        kwargs = dict(
            host=os.environ.get("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            generation_root=Path(os.environ.get("GENERATION_ROOT", "generated")),
            preview_port_start=port_start,
            preview_port_end=port_end,
            preview_host=os.environ.get("PREVIEW_HOST", "localhost"),
            install_timeout=_env_float("INSTALL_TIMEOUT_SECONDS", 600.0),
            ready_timeout=_env_float("PREVIEW_READY_TIMEOUT_SECONDS", 180.0),
            ready_keywords=keywords or ("ready",),
            http_probe=_env_bool("PREVIEW_HTTP_PROBE", True),
            codegen_provider=os.environ.get("CODEGEN_PROVIDER", "anthropic").strip().lower(),
            codegen_model=os.environ.get("CODEGEN_MODEL") or None,
            codegen_max_tokens=_env_int("CODEGEN_MAX_TOKENS", 8000),
            codegen_temperature=_env_float("CODEGEN_TEMPERATURE", 0.1),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY") or None,
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            deepgram_api_key=os.environ.get("DEEPGRAM_API_KEY") or None,
            agent_url=os.environ.get("DEEPGRAM_AGENT_URL", DEFAULT_AGENT_URL),
            agent_think_model=os.environ.get("AGENT_THINK_MODEL", "gpt-4o-mini"),
            agent_listen_model=os.environ.get("AGENT_LISTEN_MODEL", "nova-3"),
            agent_speak_model=os.environ.get("AGENT_SPEAK_MODEL", "aura-2-arcas-en"),
            agent_sample_rate=_env_int("AGENT_SAMPLE_RATE", 24000),
            session_ttl_seconds=_env_int("SESSION_TTL_SECONDS", 3600),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

        install_command = os.environ.get("INSTALL_COMMAND", "").strip()
        if install_command:
            kwargs["install_command"] = shlex.split(install_command)
        serve_command = os.environ.get("SERVE_COMMAND", "").strip()
        if serve_command:
            kwargs["serve_command"] = shlex.split(serve_command)

        return cls(**kwargs)
