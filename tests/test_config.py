"""
Tests for environment-driven configuration.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from voice_creation.config import AppConfig, parse_port_range


ENV_NAMES = (
    "PORT", "PREVIEW_PORT_RANGE", "PREVIEW_READY_KEYWORDS", "INSTALL_COMMAND", "SERVE_COMMAND",
    "CODEGEN_PROVIDER", "CODEGEN_MODEL", "ANTHROPIC_API_KEY", "OPENAI_API_KEY", "DEEPGRAM_API_KEY",
    "GENERATION_ROOT", "PREVIEW_HTTP_PROBE", "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestPortRange:
    def test_parse(self):
        assert parse_port_range("4000-4100") == (4000, 4100)
        assert parse_port_range("5000-5000") == (5000, 5000)

    @pytest.mark.parametrize("value", ["4100-4000", "abc", "4000", "0-10", "4000-70000"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_port_range(value)


class TestFromEnv:
    def test_defaults(self, clean_env):
        config = AppConfig.from_env()

        assert config.port == 3000
        assert config.port_range == (4000, 4100)
        assert config.codegen_provider == "anthropic"
        assert config.codegen_model == "claude-3-5-sonnet-20241022"
        assert config.serve_command[-1] == "{port}"
        assert config.generation_root == Path("generated")
        assert config.http_probe is True

    def test_overrides(self, clean_env):
        clean_env.setenv("PORT", "8080")
        clean_env.setenv("PREVIEW_PORT_RANGE", "5000-5010")
        clean_env.setenv("CODEGEN_PROVIDER", "OpenAI")
        clean_env.setenv("SERVE_COMMAND", "pnpm dev --port {port}")
        clean_env.setenv("PREVIEW_READY_KEYWORDS", "Ready, Compiled successfully")
        clean_env.setenv("PREVIEW_HTTP_PROBE", "off")
        clean_env.setenv("LOG_LEVEL", "debug")

        config = AppConfig.from_env()

        assert config.port == 8080
        assert config.port_range == (5000, 5010)
        assert config.codegen_provider == "openai"
        assert config.codegen_model == "gpt-4o"
        assert config.serve_command == ["pnpm", "dev", "--port", "{port}"]
        assert config.ready_keywords == ("ready", "compiled successfully")
        assert config.http_probe is False
        assert config.log_level == "DEBUG"

    def test_bad_integer(self, clean_env):
        clean_env.setenv("PORT", "eighty")

        with pytest.raises(ValueError, match="PORT"):
            AppConfig.from_env()

    def test_unknown_provider(self, clean_env):
        clean_env.setenv("CODEGEN_PROVIDER", "groq")

        with pytest.raises(ValueError, match="CODEGEN_PROVIDER"):
            AppConfig.from_env()

    def test_inverted_range_in_constructor(self):
        with pytest.raises(ValueError):
            AppConfig(preview_port_start=4100, preview_port_end=4000)
