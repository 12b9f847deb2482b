"""
Configuration

Loads settings from the environment (and backend/.env) once at startup into
immutable dataclasses. Components receive the config object explicitly.
"""

import os
import pathlib
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv


DEFAULT_ENV_PATH = pathlib.Path(__file__).resolve().parent.parent.parent / ".env"


@dataclass(frozen=True)
class BrowserConfig:
    """Browser session settings"""
    headless: bool = True
    timeout_ms: int = 30000
    cdp_host: str = "localhost"
    cdp_port: int = 9222


@dataclass(frozen=True)
class DevServerConfig:
    """Development server under test"""
    port: int = 3000
    url: str = "http://localhost:3000"
    start_command: str = "npm start"
    startup_timeout_ms: int = 60000
    poll_interval_ms: int = 2000


@dataclass(frozen=True)
class TestConfig:
    """Verification and remediation settings"""
    __test__ = False
    timeout_ms: int = 10000
    max_retry_attempts: int = 5
    fix_settle_delay_ms: int = 2000


@dataclass(frozen=True)
class LLMConfig:
    """Fix generator provider settings"""
    provider: str = "anthropic"  # anthropic, openai, ollama
    model: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    ollama_url: str = "http://localhost:11434"
    request_timeout: float = 60.0


@dataclass(frozen=True)
class AppConfig:
    """Top-level configuration passed into every component"""
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    dev_server: DevServerConfig = field(default_factory=DevServerConfig)
    test: TestConfig = field(default_factory=TestConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    project_root: pathlib.Path = field(default_factory=pathlib.Path.cwd)


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in ("false", "0", "no", "off")


def config_from_env(env: Mapping[str, str]) -> AppConfig:
    """Build an AppConfig from an environment mapping."""
    port = _get_int(env, "DEV_SERVER_PORT", 3000)

    return AppConfig(
        browser=BrowserConfig(
            headless=_get_bool(env, "BROWSER_HEADLESS", True),
            timeout_ms=_get_int(env, "BROWSER_TIMEOUT", 30000),
            cdp_host=env.get("CDP_HOST", "localhost"),
            cdp_port=_get_int(env, "CDP_PORT", 9222),
        ),
        dev_server=DevServerConfig(
            port=port,
            url=env.get("DEV_SERVER_URL", f"http://localhost:{port}"),
            start_command=env.get("DEV_SERVER_START_COMMAND", "npm start"),
            startup_timeout_ms=_get_int(env, "DEV_SERVER_STARTUP_TIMEOUT", 60000),
        ),
        test=TestConfig(
            timeout_ms=_get_int(env, "TEST_TIMEOUT", 10000),
            max_retry_attempts=_get_int(env, "MAX_RETRY_ATTEMPTS", 5),
            fix_settle_delay_ms=_get_int(env, "FIX_SETTLE_DELAY", 2000),
        ),
        llm=LLMConfig(
            provider=env.get("LLM_PROVIDER", "anthropic").lower(),
            model=env.get("LLM_MODEL") or None,
            anthropic_api_key=env.get("ANTHROPIC_API_KEY") or None,
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            ollama_url=env.get("OLLAMA_URL", "http://localhost:11434"),
        ),
        project_root=pathlib.Path(env.get("PROJECT_ROOT") or os.getcwd()).resolve(),
    )


def load_config(env_path: Optional[pathlib.Path] = None) -> AppConfig:
    """
    Load configuration once at startup.

    Reads backend/.env (if present) into the process environment, then
    snapshots the relevant variables.
    """
    load_dotenv(env_path or DEFAULT_ENV_PATH)
    return config_from_env(os.environ)
