"""Config loading for the Marunose gateway.

Reads `.marunose/config.yaml` (or `~/.marunose/config.yaml`).
Raises SystemExit on parse errors, missing `version` field, or invalid values.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided, for testing or explicit override)
  2. MARUNOSE_CONFIG environment variable (if set)
  3. `.marunose/config.yaml` (working directory, for development)
  4. `~/.marunose/config.yaml` (home directory, for deployments)

Environment variable overrides (applied after the file):
  MARUNOSE_PORT  : server.port
  OPENAI_API_KEY : summarizer.openai_api_key (secrets never live in the file)
  GITHUB_TOKEN   : summarizer.github_token

Example file:

    version: 1
    server:
      host: 127.0.0.1
      port: 8000
    rate_limit:
      validate_max_requests: 5
      validate_window_s: 900
    key_store:
      path: ~/.marunose/keys.db
    summarizer:
      openai_model: gpt-3.5-turbo
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional

import yaml

from marunose.constants import (
    BURST_EVENT_THRESHOLD,
    BURST_WINDOW_S,
    GITHUB_API_BASE,
    HTTP_TIMEOUT_S,
    OPENAI_API_BASE,
    OPENAI_DEFAULT_MODEL,
    RATE_LIMIT_RECORD_MAX_AGE_S,
    RATE_LIMIT_SWEEP_INTERVAL_S,
    SECURITY_LOG_MAX_EVENTS,
    SECURITY_LOG_TRIM_TO,
    SUMMARIZE_MAX_REQUESTS,
    SUMMARIZE_WINDOW_S,
    VALIDATE_KEY_MAX_REQUESTS,
    VALIDATE_KEY_WINDOW_S,
)
from marunose.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_CONFIG_PATHS = [
    ".marunose/config.yaml",
    os.path.expanduser("~/.marunose/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    """HTTP binding configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class RateLimitConfig:
    """Per-IP request windows for the two gateway endpoints (seconds)."""

    validate_max_requests: int = VALIDATE_KEY_MAX_REQUESTS
    validate_window_s: float = VALIDATE_KEY_WINDOW_S
    summarize_max_requests: int = SUMMARIZE_MAX_REQUESTS
    summarize_window_s: float = SUMMARIZE_WINDOW_S
    sweep_interval_s: float = RATE_LIMIT_SWEEP_INTERVAL_S
    record_max_age_s: float = RATE_LIMIT_RECORD_MAX_AGE_S


@dataclass
class SecurityLogConfig:
    """Security log capacity and burst detection thresholds."""

    max_events: int = SECURITY_LOG_MAX_EVENTS
    trim_to: int = SECURITY_LOG_TRIM_TO
    burst_threshold: int = BURST_EVENT_THRESHOLD
    burst_window_s: float = BURST_WINDOW_S


@dataclass
class KeyStoreConfig:
    """Local SQLite key store location (used when Supabase is not configured)."""

    path: str = "~/.marunose/keys.db"


@dataclass
class SummarizerConfig:
    """Outbound GitHub / OpenAI settings."""

    github_api_base: str = GITHUB_API_BASE
    github_token: Optional[str] = None
    openai_api_base: str = OPENAI_API_BASE
    openai_api_key: Optional[str] = None
    openai_model: str = OPENAI_DEFAULT_MODEL
    http_timeout_s: float = HTTP_TIMEOUT_S


@dataclass
class Config:
    """Root configuration object populated from .marunose/config.yaml.

    All fields have safe defaults: the gateway can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    security_log: SecurityLogConfig = field(default_factory=SecurityLogConfig)
    key_store: KeyStoreConfig = field(default_factory=KeyStoreConfig)
    summarizer: SummarizerConfig = field(default_factory=SummarizerConfig)
    path: Optional[str] = None

    @classmethod
    def defaults(cls) -> "Config":
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On a non-positive rate limit or window, or an
                           inconsistent security log capacity.
        """
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=server_raw.get("host", "127.0.0.1"),
            port=server_raw.get("port", 8000),
        )

        rl_raw = raw.get("rate_limit") or {}
        rate_limit = RateLimitConfig(
            validate_max_requests=rl_raw.get("validate_max_requests", VALIDATE_KEY_MAX_REQUESTS),
            validate_window_s=rl_raw.get("validate_window_s", VALIDATE_KEY_WINDOW_S),
            summarize_max_requests=rl_raw.get("summarize_max_requests", SUMMARIZE_MAX_REQUESTS),
            summarize_window_s=rl_raw.get("summarize_window_s", SUMMARIZE_WINDOW_S),
            sweep_interval_s=rl_raw.get("sweep_interval_s", RATE_LIMIT_SWEEP_INTERVAL_S),
            record_max_age_s=rl_raw.get("record_max_age_s", RATE_LIMIT_RECORD_MAX_AGE_S),
        )
        for name, value in vars(rate_limit).items():
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                _config_error(f"rate_limit.{name} must be a positive number, got {value!r}")

        sec_raw = raw.get("security_log") or {}
        security_log = SecurityLogConfig(
            max_events=sec_raw.get("max_events", SECURITY_LOG_MAX_EVENTS),
            trim_to=sec_raw.get("trim_to", SECURITY_LOG_TRIM_TO),
            burst_threshold=sec_raw.get("burst_threshold", BURST_EVENT_THRESHOLD),
            burst_window_s=sec_raw.get("burst_window_s", BURST_WINDOW_S),
        )
        if security_log.trim_to > security_log.max_events:
            _config_error("security_log.trim_to must not exceed security_log.max_events")

        ks_raw = raw.get("key_store") or {}
        key_store = KeyStoreConfig(path=ks_raw.get("path", "~/.marunose/keys.db"))

        sum_raw = raw.get("summarizer") or {}
        summarizer = SummarizerConfig(
            github_api_base=sum_raw.get("github_api_base", GITHUB_API_BASE),
            openai_api_base=sum_raw.get("openai_api_base", OPENAI_API_BASE),
            openai_model=sum_raw.get("openai_model", OPENAI_DEFAULT_MODEL),
            http_timeout_s=sum_raw.get("http_timeout_s", HTTP_TIMEOUT_S),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            rate_limit=rate_limit,
            security_log=security_log,
            key_store=key_store,
            summarizer=summarizer,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def _config_error(message: str) -> NoReturn:
    print(f"CONFIG ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate the gateway configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid values, or invalid ``MARUNOSE_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("MARUNOSE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found: using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw: Any = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _config_error(
            f"Failed to parse {found_path}: {exc}\n"
            "Marunose refuses to start with an invalid config."
        )
    except OSError as exc:
        _config_error(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _config_error(
                f"{found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _config_error(
            f"{found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _config_error(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _config_error(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.server.host == "0.0.0.0":
        logger.warning(
            "Gateway is configured to bind on 0.0.0.0 (all interfaces). "
            "Put it behind a proxy that sets X-Forwarded-For, or per-IP "
            "rate limits will see the proxy address."
        )

    logger.info("Config loaded", path=found_path, version=config.version)
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If MARUNOSE_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("MARUNOSE_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _config_error(
                f"MARUNOSE_PORT environment variable is not a valid integer: '{env_port}'"
            )

    openai_key = os.environ.get("OPENAI_API_KEY")
    if openai_key:
        config.summarizer.openai_api_key = openai_key

    github_token = os.environ.get("GITHUB_TOKEN")
    if github_token:
        config.summarizer.github_token = github_token
