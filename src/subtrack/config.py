"""subtrack configuration loading and validation.

Reads ``subtrack.toml``, parses all sections, and returns a validated
``AppConfig`` dataclass.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from subtrack.core.aggregate import INCLUDED_STATUSES
from subtrack.core.billing import DEFAULT_CURRENCY_SYMBOL
from subtrack.core.status import SubscriptionStatus, parse_status

CONFIG_FILENAME = "subtrack.toml"

# Pattern matching ${VAR_NAME}; supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(Exception):
    """Raised when configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [subtrack.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class BillingConfig:
    """Billing and aggregation settings from [subtrack.billing].

    ``categories`` is ``None`` for free-text categories, or the closed set of
    allowed names.
    """

    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL
    included_statuses: frozenset[SubscriptionStatus] = INCLUDED_STATUSES
    categories: tuple[str, ...] | None = None


@dataclass
class ApiConfig:
    """HTTP settings from [subtrack.api]."""

    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])


@dataclass
class AppConfig:
    """Parsed and validated subtrack configuration."""

    name: str = "subtrack"
    host: str = "127.0.0.1"
    port: int = 8000
    db_name: str = "subtrack"
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    billing: BillingConfig = field(default_factory=BillingConfig)
    api: ApiConfig = field(default_factory=ApiConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _parse_billing(section: dict[str, Any]) -> BillingConfig:
    """Parse the optional [subtrack.billing] sub-section."""
    symbol = section.get("currency_symbol", DEFAULT_CURRENCY_SYMBOL)
    if not isinstance(symbol, str) or not symbol:
        raise ConfigError("subtrack.billing.currency_symbol must be a non-empty string")

    raw_statuses = section.get("included_statuses")
    if raw_statuses is None:
        included = INCLUDED_STATUSES
    else:
        if not isinstance(raw_statuses, list):
            raise ConfigError("subtrack.billing.included_statuses must be a list of strings")
        try:
            included = frozenset(parse_status(s) for s in raw_statuses)
        except ValueError as exc:
            raise ConfigError(f"Invalid subtrack.billing.included_statuses: {exc}") from exc

    raw_categories = section.get("categories")
    categories: tuple[str, ...] | None = None
    if raw_categories is not None:
        if not isinstance(raw_categories, list) or not all(
            isinstance(c, str) and c.strip() for c in raw_categories
        ):
            raise ConfigError("subtrack.billing.categories must be a list of non-empty strings")
        categories = tuple(c.strip() for c in raw_categories)
        if not categories:
            raise ConfigError("subtrack.billing.categories must not be empty when set")

    return BillingConfig(
        currency_symbol=symbol,
        included_statuses=included,
        categories=categories,
    )


def load_config(path: Path) -> AppConfig:
    """Load and validate a subtrack config.

    Parameters
    ----------
    path:
        Either the TOML file itself or a directory containing ``subtrack.toml``.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or has invalid values.
    """
    toml_path = path / CONFIG_FILENAME if path.is_dir() else path

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    data = resolve_env_vars(data)

    section = data.get("subtrack")
    if not isinstance(section, dict):
        raise ConfigError("Missing [subtrack] section in config")

    name = str(section.get("name", "subtrack")).strip()
    if not name:
        raise ConfigError("subtrack.name must be a non-empty string")

    try:
        port = int(section.get("port", 8000))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid subtrack.port: {section.get('port')!r}") from exc

    host = str(section.get("host", "127.0.0.1"))

    db_section = section.get("db", {})
    db_name = str(db_section.get("name", name)).strip()
    if not db_name:
        raise ConfigError("subtrack.db.name must be a non-empty string")

    logging_section = section.get("logging", {})
    log_format = str(logging_section.get("format", "text")).lower()
    if log_format not in ("text", "json"):
        raise ConfigError(
            f"Invalid subtrack.logging.format: {log_format!r}. Expected 'text' or 'json'."
        )
    logging_config = LoggingConfig(
        level=str(logging_section.get("level", "INFO")).upper(),
        format=log_format,
        log_root=logging_section.get("log_root"),
    )

    api_section = section.get("api", {})
    cors_origins = api_section.get("cors_origins", ["http://localhost:5173"])
    if not isinstance(cors_origins, list):
        raise ConfigError("subtrack.api.cors_origins must be a list of strings")

    return AppConfig(
        name=name,
        host=host,
        port=port,
        db_name=db_name,
        logging=logging_config,
        billing=_parse_billing(section.get("billing", {})),
        api=ApiConfig(cors_origins=[str(o) for o in cors_origins]),
    )
