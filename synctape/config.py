from __future__ import annotations
import os
import json
import logging
from typing import Any, Dict, List
from pathlib import Path
import copy

logger = logging.getLogger(__name__)

ENV_PREFIX = "SYNCTAPE__"

_DEFAULTS: Dict[str, Any] = {
    "log_level": "INFO",
    "providers": {
        "spotify": {
            "client_id": None,
            "client_secret": None,
        },
        "apple_music": {
            "developer_token": None,
        },
    },
    "sync": {
        "skew_seconds": 60,
        "max_workers": 4,
        "playlist_budget_seconds": 120,
        "staleness_hours": 24,
        "batch_size": 100,
    },
    "http": {
        "timeout_seconds": 30,
        "max_attempts": 5,
        "max_retry_after_seconds": 60,
    },
    "database": {"path": "data/db/synctape.db"},
}

# Config keys whose values are secrets (masked by `synctape config --redact`)
SECRET_KEYS = {"client_secret", "developer_token", "access_token", "refresh_token"}


def validate_providers(cfg: Dict[str, Any]) -> List[str]:
    """Return the names of providers whose app credentials are configured.

    Args:
        cfg: Configuration dictionary

    Raises:
        ValueError: If no provider is configured
    """
    from .providers import available_providers

    providers = cfg.get('providers', {})
    if not providers:
        raise ValueError(
            "No providers section in configuration. "
            f"Please add a provider configuration (e.g., {ENV_PREFIX}PROVIDERS__SPOTIFY__CLIENT_ID)"
        )

    configured = []
    for name, provider in available_providers().items():
        try:
            provider.validate_config(providers.get(name) or {})
        except ValueError as e:
            logger.debug(f"Provider {name} not configured: {e}")
            continue
        configured.append(name)

    if not configured:
        raise ValueError(
            "No provider configured. "
            f"Please set a provider credential (e.g., {ENV_PREFIX}PROVIDERS__SPOTIFY__CLIENT_ID)"
        )
    logger.debug(f"Configured providers: {', '.join(configured)}")
    return configured


def deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Merge dict b into a (shallow copies) returning new dict.
    Nested dicts are merged recursively; other values override.
    """
    result = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = deep_merge(result[k], v)  # type: ignore[arg-type]
        else:
            result[k] = v
    return result


def _strip_inline_comment(val: str) -> str:
    in_single = False
    in_double = False
    result_chars = []
    for ch in val:
        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        if ch == '#' and not in_single and not in_double:
            break
        result_chars.append(ch)
    return ''.join(result_chars).rstrip()


def _load_dotenv(path: Path) -> Dict[str, str]:
    values: Dict[str, str] = {}
    if not path.exists():
        return values
    for line in path.read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, val = line.split('=', 1)
        key = key.strip()
        val = val.strip()
        if '#' in val:
            val = _strip_inline_comment(val)
        # Remove wrapping quotes if present
        if len(val) >= 2 and val[0] == val[-1] and val[0] in ('"', "'"):
            val = val[1:-1]
        if key:
            values[key] = val
    return values


def load_config(overrides: Dict[str, Any] | None = None, dotenv_path: Path | None = None) -> Dict[str, Any]:
    """Load configuration merging defaults <- .env <- environment <- overrides.

    During test runs (detected via PYTEST_CURRENT_TEST) .env loading is skipped
    unless SYNCTAPE_ENABLE_DOTENV=1 is set to allow deterministic defaults.

    Args:
        overrides: Dict of values to deep-merge last (primarily for tests).
        dotenv_path: Alternative .env location (default: ./.env).

    Returns:
        dict: Configuration dictionary (for typed access use load_typed_config()).
    """
    dotenv_values: Dict[str, str] = {}
    if os.environ.get('SYNCTAPE_ENABLE_DOTENV') or not os.environ.get('PYTEST_CURRENT_TEST'):
        dotenv_values = _load_dotenv(dotenv_path or Path('.env'))
    # Deep copy defaults to avoid cross-call mutation of nested dicts
    cfg: Dict[str, Any] = copy.deepcopy(_DEFAULTS)

    # Merge .env and real environment (real env wins)
    combined = {**{k: v for k, v in dotenv_values.items() if k.startswith(ENV_PREFIX)},
                **{k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)}}
    for raw_key, value in combined.items():
        path_parts = raw_key[len(ENV_PREFIX):].split("__")
        cursor: Dict[str, Any] = cfg
        for part in path_parts[:-1]:
            cursor = cursor.setdefault(part.lower(), {})  # type: ignore[assignment]
        cursor[path_parts[-1].lower()] = coerce_scalar(value)
    if overrides:
        cfg = deep_merge(cfg, overrides)

    _configure_logging(cfg.get('log_level', 'INFO'))

    return cfg


def load_typed_config(overrides: Dict[str, Any] | None = None, dotenv_path: Path | None = None):
    """Load configuration as typed AppConfig object.

    Returns:
        AppConfig: Typed configuration object with .to_dict() for dict conversion
    """
    from .config_types import AppConfig
    return AppConfig.from_dict(load_config(overrides, dotenv_path))


def redact(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``cfg`` with secret values masked."""
    result: Dict[str, Any] = {}
    for k, v in cfg.items():
        if isinstance(v, dict):
            result[k] = redact(v)
        elif k in SECRET_KEYS and v:
            result[k] = "***"
        else:
            result[k] = v
    return result


def _configure_logging(level_str: str) -> None:
    """Configure Python logging based on configured level."""
    level_str = str(level_str).upper()
    level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL,
    }
    level = level_map.get(level_str, logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(message)s',
        force=True,
    )


def coerce_scalar(value: str) -> Any:
    txt = value.strip()
    # JSON object or array
    if (txt.startswith('[') and txt.endswith(']')) or (txt.startswith('{') and txt.endswith('}')):
        try:
            return json.loads(txt)
        except ValueError:
            logger.debug(f"Config value {txt!r} looks like JSON but does not parse; keeping string")
    lower = txt.lower()
    if lower in {"true", "yes"}:
        return True
    if lower in {"false", "no"}:
        return False
    if txt.isdigit() or (txt.startswith("-") and txt[1:].isdigit()):
        return int(txt)
    try:
        return float(txt)
    except ValueError:
        return txt


__all__ = ["load_config", "deep_merge", "load_typed_config", "validate_providers", "coerce_scalar", "redact"]
