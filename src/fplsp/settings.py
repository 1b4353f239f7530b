"""
Settings resolution for fplsp.

Server settings are resolved per key through a cascade:

1. Explicit client configuration, supplied via ``initializationOptions`` or
   the ``fplsp`` section of ``workspace/didChangeConfiguration``.
2. A ``.fplsp.toml`` project config file in the workspace root.
3. Built-in defaults.

Keys use the client's camelCase spelling (``debounceMs``,
``maxCompletions``, ``logLevel``) in both sources.

The completion client has no negotiation step; it takes a plain
:class:`ClientSettings` value.
"""
from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

PROJECT_CONFIG = '.fplsp.toml'

_LOG_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}


@dataclass(frozen=True)
class Settings:
    debounce: float = 0.5
    max_completions: int = 100
    log_level: str | None = None


@dataclass(frozen=True)
class ClientSettings:
    request_timeout: float = 5.0
    debounce: float = 0.5
    history_size: int = 100
    language_id: str = 'fhirpath'


# ---------------------------------------------------------------------------
# Raw value coercion
# ---------------------------------------------------------------------------

def _coerce(raw: Mapping[str, Any] | None) -> dict[str, Any]:
    """Turn a camelCase settings mapping into validated ``Settings`` fields.

    Unknown keys and values of the wrong type are ignored (logged at debug).
    """
    if not raw:
        return {}
    out: dict[str, Any] = {}

    ms = raw.get('debounceMs')
    if ms is not None:
        if isinstance(ms, (int, float)) and not isinstance(ms, bool) and ms >= 0:
            out['debounce'] = ms / 1000.0
        else:
            logger.debug('ignoring debounceMs=%r', ms)

    limit = raw.get('maxCompletions')
    if limit is not None:
        if isinstance(limit, int) and not isinstance(limit, bool) and limit > 0:
            out['max_completions'] = limit
        else:
            logger.debug('ignoring maxCompletions=%r', limit)

    level = raw.get('logLevel')
    if level is not None:
        if isinstance(level, str) and level.upper() in _LOG_LEVELS:
            out['log_level'] = level.upper()
        else:
            logger.debug('ignoring logLevel=%r', level)

    return out


def _read_project_config(workspace_root: str | None) -> dict[str, Any]:
    """Parse ``.fplsp.toml`` in *workspace_root*; empty dict if absent or broken."""
    if not workspace_root:
        return {}
    config_path = Path(workspace_root) / PROJECT_CONFIG
    if not config_path.is_file():
        return {}
    try:
        data = tomllib.loads(config_path.read_text(encoding='utf-8'))
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning('could not read %s: %s', config_path, e)
        return {}
    return _coerce(data)


def settings_section(options: Any) -> Mapping[str, Any] | None:
    """Extract fplsp settings from ``initializationOptions``/configuration payloads.

    Accepts either a flat mapping or one nested under an ``fplsp`` key.
    """
    if not isinstance(options, Mapping):
        return None
    nested = options.get('fplsp')
    if isinstance(nested, Mapping):
        return nested
    return options


# ---------------------------------------------------------------------------
# SettingsResolver
# ---------------------------------------------------------------------------

class SettingsResolver:
    """Combines client configuration, project config and defaults."""

    def __init__(self, workspace_root: str | None = None):
        self.workspace_root = workspace_root
        self._client: dict[str, Any] = {}

    def set_client_settings(self, raw: Mapping[str, Any] | None) -> None:
        """Replace the explicit client settings (``None`` clears them)."""
        self._client = _coerce(raw)

    def resolve(self) -> Settings:
        merged = _read_project_config(self.workspace_root)
        merged.update(self._client)
        return Settings(**merged)
