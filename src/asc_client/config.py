"""
Configuration resolution for asc-client.

Settings come from, in order of precedence: explicit overrides, ``ASC_*``
environment variables, a JSON config file, and built-in defaults. The config
file is ``$ASC_CONFIG_PATH`` if set, else the nearest ``.asc/config.json``
walking up from the working directory, else ``~/.asc/config.json``.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".asc"
CONFIG_FILE_NAME = "config.json"
CONFIG_PATH_ENV = "ASC_CONFIG_PATH"

DEFAULT_TIMEOUT = 30.0

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h)?$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


@dataclass
class Settings:
    key_id: str = ""
    issuer_id: str = ""
    private_key_path: str = ""
    private_key: str = ""
    timeout: float = DEFAULT_TIMEOUT
    token_lifetime: Optional[float] = None
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    debug: bool = False

    def has_credentials(self) -> bool:
        return bool(
            self.key_id and self.issuer_id and (self.private_key_path or self.private_key)
        )


def parse_duration(value: Any, name: str = "duration") -> float:
    """
    Parse ``"45s"``, ``"1.5m"``, ``"500ms"`` or a bare number of seconds.

    Raises:
        ConfigError: If the value is not a positive duration
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        match = _DURATION_RE.match(str(value).strip().lower())
        if not match:
            raise ConfigError(f"Invalid {name}: {value!r}")
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds <= 0:
        raise ConfigError(f"Invalid {name}: must be positive, got {value!r}")
    return seconds


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    return normalized not in ("", "0", "false", "no", "off")


def parse_int(value: Any, name: str) -> int:
    try:
        parsed = int(str(value).strip())
    except ValueError:
        raise ConfigError(f"Invalid {name}: {value!r}")
    if parsed < 0:
        raise ConfigError(f"Invalid {name}: must not be negative, got {value!r}")
    return parsed


def find_config_path(cwd: Optional[Path] = None, home: Optional[Path] = None) -> Path:
    """Locate the config file that applies to ``cwd``."""
    env_path = os.environ.get(CONFIG_PATH_ENV, "").strip()
    if env_path:
        return Path(env_path).expanduser()

    directory = (cwd or Path.cwd()).resolve()
    for candidate_dir in [directory, *directory.parents]:
        candidate = candidate_dir / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate

    return (home or Path.home()) / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read a JSON config file; a missing file yields an empty mapping."""
    if not path.exists():
        return {}
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except ValueError as e:
        raise ConfigError(f"Failed to parse config {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"Failed to parse config {path}: expected a JSON object")
    return data


def _from_file(data: Mapping[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key in ("key_id", "issuer_id", "private_key_path"):
        if str(data.get(key) or "").strip():
            values[key] = str(data[key]).strip()
    if data.get("timeout_seconds") not in (None, ""):
        values["timeout"] = parse_duration(data["timeout_seconds"], "timeout_seconds")
    if data.get("timeout") not in (None, ""):
        values["timeout"] = parse_duration(data["timeout"], "timeout")
    if data.get("token_lifetime") not in (None, ""):
        values["token_lifetime"] = parse_duration(data["token_lifetime"], "token_lifetime")
    if data.get("max_retries") not in (None, ""):
        values["max_retries"] = parse_int(data["max_retries"], "max_retries")
    if data.get("base_delay") not in (None, ""):
        values["base_delay"] = parse_duration(data["base_delay"], "base_delay")
    if data.get("max_delay") not in (None, ""):
        values["max_delay"] = parse_duration(data["max_delay"], "max_delay")
    if data.get("debug") not in (None, ""):
        values["debug"] = parse_bool(data["debug"])
    return values


def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    def env(name: str) -> str:
        return environ.get(name, "").strip()

    values: Dict[str, Any] = {}
    if env("ASC_KEY_ID"):
        values["key_id"] = env("ASC_KEY_ID")
    if env("ASC_ISSUER_ID"):
        values["issuer_id"] = env("ASC_ISSUER_ID")
    if env("ASC_PRIVATE_KEY_PATH"):
        values["private_key_path"] = env("ASC_PRIVATE_KEY_PATH")
    if env("ASC_PRIVATE_KEY"):
        values["private_key"] = environ["ASC_PRIVATE_KEY"]
    if env("ASC_TIMEOUT"):
        values["timeout"] = parse_duration(env("ASC_TIMEOUT"), "ASC_TIMEOUT")
    elif env("ASC_TIMEOUT_SECONDS"):
        values["timeout"] = parse_duration(env("ASC_TIMEOUT_SECONDS"), "ASC_TIMEOUT_SECONDS")
    if env("ASC_TOKEN_LIFETIME"):
        values["token_lifetime"] = parse_duration(env("ASC_TOKEN_LIFETIME"), "ASC_TOKEN_LIFETIME")
    if env("ASC_MAX_RETRIES"):
        values["max_retries"] = parse_int(env("ASC_MAX_RETRIES"), "ASC_MAX_RETRIES")
    if env("ASC_BASE_DELAY"):
        values["base_delay"] = parse_duration(env("ASC_BASE_DELAY"), "ASC_BASE_DELAY")
    if env("ASC_MAX_DELAY"):
        values["max_delay"] = parse_duration(env("ASC_MAX_DELAY"), "ASC_MAX_DELAY")
    if "ASC_DEBUG" in environ:
        values["debug"] = parse_bool(environ["ASC_DEBUG"])
    return values


def load_settings(
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None,
) -> Settings:
    """
    Resolve settings from overrides, environment, config file and defaults.

    Args:
        overrides: Explicit values (e.g. CLI flags); None values are ignored
        environ: Environment mapping (defaults to os.environ)
        config_path: Config file to read (defaults to find_config_path())

    Returns:
        The effective Settings

    Raises:
        ConfigError: If any value is malformed
    """
    environ = os.environ if environ is None else environ
    path = config_path or find_config_path()

    settings = Settings()
    file_values = _from_file(load_config_file(path))
    if file_values:
        logger.debug(f"load_settings: using config file {path}")
    settings = replace(settings, **file_values)
    settings = replace(settings, **_from_env(environ))

    known = {f.name for f in fields(Settings)}
    explicit = {k: v for k, v in (overrides or {}).items() if v is not None and k in known}
    return replace(settings, **explicit)
