"""Configuration for the obscurer gateway.

Reads from config/obscurer.ini if present, environment variables override.
The [mappings] section seeds the store: obscured path = original URL.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path

_CONFIG_FILE = Path(__file__).resolve().parent.parent.parent / "config" / "obscurer.ini"

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ObscurerConfig:
    """Gateway configuration. Immutable once loaded."""

    app: str = ""
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    deobscure: bool = True
    store_stripes: int = 16
    mappings: tuple[tuple[str, str], ...] = ()


def _parse_bool(val: str) -> bool:
    return val.strip().lower() in _TRUE


def load_config(config_path: Path | None = None) -> ObscurerConfig:
    """Load config from INI file, then override with environment variables."""
    path = config_path or _CONFIG_FILE
    kwargs: dict = {}

    if path.exists():
        # Keys in [mappings] are URL paths; keep their case.
        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str
        parser.read(path)
        if parser.has_section("gateway"):
            for ini_key in ("app", "host", "log_level"):
                val = parser.get("gateway", ini_key, fallback=None)
                if val is not None:
                    kwargs[ini_key] = val
            port_str = parser.get("gateway", "port", fallback=None)
            if port_str is not None:
                kwargs["port"] = int(port_str)
            deobscure = parser.get("gateway", "deobscure", fallback=None)
            if deobscure is not None:
                kwargs["deobscure"] = _parse_bool(deobscure)
        if parser.has_section("store"):
            stripes = parser.get("store", "stripes", fallback=None)
            if stripes is not None:
                kwargs["store_stripes"] = int(stripes)
        if parser.has_section("mappings"):
            # items() folds in [DEFAULT]; only the section's own keys are mappings.
            defaults = parser.defaults()
            kwargs["mappings"] = tuple(
                (k, v) for k, v in parser.items("mappings") if k not in defaults
            )

    env_map = {
        "OBSCURER_APP": "app",
        "OBSCURER_HOST": "host",
        "OBSCURER_PORT": "port",
        "OBSCURER_LOG_LEVEL": "log_level",
        "OBSCURER_DEOBSCURE": "deobscure",
        "OBSCURER_STORE_STRIPES": "store_stripes",
    }
    for env_key, config_key in env_map.items():
        val = os.getenv(env_key)
        if val is not None:
            if config_key in ("port", "store_stripes"):
                kwargs[config_key] = int(val)
            elif config_key == "deobscure":
                kwargs[config_key] = _parse_bool(val)
            else:
                kwargs[config_key] = val

    return ObscurerConfig(**kwargs)
