from __future__ import annotations

import logging
import os
import secrets
from pathlib import Path
from typing import Dict, Mapping

import yaml

# Placeholder shipped in DEFAULT_CONFIG; the server refuses to sign with it.
DEFAULT_JWT_SECRET = "change-me"

DEFAULT_CONFIG: Dict[str, object] = {
    "db_path": "finance.db",
    "host": "127.0.0.1",
    "port": 5001,
    "jwt_secret": DEFAULT_JWT_SECRET,
    "token_ttl_hours": 720,
    "log_level": "INFO",
}

ENV_PREFIX = "FINANCE_TRACKER_"


def _apply_env(config: Dict[str, object], environ: Mapping[str, str]) -> Dict[str, object]:
    for key, default in DEFAULT_CONFIG.items():
        name = ENV_PREFIX + key.upper()
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        if isinstance(default, bool):
            config[key] = raw.lower() in ("1", "true", "yes")
        elif isinstance(default, int):
            try:
                config[key] = int(raw)
            except ValueError:
                raise ValueError(f"{name} must be an integer, got {raw!r}") from None
        else:
            config[key] = raw
    return config


def load_config(path: Path | str | None = None, environ: Mapping[str, str] | None = None) -> Dict[str, object]:
    """Read a YAML config file, fill in defaults, then apply environment overrides.

    A missing *path* is not an error: the defaults are used instead.
    """
    data: Dict[str, object] = {}
    if path is not None and Path(path).exists():
        with Path(path).open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
    config = {**DEFAULT_CONFIG, **data}
    return _apply_env(config, os.environ if environ is None else environ)


def has_default_secret(config: Mapping[str, object]) -> bool:
    secret = config.get("jwt_secret")
    return not secret or secret == DEFAULT_JWT_SECRET


def initial_config() -> Dict[str, object]:
    """Defaults with a freshly generated signing secret."""
    return {**DEFAULT_CONFIG, "jwt_secret": secrets.token_hex(32)}


def save_config(config: Dict[str, object], path: Path | str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as fp:
        yaml.safe_dump(config, fp, sort_keys=False)


def configure_logging(level: str | int = "INFO") -> None:
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
