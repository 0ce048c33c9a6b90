"""
Config for the graphgarden assembly engine.

It's just a dict. Load it, save it, override it.
Every tunable number the fetcher and server use lives here as a default.
Per-file configs only store what differs from defaults.

Usage:
    cfg = load_config("path/to/self.json")      # loads self.config.json if it exists
    cfg["fetch"]["timeout"]                     # read a value
    save_config("path/to/self.json", cfg)       # saves only non-default values
    cfg = with_overrides(cfg, {"fetch": {"timeout": 5}})  # temp overrides
"""

import copy
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


# ── Defaults ────────────────────────────────────────────────────────────

DEFAULTS = {
    "fetch": {
        "timeout": 30,              # seconds, total per friend file request
        "concurrent": 10,           # max connections in flight at once
        "user_agent": "graphgarden/0.1 (federated link graph)",
        "well_known_path": "/.well-known/graphgarden.json",
    },

    "server": {
        "host": "127.0.0.1",
        "port": 8421,
    },
}


# ── Helpers ─────────────────────────────────────────────────────────────

def _deep_merge(base: dict, overlay: dict) -> dict:
    """Merge overlay into base recursively. Returns new dict."""
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _diff_from_defaults(cfg: dict, defaults: dict = None) -> dict:
    """Return only the values that differ from defaults."""
    if defaults is None:
        defaults = DEFAULTS
    diff = {}
    for key, value in cfg.items():
        if key.startswith("_"):
            continue
        if key not in defaults:
            diff[key] = value
        elif isinstance(value, dict) and isinstance(defaults.get(key), dict):
            sub = _diff_from_defaults(value, defaults[key])
            if sub:
                diff[key] = sub
        elif value != defaults.get(key):
            diff[key] = value
    return diff


def _config_path(file_path: str) -> Path:
    """Get the .config.json path for a protocol or graph file."""
    p = Path(file_path)
    return p.with_name(f"{p.stem}.config.json")


# ── Public API ──────────────────────────────────────────────────────────

def load_config(file_path: str = "") -> dict:
    """
    Load config for a file. Returns full config (defaults + overrides).
    If no .config.json exists, returns pure defaults.
    """
    cfg = copy.deepcopy(DEFAULTS)
    if file_path:
        p = _config_path(file_path)
        if p.exists():
            try:
                with open(p) as f:
                    saved = json.load(f)
                cfg = _deep_merge(cfg, saved)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("ignoring unreadable config %s: %s", p, e)
    return cfg


def save_config(file_path: str, cfg: dict):
    """Save config, storing only values that differ from defaults."""
    diff = _diff_from_defaults(cfg)
    p = _config_path(file_path)
    if diff:
        with open(p, "w") as f:
            json.dump(diff, f, indent=2)
    elif p.exists():
        # Everything is default
        p.unlink()


def with_overrides(cfg: dict, overrides: dict) -> dict:
    """Apply temporary overrides to a config. Returns new dict."""
    return _deep_merge(cfg, overrides)


def resolve_config(cfg: dict = None) -> dict:
    """Fill in anything a partial config leaves out."""
    if cfg is None:
        return copy.deepcopy(DEFAULTS)
    return _deep_merge(DEFAULTS, cfg)
