"""
Configuration for DTN Epidemic Simulation
"""

import copy
from typing import Any, Dict


class ConfigError(ValueError):
    """Raised when the launch configuration cannot be resolved."""


SIM_CONFIG = {
    "num_agents": 20,
    "num_wired": 3,                # first ids form a static, fully-linked backbone
    "world_size": (900.0, 620.0),  # meters (x_max, y_max)
    "z_level": 50.0,               # constant altitude for now
    "comm_range": 120.0,           # meters radio range
    "delta": 0.5,                  # clock step (s)
    "tmax": 240.0,                 # stop once time exceeds this
    "speed_mps": (2.0, 12.0),      # waypoint speed range
    "waypoint_pause_s": (0.0, 4.0),
    "path_cells": (6, 4),          # path graph grid (cols, rows)
    "seed": 42,
    "message_id": "1",
    "infected": (3,),              # agents holding the message at t=0
    "delivery_prob": 0.5,          # probabilistic broadcast only
    "mobility": "random_waypoint",
    "agent": "epidemic",
    "connectivity": "range",
    "monitor": "live",
    "step_delay_s": 0.05,          # pacing hint for the monitor
    "monitor_timeout_s": 5.0,      # None disables the monitor timeout
    "trace_path": "infection_trace.dat",
    "log_every": 20,               # log monitor: steps between lines
    "log_level": "INFO",
}


def _is_number(v) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _pair(cfg: Dict[str, Any], key: str, what: str = "(min, max)"):
    try:
        a, b = cfg[key]
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a {what} pair, got {cfg[key]!r}") from None
    if not (_is_number(a) and _is_number(b)):
        raise ConfigError(f"{key} must hold two numbers, got {cfg[key]!r}")
    return a, b


def _range_pair(cfg: Dict[str, Any], key: str, positive: bool = False):
    lo, hi = _pair(cfg, key)
    if lo < 0 or lo > hi:
        raise ConfigError(f"{key} must satisfy 0 <= min <= max, got {cfg[key]!r}")
    if positive and lo <= 0:
        raise ConfigError(f"{key} minimum must be positive, got {lo!r}")


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Check a configuration dict before anything is built; returns it unchanged."""
    missing = sorted(set(SIM_CONFIG) - set(cfg))
    if missing:
        raise ConfigError(f"missing config keys: {', '.join(missing)}")

    n = cfg["num_agents"]
    if not isinstance(n, int) or isinstance(n, bool) or n < 1:
        raise ConfigError(f"num_agents must be a positive integer, got {n!r}")
    wired = cfg["num_wired"]
    if not isinstance(wired, int) or isinstance(wired, bool) or not 0 <= wired <= n:
        raise ConfigError(f"num_wired must be an integer in [0, {n}], got {wired!r}")

    W, H = _pair(cfg, "world_size", "(width, height)")
    if W <= 0 or H <= 0:
        raise ConfigError(f"world_size must be positive, got {cfg['world_size']!r}")
    if cfg["comm_range"] <= 0:
        raise ConfigError(f"comm_range must be positive, got {cfg['comm_range']!r}")
    if cfg["delta"] <= 0:
        raise ConfigError(f"delta must be positive, got {cfg['delta']!r}")
    if cfg["tmax"] < 0:
        raise ConfigError(f"tmax must be non-negative, got {cfg['tmax']!r}")

    _range_pair(cfg, "speed_mps", positive=True)
    _range_pair(cfg, "waypoint_pause_s")

    cols, rows = _pair(cfg, "path_cells", "(cols, rows)")
    if not (isinstance(cols, int) and isinstance(rows, int)) or cols < 1 or rows < 1:
        raise ConfigError(f"path_cells must be at least (1, 1), got {cfg['path_cells']!r}")

    try:
        infected = list(cfg["infected"])
    except TypeError:
        raise ConfigError(f"infected must be a sequence of agent ids, got {cfg['infected']!r}") from None
    for aid in infected:
        if not isinstance(aid, int) or isinstance(aid, bool) or not 0 <= aid < n:
            raise ConfigError(f"infected id {aid!r} is not an agent id in [0, {n})")

    if not 0.0 <= cfg["delivery_prob"] <= 1.0:
        raise ConfigError(f"delivery_prob must be in [0, 1], got {cfg['delivery_prob']!r}")
    if cfg["step_delay_s"] < 0:
        raise ConfigError(f"step_delay_s must be non-negative, got {cfg['step_delay_s']!r}")
    timeout = cfg["monitor_timeout_s"]
    if timeout is not None and timeout <= 0:
        raise ConfigError(f"monitor_timeout_s must be positive or None, got {timeout!r}")
    return cfg


def make_config(**overrides) -> Dict[str, Any]:
    """Return a validated copy of SIM_CONFIG with the given keys replaced."""
    unknown = sorted(set(overrides) - set(SIM_CONFIG))
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
    cfg = copy.deepcopy(SIM_CONFIG)
    cfg.update(overrides)
    return validate_config(cfg)
