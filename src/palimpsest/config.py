"""History configuration.

Settings come from an optional YAML file:

    history:
      coalesce_window: 0.5
      log_level: INFO

Environment variables override the file:
  PALIMPSEST_COALESCE_WINDOW, PALIMPSEST_LOG_LEVEL
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Optional

import yaml

from palimpsest.history import COALESCE_WINDOW, History

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

@dataclass(frozen=True)
class HistoryConfig:
    coalesce_window: float = COALESCE_WINDOW
    log_level: str = "WARNING"

    def build(
        self,
        on_refresh: Optional[Callable[[], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> History:
        return History(
            coalesce_window=self.coalesce_window,
            on_refresh=on_refresh,
            clock=clock or time.time,
        )


def _window_from_env(default: float) -> float:
    raw = os.environ.get("PALIMPSEST_COALESCE_WINDOW")
    if raw is None:
        return default

    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def load_config(path: Path | None = None) -> HistoryConfig:
    cfg = HistoryConfig()

    if path is not None:
        if not path.exists():
            raise RuntimeError(f"Config not found: {path}")
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            raise RuntimeError(f"Invalid config (expected a mapping): {path}")
        section = data.get("history") or {}
        if not isinstance(section, dict):
            raise RuntimeError(f"Invalid config (history must be a mapping): {path}")

        if "coalesce_window" in section:
            try:
                window = float(section["coalesce_window"])
            except (TypeError, ValueError):
                raise RuntimeError(
                    f"Invalid coalesce_window: {section['coalesce_window']!r}"
                ) from None
            if window < 0:
                raise RuntimeError(f"Invalid coalesce_window: {window!r}")
            cfg = replace(cfg, coalesce_window=window)
        if "log_level" in section:
            cfg = replace(cfg, log_level=str(section["log_level"]).upper())

    cfg = replace(cfg, coalesce_window=_window_from_env(cfg.coalesce_window))

    level = os.environ.get("PALIMPSEST_LOG_LEVEL")
    if level:
        cfg = replace(cfg, log_level=level.upper())

    if cfg.log_level not in LOG_LEVELS:
        raise RuntimeError(f"Invalid log level: {cfg.log_level}")

    return cfg
