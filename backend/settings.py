from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from models.card import SYSTEM_BUTTONS_DEFAULT, CardButtonsConfig

BACKEND_DIR = Path(__file__).resolve().parent
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    data_dir: Path
    log_level: str = "INFO"
    debug_checks: bool = False
    default_collapsed: bool = True
    frontend_port: str = "5173"
    backend_port: int = 8000
    buttons: CardButtonsConfig = SYSTEM_BUTTONS_DEFAULT

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            data_dir=Path(os.getenv("CARDBENCH_DATA_DIR", str(BACKEND_DIR.parents[0] / "data"))),
            log_level=os.getenv("CARDBENCH_LOG_LEVEL", "INFO").upper(),
            debug_checks=_flag("CARDBENCH_DEBUG_CHECKS", False),
            default_collapsed=_flag("CARDBENCH_DEFAULT_COLLAPSED", True),
            frontend_port=os.getenv("CARDBENCH_FRONTEND_PORT", "5173"),
            backend_port=int(os.getenv("CARDBENCH_BACKEND_PORT", "8000")),
        )


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not any(getattr(h, "_cardbench", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._cardbench = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(getattr(logging, level, logging.INFO))
