from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv, find_dotenv

from .models import CalculationRules

_DEFAULT_ORIGINS = "http://localhost:3000,http://localhost:3001,http://127.0.0.1:3000,http://127.0.0.1:3001"


def load_environment() -> None:
    """Load a local .env if present, without overriding real environment variables"""
    # 1) Try auto-discovery up the directory tree
    load_dotenv(find_dotenv(), override=False)
    # 2) Try repo root relative to this file (../../.env)
    root_env = Path(__file__).resolve().parents[2] / ".env"
    if root_env.exists():
        load_dotenv(root_env.as_posix(), override=False)
    # 3) Try backend-local .env (../.env)
    backend_env = Path(__file__).resolve().parents[1] / ".env"
    if backend_env.exists():
        load_dotenv(backend_env.as_posix(), override=False)


def _parse_origins(raw: str) -> List[str]:
    if raw.strip() == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    app_name: str = "Offshore Savings Calculator API"
    version: str = "1.0.0"
    log_level: str = "INFO"
    allowed_origins: List[str] = field(default_factory=lambda: _parse_origins(_DEFAULT_ORIGINS))
    setup_cost_loading: float = 1.2

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            allowed_origins=_parse_origins(os.getenv("ALLOWED_ORIGINS", _DEFAULT_ORIGINS)),
            setup_cost_loading=_float_env("SETUP_COST_LOADING", cls.setup_cost_loading),
        )

    def calculation_rules(self) -> CalculationRules:
        return CalculationRules(setup_cost_loading=self.setup_cost_loading)


def configure_logging(level: str = "INFO") -> None:
    level_value = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=level_value,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
