from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import streamlit as st

from acai.errors import ValidationError
from acai.logs import get_logger

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "ACAI_ERP_DATA_DIR"
ENV_LOW_STOCK_ML = "ACAI_ERP_LOW_STOCK_ML"
ENV_TIMEZONE = "ACAI_ERP_TIMEZONE"
SESSION_DATA_DIR = "acai_erp_data_dir"

DEFAULT_LOW_STOCK_ML = 1000.0
# The stand's wall clock: "today" and date-only inputs are read in this zone.
DEFAULT_TIMEZONE = "America/Sao_Paulo"

_log = get_logger(__name__)


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "BRL"
    low_stock_threshold_ml: float = DEFAULT_LOW_STOCK_ML
    timezone: str = DEFAULT_TIMEZONE


def _default_data_dir() -> Path:
    return Path.home() / ".acai_erp"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            _log.warning("Ignoring unreadable settings file %s", cfg)
            return {}
    return {}


def low_stock_default_ml() -> float:
    """Minimum for potes registered without one (env override, else 1000 ml)."""
    raw = os.getenv(ENV_LOW_STOCK_ML)
    if raw is None or not raw.strip():
        return DEFAULT_LOW_STOCK_ML
    try:
        v = float(raw)
    except ValueError:
        raise ValidationError(f"{ENV_LOW_STOCK_ML} must be a number (got {raw!r}).")
    if not math.isfinite(v) or v < 0:
        raise ValidationError(f"{ENV_LOW_STOCK_ML} must be >= 0.")
    return v


def local_timezone() -> ZoneInfo:
    name = (os.getenv(ENV_TIMEZONE) or "").strip() or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown time zone {name!r} in {ENV_TIMEZONE}.")


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload = {"data_dir": str(data_dir)}
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state[SESSION_DATA_DIR] = str(data_dir)
    _log.info("Data directory set to %s", data_dir)


def resolve_settings(session_dir: Optional[str] = None) -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    if session_dir:
        data_dir = Path(session_dir).expanduser().resolve()
    elif os.getenv(ENV_DATA_DIR):
        data_dir = Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    data_dir.mkdir(parents=True, exist_ok=True)
    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "acai.db",
        low_stock_threshold_ml=low_stock_default_ml(),
        timezone=local_timezone().key,
    )


@st.cache_resource
def get_settings() -> Settings:
    return resolve_settings(st.session_state.get(SESSION_DATA_DIR))
