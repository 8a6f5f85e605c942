"""Persistence for the engine settings consumed by budgets and summaries."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .config import SETTINGS_PATH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineSettings:
    """Settings passed explicitly into the budget evaluator and summaries."""

    budget_limit: float = 100.0
    is_summing_daily: bool = True
    currency_code: str = "PLN"


DEFAULT_SETTINGS = EngineSettings()


def _coerce(data: Dict[str, Any]) -> EngineSettings:
    known = {f.name for f in fields(EngineSettings)}
    values = {k: v for k, v in data.items() if k in known}
    merged = asdict(DEFAULT_SETTINGS)
    try:
        if 'budget_limit' in values:
            merged['budget_limit'] = float(values['budget_limit'])
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric budget_limit %r", values['budget_limit'])
    if isinstance(values.get('is_summing_daily'), bool):
        merged['is_summing_daily'] = values['is_summing_daily']
    if isinstance(values.get('currency_code'), str) and values['currency_code'].strip():
        merged['currency_code'] = values['currency_code'].strip().upper()
    return EngineSettings(**merged)


def load_settings(path: Optional[Path] = None) -> EngineSettings:
    """Read settings from disk. Missing or corrupt files yield the defaults."""
    target = Path(path) if path is not None else SETTINGS_PATH
    if not target.exists():
        return DEFAULT_SETTINGS
    try:
        with target.open('r', encoding='utf-8') as handle:
            data = json.load(handle)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Could not read settings from %s: %s", target, exc)
        return DEFAULT_SETTINGS
    if not isinstance(data, dict):
        logger.warning("Settings file %s does not hold an object", target)
        return DEFAULT_SETTINGS
    return _coerce(data)


def save_settings(settings: EngineSettings, path: Optional[Path] = None) -> None:
    target = Path(path) if path is not None else SETTINGS_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        with target.open('w', encoding='utf-8') as handle:
            json.dump(asdict(settings), handle, indent=2, sort_keys=True)
    except OSError as e:
        raise OSError(f"Failed to save settings to {target}: {e}") from e
