"""Structured log events shared by the engine and the CLI."""

from __future__ import annotations

import json
import logging
from typing import Any


def dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Emit one compact JSON event line on the given logger."""

    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **fields}
    logger.log(level, dump_json(payload))
