import json
import sys
from datetime import datetime, timezone

from .config import get_settings

_LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}


def log_event(level: str, event: str, **fields) -> dict:
    """Write one JSON line to stdout and return the payload."""
    payload = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "level": level.lower(),
        "event": event,
    }
    payload.update(fields or {})
    threshold = _LEVELS.get(get_settings().log_level.lower(), 20)
    if _LEVELS.get(payload["level"], 20) >= threshold:
        sys.stdout.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    return payload
