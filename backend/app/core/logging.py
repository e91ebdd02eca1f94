"""
Configuration du logging.

- readable : format lisible pour le dev
- json : une ligne JSON par événement (agrégateurs de logs)
- niveau piloté par LOG_LEVEL
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from backend.app.core.config import LOG_FORMAT, LOG_LEVEL

# Champs "extra" recopiés dans la sortie JSON
_EXTRA_FIELDS = (
    "requirement_id",
    "requirement_number",
    "assignment_id",
    "party_id",
    "user_id",
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


READABLE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level_name: str | None = None, fmt: str | None = None) -> None:
    level_name = (level_name or LOG_LEVEL).upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = (fmt or LOG_FORMAT).lower()

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(READABLE_FORMAT, datefmt="%H:%M:%S"))

    root = logging.getLogger()
    # un seul handler (évite les doublons au reload uvicorn / en tests)
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
