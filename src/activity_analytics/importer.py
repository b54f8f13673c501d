"""JSON-lines import of completed activity events."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Iterable, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from .db import insert_events, storage_errors, transaction
from .errors import ValidationError
from .models import ActivityEvent
from .normalization import extract_url_domain, normalize_text

logger = logging.getLogger(__name__)


class EventRecord(BaseModel):
    """One completed event as written by the capture process."""

    model_config = ConfigDict(extra="ignore")

    timestamp: datetime
    duration: float = Field(ge=0)
    app: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    url_domain: Optional[str] = None
    is_afk: bool = False

    def to_event(self) -> ActivityEvent:
        timestamp = self.timestamp
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone().replace(tzinfo=None)
        return ActivityEvent(
            timestamp=timestamp.replace(microsecond=0),
            duration=self.duration,
            app=normalize_text(self.app),
            title=normalize_text(self.title),
            url=normalize_text(self.url),
            url_domain=normalize_text(self.url_domain) or extract_url_domain(self.url),
            is_afk=self.is_afk,
        )


def parse_events(lines: Iterable[str]) -> list[ActivityEvent]:
    events: list[ActivityEvent] = []
    for line_number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = EventRecord.model_validate_json(line)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid event on line {line_number}: {exc}") from exc
        events.append(record.to_event())
    return events


def import_events(conn: sqlite3.Connection, lines: Iterable[str]) -> int:
    """Validate every line first, then insert them all in one transaction."""
    events = parse_events(lines)
    if not events:
        return 0
    with storage_errors("importing events"), transaction(conn):
        count = insert_events(conn, events)
    logger.info("Imported %d events.", count)
    return count
