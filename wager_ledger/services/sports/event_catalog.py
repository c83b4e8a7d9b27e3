"""
Event catalog: sports events with their lines and score state.

The ``sports_events`` table is the source of truth. An in-memory copy is
served to readers (upcoming events, live odds) and refreshed on a schedule,
so odds shown to users may lag by up to EVENT_CACHE_REFRESH_SECONDS. Wager
paths never trust the cache for anything that moves money; they read the
event row inside their own transaction.

Catalog file format (JSON list, or ``{"events": [...]}``):

    {
        "event_id": "nfl_001",
        "sport": "nfl",
        "home_team": "Kansas City Chiefs",
        "away_team": "Buffalo Bills",
        "start_time": "2026-11-01T18:00:00Z",   # or "start_offset_hours": 48
        "spread": -3.5,
        "over_under": 47.5,
        "moneyline_home": -170,
        "moneyline_away": 145
    }
"""
import json
import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy.orm import sessionmaker

from wager_ledger.core.database import session_scope
from wager_ledger.core.exceptions import EventNotFound, InvalidInputError
from wager_ledger.core.locks import KeyedLocks, event_key
from wager_ledger.core.metrics import event_cache_size
from wager_ledger.models import SportsEvent
from wager_ledger.repositories import EventRepository
from wager_ledger.utils.timezone import isoformat_or_none, parse_iso_datetime, utc_now

logger = logging.getLogger(__name__)

SPORTS = {"nfl", "nba", "mlb", "nhl", "ncaa"}
EVENT_STATUSES = {"scheduled", "in-progress", "completed", "postponed"}

REQUIRED_FIELDS = ("event_id", "sport", "home_team", "away_team")
LINE_FIELDS = ("spread", "over_under", "moneyline_home", "moneyline_away")
# Only applied to existing events when the record names them explicitly
STATE_FIELDS = ("status", "home_score", "away_score")

CatalogSource = Union[str, Path, Iterable[Dict]]


def event_to_dict(event: SportsEvent) -> Dict:
    return {
        "event_id": event.id,
        "sport": event.sport,
        "home_team": event.home_team,
        "away_team": event.away_team,
        "start_time": event.start_time,
        "status": event.status,
        "home_score": event.home_score,
        "away_score": event.away_score,
        "spread": event.spread,
        "over_under": event.over_under,
        "moneyline_home": event.moneyline_home,
        "moneyline_away": event.moneyline_away,
    }


def _public(snapshot: Dict) -> Dict:
    result = dict(snapshot)
    result["start_time"] = isoformat_or_none(snapshot["start_time"])
    return result


def _line_value(record: Dict, name: str) -> Optional[float]:
    value = record[name]
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Invalid {name}: {value!r}", event_id=record["event_id"]) from e


class EventCatalog:
    """Read-through cache over the ``sports_events`` table."""

    def __init__(self, session_factory: sessionmaker, locks: KeyedLocks, catalog_path: Optional[str] = None):
        self.session_factory = session_factory
        self.locks = locks
        self.catalog_path = catalog_path
        self._cache: Dict[str, Dict] = {}
        self._lock = threading.Lock()
        self.refreshed_at: Optional[datetime] = None

    # ========================================================================
    # Loading
    # ========================================================================

    def load_catalog(self, source: Optional[CatalogSource] = None) -> int:
        """
        Upsert catalog records into the event table, then refresh the cache.

        Existing events keep their status and scores unless the record sets
        them, so reloading the catalog at startup never reopens a finished
        event.

        Args:
            source: Path to a JSON catalog, or an iterable of records.
                Defaults to the configured catalog path.

        Returns:
            Number of records loaded
        """
        source = source if source is not None else self.catalog_path
        if source is None:
            logger.info("No event catalog configured, serving events from the database only")
            self.refresh_cache()
            return 0

        records = self._read_records(source)
        now = utc_now()

        keys = [event_key(str(record.get("event_id"))) for record in records]
        with self.locks.hold(*keys), session_scope(self.session_factory) as db:
            events = EventRepository(db)
            for record in records:
                fields = self._fields_from_record(record, now)
                event_id = str(record["event_id"])
                if events.find_by_id(event_id) is None:
                    fields.setdefault("status", "scheduled")
                events.upsert(event_id, **fields)

        logger.info(f"Loaded {len(records)} events into the catalog")
        self.refresh_cache()
        return len(records)

    def refresh_cache(self) -> int:
        """Replace the cached events with the current table contents."""
        with session_scope(self.session_factory) as db:
            snapshots = {e.id: event_to_dict(e) for e in EventRepository(db).find_all()}

        with self._lock:
            self._cache = snapshots
            self.refreshed_at = utc_now()

        event_cache_size.set(len(snapshots))
        logger.debug(f"Event cache refreshed with {len(snapshots)} events")
        return len(snapshots)

    def cache_event(self, event: SportsEvent) -> None:
        """Write one event through to the cache after a committed change."""
        snapshot = event_to_dict(event)
        with self._lock:
            self._cache[event.id] = snapshot
            size = len(self._cache)
        event_cache_size.set(size)

    # ========================================================================
    # Reads
    # ========================================================================

    def list_upcoming_events(self, sport: Optional[str] = None) -> List[Dict]:
        """Scheduled events starting in the future, soonest first."""
        now = utc_now()
        with self._lock:
            events = list(self._cache.values())

        upcoming = [
            e for e in events
            if e["status"] == "scheduled"
            and e["start_time"] > now
            and (sport is None or e["sport"] == sport)
        ]
        upcoming.sort(key=lambda e: (e["start_time"], e["event_id"]))
        return [_public(e) for e in upcoming]

    def get_event(self, event_id: str) -> Dict:
        """
        Cached event, falling back to the table for events added since the
        last refresh.

        Raises:
            EventNotFound
        """
        with self._lock:
            snapshot = self._cache.get(event_id)
        if snapshot is not None:
            return _public(snapshot)

        with session_scope(self.session_factory) as db:
            event = EventRepository(db).find_by_id(event_id)
            if event is None:
                raise EventNotFound("Event not found", event_id=event_id)
            self.cache_event(event)
            return _public(event_to_dict(event))

    def get_live_odds(self, sport: str) -> List[Dict]:
        """Current lines and scores for every cached event of a sport."""
        with self._lock:
            events = [e for e in self._cache.values() if e["sport"] == sport]

        events.sort(key=lambda e: (e["start_time"], e["event_id"]))
        return [
            {
                "event_id": e["event_id"],
                "home_team": e["home_team"],
                "away_team": e["away_team"],
                "spread": e["spread"],
                "over_under": e["over_under"],
                "moneyline_home": e["moneyline_home"],
                "moneyline_away": e["moneyline_away"],
                "status": e["status"],
                "home_score": e["home_score"],
                "away_score": e["away_score"],
            }
            for e in events
        ]

    # ========================================================================
    # Helpers
    # ========================================================================

    def _read_records(self, source: CatalogSource) -> List[Dict]:
        if isinstance(source, (str, Path)):
            path = Path(source)
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            logger.info(f"Reading event catalog from {path}")
        else:
            data = list(source)

        if isinstance(data, dict):
            data = data.get("events", [])
        if not isinstance(data, list):
            raise InvalidInputError("Event catalog must be a list of events")
        return data

    def _fields_from_record(self, record: Dict, now: datetime) -> Dict:
        missing = [name for name in REQUIRED_FIELDS if not record.get(name)]
        if missing:
            raise InvalidInputError(
                f"Catalog event missing fields: {', '.join(missing)}",
                event_id=record.get("event_id"),
            )

        sport = str(record["sport"]).lower()
        if sport not in SPORTS:
            raise InvalidInputError(f"Unknown sport: {sport}", event_id=record["event_id"])

        if not record.get("start_time") and record.get("start_offset_hours") is None:
            raise InvalidInputError("Catalog event needs start_time or start_offset_hours", event_id=record["event_id"])
        try:
            if record.get("start_time"):
                start_time = parse_iso_datetime(str(record["start_time"]))
            else:
                start_time = now + timedelta(hours=float(record["start_offset_hours"]))
        except (TypeError, ValueError, OverflowError) as e:
            raise InvalidInputError(f"Invalid start time: {e}", event_id=record["event_id"]) from e

        fields = {
            "sport": sport,
            "home_team": record["home_team"],
            "away_team": record["away_team"],
            "start_time": start_time,
        }
        for name in LINE_FIELDS:
            if name in record:
                fields[name] = _line_value(record, name)
        for name in STATE_FIELDS:
            if name in record:
                fields[name] = record[name]

        if fields.get("status", "scheduled") not in EVENT_STATUSES:
            raise InvalidInputError(f"Unknown event status: {fields['status']}", event_id=record["event_id"])
        return fields
