from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator, DateTime

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """A timezone-aware DateTime that always round-trips as UTC.

    SQLite drops tzinfo on the way back, so values are normalised on bind
    and re-tagged as UTC on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
