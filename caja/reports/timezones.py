"""
Fenêtres de temps dans le calendrier local du commerce.

Un jour local [00:00, 24:00) est converti en instants UTC via zoneinfo, ce qui reste
correct lors des changements d'heure (jours de 23 h ou 25 h). La borne de fin est
exclusive: début du jour local suivant `to_day`.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from caja.config import DEFAULT_TIMEZONE
from caja.errors import InvalidRange

logger = logging.getLogger(__name__)


def resolve_zone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Fuseau inconnu %r, utilisation de %s", name, DEFAULT_TIMEZONE)
        return ZoneInfo(DEFAULT_TIMEZONE)


def start_of_local_day(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def local_range_bounds(from_day: date, to_day: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """[début de from_day, début du lendemain de to_day) en UTC."""
    if from_day > to_day:
        raise InvalidRange("La fecha inicial es posterior a la final")
    return start_of_local_day(from_day, tz), start_of_local_day(to_day + timedelta(days=1), tz)


def local_date(instant: datetime, tz: ZoneInfo) -> date:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).date()


def today_local(tz: ZoneInfo, now: Optional[datetime] = None) -> date:
    return local_date(now or datetime.now(timezone.utc), tz)


def default_range(tz: ZoneInfo, days: int, now: Optional[datetime] = None) -> Tuple[date, date]:
    """Les `days` derniers jours locaux, aujourd'hui inclus."""
    today = today_local(tz, now)
    return today - timedelta(days=max(1, days) - 1), today
