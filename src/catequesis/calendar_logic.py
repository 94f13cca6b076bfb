from datetime import date, datetime
from typing import Iterable, List, Optional, Union

from dateutil import tz

from .models import AcademicYearRange

MONTH_NAMES = ["Ene", "Feb", "Mar", "Abr", "May", "Jun",
               "Jul", "Ago", "Sep", "Oct", "Nov", "Dic"]

# Orden del curso: Sep .. Ago (índices 0-based de MONTH_NAMES)
ACADEMIC_MONTH_ORDER = [8, 9, 10, 11, 0, 1, 2, 3, 4, 5, 6, 7]

REPORT_TIMEZONE = 'Europe/Madrid'


def format_date_local(value: Union[date, datetime]) -> str:
    """YYYY-MM-DD según la fecha del calendario local (nunca desplazada a UTC)."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(tz.tzlocal())
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def today_str() -> str:
    return format_date_local(datetime.now(tz.tzlocal()))


def academic_year_range(reference: str) -> AcademicYearRange:
    """
    Curso escolar que contiene `reference` (YYYY-MM-DD).
    Empieza el 1 de septiembre: en septiembre o después es el año de la
    fecha, antes es el anterior.
    """
    year = int(reference[0:4])
    month = int(reference[5:7])
    start_year = year if month >= 9 else year - 1
    return AcademicYearRange(
        start=f"{start_year}-09-01",
        end=f"{start_year + 1}-08-31",
    )


def month_index(day: str) -> int:
    """Índice 0-based del mes de una fecha ISO."""
    return int(day[5:7]) - 1


def month_label(day: str) -> str:
    return MONTH_NAMES[month_index(day)]


def past_days_in_year(days: Iterable[str], today: Optional[str] = None) -> List[str]:
    """Días del curso actual que ya han pasado (hoy incluido), ordenados."""
    today = today or today_str()
    rng = academic_year_range(today)
    return sorted(d for d in days if rng.start <= d <= rng.end and d <= today)


def is_class_day(class_days: Iterable[str], today: Optional[str] = None) -> bool:
    today = today or today_str()
    return today in set(class_days)


def month_key_madrid(now: Optional[datetime] = None, tzname: str = REPORT_TIMEZONE) -> str:
    """YYYY-MM en la zona de los informes (Europe/Madrid); evita saltos de mes por UTC."""
    zone = tz.gettz(tzname)
    now = now or datetime.now(tz.UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz.UTC)
    local = now.astimezone(zone)
    return f"{local.year:04d}-{local.month:02d}"


def today_madrid(now: Optional[datetime] = None, tzname: str = REPORT_TIMEZONE) -> str:
    zone = tz.gettz(tzname)
    now = now or datetime.now(tz.UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz.UTC)
    return format_date_local(now.astimezone(zone).date())
