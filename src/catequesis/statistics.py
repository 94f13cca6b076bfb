import math
from collections import OrderedDict
from typing import Dict, Iterator, List, Optional

from catequesis.calendar_logic import (
    ACADEMIC_MONTH_ORDER,
    MONTH_NAMES,
    academic_year_range,
    month_index,
    past_days_in_year,
    today_str,
)
from catequesis.models import (
    ABSENT,
    LATE,
    PRESENT,
    DashboardStats,
    MonthlyPoint,
    ParishEvent,
    Student,
    User,
)

AT_RISK_THRESHOLD = 60

CATECHISM_WEIGHT = 0.6
MASS_WEIGHT = 0.4


def round_half_up(value: float) -> int:
    """Redondeo .5 hacia arriba (como Math.round), no el redondeo bancario de round()."""
    return int(math.floor(value + 0.5))


def _component(status: Optional[str], full: float) -> float:
    if status == PRESENT:
        return full
    if status == LATE:
        return full / 2
    return 0.0


def attendance_weight(record) -> float:
    """
    Peso de un día: catequesis 0.6 (tarde 0.3), misa 0.4 (tarde 0.2).
    Acepta cualquier objeto con `catechism`/`mass` o un dict; sin registro = 0.
    """
    if record is None:
        return 0.0
    if isinstance(record, dict):
        catechism, mass = record.get('catechism'), record.get('mass')
    else:
        catechism = getattr(record, 'catechism', None)
        mass = getattr(record, 'mass', None)
    return _component(catechism, CATECHISM_WEIGHT) + _component(mass, MASS_WEIGHT)


def student_rate(student: Student, class_days: List[str], today: Optional[str] = None) -> int:
    """
    Porcentaje de asistencia del curso actual sobre los días lectivos ya pasados.
    Sin días lectivos todavía -> 100. Un día sin registro cuenta como ausencia.
    """
    relevant = past_days_in_year(class_days, today)
    if not relevant:
        return 100

    earned = sum(attendance_weight(student.record_for(d)) for d in relevant)
    rate = round_half_up(earned / len(relevant) * 100)
    return min(100, max(0, rate))


def past_events(events: List[ParishEvent], today: Optional[str] = None) -> List[ParishEvent]:
    """Eventos del curso actual con fecha <= hoy, ordenados por fecha."""
    today = today or today_str()
    rng = academic_year_range(today)
    upper = min(rng.end, today)
    return sorted((e for e in events if rng.start <= e.date <= upper), key=lambda e: e.date)


def catechist_rate(user: User, class_days: List[str], events: List[ParishEvent],
                   today: Optional[str] = None) -> int:
    """
    Clases (peso 0..1 como los niños) y eventos (binario: solo `present` suma 1)
    en un mismo denominador. Sin ocurrencias -> 100.
    """
    today = today or today_str()
    days = past_days_in_year(class_days, today)
    evs = past_events(events, today)

    total = len(days) + len(evs)
    if total == 0:
        return 100

    earned = sum(attendance_weight(user.class_record_for(d)) for d in days)
    for ev in evs:
        rec = user.event_record_for(ev.id)
        if rec is not None and rec.status == PRESENT:
            earned += 1

    rate = round_half_up(earned / total * 100)
    return min(100, max(0, rate))


def _fallback_series(today: str) -> List[MonthlyPoint]:
    return [
        MonthlyPoint('Sep', 0),
        MonthlyPoint(MONTH_NAMES[month_index(today)], 0),
    ]


def iter_monthly_participation(students: List[Student], class_days: List[str],
                               today: Optional[str] = None) -> Iterator[MonthlyPoint]:
    """
    Participación media del grupo por mes, de septiembre al mes actual.
    Los meses sin días lectivos se omiten (no se rellenan con 0).
    """
    today = today or today_str()
    n_students = len(students)
    if n_students == 0:
        yield from _fallback_series(today)
        return

    # month_idx -> [peso total, nº días lectivos]
    buckets: Dict[int, List[float]] = OrderedDict()
    for day in past_days_in_year(class_days, today):
        day_weight = sum(attendance_weight(s.record_for(day)) for s in students)
        bucket = buckets.setdefault(month_index(day), [0.0, 0])
        bucket[0] += day_weight
        bucket[1] += 1  # cuenta aunque el total del día sea 0

    current = month_index(today)
    emitted = 0
    for m_idx in ACADEMIC_MONTH_ORDER:
        bucket = buckets.get(m_idx)
        if bucket and bucket[1] > 0:
            avg = bucket[0] / (n_students * bucket[1]) * 100
            emitted += 1
            yield MonthlyPoint(MONTH_NAMES[m_idx], round_half_up(avg))
        if m_idx == current:
            break

    if not emitted:
        yield from _fallback_series(today)


def monthly_participation(students: List[Student], class_days: List[str],
                          today: Optional[str] = None) -> List[MonthlyPoint]:
    return list(iter_monthly_participation(students, class_days, today))


def dashboard_stats(students: List[Student], class_days: List[str],
                    today: Optional[str] = None,
                    at_risk_threshold: int = AT_RISK_THRESHOLD) -> DashboardStats:
    """Cifras del panel: asistencia de hoy y niños en riesgo (tasa < umbral)."""
    today = today or today_str()
    todays = [r for r in (s.record_for(today) for s in students) if r is not None]
    return DashboardStats(
        total=len(students),
        attended_catechism=sum(1 for r in todays if r.catechism in (PRESENT, LATE)),
        attended_mass=sum(1 for r in todays if r.mass in (PRESENT, LATE)),
        at_risk=sum(1 for s in students
                    if student_rate(s, class_days, today) < at_risk_threshold),
    )


def upcoming_events(events: List[ParishEvent], today: Optional[str] = None) -> List[ParishEvent]:
    today = today or today_str()
    return sorted((e for e in events if e.date >= today), key=lambda e: e.date)


def status_totals(students: List[Student], class_days: List[str],
                  today: Optional[str] = None, component: str = 'catechism') -> Dict[str, int]:
    """Recuento presente/tarde/ausente de un componente en los días lectivos pasados."""
    totals = {PRESENT: 0, LATE: 0, ABSENT: 0}
    for day in past_days_in_year(class_days, today):
        for s in students:
            rec = s.record_for(day)
            status = getattr(rec, component, None) if rec is not None else None
            totals[status if status in (PRESENT, LATE) else ABSENT] += 1
    return totals
