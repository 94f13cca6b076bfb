# src/catequesis/models.py
from dataclasses import dataclass, field
from typing import List, Optional, Union

PRESENT = 'present'
ABSENT = 'absent'
LATE = 'late'
STATUSES = (PRESENT, ABSENT, LATE)

CATECHIST = 'catechist'
COORDINATOR = 'coordinator'


@dataclass
class AttendanceRecord:
    """Asistencia de un catecúmeno en un día lectivo (catequesis + misa)."""
    date: str                     # YYYY-MM-DD
    catechism: str = ABSENT
    mass: str = ABSENT
    note: Optional[str] = None


@dataclass
class ClassAttendance:
    """Asistencia de un catequista en un día lectivo."""
    date: str
    catechism: str = ABSENT
    mass: str = ABSENT
    type: str = field(default='class', init=False)


@dataclass
class EventAttendance:
    """Asistencia de un catequista a un evento parroquial (ref_id = id del evento)."""
    date: str
    ref_id: str
    status: str = ABSENT
    type: str = field(default='event', init=False)


CatechistAttendanceRecord = Union[ClassAttendance, EventAttendance]


@dataclass
class Student:
    id: str
    name: str = ''
    group_id: Optional[str] = None
    school: str = ''
    email: str = ''
    parent_email: str = ''
    birth_date: Optional[str] = None
    attendance_history: List[AttendanceRecord] = field(default_factory=list)

    def record_for(self, day: str) -> Optional[AttendanceRecord]:
        for rec in self.attendance_history:
            if rec.date == day:
                return rec
        return None


@dataclass
class User:
    """Catequista o coordinador."""
    id: str
    name: str = ''
    email: str = ''
    role: str = CATECHIST
    assigned_group_id: Optional[str] = None
    birth_date: Optional[str] = None
    attendance_history: List[CatechistAttendanceRecord] = field(default_factory=list)

    def class_record_for(self, day: str) -> Optional[ClassAttendance]:
        for rec in self.attendance_history:
            if isinstance(rec, ClassAttendance) and rec.date == day:
                return rec
        return None

    def event_record_for(self, event_id: str) -> Optional[EventAttendance]:
        for rec in self.attendance_history:
            if isinstance(rec, EventAttendance) and rec.ref_id == event_id:
                return rec
        return None


@dataclass
class Group:
    id: str
    name: str = ''
    catechist_ids: List[str] = field(default_factory=list)


@dataclass
class ParishEvent:
    id: str
    date: str
    title: str = ''
    description: Optional[str] = None


@dataclass(frozen=True)
class AcademicYearRange:
    """Curso escolar: 1 de septiembre a 31 de agosto."""
    start: str
    end: str


@dataclass(frozen=True)
class MonthlyPoint:
    label: str
    participation: int


@dataclass
class DashboardStats:
    total: int
    attended_catechism: int
    attended_mass: int
    at_risk: int


@dataclass
class Snapshot:
    """Estado cargado de la base de datos remota, tal y como lo consume el núcleo."""
    students: List[Student] = field(default_factory=list)
    users: List[User] = field(default_factory=list)
    groups: List[Group] = field(default_factory=list)
    events: List[ParishEvent] = field(default_factory=list)
    class_days: List[str] = field(default_factory=list)

    def group_name(self, group_id: Optional[str]) -> Optional[str]:
        for g in self.groups:
            if g.id == group_id:
                return g.name
        return None


@dataclass
class MonthlyReport:
    """Informe mensual generado por IA (uno por mes, ámbito y tipo)."""
    scope: str
    scope_id: Optional[str]
    month: str                    # YYYY-MM
    report_type: str
    generated_by: str
    summary: str
    recommendations: List[str] = field(default_factory=list)
    generated_at: Optional[str] = None
    id: Optional[int] = None      # clave primaria local
    existing: bool = False


@dataclass
class DispatchResult:
    sent: int = 0
    skipped_no_email: int = 0
    skipped_present_both: int = 0
    errors: int = 0
