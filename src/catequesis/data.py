import json
import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from catequesis.models import (
    AttendanceRecord,
    ClassAttendance,
    EventAttendance,
    Group,
    MonthlyReport,
    ParishEvent,
    Snapshot,
    Student,
    User,
)


def _get(d: Dict[str, Any], *keys, default=None):
    """Acepta tanto camelCase (export de la app) como snake_case."""
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


def _staff_record(raw: Dict[str, Any]):
    kind = raw.get('type')
    if kind == 'event':
        return EventAttendance(
            date=raw['date'],
            ref_id=str(_get(raw, 'refId', 'ref_id', default='')),
            status=raw.get('status') or 'absent',
        )
    if kind == 'class':
        return ClassAttendance(
            date=raw['date'],
            catechism=raw.get('catechism') or 'absent',
            mass=raw.get('mass') or 'absent',
        )
    raise ValueError(f"Tipo de registro de catequista desconocido: {kind!r}")


def snapshot_from_dict(data: Dict[str, Any]) -> Snapshot:
    students = [
        Student(
            id=str(s['id']),
            name=s.get('name', ''),
            group_id=_get(s, 'groupId', 'group_id'),
            school=s.get('school') or '',
            email=s.get('email') or '',
            parent_email=_get(s, 'parentEmail', 'parent_email', default=''),
            birth_date=_get(s, 'birthDate', 'birth_date'),
            attendance_history=[
                AttendanceRecord(
                    date=r['date'],
                    catechism=r.get('catechism') or 'absent',
                    mass=r.get('mass') or 'absent',
                    note=r.get('note'),
                )
                for r in _get(s, 'attendanceHistory', 'attendance_history', default=[])
            ],
        )
        for s in data.get('students', [])
    ]
    users = [
        User(
            id=str(u['id']),
            name=u.get('name', ''),
            email=u.get('email') or '',
            role=u.get('role') or 'catechist',
            assigned_group_id=_get(u, 'assignedGroupId', 'assigned_group_id'),
            birth_date=_get(u, 'birthDate', 'birth_date'),
            attendance_history=[
                _staff_record(r)
                for r in _get(u, 'attendanceHistory', 'attendance_history', default=[])
            ],
        )
        for u in data.get('users', [])
    ]
    groups = [
        Group(
            id=str(g['id']),
            name=g.get('name', ''),
            catechist_ids=[str(x) for x in _get(g, 'catechistIds', 'catechist_ids', default=[])],
        )
        for g in data.get('groups', [])
    ]
    events = [
        ParishEvent(
            id=str(e['id']),
            date=e['date'],
            title=e.get('title', ''),
            description=e.get('description'),
        )
        for e in data.get('events', [])
    ]
    class_days = list(_get(data, 'classDays', 'class_days', default=[]))
    return Snapshot(students=students, users=users, groups=groups,
                    events=events, class_days=class_days)


def load_snapshot(path: str) -> Snapshot:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    snap = snapshot_from_dict(data)
    logging.info(f"Snapshot {path}: {len(snap.students)} catecúmenos, "
                 f"{len(snap.users)} usuarios, {len(snap.class_days)} días lectivos")
    return snap


class ReportStore:
    """Informes mensuales ya generados; la clave única hace de bloqueo mensual."""

    def __init__(self, db_path: str = None):
        try:
            self.db_path = db_path or os.path.join(os.path.expanduser("~"), ".catequesis", "informes.db")
            if self.db_path != ':memory:':
                os.makedirs(os.path.dirname(self.db_path) or '.', exist_ok=True)
            self.conn = sqlite3.connect(self.db_path)
            self.conn.row_factory = sqlite3.Row
            self._ensure_tables()
        except Exception as e:
            logging.error(f"Database connection error: {e}")
            raise

    def _ensure_tables(self):
        # scope_id '' = sin ámbito concreto (NULL no cuenta en UNIQUE de sqlite)
        self.conn.execute("""
        CREATE TABLE IF NOT EXISTS monthly_reports (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          scope TEXT NOT NULL,
          scope_id TEXT NOT NULL DEFAULT '',
          month TEXT NOT NULL,
          report_type TEXT NOT NULL,
          generated_by TEXT NOT NULL,
          generated_at TEXT NOT NULL,
          payload TEXT NOT NULL,
          UNIQUE (month, scope, scope_id, report_type)
        )""")
        self.conn.commit()

    def _row_to_report(self, row) -> MonthlyReport:
        payload = json.loads(row['payload'])
        return MonthlyReport(
            id=row['id'],
            scope=row['scope'],
            scope_id=row['scope_id'] or None,
            month=row['month'],
            report_type=row['report_type'],
            generated_by=row['generated_by'],
            generated_at=row['generated_at'],
            summary=payload.get('summary', ''),
            recommendations=list(payload.get('recommendations', [])),
        )

    def find(self, month: str, scope: str, scope_id: Optional[str],
             report_type: str) -> Optional[MonthlyReport]:
        cur = self.conn.execute(
            "SELECT * FROM monthly_reports WHERE month=? AND scope=? AND scope_id=? AND report_type=?",
            (month, scope, scope_id or '', report_type))
        row = cur.fetchone()
        return self._row_to_report(row) if row else None

    def insert(self, report: MonthlyReport) -> MonthlyReport:
        """Guarda el informe; si ya existía uno (doble clic), devuelve el existente."""
        generated_at = report.generated_at or datetime.now(timezone.utc).isoformat()
        payload = json.dumps({'summary': report.summary,
                              'recommendations': report.recommendations},
                             ensure_ascii=False)
        try:
            cur = self.conn.execute(
                "INSERT INTO monthly_reports (scope, scope_id, month, report_type, generated_by, generated_at, payload)"
                " VALUES (?, ?, ?, ?, ?, ?, ?)",
                (report.scope, report.scope_id or '', report.month, report.report_type,
                 report.generated_by, generated_at, payload))
            self.conn.commit()
        except sqlite3.IntegrityError:
            self.conn.rollback()
            existing = self.find(report.month, report.scope, report.scope_id, report.report_type)
            if existing is None:
                raise
            existing.existing = True
            return existing
        report.id = cur.lastrowid
        report.generated_at = generated_at
        return report

    def list_reports(self, month: Optional[str] = None) -> List[MonthlyReport]:
        if month:
            cur = self.conn.execute(
                "SELECT * FROM monthly_reports WHERE month=? ORDER BY id", (month,))
        else:
            cur = self.conn.execute("SELECT * FROM monthly_reports ORDER BY month, id")
        return [self._row_to_report(r) for r in cur.fetchall()]

    def close(self):
        self.conn.close()
