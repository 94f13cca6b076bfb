import csv
import io
import logging
import unicodedata
from typing import List, Optional, Sequence, Tuple

from catequesis.calendar_logic import past_days_in_year, today_str
from catequesis.models import (
    CATECHIST,
    LATE,
    PRESENT,
    MonthlyReport,
    Snapshot,
)
from catequesis.statistics import catechist_rate, past_events, student_rate

NO_GROUP = 'Sin Grupo'

_REPORT_TITLES = {
    'students': 'Evaluación Pastoral de Catecúmenos',
    'catechists': 'Evaluación Pastoral del Equipo',
}


def sanitize(text: Optional[str]) -> str:
    """Quita tildes y cambia comas por punto y coma para no romper columnas del CSV."""
    if not text:
        return ""
    decomposed = unicodedata.normalize('NFD', str(text))
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.replace(',', ';').strip()


def status_label(status: Optional[str]) -> str:
    if status == PRESENT:
        return "P"
    if status == LATE:
        return "T"
    return "A"


def csv_filename(kind: str, today: Optional[str] = None) -> str:
    today = today or today_str()
    name = 'catecumenos' if kind == 'students' else 'catequistas'
    return f"asistencia_{name}_{today}.csv"


def _day_headers(days: Sequence[str]) -> List[str]:
    headers: List[str] = []
    for d in days:
        headers += [f"{sanitize(d)} (Cat)", f"{sanitize(d)} (Misa)"]
    return headers


def student_rows(snapshot: Snapshot, group_id: Optional[str] = None,
                 today: Optional[str] = None) -> Tuple[List[str], List[List[str]]]:
    """
    Cabecera + una fila por catecúmeno: datos básicos, tasa y, por cada día
    lectivo pasado, la pareja (catequesis, misa) como P/T/A.
    """
    today = today or today_str()
    days = past_days_in_year(snapshot.class_days, today)
    students = snapshot.students
    if group_id and group_id != 'all':
        students = [s for s in students if s.group_id == group_id]

    header = ["Nombre", "Grupo", "Colegio", "Asistencia Real %"] + _day_headers(days)
    rows = []
    for s in students:
        rate = student_rate(s, snapshot.class_days, today)
        group_name = snapshot.group_name(s.group_id) or NO_GROUP
        row = [sanitize(s.name), sanitize(group_name), sanitize(s.school), f"{rate}%"]
        for d in days:
            rec = s.record_for(d)
            row += [status_label(rec and rec.catechism), status_label(rec and rec.mass)]
        rows.append(row)
    return header, rows


def catechist_rows(snapshot: Snapshot,
                   today: Optional[str] = None) -> Tuple[List[str], List[List[str]]]:
    """Como `student_rows`, para catequistas: clases (pareja) y después eventos (una letra)."""
    today = today or today_str()
    days = past_days_in_year(snapshot.class_days, today)
    evs = past_events(snapshot.events, today)
    catechists = [u for u in snapshot.users if u.role == CATECHIST]

    header = (["Nombre", "Grupo", "Asistencia Total %", "Email"]
              + _day_headers(days)
              + [f"{sanitize(e.date)} ({sanitize(e.title)})" for e in evs])
    rows = []
    for c in catechists:
        rate = catechist_rate(c, snapshot.class_days, snapshot.events, today)
        group_name = snapshot.group_name(c.assigned_group_id) or NO_GROUP
        row = [sanitize(c.name), sanitize(group_name), f"{rate}%", sanitize(c.email)]
        for d in days:
            rec = c.class_record_for(d)
            row += [status_label(rec and rec.catechism), status_label(rec and rec.mass)]
        for e in evs:
            rec = c.event_record_for(e.id)
            row.append(status_label(rec and rec.status))
        rows.append(row)
    return header, rows


def render_csv(header: List[str], rows: List[List[str]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator='\n')
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue()


def write_csv(filename: str, header: List[str], rows: List[List[str]]) -> str:
    with open(filename, 'w', newline='', encoding='utf-8') as f:
        f.write(render_csv(header, rows))
    logging.info(f"[Catequesis] CSV exportado: {filename} ({len(rows)} filas)")
    return filename


def export_report_pdf(report: MonthlyReport, filename: str) -> str:
    """Vuelca un informe mensual (resumen + recomendaciones) a PDF."""
    from reportlab.lib.pagesizes import A4
    from reportlab.pdfgen import canvas
    from reportlab.lib.utils import simpleSplit

    c = canvas.Canvas(filename, pagesize=A4)
    w, h = A4
    y = h - 50

    def line(text, font='Helvetica', size=10, step=14):
        nonlocal y
        for chunk in simpleSplit(text, font, size, w - 100) or ['']:
            if y < 60:
                c.showPage()
                y = h - 50
            c.setFont(font, size)
            c.drawString(50, y, chunk)
            y -= step

    line(_REPORT_TITLES.get(report.report_type, 'Informe'), 'Helvetica-Bold', 14, 24)
    line(f"Mes: {report.month}   Ámbito: {report.scope}" +
         (f" ({report.scope_id})" if report.scope_id else ""))
    y -= 10
    for paragraph in report.summary.splitlines():
        line(paragraph)
    y -= 10
    line('Recomendaciones Estratégicas', 'Helvetica-Bold', 12, 20)
    for i, rec in enumerate(report.recommendations, 1):
        line(f"{i}. {rec}")
    c.save()
    logging.info(f"[Catequesis] PDF exportado: {filename}")
    return filename
