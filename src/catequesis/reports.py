import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

import httpx

from catequesis.calendar_logic import (
    REPORT_TIMEZONE,
    academic_year_range,
    month_key_madrid,
    past_days_in_year,
    today_madrid,
)
from catequesis.data import ReportStore
from catequesis.exceptions import ReportGenerationError, ReportPermissionError
from catequesis.models import (
    CATECHIST,
    COORDINATOR,
    LATE,
    PRESENT,
    MonthlyReport,
    Snapshot,
    Student,
    User,
)
from catequesis.statistics import catechist_rate, past_events, student_rate

REPORT_TYPES = ('students', 'catechists')
SCOPES = ('group', 'all_students', 'all_catechists')

TRUNCATED_MARKER = "\n[...recortado...]"

SYSTEM_INSTRUCTION_STUDENTS = (
    "Eres el Coordinador de Catequesis de la Parroquia San Pascual Baylón. "
    "Redacta un informe pastoral profesional, concreto y útil para tomar decisiones."
)
SYSTEM_INSTRUCTION_CATECHISTS = (
    "Eres el Coordinador de Catequesis de la Parroquia San Pascual Baylón. "
    "Redacta un informe pastoral profesional, concreto y respetuoso."
)

NO_STUDENTS_PAYLOAD = {
    'summary': "No hay alumnos en este ámbito, no se puede generar un informe útil.",
    'recommendations': ["Asigna alumnos a un grupo antes de generar informes."],
}


def clamp_text(text: str, max_chars: int = 14000) -> str:
    if not text:
        return ""
    return text if len(text) <= max_chars else text[:max_chars] + TRUNCATED_MARKER


@dataclass
class StudentSummary:
    name: str
    school: str
    total_days: int
    cat_present: int
    mass_present: int
    rate: int

    def line(self) -> str:
        return (f"- {self.name} ({self.school}): días={self.total_days}, "
                f"catequesis={self.cat_present}, misa={self.mass_present}, "
                f"asistencia={self.rate}%")


@dataclass
class CatechistSummary:
    name: str
    rate: int
    attended: int
    possible: int

    def line(self) -> str:
        return f"- {self.name}: {self.rate}% (asistencias={self.attended}/{self.possible})"


def summarize_students(students: List[Student], class_days: List[str],
                       today: str) -> List[StudentSummary]:
    start = academic_year_range(today).start
    out = []
    for s in students:
        records = [r for r in s.attendance_history if start <= r.date <= today]
        out.append(StudentSummary(
            name=s.name,
            school=s.school,
            total_days=len(records),
            cat_present=sum(1 for r in records if r.catechism == PRESENT),
            mass_present=sum(1 for r in records if r.mass == PRESENT),
            rate=student_rate(s, class_days, today),
        ))
    return out


def summarize_catechists(users: List[User], class_days: List[str], events,
                         today: str) -> List[CatechistSummary]:
    """Cuenta bruta: cada día lectivo vale 2 (catequesis + misa), cada evento 1."""
    days = past_days_in_year(class_days, today)
    evs = past_events(events, today)
    possible = 2 * len(days) + len(evs)
    out = []
    for u in users:
        attended = 0
        for d in days:
            rec = u.class_record_for(d)
            if rec is not None:
                attended += (rec.catechism in (PRESENT, LATE)) + (rec.mass in (PRESENT, LATE))
        for e in evs:
            rec = u.event_record_for(e.id)
            if rec is not None and rec.status in (PRESENT, LATE):
                attended += 1
        out.append(CatechistSummary(u.name, catechist_rate(u, class_days, events, today),
                                    attended, possible))
    return out


def worst_and_best(items: list, worst: int, best: int) -> tuple:
    ranked = sorted(items, key=lambda x: x.rate)
    return ranked[:worst], list(reversed(ranked[-best:])) if best else []


def build_students_prompt(students: List[Student], class_days: List[str], today: str,
                          scope: str, settings: Optional[Dict] = None) -> str:
    st = settings or {}
    start = academic_year_range(today).start
    rows = [r for r in summarize_students(students, class_days, today)
            if r.total_days >= st.get('students_min_days', 3)]
    worst, best = worst_and_best(rows, st.get('students_worst', 12), st.get('students_best', 8))
    title = "Todos los niños (parroquia)" if scope == 'all_students' else "Grupo específico"
    lines = [
        f"ÁMBITO: {title}",
        f"PERIODO DE DATOS: {start} a {today}",
        "",
        "NIÑOS CON MENOR COMPROMISO (ordenados por asistencia):",
        *[r.line() for r in worst],
        "",
        "NIÑOS CON MAYOR COMPROMISO:",
        *[r.line() for r in best],
        "",
        "INSTRUCCIONES:",
        "- Menciona nombres propios y patrones concretos.",
        "- Evita consejos genéricos.",
        "- Si faltan datos, dilo explícitamente.",
        '- Devuelve JSON con { "summary": string, "recommendations": string[] }',
    ]
    return clamp_text("\n".join(lines), st.get('max_chars', 14000))


def build_catechists_prompt(users: List[User], class_days: List[str], events, today: str,
                            settings: Optional[Dict] = None) -> str:
    st = settings or {}
    start = academic_year_range(today).start
    rows = summarize_catechists(users, class_days, events, today)
    low, high = worst_and_best(rows, st.get('catechists_worst', 10), st.get('catechists_best', 8))
    lines = [
        "ÁMBITO: Equipo de catequistas",
        f"PERIODO: {start} a {today}",
        f"DÍAS LECTIVOS: {len(past_days_in_year(class_days, today))} (cada uno cuenta catequesis+misa)",
        f"EVENTOS: {len(past_events(events, today))}",
        "",
        "PARTICIPACIÓN MÁS BAJA:",
        *[r.line() for r in low],
        "",
        "PARTICIPACIÓN MÁS ALTA:",
        *[r.line() for r in high],
        "",
        "INSTRUCCIONES:",
        "- Valora el compromiso del equipo con tono pastoral.",
        "- Menciona nombres concretos.",
        "- Propón acciones específicas para apoyar a quienes tienen menor participación.",
        '- Devuelve JSON con { "summary": string, "recommendations": string[] }',
    ]
    return clamp_text("\n".join(lines), st.get('max_chars', 14000))


def parse_report_text(text: str) -> Dict:
    """JSON del modelo -> {summary, recommendations}; si no es JSON, el texto es el resumen."""
    try:
        parsed = json.loads(text)
    except ValueError:
        return {'summary': text or "No se pudo parsear la respuesta de Gemini.",
                'recommendations': []}
    if not isinstance(parsed, dict):
        return {'summary': text, 'recommendations': []}
    recs = parsed.get('recommendations')
    return {
        'summary': str(parsed.get('summary') or ''),
        'recommendations': [str(x) for x in recs] if isinstance(recs, list) else [],
    }


class GeminiClient:
    """Llamada REST generateContent en modo JSON."""

    def __init__(self, api_key: str, model: str = 'gemini-2.0-flash',
                 base_url: str = 'https://generativelanguage.googleapis.com/v1beta/models',
                 temperature: float = 0.7, client: Optional[httpx.Client] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip('/')
        self.temperature = temperature
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=httpx.Timeout(10.0, read=60.0))

    def close(self):
        # Solo cerramos el cliente que hemos creado nosotros
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def generate_json(self, system_instruction: str, user_text: str) -> Dict:
        body = {
            'systemInstruction': {'parts': [{'text': system_instruction}]},
            'contents': [{'role': 'user', 'parts': [{'text': user_text}]}],
            'generationConfig': {
                'temperature': self.temperature,
                'responseMimeType': 'application/json',
            },
        }
        url = f"{self.base_url}/{self.model}:generateContent"
        try:
            resp = self.client.post(url, params={'key': self.api_key}, json=body)
        except httpx.HTTPError as e:
            logging.error(f"[IA] Error de conexión con Gemini: {e}")
            raise ReportGenerationError(f"Gemini no disponible: {e}") from e

        if resp.status_code == 429:
            logging.warning(f"[IA] Cuota de Gemini agotada (429): {resp.text[:200]}")
            raise ReportGenerationError(
                "Se ha excedido la cuota de la IA por ahora. Inténtalo de nuevo en unos minutos.")
        if resp.status_code != 200:
            logging.error(f"[IA] Error Gemini ({resp.status_code}): {resp.text[:400]}")
            raise ReportGenerationError(f"Error Gemini ({resp.status_code})")

        try:
            data = resp.json()
            parts = data['candidates'][0]['content']['parts']
            text = ''.join(p.get('text', '') for p in parts)
        except (ValueError, KeyError, IndexError, TypeError):
            logging.warning(f"[IA] Respuesta inesperada de Gemini: {resp.text[:400]}")
            text = resp.text
        return parse_report_text(text)


class ReportService:
    """
    Informes pastorales mensuales. Como mucho uno por mes (Europe/Madrid),
    ámbito y tipo: una segunda petición devuelve el guardado sin llamar al modelo.
    """

    def __init__(self, store: ReportStore, gemini: GeminiClient, settings: Optional[Dict] = None):
        self.store = store
        self.gemini = gemini
        self.settings = settings or {}

    @staticmethod
    def check_request(requested_by: User, report_type: str, scope: str,
                      scope_id: Optional[str], snapshot: Snapshot):
        if report_type not in REPORT_TYPES:
            raise ValueError("reportType inválido.")
        if scope not in SCOPES:
            raise ValueError("scope inválido.")
        if scope == 'group' and not scope_id:
            raise ValueError("scopeId es obligatorio cuando scope='group'.")
        if scope != 'group' and scope_id is not None:
            raise ValueError("scopeId debe ser null cuando scope != 'group'.")

        is_coordinator = requested_by.role == COORDINATOR
        if report_type == 'catechists' and (not is_coordinator or scope != 'all_catechists'):
            raise ReportPermissionError("Solo el coordinador puede generar/ver el informe del equipo.")
        if report_type == 'students' and scope == 'all_catechists':
            raise ValueError("scope inválido para un informe de catecúmenos.")
        if scope in ('all_students', 'all_catechists') and not is_coordinator:
            raise ReportPermissionError("Solo el coordinador puede acceder a este tipo de informe.")
        if scope == 'group' and requested_by.role == CATECHIST:
            linked = any(g.id == scope_id and requested_by.id in g.catechist_ids
                         for g in snapshot.groups)
            if not linked:
                raise ReportPermissionError("No tienes permiso para generar/ver informes de ese grupo.")

    def generate(self, snapshot: Snapshot, requested_by: User, report_type: str,
                 scope: str, scope_id: Optional[str] = None,
                 now: Optional[datetime] = None) -> MonthlyReport:
        self.check_request(requested_by, report_type, scope, scope_id, snapshot)

        tzname = self.settings.get('timezone', REPORT_TIMEZONE)
        month = month_key_madrid(now, tzname)
        existing = self.store.find(month, scope, scope_id, report_type)
        if existing is not None:
            logging.info(f"[IA] Informe {report_type}/{scope} de {month} ya generado, se reutiliza")
            existing.existing = True
            return existing

        today = today_madrid(now, tzname)
        if report_type == 'students':
            students = snapshot.students
            if scope == 'group':
                students = [s for s in students if s.group_id == scope_id]
            if not students:
                payload = dict(NO_STUDENTS_PAYLOAD)
            else:
                prompt = build_students_prompt(students, snapshot.class_days, today,
                                               scope, self.settings)
                payload = self.gemini.generate_json(SYSTEM_INSTRUCTION_STUDENTS, prompt)
        else:
            catechists = sorted((u for u in snapshot.users if u.role == CATECHIST),
                                key=lambda u: u.name)
            prompt = build_catechists_prompt(catechists, snapshot.class_days, snapshot.events,
                                             today, self.settings)
            payload = self.gemini.generate_json(SYSTEM_INSTRUCTION_CATECHISTS, prompt)

        report = MonthlyReport(
            scope=scope,
            scope_id=scope_id if scope == 'group' else None,
            month=month,
            report_type=report_type,
            generated_by=requested_by.id,
            summary=payload['summary'],
            recommendations=payload['recommendations'],
        )
        saved = self.store.insert(report)
        logging.info(f"[IA] Informe {report_type}/{scope} de {month} guardado (id={saved.id})")
        return saved
