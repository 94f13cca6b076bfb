import logging
from typing import List, Optional, Tuple

import httpx

from catequesis.exceptions import NotificationError, TooManyRecipientsError
from catequesis.models import ABSENT, AttendanceRecord, DispatchResult, Student

BULK_EMAIL_CAP = 30

LABEL_CATECHISM = "catequesis"
LABEL_MASS = "misa"
LABEL_BOTH = "ni a catequesis ni a misa"


def absence_label(catechism: Optional[str], mass: Optional[str]) -> str:
    cat_absent = catechism == ABSENT
    mass_absent = mass == ABSENT
    if cat_absent and mass_absent:
        return LABEL_BOTH
    if cat_absent:
        return LABEL_CATECHISM
    return LABEL_MASS


def needs_absence_notice(record: Optional[AttendanceRecord]) -> bool:
    # Sin registro del día = no vino a nada
    if record is None:
        return True
    return record.catechism == ABSENT or record.mass == ABSENT


def absentees(students: List[Student], day: str) -> List[Tuple[Student, str]]:
    """Catecúmenos que faltaron a algo ese día, con la etiqueta para el correo."""
    out = []
    for s in students:
        rec = s.record_for(day)
        if not needs_absence_notice(rec):
            continue
        if rec is None:
            out.append((s, LABEL_BOTH))
        else:
            out.append((s, absence_label(rec.catechism, rec.mass)))
    return out


def absence_subject(student_name: str, day: str) -> str:
    return f"Ausencia registrada - {student_name} - {day}"


def absence_body(student_name: str, label: str) -> str:
    return (
        f"Estimados padres de {student_name},\n"
        f"Queríamos informarles de que hoy su hijo/a no ha asistido a {label}.\n"
        "\n"
        "Muchas gracias de antemano por su atención,\n"
        "\n"
        "Un saludo.\n"
        "\n"
        "Sus catequistas.\n"
        "\n"
        "NOTA: NO RESPONDA ESTE CORREO ELECTRÓNICO. HA SIDO ENVIADO DE MANERA AUTOMÁTICA. "
        "PARA DUDAS O CONSULTAS, CONTACTE AL SIGUIENTE CORREO ELECTRÓNICO: preconfirmacion@sanpas.es"
    )


class AbsenceNotifier:
    """Cliente de las funciones remotas de envío de avisos de ausencia."""

    def __init__(self, functions_url: str, token: str, cap: int = BULK_EMAIL_CAP,
                 client: Optional[httpx.Client] = None):
        self.functions_url = functions_url.rstrip('/')
        self.token = token
        self.cap = cap
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=httpx.Timeout(10.0, read=60.0))

    def close(self):
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _post(self, function: str, payload: dict) -> dict:
        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            resp = self.client.post(f"{self.functions_url}/{function}", json=payload, headers=headers)
        except httpx.HTTPError as e:
            logging.error(f"[Correo] {function} no disponible: {e}")
            raise NotificationError(str(e)) from e
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code != 200 or not data.get('ok', False):
            error = data.get('error') or resp.text[:200]
            logging.error(f"[Correo] {function} falló ({resp.status_code}): {error}")
            raise NotificationError(f"{function}: {error}")
        return data

    def send_one(self, student_id: str, day: str, label: str) -> None:
        if label not in (LABEL_CATECHISM, LABEL_MASS, LABEL_BOTH):
            raise ValueError(f"Etiqueta de ausencia no válida: {label!r}")
        self._post('send-absence-email',
                   {'student_id': student_id, 'date': day, 'absence_label': label})
        logging.info(f"[Correo] Aviso de ausencia enviado: {student_id} {day} ({label})")

    def send_bulk(self, day: str, student_ids: List[str]) -> DispatchResult:
        if len(student_ids) > self.cap:
            raise TooManyRecipientsError(len(student_ids), self.cap)
        if not student_ids:
            return DispatchResult()
        data = self._post('send-absence-emails-bulk', {'date': day, 'student_ids': list(student_ids)})
        result = DispatchResult(
            sent=int(data.get('sent', 0)),
            skipped_no_email=int(data.get('skipped_no_email', 0)),
            skipped_present_both=int(data.get('skipped_present_both', 0)),
            errors=int(data.get('errors', 0)),
        )
        logging.info(f"[Correo] Envío masivo {day}: {result}")
        return result
