import csv

from catequesis.export_utils import (
    catechist_rows,
    csv_filename,
    export_report_pdf,
    render_csv,
    sanitize,
    status_label,
    student_rows,
    write_csv,
)
from catequesis.models import MonthlyReport

TODAY = "2025-03-15"


def test_sanitize_strips_accents_and_commas():
    assert sanitize("Pérez, Juan") == "Perez; Juan"
    assert sanitize("  Núñez ") == "Nunez"
    assert sanitize(None) == ""
    assert sanitize("") == ""


def test_status_label():
    assert status_label("present") == "P"
    assert status_label("late") == "T"
    assert status_label("absent") == "A"
    assert status_label(None) == "A"


def test_csv_filename():
    assert csv_filename("students", TODAY) == "asistencia_catecumenos_2025-03-15.csv"
    assert csv_filename("catechists", TODAY) == "asistencia_catequistas_2025-03-15.csv"


def test_student_rows(snapshot):
    header, rows = student_rows(snapshot, today=TODAY)
    assert header == ["Nombre", "Grupo", "Colegio", "Asistencia Real %",
                      "2024-10-05 (Cat)", "2024-10-05 (Misa)",
                      "2025-03-08 (Cat)", "2025-03-08 (Misa)"]
    assert rows[0] == ["Jose Perez", "Confirmacion", "San Jose", "65%", "P", "P", "T", "A"]
    assert rows[1] == ["Ana", "Sin Grupo", "", "0%", "A", "A", "A", "A"]


def test_student_rows_group_filter(snapshot):
    _, rows = student_rows(snapshot, group_id="g1", today=TODAY)
    assert [r[0] for r in rows] == ["Jose Perez"]
    _, rows = student_rows(snapshot, group_id="all", today=TODAY)
    assert len(rows) == 2


def test_catechist_rows(snapshot):
    header, rows = catechist_rows(snapshot, today=TODAY)
    assert header[:4] == ["Nombre", "Grupo", "Asistencia Total %", "Email"]
    assert header[-2:] == ["2024-12-08 (Inmaculada)", "2025-02-02 (Candelaria)"]
    # el coordinador no sale en el informe del equipo
    assert rows == [["Maria Nunez", "Confirmacion", "70%", "m@example.es",
                     "P", "P", "P", "T", "P", "T"]]


def test_write_csv_roundtrip_columns(tmp_path, snapshot):
    header, rows = student_rows(snapshot, today=TODAY)
    fn = write_csv(str(tmp_path / csv_filename("students", TODAY)), header, rows)
    with open(fn, encoding="utf-8", newline="") as f:
        lines = list(csv.reader(f))
    assert lines[0] == header
    assert all(len(line) == len(header) for line in lines)
    assert len(lines) == len(rows) + 1


def test_render_csv_has_header_first(snapshot):
    header, rows = catechist_rows(snapshot, today=TODAY)
    text = render_csv(header, rows)
    assert text.startswith("Nombre,Grupo,Asistencia Total %,Email,")
    assert text.count("\n") == 2


def test_export_report_pdf(tmp_path):
    report = MonthlyReport(scope="all_students", scope_id=None, month="2025-03",
                           report_type="students", generated_by="u2",
                           summary="Buena asistencia en general.\n" + "Texto largo " * 80,
                           recommendations=["Llamar a las familias", "Reforzar la misa"])
    pdf_file = tmp_path / "informe.pdf"
    export_report_pdf(report, str(pdf_file))
    assert pdf_file.exists() and pdf_file.stat().st_size > 0
