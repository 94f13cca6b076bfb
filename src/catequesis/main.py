# src/catequesis/main.py

import argparse
import logging
import os
import sys

from .calendar_logic import is_class_day, today_str
from .charts import create_participation_chart, create_status_pie_chart
from .config import load_config
from .data import ReportStore, load_snapshot
from .exceptions import CatequesisError
from .export_utils import (
    catechist_rows,
    csv_filename,
    export_report_pdf,
    student_rows,
    write_csv,
)
from .models import CATECHIST
from .notifications import AbsenceNotifier, absentees
from .reports import GeminiClient, ReportService
from .statistics import (
    catechist_rate,
    dashboard_stats,
    monthly_participation,
    status_totals,
    student_rate,
)


def cmd_rates(args, cfg):
    snap = load_snapshot(args.snapshot)
    today = args.today or today_str()
    threshold = cfg['at_risk_threshold']
    stats = dashboard_stats(snap.students, snap.class_days, today, threshold)
    print(f"📅 {today}: {stats.total} catecúmenos, catequesis hoy {stats.attended_catechism}, "
          f"misa hoy {stats.attended_mass}, en riesgo {stats.at_risk}")
    print("\nCatecúmenos:")
    for s in sorted(snap.students, key=lambda s: s.name):
        rate = student_rate(s, snap.class_days, today)
        flag = "  ⚠️" if rate < threshold else ""
        print(f"  {s.name:<30} {rate:>3}%{flag}")
    print("\nCatequistas:")
    for u in sorted((u for u in snap.users if u.role == CATECHIST), key=lambda u: u.name):
        print(f"  {u.name:<30} {catechist_rate(u, snap.class_days, snap.events, today):>3}%")
    return 0


def cmd_chart(args, cfg):
    snap = load_snapshot(args.snapshot)
    today = args.today or today_str()
    points = monthly_participation(snap.students, snap.class_days, today)
    create_participation_chart(points, args.out)
    print(f"✅ Gráfico guardado en {args.out}")
    if args.pie:
        totals = status_totals(snap.students, snap.class_days, today)
        create_status_pie_chart([totals['present'], totals['late'], totals['absent']],
                                ["Presente", "Tarde", "Ausente"], args.pie)
        print(f"✅ Tarta guardada en {args.pie}")
    return 0


def cmd_export(args, cfg):
    snap = load_snapshot(args.snapshot)
    today = args.today or today_str()
    if args.kind == 'students':
        header, rows = student_rows(snap, group_id=args.group, today=today)
    else:
        header, rows = catechist_rows(snap, today=today)
    fn = os.path.join(args.out_dir, csv_filename(args.kind, today))
    write_csv(fn, header, rows)
    print(f"✅ CSV guardado en {fn}")
    return 0


def cmd_report(args, cfg):
    snap = load_snapshot(args.snapshot)
    user = next((u for u in snap.users if u.id == args.user_id), None)
    if user is None:
        print(f"Usuario {args.user_id} no encontrado en el snapshot", file=sys.stderr)
        return 2
    if not cfg.get('gemini_api_key'):
        print("Falta GEMINI_API_KEY en el entorno", file=sys.stderr)
        return 2

    rcfg = cfg['report']
    settings = dict(rcfg, timezone=cfg['timezone'])
    store = ReportStore(args.db)
    try:
        with GeminiClient(cfg['gemini_api_key'], model=rcfg['model'],
                          base_url=cfg['gemini_url'], temperature=rcfg['temperature']) as gemini:
            report = ReportService(store, gemini, settings).generate(
                snap, user, args.type, args.scope, args.scope_id)
    finally:
        store.close()

    if report.existing:
        print(f"ℹ️  Ya existe el informe de {report.month}; se muestra el guardado.")
    print(f"\n{report.summary}\n")
    for i, rec in enumerate(report.recommendations, 1):
        print(f"  {i}. {rec}")
    if args.pdf:
        export_report_pdf(report, args.pdf)
        print(f"\n✅ PDF guardado en {args.pdf}")
    return 0


def cmd_notify(args, cfg):
    snap = load_snapshot(args.snapshot)
    day = args.date or today_str()
    if not is_class_day(snap.class_days, day):
        print(f"ℹ️  {day} no es día de catequesis; no se envían avisos.")
        return 0

    pending = absentees(snap.students, day)
    if args.student_id:
        pending = [(s, label) for s, label in pending if s.id == args.student_id]
    if not pending:
        print(f"✅ Sin ausencias que avisar el {day}.")
        return 0
    if args.dry_run:
        for s, label in pending:
            print(f"  {s.name:<30} {label}")
        return 0

    if not cfg.get('functions_url') or not cfg.get('token'):
        print("Faltan CATEQUESIS_FUNCTIONS_URL o CATEQUESIS_TOKEN en el entorno", file=sys.stderr)
        return 2

    with AbsenceNotifier(cfg['functions_url'], cfg['token'], cap=cfg['bulk_email_cap']) as notifier:
        if args.student_id:
            student, label = pending[0]
            notifier.send_one(student.id, day, label)
            print(f"✅ Aviso enviado a los padres de {student.name} ({label})")
        else:
            result = notifier.send_bulk(day, [s.id for s, _ in pending])
            print(f"✅ {day}: enviados {result.sent}, sin correo {result.skipped_no_email}, "
                  f"presentes {result.skipped_present_both}, errores {result.errors}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='catequesis', description='Asistencia de catequesis')
    p.add_argument('-v', '--verbose', action='store_true')
    sub = p.add_subparsers(dest='command', required=True)

    def common(sp):
        sp.add_argument('snapshot', help='JSON exportado (students, users, groups, events, classDays)')
        sp.add_argument('--today', help='Fecha de referencia YYYY-MM-DD (por defecto hoy)')

    sp = sub.add_parser('rates', help='Tasas de asistencia y resumen del panel')
    common(sp)
    sp.set_defaults(func=cmd_rates)

    sp = sub.add_parser('chart', help='Gráfico de participación mensual')
    common(sp)
    sp.add_argument('--out', default='participacion.png')
    sp.add_argument('--pie', help='PNG opcional con la tarta presente/tarde/ausente')
    sp.set_defaults(func=cmd_chart)

    sp = sub.add_parser('export', help='Exportar CSV')
    common(sp)
    sp.add_argument('--kind', choices=['students', 'catechists'], default='students')
    sp.add_argument('--group', help='Solo este grupo (catecúmenos)')
    sp.add_argument('--out-dir', default='.')
    sp.set_defaults(func=cmd_export)

    sp = sub.add_parser('report', help='Informe mensual con IA')
    sp.add_argument('snapshot')
    sp.add_argument('--user-id', required=True)
    sp.add_argument('--type', choices=['students', 'catechists'], default='students')
    sp.add_argument('--scope', choices=['group', 'all_students', 'all_catechists'],
                    default='all_students')
    sp.add_argument('--scope-id')
    sp.add_argument('--db', help='Base de datos local de informes')
    sp.add_argument('--pdf', help='Exportar también a PDF')
    sp.set_defaults(func=cmd_report)

    sp = sub.add_parser('notify', help='Avisar por correo a las familias de los ausentes')
    sp.add_argument('snapshot')
    sp.add_argument('--date', help='Día de catequesis YYYY-MM-DD (por defecto hoy)')
    sp.add_argument('--student-id', help='Avisar solo a este catecúmeno')
    sp.add_argument('--dry-run', action='store_true', help='Listar sin enviar')
    sp.set_defaults(func=cmd_notify)
    return p


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')
    cfg = load_config()
    try:
        return args.func(args, cfg)
    except (CatequesisError, ValueError) as e:
        logging.error(f"{args.command}: {e}")
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
