"""
Command-line entry point.

    inspection-reports init-db
    inspection-reports list [--status completed]
    inspection-reports validate <inspection_id>
    inspection-reports export <inspection_id> [--mode enriched] [--email a@b.com ...] [--no-json]
    inspection-reports history <inspection_id>
    inspection-reports retry <export_log_id>
"""

import argparse
import asyncio
import sys

from rich.table import Table

from src.database.adapter import ModuleDataStore
from src.database.repository import InspectionRepository, health_check_database, init_database
from src.reporting.exporter import ReportExporter
from src.schemas.models import ExportOptions
from src.validation.final_report import validate_final_report
from utils.config import config
from utils.logger import (
    console,
    print_banner,
    print_error,
    print_summary_panel,
    print_validation_table,
)


def cmd_init_db(args) -> int:
    if not init_database() or not health_check_database():
        print_error("Database Error", "Falha ao inicializar o banco de dados")
        return 1
    console.print("[green]Banco de dados inicializado.[/green]")
    return 0


def cmd_list(args) -> int:
    inspections = InspectionRepository().list_inspections(limit=args.limit, status=args.status)

    if not inspections:
        console.print("Nenhuma inspeção encontrada.")
        return 0

    table = Table(title="Inspeções", header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Cliente")
    table.add_column("Local")
    table.add_column("Status")
    table.add_column("Progresso", justify="right")
    table.add_column("Criada em")

    for inspection in inspections:
        table.add_row(
            inspection.id,
            inspection.client_name or "-",
            inspection.work_site or "-",
            inspection.status,
            f"{inspection.progress}%",
            inspection.created_at.strftime("%d/%m/%Y %H:%M") if inspection.created_at else "-",
        )

    console.print(table)
    return 0


def cmd_validate(args) -> int:
    result = asyncio.run(validate_final_report(args.inspection_id, ModuleDataStore()))

    if result.is_valid:
        print_summary_panel("Validação do Relatório", {
            "Inspeção": args.inspection_id,
            "Status": "Pronto para gerar relatório",
        })
        return 0

    print_validation_table(result.missing_fields, result.critical_errors)
    if result.errors_sample:
        console.print("\n".join(f"• {error}" for error in result.errors_sample), style="dim")
    return 2 if result.critical_errors else 1


def cmd_export(args) -> int:
    options = ExportOptions(
        mode=args.mode,
        send_email=bool(args.email) or args.send_email,
        recipient_emails=args.email or [],
        include_json=not args.no_json,
    )
    exporter = ReportExporter(ModuleDataStore())
    result = asyncio.run(exporter.generate_report_with_options(args.inspection_id, options))

    if not result.success:
        if result.critical_errors:
            print_validation_table(result.validation_errors or [], result.critical_errors)
        print_error("Export Failed", result.error, f"Log: {result.export_log_id}" if result.export_log_id else None)
        return 1

    print_summary_panel("Relatório Gerado", {
        "Arquivo": result.file_name,
        "Versão": f"v{result.version}",
        "PDF": result.pdf_url,
        "JSON": result.json_url or "-",
        "E-mail enviado": "Sim" if result.email_sent else "Não",
        "Log": result.export_log_id,
    })
    for warning in result.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")
    return 0


def cmd_history(args) -> int:
    exporter = ReportExporter(ModuleDataStore())
    logs = asyncio.run(exporter.get_export_history(args.inspection_id))

    if not logs:
        console.print("Nenhuma exportação registrada.")
        return 0

    table = Table(title=f"Exportações - {args.inspection_id}", header_style="bold magenta")
    table.add_column("Versão", justify="right")
    table.add_column("Arquivo")
    table.add_column("Status")
    table.add_column("Tentativas", justify="right")
    table.add_column("Exportado em")
    table.add_column("Log ID", style="dim")

    colors = {"success": "green", "failed": "red"}
    for log in logs:
        color = colors.get(log.status, "yellow")
        table.add_row(
            f"v{log.version}",
            log.file_name,
            f"[{color}]{log.status}[/{color}]",
            str(log.retry_count),
            log.exported_at.strftime("%d/%m/%Y %H:%M") if log.exported_at else "-",
            log.id,
        )

    console.print(table)
    return 0


def cmd_retry(args) -> int:
    exporter = ReportExporter(ModuleDataStore())
    result = asyncio.run(exporter.retry_failed_export(args.export_log_id))

    if result.success:
        console.print(f"[green]{result.message}[/green]")
        return 0

    print_error("Retry Failed", result.error or "Erro desconhecido", result.details)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inspection-reports",
        description="Validate electrical inspections and export versioned reports."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.set_defaults(func=cmd_init_db)

    list_parser = subparsers.add_parser("list", help="List recent inspections")
    list_parser.add_argument("--status", choices=["draft", "in_progress", "completed"])
    list_parser.add_argument("--limit", type=int, default=50)
    list_parser.set_defaults(func=cmd_list)

    validate_parser = subparsers.add_parser("validate", help="Run final report validation")
    validate_parser.add_argument("inspection_id")
    validate_parser.set_defaults(func=cmd_validate)

    export_parser = subparsers.add_parser("export", help="Generate and store the report")
    export_parser.add_argument("inspection_id")
    export_parser.add_argument("--mode", choices=["compatibility", "enriched"], default=config.default_report_mode)
    export_parser.add_argument("--email", nargs="+", metavar="ADDRESS",
                               help="Send the report to these recipients")
    export_parser.add_argument("--send-email", action="store_true",
                               help="Send to the default recipient when no --email is given")
    export_parser.add_argument("--no-json", action="store_true", help="Skip the JSON export")
    export_parser.set_defaults(func=cmd_export)

    history_parser = subparsers.add_parser("history", help="List exports of an inspection")
    history_parser.add_argument("inspection_id")
    history_parser.set_defaults(func=cmd_history)

    retry_parser = subparsers.add_parser("retry", help="Retry a failed export")
    retry_parser.add_argument("export_log_id")
    retry_parser.set_defaults(func=cmd_retry)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    print_banner()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
