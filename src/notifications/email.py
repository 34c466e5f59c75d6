"""
Report e-mail composition.
"""

from typing import Optional

from pydantic import BaseModel

from utils.config import config
from utils.validators import parse_execution_date

DEFAULT_REPORT_TYPE = "Inspeção Elétrica"


class ReportEmail(BaseModel):
    subject: str
    text_body: str
    html_body: str


def format_date_for_display(value: str) -> str:
    """DD/MM/YYYY for ISO or already-formatted dates; anything else unchanged."""
    parsed = parse_execution_date(value)
    return parsed.strftime("%d/%m/%Y") if parsed else (value or "")


def build_report_email(
    inspection_id: str,
    client_name: str,
    inspection_date: str,
    version: int,
    os_number: str,
    pdf_url: str,
    json_url: Optional[str] = None,
    work_site: Optional[str] = None,
    responsible_name: Optional[str] = None,
    report_type: Optional[str] = None
) -> ReportEmail:
    """
    Compose subject, plain-text and HTML bodies of the report e-mail.

    Args:
        inspection_id: Inspection the report belongs to
        client_name: Client shown in subject and body
        inspection_date: Execution date (ISO or DD/MM/YYYY)
        version: Report version number
        os_number: Service order number
        pdf_url: Public link to the PDF
        json_url: Optional public link to the JSON export

    Returns:
        ReportEmail
    """
    report_type = report_type or DEFAULT_REPORT_TYPE
    date_text = format_date_for_display(inspection_date)
    greeting = responsible_name or "Responsável"
    site = work_site or "Conforme especificado na inspeção"

    subject = f"{report_type} - {client_name} - {date_text}"

    details = [
        ("Cliente", client_name),
        ("Local da Obra", site),
        ("Data da Inspeção", date_text),
        ("Número da OS", os_number),
        ("Versão do Relatório", f"v{version}"),
        ("ID da Inspeção", inspection_id),
    ]

    text_lines = [
        f"Prezado(a) {greeting},",
        "",
        f"Segue o relatório de {report_type.lower()} referente à instalação de "
        f"{client_name}, realizada em {date_text}.",
        "",
        "Detalhes do Relatório:",
    ]
    text_lines += [f"- {label}: {value}" for label, value in details]
    text_lines += ["", f"Relatório PDF: {pdf_url}"]
    if json_url:
        text_lines.append(f"Dados JSON: {json_url}")
    text_lines += [
        "",
        "Atenciosamente,",
        f"Equipe {config.company_name}",
        "",
        config.company_address,
    ]

    detail_items = "\n".join(
        f"<li><strong>{label}:</strong> {value}</li>" for label, value in details
    )
    json_link = f'<p><a href="{json_url}">Baixar Dados JSON</a></p>' if json_url else ""

    html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; color: #333;">
  <div style="background-color: #003366; color: white; padding: 20px; text-align: center;">
    <h1>{config.company_name} - Inspeção Elétrica</h1>
    <p>{report_type}</p>
  </div>
  <div style="padding: 20px;">
    <p>Prezado(a) {greeting},</p>
    <p>Segue o relatório de {report_type.lower()} referente à instalação de
    <strong>{client_name}</strong>, realizada em <strong>{date_text}</strong>.</p>
    <h3>Detalhes do Relatório:</h3>
    <ul>
{detail_items}
    </ul>
    <p><a href="{pdf_url}">Baixar Relatório PDF</a></p>
    {json_link}
    <p>Atenciosamente,<br><strong>Equipe {config.company_name}</strong></p>
  </div>
  <div style="background-color: #f1f1f1; padding: 15px; text-align: center; font-size: 12px;">
    <p>{config.company_address}</p>
    <p><em>Este é um e-mail automático. Por favor, não responda diretamente.</em></p>
  </div>
</body>
</html>"""

    return ReportEmail(subject=subject, text_body="\n".join(text_lines), html_body=html_body)
