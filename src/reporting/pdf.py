"""
PDF rendering of inspection reports.

Turns a ReportObject into page bytes: cover, table of contents, numbered
sections, signature block and attachment list, with company header and footer
on every inner page.
"""

import io
from datetime import datetime
from typing import Any, List, Tuple
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.lib.colors import HexColor, white
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle,
    PageBreak, KeepTogether
)
from reportlab.pdfgen import canvas

from src.errors import RendererError
from src.reporting.assembler import EPC_ABSENT, EPC_PRESENT, EPCS_SECTION, PROCEDURES_SECTION
from src.schemas.models import ReportObject
from utils.logger import setup_logger
from utils.config import config

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="REPORTS"
)


# ============================================================================
# COLORS
# ============================================================================

BRAND_PRIMARY = HexColor("#003366")
BRAND_SUCCESS = HexColor("#009900")
BRAND_DANGER = HexColor("#cc0000")
BRAND_GRAY = HexColor("#999999")
TABLE_HEADER = HexColor("#f0f0f0")

ENRICHED_MARKER = "MODO ENRIQUECIDO"
TECHNICAL_STAMP = "CARIMBO TÉCNICO: CREA-SP 123456789"


def _text(value: Any) -> str:
    """Paragraph-safe text; None becomes N/A."""
    if value is None or value == "":
        return "N/A"
    return escape(str(value))


def _format_number(value: Any, unit: str = "") -> str:
    if value is None:
        return "N/A"
    number = f"{value:g}" if isinstance(value, float) else str(value)
    return f"{number} {unit}".strip()


def _format_date(value: str) -> str:
    try:
        return datetime.fromisoformat(value[:10]).strftime("%d/%m/%Y")
    except (TypeError, ValueError):
        return value or "N/A"


# ============================================================================
# PDF HEADER/FOOTER
# ============================================================================

class NumberedCanvas(canvas.Canvas):
    """Canvas with company header, page numbers and address footer."""

    def __init__(self, *args, **kwargs):
        canvas.Canvas.__init__(self, *args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        num_pages = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self.draw_page_decorations(num_pages)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)

    def draw_page_decorations(self, page_count):
        # cover page stays clean
        if self._pageNumber == 1:
            return

        width, height = A4
        margin = 0.75 * inch

        self.saveState()
        self.setStrokeColor(BRAND_PRIMARY)
        self.setFillColor(BRAND_PRIMARY)

        self.setFont("Helvetica-Bold", 11)
        self.drawString(margin, height - 0.5 * inch, config.company_name)
        self.setFont("Helvetica", 9)
        self.drawRightString(
            width - margin,
            height - 0.5 * inch,
            f"Página {self._pageNumber} de {page_count}"
        )
        self.line(margin, height - 0.6 * inch, width - margin, height - 0.6 * inch)

        self.line(margin, 0.65 * inch, width - margin, 0.65 * inch)
        self.setFont("Helvetica", 7)
        self.drawCentredString(width / 2, 0.45 * inch, config.company_address)

        self.restoreState()


# ============================================================================
# PDF REPORT RENDERER
# ============================================================================

class InspectionReportRenderer:
    """Renders ReportObject instances to PDF bytes."""

    def __init__(self):
        self.logger = logger
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Setup custom paragraph styles."""
        self.styles.add(ParagraphStyle(
            name="CoverTitle",
            parent=self.styles["Title"],
            fontSize=20,
            textColor=BRAND_PRIMARY,
            spaceAfter=20,
            alignment=TA_CENTER,
            fontName="Helvetica-Bold"
        ))

        self.styles.add(ParagraphStyle(
            name="CoverSubtitle",
            parent=self.styles["Normal"],
            fontSize=14,
            textColor=BRAND_PRIMARY,
            alignment=TA_CENTER,
            fontName="Helvetica-Oblique"
        ))

        self.styles.add(ParagraphStyle(
            name="CoverInfo",
            parent=self.styles["Normal"],
            fontSize=12,
            alignment=TA_CENTER,
            spaceAfter=6
        ))

        self.styles.add(ParagraphStyle(
            name="ModeMarker",
            parent=self.styles["Normal"],
            fontSize=8,
            textColor=BRAND_PRIMARY,
            alignment=TA_RIGHT
        ))

        self.styles.add(ParagraphStyle(
            name="SectionHeader",
            parent=self.styles["Heading1"],
            fontSize=16,
            textColor=BRAND_PRIMARY,
            spaceBefore=10,
            spaceAfter=14,
            fontName="Helvetica-Bold"
        ))

        self.styles.add(ParagraphStyle(
            name="SubHeader",
            parent=self.styles["Heading2"],
            fontSize=13,
            textColor=BRAND_PRIMARY,
            spaceBefore=12,
            spaceAfter=8,
            fontName="Helvetica-Bold"
        ))

        self.styles.add(ParagraphStyle(
            name="Stamp",
            parent=self.styles["Normal"],
            fontSize=14,
            textColor=BRAND_PRIMARY,
            alignment=TA_CENTER,
            fontName="Helvetica-Bold"
        ))

    def render(self, report: ReportObject) -> bytes:
        """
        Render a report to PDF bytes.

        Args:
            report: Assembled report object; its report_mode selects the
                optional maintenance history section

        Returns:
            PDF document bytes

        Raises:
            RendererError: if reportlab cannot build the document
        """
        enriched = report.report_mode == "enriched"
        self.logger.info(f"Rendering PDF ({report.report_mode} mode)...")

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=0.75 * inch,
            leftMargin=0.75 * inch,
            topMargin=1 * inch,
            bottomMargin=1 * inch,
            title=report.metadados.titulo,
            author=report.metadados.autor
        )

        sections = self._sections(report, enriched)

        story = []
        story.extend(self._build_cover(report, enriched))
        story.extend(self._build_summary([title for title, _ in sections]))
        for title, builder in sections:
            story.extend(builder(report, title))
            story.append(PageBreak())
        story.pop()

        try:
            doc.build(story, canvasmaker=NumberedCanvas)
        except Exception as e:
            self.logger.error(f"PDF build failed: {e}")
            raise RendererError(f"Falha ao gerar PDF: {e}") from e

        pdf_bytes = buffer.getvalue()
        self.logger.info(f"PDF rendered ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    def _sections(self, report: ReportObject, enriched: bool) -> List[Tuple[str, Any]]:
        builders = [
            ("Dados Iniciais", self._build_initial_data),
            ("Procedimentos Iniciais", self._build_procedures),
            ("Ensaios e Resultados", self._build_tests),
        ]
        if enriched:
            builders.append(("Histórico de Manutenção", self._build_maintenance))
        builders += [
            ("Transformadores", self._build_transformers),
            ("Irregularidades", self._build_irregularities),
            ("Conclusão", self._build_conclusion),
            ("Anexos", self._build_attachments),
        ]
        return [(f"{index}. {title}", builder) for index, (title, builder) in enumerate(builders, 1)]

    # ========================
    # Table helpers
    # ========================

    def _key_value_table(self, rows: List[List[str]], col_widths=(2.2 * inch, 4.3 * inch)) -> Table:
        table = Table(
            [[Paragraph(f"<b>{label}</b>", self.styles["Normal"]), Paragraph(value, self.styles["Normal"])]
             for label, value in rows],
            colWidths=list(col_widths)
        )
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("GRID", (0, 0), (-1, -1), 0.5, BRAND_GRAY),
            ("BACKGROUND", (0, 0), (0, -1), TABLE_HEADER),
            ("TOPPADDING", (0, 0), (-1, -1), 5),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ]))
        return table

    def _grid_table(self, header: List[str], rows: List[List[Any]], col_widths: List[float]) -> Table:
        table = Table([header] + rows, colWidths=col_widths, repeatRows=1)
        table.setStyle(TableStyle([
            ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 10),
            ("FONT", (0, 1), (-1, -1), "Helvetica", 9),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("GRID", (0, 0), (-1, -1), 0.5, BRAND_GRAY),
            ("BACKGROUND", (0, 0), (-1, 0), BRAND_PRIMARY),
            ("TEXTCOLOR", (0, 0), (-1, 0), white),
            ("TOPPADDING", (0, 0), (-1, -1), 5),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ]))
        return table

    # ========================
    # Cover and summary
    # ========================

    def _build_cover(self, report: ReportObject, enriched: bool) -> List:
        elements = []
        meta = report.metadados

        if enriched:
            elements.append(Paragraph(ENRICHED_MARKER, self.styles["ModeMarker"]))

        elements.append(Spacer(1, 2.5 * inch))
        elements.append(Paragraph(_text(meta.titulo), self.styles["CoverTitle"]))
        elements.append(Paragraph(_text(meta.subtitulo), self.styles["CoverSubtitle"]))
        elements.append(Spacer(1, 3 * inch))
        elements.append(Paragraph(
            f"Data: {meta.data_emissao.strftime('%d/%m/%Y')}",
            self.styles["CoverInfo"]
        ))
        elements.append(Paragraph(f"Responsável: {_text(meta.autor)}", self.styles["CoverInfo"]))
        elements.append(PageBreak())

        return elements

    def _build_summary(self, titles: List[str]) -> List:
        elements = [Paragraph("SUMÁRIO", self.styles["SectionHeader"])]
        for title in titles:
            elements.append(Paragraph(_text(title), self.styles["Normal"]))
            elements.append(Spacer(1, 0.12 * inch))
        elements.append(PageBreak())
        return elements

    # ========================
    # Sections
    # ========================

    def _build_initial_data(self, report: ReportObject, title: str) -> List:
        data = report.dados_iniciais
        rows = [
            ["Cliente:", _text(data.cliente)],
            ["Nome Fantasia:", _text(data.nome_fantasia)],
            ["Endereço:", _text(data.endereco)],
            ["Horário de Chegada:", _text(data.horario_chegada)],
            ["Responsável Local:", _text(data.responsavel_local)],
            ["Data de Execução:", _text(_format_date(data.data_execucao))],
            ["OS Número:", _text(data.os_numero)],
            ["Concessionária:", _text(data.concessionaria)],
            ["Demanda (kW):", _format_number(data.demanda_kw)],
            ["Código do Consumidor:", _text(data.codigo_consumidor)],
        ]
        return [
            Paragraph(_text(title.upper()), self.styles["SectionHeader"]),
            self._key_value_table(rows),
        ]

    def _build_procedures(self, report: ReportObject, title: str) -> List:
        elements = [Paragraph(_text(title.upper()), self.styles["SectionHeader"])]

        procedures = [item for item in report.checklists if item.secao == PROCEDURES_SECTION]
        if procedures:
            elements.append(self._grid_table(
                ["Procedimento", "Resultado"],
                [[Paragraph(_text(item.descricao), self.styles["Normal"]), _text(item.resultado)]
                 for item in procedures],
                [5 * inch, 1.5 * inch]
            ))
        else:
            elements.append(Paragraph("Nenhum procedimento registrado.", self.styles["Normal"]))

        epcs = [item for item in report.checklists if item.secao == EPCS_SECTION]
        if epcs:
            elements.append(Paragraph(f"{title.split('.')[0]}.1. {EPCS_SECTION.upper()}", self.styles["SubHeader"]))
            table = self._grid_table(
                ["Equipamento", "Situação"],
                [[Paragraph(_text(item.descricao), self.styles["Normal"]), _text(item.resultado)]
                 for item in epcs],
                [4.3 * inch, 2.2 * inch]
            )
            for row, item in enumerate(epcs, 1):
                color = BRAND_SUCCESS if item.resultado == EPC_PRESENT else (
                    BRAND_GRAY if item.resultado == EPC_ABSENT else BRAND_DANGER
                )
                table.setStyle(TableStyle([("TEXTCOLOR", (1, row), (1, row), color)]))
            elements.append(table)

        others = [
            item for item in report.checklists
            if item.secao not in (PROCEDURES_SECTION, EPCS_SECTION)
        ]
        if others:
            elements.append(Paragraph(_text(others[0].secao.upper()), self.styles["SubHeader"]))
            elements.append(self._grid_table(
                ["Item", "Resultado"],
                [[Paragraph(_text(item.descricao), self.styles["Normal"]), _text(item.resultado)]
                 for item in others],
                [4.8 * inch, 1.7 * inch]
            ))

        return elements

    def _build_tests(self, report: ReportObject, title: str) -> List:
        elements = [Paragraph(_text(title.upper()), self.styles["SectionHeader"])]

        if not report.ensaios:
            elements.append(Paragraph("Nenhum ensaio registrado.", self.styles["Normal"]))
            return elements

        for test in report.ensaios:
            rows = [
                [_text(name), _text(value), _text(test.resultados_normativos.get(name))]
                for name, value in test.valores.items()
            ]
            elements.append(KeepTogether([
                Paragraph(f"Ensaio: {_text(test.tipo)}", self.styles["SubHeader"]),
                self._grid_table(["Parâmetro", "Valor", "Resultado"], rows,
                                 [2.6 * inch, 1.9 * inch, 2 * inch]),
            ]))

        return elements

    def _build_maintenance(self, report: ReportObject, title: str) -> List:
        elements = [Paragraph(_text(title.upper()), self.styles["SectionHeader"])]
        history = report.maintenance_history

        if history is None or history.no_history:
            elements.append(Paragraph("Sem histórico de manutenção registrado.", self.styles["Normal"]))
            return elements

        rows = [
            ["Última Manutenção:", _text(_format_date(history.last_maintenance_date or ""))],
            ["Tipo:", _text(history.last_actions_summary)],
            ["Frequência:", _text(history.maintenance_frequency)],
            ["Empresa Responsável:", _text(history.maintenance_company)],
            ["Próxima Manutenção:", _text(_format_date(history.next_maintenance_date or ""))],
            ["Documentos:", str(len(history.historical_documents))],
        ]
        elements.append(self._key_value_table(rows))

        if history.free_form_observations:
            elements.append(Spacer(1, 0.15 * inch))
            elements.append(Paragraph(_text(history.free_form_observations), self.styles["Normal"]))

        return elements

    def _build_transformers(self, report: ReportObject, title: str) -> List:
        elements = [Paragraph(_text(title.upper()), self.styles["SectionHeader"])]

        if not report.transformadores:
            elements.append(Paragraph("Nenhum transformador registrado.", self.styles["Normal"]))
            return elements

        for index, transformer in enumerate(report.transformadores, 1):
            rows = [
                ["Fabricante:", _text(transformer.fabricante)],
                ["Série:", _text(transformer.serie)],
                ["Potência:", _format_number(transformer.potencia_kva, "kVA")],
                ["Peso:", _format_number(transformer.peso_kg, "kg")],
                ["Óleo:", _format_number(transformer.oleo_litros, "litros")],
                ["Ano:", _format_number(transformer.ano_fabricacao)],
                ["Vazamento:", "SIM" if transformer.vazamento else "NÃO"],
            ]
            for name, value in transformer.taps.items():
                rows.append([f"Tap ({name.replace('_', ' ')}):", _format_number(value)])

            elements.append(Paragraph(f"Transformador {index}", self.styles["SubHeader"]))
            elements.append(self._key_value_table(rows))

        return elements

    def _build_irregularities(self, report: ReportObject, title: str) -> List:
        elements = [Paragraph(_text(title.upper()), self.styles["SectionHeader"])]

        irregular = [component for component in report.componentes if component.irregularidade]
        if not irregular:
            elements.append(Paragraph("Nenhuma irregularidade identificada.", self.styles["Normal"]))
            return elements

        for index, component in enumerate(irregular, 1):
            elements.append(Paragraph(f"{index}. {_text(component.tipo)}", self.styles["SubHeader"]))
            elements.append(Paragraph(_text(component.descricao), self.styles["Normal"]))
            if component.fotos:
                elements.append(Paragraph(
                    f"<i>{len(component.fotos)} foto(s) anexada(s)</i>",
                    self.styles["Normal"]
                ))

        return elements

    def _build_conclusion(self, report: ReportObject, title: str) -> List:
        elements = [
            Paragraph(_text(title.upper()), self.styles["SectionHeader"]),
            Paragraph(_text(report.conclusao), self.styles["Normal"]),
            Spacer(1, 0.6 * inch),
        ]

        stamp = Table(
            [[Paragraph("VALIDADO", self.styles["Stamp"])],
             [Paragraph(datetime.now().strftime("%d/%m/%Y"), self.styles["CoverInfo"])]],
            colWidths=[2 * inch]
        )
        stamp.setStyle(TableStyle([
            ("BOX", (0, 0), (-1, -1), 2, BRAND_PRIMARY),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("TOPPADDING", (0, 0), (-1, -1), 6),
        ]))

        elements.append(KeepTogether([
            Paragraph("<b>ASSINATURA DIGITAL:</b>", self.styles["Normal"]),
            Spacer(1, 0.1 * inch),
            Paragraph(f"Responsável Técnico: {_text(report.metadados.autor)}", self.styles["Normal"]),
            Spacer(1, 0.3 * inch),
            stamp,
            Spacer(1, 0.2 * inch),
            Paragraph(TECHNICAL_STAMP, self.styles["ModeMarker"]),
        ]))

        return elements

    def _build_attachments(self, report: ReportObject, title: str) -> List:
        elements = [Paragraph(_text(title.upper()), self.styles["SectionHeader"])]

        if not report.anexos:
            elements.append(Paragraph("Nenhum anexo.", self.styles["Normal"]))
            return elements

        elements.append(self._grid_table(
            ["#", "Arquivo"],
            [[str(index), Paragraph(_text(path), self.styles["Normal"])]
             for index, path in enumerate(report.anexos, 1)],
            [0.5 * inch, 6 * inch]
        ))
        return elements


# ============================================================================
# CONVENIENCE FUNCTION
# ============================================================================

def render_report_pdf(report: ReportObject) -> bytes:
    """Render a report to PDF bytes."""
    return InspectionReportRenderer().render(report)
