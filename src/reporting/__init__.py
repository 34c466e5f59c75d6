"""
Report assembly, rendering, storage and export.
"""

from src.reporting.assembler import ReportAssembler, assemble_report
from src.reporting.exporter import ReportExporter, generate_report_with_options
from src.reporting.pdf import InspectionReportRenderer, render_report_pdf
from src.reporting.storage import ArtifactStore, LocalArtifactStore
from src.reporting.versioning import artifact_names, build_file_prefix, get_next_version

__all__ = [
    "ReportAssembler",
    "assemble_report",
    "ReportExporter",
    "generate_report_with_options",
    "InspectionReportRenderer",
    "render_report_pdf",
    "ArtifactStore",
    "LocalArtifactStore",
    "artifact_names",
    "build_file_prefix",
    "get_next_version",
]
