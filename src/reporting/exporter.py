"""
Report export pipeline.

validate -> resolve recipients -> version -> log -> assemble -> render ->
upload -> e-mail. The export log is written before the first upload and
advanced after every step (pending, uploaded, sending_email, success or
failed), so a partial failure can be diagnosed and retried later.

Nothing here raises to the caller: every outcome is an ExportResult or a
RetryResult.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import List, Optional

from src.database.adapter import ModuleDataStore
from src.errors import ArtifactStoreError
from src.notifications.email import build_report_email
from src.notifications.sink import NotificationSink, get_notification_sink
from src.reporting.assembler import ReportAssembler
from src.reporting.pdf import InspectionReportRenderer
from src.reporting.storage import ArtifactStore, LocalArtifactStore
from src.reporting.versioning import artifact_names, build_file_prefix, get_next_version
from src.schemas.models import (
    ExportFailure,
    ExportLogEntry,
    ExportOptions,
    ExportResult,
    ExportSuccess,
    NotificationPayload,
    ReportObject,
    RetryResult,
)
from src.schemas.registry import SchemaRegistry, get_registry
from src.validation.final_report import FinalReportValidator
from utils.logger import setup_logger, set_request_id
from utils.config import config
from utils.validators import validate_email

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="EXPORT"
)

REPORT_EMAIL_TYPE = "report_email"
MAX_ERRORS_IN_SUMMARY = 3

ALREADY_SUCCEEDED = "Exportação já foi bem-sucedida"
MAX_RETRIES_EXCEEDED = "Número máximo de tentativas excedido"
LOG_NOT_FOUND = "Log de exportação não encontrado"
RETRY_FAILED = "Retry falhou"
RETRY_SUCCEEDED = "Retry executado com sucesso"


def summarize_validation_errors(critical_errors: List[str]) -> str:
    """`Validação falhou: a, b, c...` with at most three errors named."""
    shown = ", ".join(critical_errors[:MAX_ERRORS_IN_SUMMARY])
    suffix = "..." if len(critical_errors) > MAX_ERRORS_IN_SUMMARY else ""
    return f"Validação falhou: {shown}{suffix}"


class ReportExporter:
    """
    Generates, stores and delivers inspection reports.

    Collaborators are injectable; defaults are the local artifact store, the
    reportlab renderer and the configured notification sink.
    """

    def __init__(
        self,
        store: ModuleDataStore,
        artifacts: Optional[ArtifactStore] = None,
        renderer: Optional[InspectionReportRenderer] = None,
        sink: Optional[NotificationSink] = None,
        registry: Optional[SchemaRegistry] = None
    ):
        self.store = store
        self.registry = registry or get_registry()
        self.artifacts = artifacts or LocalArtifactStore()
        self.renderer = renderer or InspectionReportRenderer()
        self.sink = sink or get_notification_sink()
        self.validator = FinalReportValidator(store, self.registry)
        self.assembler = ReportAssembler(store, self.registry)
        self.logger = logger

    # ========================
    # Entry points
    # ========================

    async def generate_report_with_options(
        self,
        inspection_id: str,
        options: Optional[ExportOptions] = None
    ) -> ExportResult:
        """
        Run the full export for one inspection.

        Critical validation errors block the export before anything is
        written. E-mail failures are recorded on the export log but do not
        fail the export.
        """
        options = options or ExportOptions(mode=config.default_report_mode)
        set_request_id(inspection_id)
        export_log_id = None

        try:
            validation = await self.validator.validate(inspection_id)
            if validation.critical_errors:
                self.logger.warning(
                    f"Export blocked: {len(validation.critical_errors)} critical error(s)"
                )
                return ExportFailure(
                    error=summarize_validation_errors(validation.critical_errors),
                    validation_errors=validation.missing_fields,
                    critical_errors=validation.critical_errors,
                )

            inspection = await self.store.require_inspection(inspection_id)

            recipients = list(options.recipient_emails)
            if options.send_email and not recipients:
                recipients = await self.resolve_default_recipients(inspection_id)

            execution_date = await self.store.get_field_value(inspection_id, "client", "data_execucao")
            prefix = build_file_prefix(inspection.client_name, execution_date, inspection.created_at)
            version = await get_next_version(self.artifacts, prefix)
            pdf_name, json_name = artifact_names(prefix, version)

            log = await self.store.create_export_log({
                "inspection_id": inspection_id,
                "user_id": inspection.user_id,
                "report_type": "PDF",
                "file_name": pdf_name,
                "version": version,
                "recipient_emails": recipients,
                "status": "pending",
                "metadata": {
                    "mode": options.mode,
                    "client_name": inspection.client_name,
                    "inspection_date": execution_date or "",
                    "send_email": options.send_email,
                    "include_json": options.include_json,
                },
            })
            export_log_id = log.id
            self.logger.info(f"Exporting {pdf_name} (log {export_log_id})")

            report = await self.assembler.assemble(inspection_id, options.mode)

            return await self._publish(log, report, options, recipients, json_name)

        except Exception as e:
            self.logger.error(f"Report export failed: {e}", exc_info=True)
            if export_log_id:
                await self._mark_failed(export_log_id, f"Erro na geração do relatório: {e}")
            return ExportFailure(
                error=str(e) or "Erro interno na geração do relatório",
                export_log_id=export_log_id,
            )

    async def generate_report(
        self,
        inspection_id: str,
        recipient_emails: Optional[List[str]] = None
    ) -> ExportResult:
        """Compatibility-mode export with e-mail and JSON."""
        return await self.generate_report_with_options(inspection_id, ExportOptions(
            mode="compatibility",
            send_email=True,
            recipient_emails=recipient_emails or [],
            include_json=True,
        ))

    async def generate_report_with_mode(self, inspection_id: str, mode: str) -> ExportResult:
        """Export in the given mode, JSON included, no e-mail."""
        return await self.generate_report_with_options(inspection_id, ExportOptions(
            mode=mode,
            send_email=False,
            include_json=True,
        ))

    async def get_export_history(self, inspection_id: str) -> List[ExportLogEntry]:
        """Export logs of an inspection, newest version first. Empty on error."""
        try:
            return await self.store.list_export_logs(inspection_id)
        except Exception as e:
            self.logger.error(f"Failed to load export history for {inspection_id}: {e}")
            return []

    async def retry_failed_export(self, export_log_id: str) -> RetryResult:
        """
        Retry a failed or stalled export.

        A log that failed before upload is regenerated without e-mail, one
        that was uploaded but never delivered gets its e-mail resent, and
        anything else is regenerated with its original options.
        """
        try:
            log = await self.store.get_export_log(export_log_id)
            if log is None:
                return RetryResult(success=False, export_log_id=export_log_id, error=LOG_NOT_FOUND)

            set_request_id(log.inspection_id)

            if log.status == "success":
                return RetryResult(success=False, export_log_id=export_log_id, error=ALREADY_SUCCEEDED)
            if log.retry_count >= config.max_export_retries:
                return RetryResult(success=False, export_log_id=export_log_id, error=MAX_RETRIES_EXCEEDED)

            await self.store.update_export_log(
                export_log_id,
                retry_count=log.retry_count + 1,
                status="pending",
                error_message=None,
            )
            self.logger.info(f"Retrying export {export_log_id} (attempt {log.retry_count + 1})")

            if log.status == "failed" and log.uploaded_at is None:
                error = await self._regenerate(log, send_email=False)
            elif log.status == "failed" and log.email_delivered_at is None:
                error = await self._resend_email(log)
            else:
                error = await self._regenerate(log, send_email=bool(log.metadata.get("send_email")))

            if error is None:
                return RetryResult(success=True, export_log_id=export_log_id, message=RETRY_SUCCEEDED)

            await self._mark_failed(export_log_id, error)
            return RetryResult(
                success=False,
                export_log_id=export_log_id,
                error=RETRY_FAILED,
                details=error,
            )

        except Exception as e:
            self.logger.error(f"Export retry failed: {e}", exc_info=True)
            return RetryResult(
                success=False,
                export_log_id=export_log_id,
                error="Erro interno no retry",
                details=str(e),
            )

    # ========================
    # Recipients
    # ========================

    async def resolve_default_recipients(self, inspection_id: str) -> List[str]:
        """The client contact when it is an e-mail address, else the organization address."""
        try:
            contact = await self.store.get_field_value(inspection_id, "client", "responsavel_local")
            is_valid, _, normalized = validate_email(contact)
            if is_valid:
                return [normalized]
        except Exception as e:
            self.logger.warning(f"Could not read client contact, using default recipient: {e}")

        return [config.default_recipient_email]

    # ========================
    # Steps
    # ========================

    async def _render(self, report: ReportObject) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.renderer.render, report)

    async def _publish(
        self,
        log: ExportLogEntry,
        report: ReportObject,
        options: ExportOptions,
        recipients: List[str],
        json_name: str
    ) -> ExportResult:
        warnings: List[str] = []

        pdf_bytes = await self._render(report)

        try:
            pdf_url = await self.artifacts.upload(log.file_name, pdf_bytes, "application/pdf")
        except ArtifactStoreError as e:
            self.logger.error(f"PDF upload failed: {e}")
            await self._mark_failed(log.id, f"Erro no upload do PDF: {e}")
            return ExportFailure(error="Erro ao salvar PDF no storage", export_log_id=log.id)

        json_url = None
        if options.include_json:
            json_bytes = json.dumps(
                report.model_dump(mode="json"), ensure_ascii=False, indent=2
            ).encode("utf-8")
            try:
                json_url = await self.artifacts.upload(json_name, json_bytes, "application/json")
            except ArtifactStoreError as e:
                self.logger.warning(f"JSON upload failed: {e}")
                warnings.append(f"JSON não foi salvo: {e}")

        metadata = {
            **log.metadata,
            "pdf_url": pdf_url,
            "json_url": json_url,
            "os_number": report.dados_iniciais.os_numero,
            "responsible_name": report.dados_iniciais.responsavel_local,
            "work_site": report.dados_iniciais.endereco,
        }
        log = await self.store.update_export_log(
            log.id,
            status="uploaded",
            uploaded_at=datetime.now(timezone.utc),
            file_path=f"{self.artifacts.bucket}/{log.file_name}",
            metadata=metadata,
        )

        email_sent = False
        if options.send_email and recipients:
            email_error = await self._send_email(log)
            email_sent = email_error is None
            if email_error:
                warnings.append(email_error)
        else:
            await self.store.update_export_log(log.id, status="success")

        self.logger.info(f"Export {log.id} finished: v{log.version}, e-mail sent: {email_sent}")

        return ExportSuccess(
            pdf_url=pdf_url,
            json_url=json_url,
            file_name=log.file_name,
            version=log.version,
            export_log_id=log.id,
            email_sent=email_sent,
            warnings=warnings,
        )

    async def _send_email(self, log: ExportLogEntry) -> Optional[str]:
        """
        Deliver the report e-mail for an uploaded export.

        Returns:
            None on success, the recorded error message otherwise
        """
        metadata = log.metadata
        pdf_url = metadata.get("pdf_url") or self.artifacts.public_url(log.file_name)

        email = build_report_email(
            inspection_id=log.inspection_id,
            client_name=metadata.get("client_name", ""),
            inspection_date=metadata.get("inspection_date", ""),
            version=log.version,
            os_number=metadata.get("os_number") or f"AUTO-{log.inspection_id[-8:]}",
            pdf_url=pdf_url,
            json_url=metadata.get("json_url"),
            work_site=metadata.get("work_site"),
            responsible_name=metadata.get("responsible_name"),
        )

        await self.store.update_export_log(
            log.id, status="sending_email", email_sent_at=datetime.now(timezone.utc)
        )

        result = await self.sink.send(NotificationPayload(
            type=REPORT_EMAIL_TYPE,
            message=email.subject,
            recipients=list(log.recipient_emails),
            urgency="low",
            inspection_id=log.inspection_id,
            data={
                "export_log_id": log.id,
                "subject": email.subject,
                "text_body": email.text_body,
                "html_body": email.html_body,
                "pdf_url": pdf_url,
                "json_url": metadata.get("json_url"),
                "version": log.version,
            },
        ))

        if not result.success:
            error = f"Erro no envio de e-mail: {result.error or 'falha desconhecida'}"
            self.logger.error(error)
            await self._mark_failed(log.id, error)
            return error

        await self.store.update_export_log(
            log.id, status="success", email_delivered_at=datetime.now(timezone.utc)
        )
        self.logger.info(f"Report e-mail delivered to {len(log.recipient_emails)} recipient(s)")
        return None

    async def _resend_email(self, log: ExportLogEntry) -> Optional[str]:
        if not log.recipient_emails:
            return "Nenhum destinatário registrado para reenvio"
        return await self._send_email(log)

    async def _regenerate(self, log: ExportLogEntry, send_email: bool) -> Optional[str]:
        result = await self.generate_report_with_options(log.inspection_id, ExportOptions(
            mode=log.metadata.get("mode", "compatibility"),
            send_email=send_email,
            recipient_emails=list(log.recipient_emails),
            include_json=log.metadata.get("include_json", True),
        ))
        if not result.success:
            return result.error

        await self.store.update_export_log(
            log.id,
            status="success",
            metadata={**log.metadata, "superseded_by": result.export_log_id},
        )
        return None

    async def _mark_failed(self, export_log_id: str, message: str):
        try:
            await self.store.update_export_log(export_log_id, status="failed", error_message=message)
        except Exception as e:
            self.logger.error(f"Failed to update export log {export_log_id}: {e}")


# ============================================================================
# CONVENIENCE FUNCTION
# ============================================================================

async def generate_report_with_options(
    inspection_id: str,
    options: ExportOptions,
    store: Optional[ModuleDataStore] = None
) -> ExportResult:
    """Export with default collaborators."""
    return await ReportExporter(store or ModuleDataStore()).generate_report_with_options(
        inspection_id, options
    )
