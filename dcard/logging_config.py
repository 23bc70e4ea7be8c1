"""
Logging configuration for dcard.

Provides structured JSON logging and an audit logger for the card import
flow, so every resolution, verdict and failure can be traced per import.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for import ID tracking
import_id_var: ContextVar[str] = ContextVar('import_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs one JSON object per record, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        import_id = get_import_id()
        if import_id:
            log_data["import_id"] = import_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class ImportAuditLogger:
    """
    Specialized logger for card import events.

    One method per step of the import flow; each emits a record carrying
    an ``event_type`` and the current import ID.
    """

    def __init__(self, name: str = "dcard.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        extra = {
            "event_type": event_type,
            "import_id": get_import_id(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def import_requested(self, reference: str) -> None:
        self._log(
            logging.INFO,
            "IMPORT_REQUESTED",
            reference=reference,
            message=f"Import requested for {reference}"
        )

    def card_resolved(self, url: str, source: str, fingerprint: Optional[str] = None) -> None:
        self._log(
            logging.INFO,
            "CARD_RESOLVED",
            url=url,
            source=source,
            fingerprint=fingerprint,
            message=f"Card resolved via {source}"
        )

    def gateway_fallback(self, url: str, fingerprint: str, reason: str) -> None:
        """Log a direct fetch failure that triggers the gateway path."""
        self._log(
            logging.WARNING,
            "GATEWAY_FALLBACK",
            url=url,
            fingerprint=fingerprint,
            reason=reason,
            message=f"Direct fetch failed, trying gateway for {fingerprint}"
        )

    def verification_result(
        self,
        fingerprint: str,
        status: str,
        reason: Optional[str] = None,
        key_id: Optional[str] = None
    ) -> None:
        level = logging.INFO if status == "verified" else logging.WARNING
        self._log(
            level,
            "VERIFICATION_RESULT",
            fingerprint=fingerprint,
            status=status,
            reason=reason,
            key_id=key_id,
            message=f"Card {fingerprint} is {status}"
        )

    def integrity_failure(self, declared: Optional[str], computed: Optional[str]) -> None:
        self._log(
            logging.ERROR,
            "INTEGRITY_FAILURE",
            declared=declared,
            computed=computed,
            message="Fingerprint mismatch"
        )

    def persistence_failure(self, fingerprint: str, error: str) -> None:
        self._log(
            logging.WARNING,
            "PERSISTENCE_FAILURE",
            fingerprint=fingerprint,
            error=error,
            message=f"Could not store card {fingerprint}"
        )

    def import_failed(self, reference: str, category: str, error: str) -> None:
        self._log(
            logging.ERROR,
            "IMPORT_FAILED",
            reference=reference,
            category=category,
            error=error,
            message=f"Import failed: {error}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Logs go to stderr so CLI output on stdout stays machine-readable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_import_id(import_id: Optional[str] = None) -> str:
    """
    Set the import ID for the current context.

    Args:
        import_id: Import ID to set, or None to generate one

    Returns:
        The import ID that was set
    """
    if import_id is None:
        import_id = str(uuid.uuid4())
    import_id_var.set(import_id)
    return import_id


def get_import_id() -> str:
    """Get the current import ID."""
    return import_id_var.get()


# Global audit logger instance
audit_log = ImportAuditLogger()
