"""
Logging configuration for PromiseSeal.

Provides structured JSON logging for audit trails and debugging.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import List, Optional

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line so log aggregators can index audit fields.
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

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Logger for promise lifecycle and verification events.

    Never pass plaintext content, private key material or raw signatures
    here; promise ids, hashes and outcomes only.
    """

    def __init__(self, name: str = "promiseseal.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
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

    def promise_sealed(self, promise_id: str, fingerprint_hash: str) -> None:
        self._log(
            logging.INFO,
            "PROMISE_SEALED",
            promise_id=promise_id,
            fingerprint_hash=fingerprint_hash,
            message=f"Promise {promise_id} sealed"
        )

    def certificate_issued(self, promise_id: str, issuer: str, issued_at: int) -> None:
        self._log(
            logging.INFO,
            "CERTIFICATE_ISSUED",
            promise_id=promise_id,
            issuer=issuer,
            issued_at=issued_at,
            message=f"Certificate issued for promise {promise_id}"
        )

    def challenge_issued(self, subject_id: str, purpose: str, expires_at: float) -> None:
        self._log(
            logging.INFO,
            "CHALLENGE_ISSUED",
            subject_id=subject_id,
            purpose=purpose,
            expires_at=expires_at,
            message=f"Challenge issued for {subject_id}/{purpose}"
        )

    def challenge_consumed(self, subject_id: str, purpose: str, found: bool) -> None:
        level = logging.INFO if found else logging.WARNING
        self._log(
            level,
            "CHALLENGE_CONSUMED",
            subject_id=subject_id,
            purpose=purpose,
            found=found,
            message=f"Challenge {'consumed' if found else 'missing or expired'} for {subject_id}/{purpose}"
        )

    def artifact_built(self, promise_id: str, challenge: str) -> None:
        self._log(
            logging.INFO,
            "ARTIFACT_BUILT",
            promise_id=promise_id,
            challenge=challenge,
            message=f"Signed artifact built for promise {promise_id}"
        )

    def artifact_verified(
        self,
        promise_id: Optional[str],
        kind: str,
        is_valid: bool,
        failed_checks: Optional[List[str]] = None
    ) -> None:
        level = logging.INFO if is_valid else logging.WARNING
        self._log(
            level,
            "ARTIFACT_VERIFIED",
            promise_id=promise_id,
            kind=kind,
            is_valid=is_valid,
            failed_checks=failed_checks or [],
            message=f"Verification {'passed' if is_valid else 'failed'} for promise {promise_id}"
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

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Returns:
        The request ID that was set (generated when None)
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


# Global audit logger instance
audit_log = AuditLogger()
