import logging
import json
import sys
from typing import Any, Dict, Optional
from datetime import datetime, timezone

class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)

def setup_logging(
    level: str = "INFO",
    format_type: str = "structured",
    log_file: Optional[str] = None
):
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers = []

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)

    if format_type == "structured":
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    # File handler
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    # Configure root logger
    logging.basicConfig(
        level=numeric_level,
        handlers=handlers,
        force=True
    )

    # Reduce noise from libraries
    logging.getLogger("faker").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

class AuditLogger:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("aml_monitor.audit")

    def log_violation(
        self,
        violation_id: str,
        record_id: str,
        rule_id: str,
        severity: str,
        confidence: int,
        metadata: Dict[str, Any]
    ):
        self.logger.info(
            "Violation raised",
            extra={
                "extra_fields": {
                    "event_type": "violation",
                    "violation_id": violation_id,
                    "record_id": record_id,
                    "rule_id": rule_id,
                    "severity": severity,
                    "confidence": confidence,
                    "metadata": metadata
                }
            }
        )

    def log_status_change(
        self,
        violation_id: str,
        old_status: str,
        new_status: str,
        reviewer: str
    ):
        self.logger.info(
            "Violation status changed",
            extra={
                "extra_fields": {
                    "event_type": "status_change",
                    "violation_id": violation_id,
                    "old_status": old_status,
                    "new_status": new_status,
                    "reviewer": reviewer
                }
            }
        )

    def log_scan(
        self,
        scan_id: str,
        records_scanned: int,
        violations_found: int,
        compliance_score: int,
        duration_ms: int
    ):
        self.logger.info(
            "Compliance scan completed",
            extra={
                "extra_fields": {
                    "event_type": "scan",
                    "scan_id": scan_id,
                    "records_scanned": records_scanned,
                    "violations_found": violations_found,
                    "compliance_score": compliance_score,
                    "duration_ms": duration_ms
                }
            }
        )
