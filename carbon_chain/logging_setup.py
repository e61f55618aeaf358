"""
CarbonChain - Logging System
==============================
Sistema logging strutturato JSON per audit e debugging.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Features:
- Logging JSON strutturato
- Rotation automatica
- Context enrichment
- Performance tracking chiamate esterne (RPC, metadata, DB)
- Audit trail emissioni, acquisti e divergenze chain/database
"""

import logging
import logging.handlers
import json
import sys
import time
from pathlib import Path
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import traceback


def _utc_iso(created: float) -> str:
    return datetime.fromtimestamp(created, tz=timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + "Z"


# ============================================================================
# JSON FORMATTER
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    Formatter per log in formato JSON.

    Output structure:
    {
        "timestamp": "2026-10-19T10:00:00.000Z",
        "level": "INFO",
        "logger": "carbonchain.issuance",
        "message": "Credits minted",
        "extra_data": {...},
        "exception": {...}
    }
    """

    def __init__(
        self,
        include_extra: bool = True,
        include_stack: bool = True
    ):
        super().__init__()
        self.include_extra = include_extra
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        """
        Formatta LogRecord in JSON.

        Args:
            record: LogRecord da formattare

        Returns:
            str: JSON string
        """
        log_data = {
            "timestamp": _utc_iso(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.thread:
            log_data["thread_name"] = record.threadName

        if self.include_extra and hasattr(record, 'extra_data'):
            log_data["extra_data"] = record.extra_data

        if record.exc_info and self.include_stack:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_data, default=str)


# ============================================================================
# TEXT FORMATTER (Human-Readable)
# ============================================================================

class ColoredTextFormatter(logging.Formatter):
    """
    Formatter colorato per console.

    Colors:
    - DEBUG: Gray
    - INFO: Green
    - WARNING: Yellow
    - ERROR: Red
    - CRITICAL: Bold Red
    """

    COLORS = {
        'DEBUG': '\033[90m',
        'INFO': '\033[92m',
        'WARNING': '\033[93m',
        'ERROR': '\033[91m',
        'CRITICAL': '\033[1;91m',
        'RESET': '\033[0m'
    }

    def format(self, record: logging.LogRecord) -> str:
        """Formatta con colori (senza alterare il record condiviso)"""
        levelname = record.levelname
        color = self.COLORS.get(levelname)
        level = f"{color}{levelname}{self.COLORS['RESET']}" if color else levelname

        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime('%Y-%m-%d %H:%M:%S')

        message = f"{timestamp} [{level}] {record.name}: {record.getMessage()}"

        if getattr(record, 'extra_data', None):
            message += f" | {record.extra_data}"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


# ============================================================================
# LOGGER CLASS
# ============================================================================

class CarbonChainLogger:
    """
    Wrapper logger con context enrichment e structured logging.

    Example:
        >>> logger = get_logger("settlement")
        >>> logger.info("Purchase recorded", extra_data={"quantity": 10})
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self._context: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self._logger.name

    def set_context(self, **kwargs):
        """
        Imposta context (aggiunto a tutti i log di questo wrapper).

        Example:
            >>> logger.set_context(chain_id=80002)
        """
        self._context.update(kwargs)

    def clear_context(self):
        """Clear context"""
        self._context.clear()

    def _log(
        self,
        level: int,
        message: str,
        extra_data: Optional[Dict[str, Any]] = None,
        exc_info=None
    ):
        merged_extra = {**self._context}
        if extra_data:
            merged_extra.update(extra_data)

        self._logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={'extra_data': merged_extra} if merged_extra else {},
            stacklevel=3
        )

    def debug(self, message: str, extra_data: Optional[Dict] = None):
        """Log DEBUG"""
        self._log(logging.DEBUG, message, extra_data)

    def info(self, message: str, extra_data: Optional[Dict] = None):
        """Log INFO"""
        self._log(logging.INFO, message, extra_data)

    def warning(self, message: str, extra_data: Optional[Dict] = None):
        """Log WARNING"""
        self._log(logging.WARNING, message, extra_data)

    def error(self, message: str, extra_data: Optional[Dict] = None, exc_info=None):
        """Log ERROR"""
        self._log(logging.ERROR, message, extra_data, exc_info)

    def critical(self, message: str, extra_data: Optional[Dict] = None, exc_info=None):
        """Log CRITICAL"""
        self._log(logging.CRITICAL, message, extra_data, exc_info)

    def exception(self, message: str, extra_data: Optional[Dict] = None):
        """Log exception con traceback"""
        self._log(logging.ERROR, message, extra_data, exc_info=sys.exc_info())


# ============================================================================
# SETUP FUNCTION
# ============================================================================

def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = True,
    log_dir: Path = Path("./logs"),
    log_format: str = "json",
    log_rotation_mb: int = 100,
    log_retention_days: int = 30,
    enable_console: bool = True,
) -> CarbonChainLogger:
    """
    Setup logging system completo.

    Args:
        log_level: Level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Salva su file
        log_dir: Directory log files
        log_format: Formato (json, text)
        log_rotation_mb: MB prima rotation
        log_retention_days: File di backup mantenuti
        enable_console: Log anche su console

    Returns:
        CarbonChainLogger: Logger radice configurato

    Example:
        >>> logger = setup_logging(log_level="DEBUG", log_to_file=False)
        >>> logger.info("API started", extra_data={"port": 8000})
    """
    root_logger = logging.getLogger("carbonchain")
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    text_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    if log_to_file:
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "carbonchain.log",
            maxBytes=log_rotation_mb * 1024 * 1024,
            backupCount=log_retention_days,
            encoding='utf-8'
        )
        file_handler.setFormatter(
            JSONFormatter() if log_format == "json" else logging.Formatter(text_format)
        )
        root_logger.addHandler(file_handler)

        # Log errori separato (divergenze chain/DB finiscono qui)
        error_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "carbonchain_errors.log",
            maxBytes=log_rotation_mb * 1024 * 1024,
            backupCount=log_retention_days,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(
            JSONFormatter(include_stack=True) if log_format == "json" else logging.Formatter(text_format)
        )
        root_logger.addHandler(error_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ColoredTextFormatter())
        root_logger.addHandler(console_handler)

    return CarbonChainLogger(root_logger)


# ============================================================================
# CATEGORY LOGGERS
# ============================================================================

def get_logger(category: str) -> CarbonChainLogger:
    """
    Ottieni logger per categoria specifica.

    Args:
        category: Categoria (issuance, settlement, blockchain, api, ...)

    Returns:
        CarbonChainLogger: Logger `carbonchain.<category>`

    Example:
        >>> chain_logger = get_logger("blockchain")
        >>> chain_logger.info("Connected to RPC")
    """
    return CarbonChainLogger(logging.getLogger(f"carbonchain.{category}"))


# ============================================================================
# PERFORMANCE TRACKING
# ============================================================================

class PerformanceLogger:
    """
    Context manager per tracking durata chiamate esterne.

    Example:
        >>> logger = get_logger("blockchain")
        >>> with PerformanceLogger(logger, "mintCredit", threshold_ms=30000):
        ...     contract.mint_credit(to, 400, uri)
        # Logs: "mintCredit completed in 123.40ms"
    """

    def __init__(
        self,
        logger: CarbonChainLogger,
        operation: str,
        threshold_ms: Optional[int] = None
    ):
        self.logger = logger
        self.operation = operation
        self.threshold_ms = threshold_ms
        self.start_time: Optional[float] = None
        self.elapsed_ms: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000

        extra = {
            "operation": self.operation,
            "duration_ms": round(self.elapsed_ms, 2),
            "failed": exc_type is not None,
        }

        if exc_type is not None:
            self.logger.warning(
                f"{self.operation} failed after {self.elapsed_ms:.2f}ms",
                extra_data=extra
            )
        elif self.threshold_ms and self.elapsed_ms > self.threshold_ms:
            self.logger.warning(
                f"{self.operation} took {self.elapsed_ms:.2f}ms (threshold: {self.threshold_ms}ms)",
                extra_data=extra
            )
        else:
            self.logger.debug(
                f"{self.operation} completed in {self.elapsed_ms:.2f}ms",
                extra_data=extra
            )

        return False


# ============================================================================
# AUDIT LOGGER
# ============================================================================

class AuditLogger:
    """
    Logger specializzato per audit trail.

    Use for:
    - Submission progetti
    - Decisioni review (approve/reject)
    - Mint on-chain
    - Acquisti (settlement)
    - Divergenze chain/database (nessuna riconciliazione automatica)

    Senza log_dir i record vanno solo ai handler del logger radice.
    """

    def __init__(self, log_dir: Optional[Path] = None):
        self.logger = logging.getLogger("carbonchain.audit")
        self.logger.setLevel(logging.INFO)

        if log_dir is not None:
            log_dir.mkdir(parents=True, exist_ok=True)
            audit_file = (log_dir / "audit.log").resolve()

            already_attached = any(
                isinstance(h, logging.FileHandler) and Path(h.baseFilename) == audit_file
                for h in self.logger.handlers
            )
            if not already_attached:
                # No rotation per audit - keep all
                handler = logging.FileHandler(audit_file, encoding='utf-8')
                handler.setFormatter(JSONFormatter(include_extra=True))
                self.logger.addHandler(handler)

    def _record(self, level: int, message: str, action: str, **fields):
        self.logger.log(
            level,
            message,
            extra={
                'extra_data': {
                    "action": action,
                    **fields,
                    "timestamp": datetime.now(timezone.utc).isoformat()
                }
            }
        )

    def log_project_submitted(self, project_id: str, submitted_by: str, estimated_co2_tons: int):
        """Log submission progetto"""
        self._record(
            logging.INFO, "Project submitted", "project_submitted",
            project_id=project_id,
            submitted_by=submitted_by,
            estimated_co2_tons=estimated_co2_tons,
        )

    def log_review_decision(self, project_id: str, decision: str, notes: str):
        """Log decisione admin"""
        self._record(
            logging.INFO, "Project reviewed", "project_reviewed",
            project_id=project_id,
            decision=decision,
            notes=notes,
        )

    def log_mint(
        self,
        project_id: str,
        token_id: str,
        amount: int,
        recipient: str,
        tx_hash: str
    ):
        """Log mint on-chain"""
        self._record(
            logging.INFO, "Credits minted", "credits_minted",
            project_id=project_id,
            token_id=token_id,
            amount=amount,
            recipient=recipient,
            tx_hash=tx_hash,
        )

    def log_settlement(
        self,
        project_id: str,
        buyer_id: str,
        quantity: int,
        total_wei: int,
        tx_hash: str
    ):
        """Log acquisto crediti"""
        self._record(
            logging.INFO, "Credits purchased", "credits_purchased",
            project_id=project_id,
            buyer_id=buyer_id,
            quantity=quantity,
            total_wei=str(total_wei),
            tx_hash=tx_hash,
        )

    def log_divergence(self, kind: str, project_id: str, tx_hash: Optional[str], reason: str, **fields):
        """
        Log divergenza chain/database.

        kind: "mint_without_mirror", "mint_without_project_update",
              "payment_without_receipt", "payment_without_decrement"
        """
        self._record(
            logging.ERROR, "Chain/database divergence", "divergence",
            kind=kind,
            project_id=project_id,
            tx_hash=tx_hash,
            reason=reason,
            **fields,
        )


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "setup_logging",
    "get_logger",
    "CarbonChainLogger",
    "PerformanceLogger",
    "AuditLogger",
    "JSONFormatter",
    "ColoredTextFormatter",
]
