"""
SoundCheck Logging Configuration
Structured logging setup with file rotation and domain event loggers
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional

import structlog
from pythonjsonlogger import jsonlogger

from .config import get_settings

settings = get_settings()


def setup_logging() -> logging.Logger:
    """Set up structured logging for SoundCheck"""

    # Create logs directory
    log_dir = Path(settings.LOG_FILE_PATH).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    # Configure standard library logging
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper()),
        format=settings.LOG_FORMAT,
        handlers=[]  # Will be set below
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)

    if settings.is_development:
        console_formatter = logging.Formatter(
            '\033[92m%(asctime)s\033[0m - '
            '\033[94m%(name)s\033[0m - '
            '\033[%(levelno)s;1m%(levelname)s\033[0m - '
            '%(message)s',
            datefmt='%H:%M:%S'
        )
    else:
        # JSON formatter for production
        console_formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s'
        )

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    # File handler with rotation
    file_handler = logging.handlers.RotatingFileHandler(
        settings.LOG_FILE_PATH,
        maxBytes=settings.LOG_MAX_SIZE,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)

    file_formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(pathname)s %(lineno)d %(funcName)s %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if not settings.is_development
            else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Adjust third-party library log levels
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    # Domain loggers
    logging.getLogger("soundcheck.ledger").setLevel(logging.INFO)
    logging.getLogger("soundcheck.lifecycle").setLevel(logging.INFO)
    logging.getLogger("soundcheck.rating").setLevel(logging.INFO)

    logger = logging.getLogger("soundcheck")
    logger.info(f"Logging configured - Level: {settings.LOG_LEVEL}")

    return logger


class LedgerLogger:
    """Logger for credit balance mutations"""

    def __init__(self):
        self.logger = structlog.get_logger("soundcheck.ledger")

    def log_mutation(
        self,
        user_id: str,
        amount: int,
        transaction_type: str,
        balance: int,
        reference_id: Optional[str] = None
    ) -> None:
        """Log a committed-to-transaction balance change"""
        self.logger.info(
            "Credit balance changed",
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type,
            balance=balance,
            reference_id=reference_id
        )

    def log_insufficient(self, user_id: str, requested: int) -> None:
        """Log a guarded deduction that matched no rows"""
        self.logger.info(
            "Insufficient credits",
            user_id=user_id,
            requested=requested
        )


class LifecycleLogger:
    """Logger for track state transitions and janitor runs"""

    def __init__(self):
        self.logger = structlog.get_logger("soundcheck.lifecycle")

    def log_transition(
        self,
        track_id: str,
        from_status: str,
        to_status: str,
        **kwargs: Any
    ) -> None:
        """Log a track status change"""
        self.logger.info(
            "Track status changed",
            track_id=track_id,
            from_status=from_status,
            to_status=to_status,
            **kwargs
        )

    def log_rollback(self, operation: str, reason: str, **kwargs: Any) -> None:
        """Log a compensating action"""
        self.logger.warning(
            "Compensating action applied",
            operation=operation,
            reason=reason,
            **kwargs
        )

    def log_deleted(self, track_id: str, user_id: str) -> None:
        """Log a soft delete"""
        self.logger.info("Track soft-deleted", track_id=track_id, user_id=user_id)

    def log_reclaim(self, kind: str, removed: int, failed: int = 0) -> None:
        """Log a janitor pass"""
        self.logger.info(
            "Stale records reclaimed",
            kind=kind,
            removed=removed,
            failed=failed
        )

    def log_error(self, operation: str, error: str, **kwargs: Any) -> None:
        """Log a lifecycle failure"""
        self.logger.error(
            "Lifecycle operation failed",
            operation=operation,
            error=error,
            **kwargs
        )


class RatingLogger:
    """Logger for rating intake and insight milestones"""

    def __init__(self):
        self.logger = structlog.get_logger("soundcheck.rating")

    def log_rating_recorded(
        self,
        track_id: str,
        rater_id: str,
        votes_received: int,
        credits_earned: int
    ) -> None:
        """Log an accepted rating"""
        self.logger.info(
            "Rating recorded",
            track_id=track_id,
            rater_id=rater_id,
            votes_received=votes_received,
            credits_earned=credits_earned
        )

    def log_duplicate(self, track_id: str, rater_id: str) -> None:
        """Log a duplicate rating attempt"""
        self.logger.info(
            "Duplicate rating ignored",
            track_id=track_id,
            rater_id=rater_id
        )

    def log_milestone(self, track_id: str, milestone: int) -> None:
        """Log a vote milestone crossing"""
        self.logger.info(
            "Vote milestone reached",
            track_id=track_id,
            milestone=milestone
        )

    def log_insight_error(self, track_id: str, milestone: int, error: str) -> None:
        """Log an insight generation failure"""
        self.logger.error(
            "Insight generation failed",
            track_id=track_id,
            milestone=milestone,
            error=error
        )


class PerformanceLogger:
    """Logger for performance monitoring"""

    def __init__(self):
        self.logger = structlog.get_logger("soundcheck.performance")

    def log_score_computation(
        self,
        track_id: str,
        duration_ms: float,
        ratings: int,
        peers: int,
        committed: bool
    ) -> None:
        """Log score computation timing"""
        self.logger.info(
            "Score computation finished",
            track_id=track_id,
            duration_ms=duration_ms,
            ratings=ratings,
            peers=peers,
            committed=committed
        )


# Create global logger instances
ledger_logger = LedgerLogger()
lifecycle_logger = LifecycleLogger()
rating_logger = RatingLogger()
performance_logger = PerformanceLogger()

__all__ = [
    "setup_logging",
    "LedgerLogger",
    "LifecycleLogger",
    "RatingLogger",
    "PerformanceLogger",
    "ledger_logger",
    "lifecycle_logger",
    "rating_logger",
    "performance_logger"
]
