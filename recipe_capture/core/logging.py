import logging
import sys
from typing import Optional

import structlog

from recipe_capture.core.context import get_request_context

_configured = False


def correlation_id_processor(logger, method_name, event_dict):
    """Add correlation_id to the log record if it exists in the context."""
    context = get_request_context()
    if context and context.correlation_id:
        event_dict['correlation_id'] = context.correlation_id
    return event_dict


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured logging for the application."""
    global _configured
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            correlation_id_processor,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Returns a structlog logger, configuring structlog on first use.

    Args:
        name: Hierarchical logger name (e.g., 'service.hybrid_extraction', 'infrastructure.cloud_ocr')

    Returns:
        A configured structlog BoundLogger instance
    """
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)


class LoggerRegistry:
    """
    Logger registry with standardized naming conventions.

    Every component of the capture pipeline gets its logger from here so that
    log records share one hierarchical naming scheme.
    """

    @staticmethod
    def get_api_logger(endpoint: str) -> structlog.stdlib.BoundLogger:
        """Get a logger for API endpoints."""
        return get_logger(f"api.{endpoint}")

    @staticmethod
    def get_service_logger(service_name: str) -> structlog.stdlib.BoundLogger:
        """Get a logger for application services."""
        return get_logger(f"service.{service_name}")

    @staticmethod
    def get_infrastructure_logger(component: str) -> structlog.stdlib.BoundLogger:
        """Get a logger for infrastructure adapters."""
        return get_logger(f"infrastructure.{component}")

    @staticmethod
    def get_security_logger() -> structlog.stdlib.BoundLogger:
        """Get a logger for security and audit events."""
        return get_logger("security.audit")

    @staticmethod
    def get_stage_logger(stage: str, parent: Optional[str] = None) -> structlog.stdlib.BoundLogger:
        """Get a logger for a single pipeline stage."""
        if parent:
            return get_logger(f"pipeline.{parent}.{stage}")
        return get_logger(f"pipeline.{stage}")


def get_service_logger(service_name: str) -> structlog.stdlib.BoundLogger:
    """Convenience function for service loggers."""
    return LoggerRegistry.get_service_logger(service_name)


def get_infrastructure_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Convenience function for infrastructure loggers."""
    return LoggerRegistry.get_infrastructure_logger(component)
