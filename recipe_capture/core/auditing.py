from recipe_capture.core.logging import LoggerRegistry
from recipe_capture.domain.models import AuditEvent

logger = LoggerRegistry.get_security_logger()


def log_audit_event(event: AuditEvent):
    """
    Logs an audit event in a structured format.

    One event is written per capture request, after the response status is
    known, so that the outcome of every uploaded image can be traced by
    correlation id.
    """
    logger.info(
        "audit_event",
        event_type="api_request",
        **event.model_dump(mode="json", exclude_none=True),
    )
