"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of a capture session
2. Debugging capability when the parser or store misbehaves
3. A record of which low-confidence parses the user saved anyway

The audit logger:
- Is async so it can sit on the same await chain as the flows
- Never breaks the main flow if logging fails
- Supports correlation IDs to trace related events
"""

from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditSeverity


# Configure structlog for local logging
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
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.
    
    Writes every event to the structured local log and keeps the most
    recent ones in memory so the UI can show what just happened.
    """
    
    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("expense_tracker.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size
    
    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history))
    
    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.
        
        Returns False if the event could not be written.
        """
        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[: len(self._history) - self._history_size]
        
        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            self._logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False
        
        return True


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.
    
    Use this at the start of a new capture session.
    Pass it through all subsequent operations.
    """
    return uuid4()
