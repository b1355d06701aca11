"""
Audit Models for Voice Expense Tracker

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of a capture session, from phrase to saved expense
2. Debugging information when the parser or the store misbehaves
3. A record of what the user actually confirmed

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    
    Every step in the capture pipeline has its own event type.
    """
    # Voice capture
    RECORDING_STARTED = "recording_started"
    RECORDING_STOPPED = "recording_stopped"
    DEVICE_UNAVAILABLE = "device_unavailable"
    
    # Parsing
    PARSE_REQUESTED = "parse_requested"
    PARSE_RECEIVED = "parse_received"
    PARSE_FAILED = "parse_failed"
    REVIEW_REQUIRED = "review_required"
    
    # Human decision
    DRAFT_DISCARDED = "draft_discarded"
    
    # Persistence
    EXPENSE_SAVED = "expense_saved"
    EXPENSE_DELETED = "expense_deleted"
    SAVE_FAILED = "save_failed"
    DELETE_FAILED = "delete_failed"
    
    # Dashboard
    DASHBOARD_REFRESHED = "dashboard_refreshed"
    REFRESH_FAILED = "refresh_failed"
    
    # Access
    AUTH_REQUIRED = "auth_required"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.
    
    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """
    
    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )
    
    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )
    
    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'parse', 'dashboard')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    owner_id: Optional[str] = None
    
    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one capture session)"
    )
    
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    
    error_message: Optional[str] = None
    
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )
    
    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "owner_id": self.owner_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.
    
    Usage:
        event = AuditEventBuilder.parse_received(owner_id, confidence, correlation_id)
        event = AuditEventBuilder.expense_saved(expense_id, owner_id, amount, correlation_id)
    """
    
    @staticmethod
    def recording_started(owner_id: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDING_STARTED,
            entity_type="recording",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Microphone recording started",
            is_user_action=True,
        )
    
    @staticmethod
    def recording_stopped(
        owner_id: str,
        reason: str,
        size_bytes: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDING_STOPPED,
            entity_type="recording",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Recording stopped ({reason})",
            details={"reason": reason, "size_bytes": size_bytes},
        )
    
    @staticmethod
    def device_unavailable(
        owner_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEVICE_UNAVAILABLE,
            severity=AuditSeverity.WARNING,
            entity_type="recording",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Microphone could not be acquired",
            error_message=error_message,
        )
    
    @staticmethod
    def parse_requested(
        owner_id: str,
        input_kind: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_REQUESTED,
            entity_type="parse",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Parse requested for {input_kind} input",
            details={"input_kind": input_kind},
            is_user_action=True,
        )
    
    @staticmethod
    def parse_received(
        owner_id: str,
        expense_id: Optional[str],
        confidence: Optional[float],
        correlation_id: UUID,
    ) -> AuditEvent:
        if confidence is None:
            description = "Parse received without a confidence score"
        else:
            description = f"Parse received with {confidence:.0%} confidence"
        return AuditEvent(
            event_type=AuditEventType.PARSE_RECEIVED,
            entity_type="parse",
            entity_id=expense_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=description,
            details={"ai_confidence": confidence},
        )
    
    @staticmethod
    def parse_failed(
        owner_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="parse",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Parse request failed",
            error_message=error_message,
        )
    
    @staticmethod
    def review_required(
        owner_id: str,
        confidence: float,
        threshold: float,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REVIEW_REQUIRED,
            severity=AuditSeverity.WARNING,
            entity_type="parse",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Low confidence parse ({confidence:.0%}) flagged for review",
            details={"ai_confidence": confidence, "threshold": threshold},
        )
    
    @staticmethod
    def draft_discarded(owner_id: Optional[str], correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAFT_DISCARDED,
            entity_type="draft",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="User discarded the parsed expense",
            is_user_action=True,
        )
    
    @staticmethod
    def expense_saved(
        expense_id: UUID,
        owner_id: str,
        amount: str,
        currency: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            entity_type="expense",
            entity_id=str(expense_id),
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Expense saved: {amount} {currency}",
            details={"amount": amount, "currency": currency},
            is_user_action=True,
        )
    
    @staticmethod
    def save_failed(
        owner_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="expense",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Saving expense failed",
            error_message=error_message,
        )
    
    @staticmethod
    def expense_deleted(expense_id: UUID, owner_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=str(expense_id),
            owner_id=owner_id,
            description="Expense deleted",
            is_user_action=True,
        )
    
    @staticmethod
    def delete_failed(
        expense_id: UUID,
        owner_id: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DELETE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="expense",
            entity_id=str(expense_id),
            owner_id=owner_id,
            description="Deleting expense failed",
            error_message=error_message,
        )
    
    @staticmethod
    def dashboard_refreshed(
        owner_id: str,
        window: str,
        record_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DASHBOARD_REFRESHED,
            severity=AuditSeverity.DEBUG,
            entity_type="dashboard",
            owner_id=owner_id,
            description=f"Dashboard refreshed: {record_count} expenses ({window})",
            details={"window": window, "record_count": record_count},
        )
    
    @staticmethod
    def refresh_failed(owner_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REFRESH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="dashboard",
            owner_id=owner_id,
            description="Fetching expenses failed",
            error_message=error_message,
        )
    
    @staticmethod
    def auth_required(action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_REQUIRED,
            severity=AuditSeverity.WARNING,
            description=f"Sign-in required for {action}",
            details={"action": action},
        )
