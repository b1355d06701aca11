"""
Core Data Models for Voice Expense Tracker

These models define the schemas for all data flowing through the system:
1. What we send to the parsing service (ParseInput + ParseContext)
2. What it sends back (ParseResponse, untrusted)
3. The in-memory draft the user reviews (ExpenseDraft)
4. The persisted, immutable expense (ExpenseRecord)
5. The derived dashboard summary (AggregatedView)

DESIGN DECISION: Anything coming back from the parser is treated as
untrusted. Fields that cannot be interpreted are dropped to None rather than
failing the whole response - the user sees what was understood and decides.
"""

import datetime as dt
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID, uuid4

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


logger = structlog.get_logger(__name__)


UNCATEGORIZED = "Uncategorized"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TimeWindow(str, Enum):
    """
    Dashboard time windows.

    The value is the number of days looked back, or "all" for no filter.
    """
    LAST_7_DAYS = "7"
    LAST_30_DAYS = "30"
    LAST_90_DAYS = "90"
    ALL = "all"

    @property
    def label(self) -> str:
        if self is TimeWindow.ALL:
            return "All time"
        return f"{self.value} days"

    def start_date(self, today: dt.date) -> Optional[dt.date]:
        """First date included in the window, or None when unbounded."""
        if self is TimeWindow.ALL:
            return None
        return today - dt.timedelta(days=int(self.value))


class ReviewDecision(str, Enum):
    """
    Outcome of the confidence gate.

    NOTE: REQUIRE_REVIEW only controls whether the confirmation card is
    highlighted. It never blocks the save action.
    """
    AUTO_ACCEPT = "auto_accept"
    REQUIRE_REVIEW = "require_review"


# =============================================================================
# PARSE REQUEST MODELS
# =============================================================================

class TextInput(BaseModel):
    """Typed expense phrase, e.g. "coffee 120"."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    kind: Literal["text"] = "text"
    text: str = Field(..., min_length=1)


class AudioInput(BaseModel):
    """Recorded voice clip."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["audio"] = "audio"
    audio: bytes = Field(..., min_length=1, description="Encoded audio bytes")
    audio_format: str = Field(default="webm")


# Exactly one of text / audio ever reaches the wire.
ParseInput = Annotated[Union[TextInput, AudioInput], Field(discriminator="kind")]


class ParseContext(BaseModel):
    """Metadata sent alongside every parse request."""
    model_config = ConfigDict(frozen=True)

    owner_id: str = Field(..., min_length=1)
    source_tag: str = "bolt"
    device_tag: str = "web"
    timezone: str = "Asia/Kolkata"


# =============================================================================
# PARSE RESPONSE MODELS (untrusted)
# =============================================================================

_DATE_FORMATS = ["%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d"]


def _lenient_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.debug("parsed_field_dropped", field="amount", value=repr(value))
        return None
    return result if result.is_finite() else None


def _lenient_date(value: Any) -> Optional[dt.date]:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        for fmt in _DATE_FORMATS:
            try:
                return dt.datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        # Full ISO timestamps, e.g. "2025-10-01T00:00:00Z"
        try:
            return dt.datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
    logger.debug("parsed_field_dropped", field="date", value=repr(value))
    return None


def _lenient_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        text = str(value).strip()
        return text or None
    return None


def _lenient_confidence(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if not 0.0 <= score <= 1.0:
        logger.debug("parsed_field_dropped", field="ai_confidence", value=score)
        return None
    return score


class ParsedExpense(BaseModel):
    """
    Expense fields as understood by the parser.

    CRITICAL: This is PROPOSED data, NOT verified.
    Every field is optional and anything uninterpretable becomes None.
    """
    model_config = ConfigDict(extra="ignore")

    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    date: Optional[dt.date] = None
    category: Optional[str] = None
    vendor: Optional[str] = None
    description: Optional[str] = None
    ai_confidence: Optional[float] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v: Any) -> Optional[Decimal]:
        return _lenient_decimal(v)

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, v: Any) -> Optional[dt.date]:
        return _lenient_date(v)

    @field_validator("currency", "category", "vendor", "description", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Optional[str]:
        return _lenient_text(v)

    @field_validator("ai_confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, v: Any) -> Optional[float]:
        return _lenient_confidence(v)


class ParseResponse(BaseModel):
    """Body returned by the parsing endpoint."""
    model_config = ConfigDict(extra="ignore")

    ok: bool
    expense_id: Optional[str] = None
    ai_confidence: Optional[float] = None
    parsed: Optional[ParsedExpense] = None

    @field_validator("expense_id", mode="before")
    @classmethod
    def _coerce_expense_id(cls, v: Any) -> Optional[str]:
        return _lenient_text(v)

    @field_validator("ai_confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, v: Any) -> Optional[float]:
        return _lenient_confidence(v)

    @property
    def confidence(self) -> Optional[float]:
        """Top-level confidence, falling back to the one inside `parsed`."""
        if self.ai_confidence is not None:
            return self.ai_confidence
        if self.parsed is not None:
            return self.parsed.ai_confidence
        return None


# =============================================================================
# DRAFT AND RECORD
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    Unsaved candidate expense awaiting the user's Save or Discard.

    Lives only in memory, owned by the capture flow.
    `amount` and `date` may still be missing here; they are filled in by
    `finalize_draft` at the moment of saving.
    """
    model_config = ConfigDict(frozen=True)

    amount: Optional[Decimal] = None
    currency: str = "INR"
    date: Optional[dt.date] = None
    category: Optional[str] = None
    vendor: Optional[str] = None
    description: Optional[str] = None
    ai_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    # Raw typed phrase, used as the description fallback
    source_text: Optional[str] = None

    @classmethod
    def from_response(
        cls,
        response: ParseResponse,
        source_text: Optional[str] = None,
        default_currency: str = "INR",
    ) -> "ExpenseDraft":
        """Build a draft from a parse response (parsed may be missing)."""
        parsed = response.parsed or ParsedExpense()
        return cls(
            amount=parsed.amount,
            currency=parsed.currency or default_currency,
            date=parsed.date,
            category=parsed.category,
            vendor=parsed.vendor,
            description=parsed.description,
            ai_confidence=response.confidence,
            source_text=source_text,
        )


class ExpenseRecord(BaseModel):
    """
    A persisted expense.

    CRITICAL: Records are immutable. There is no edit path - an expense is
    either kept as saved or deleted by explicit user action.

    `category` is stored exactly as parsed (possibly None). The
    "Uncategorized" label is applied only when aggregating for display.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="Identity of the user this expense belongs to"
    )
    amount: Decimal = Field(
        ...,
        description="Amount in `currency`"
    )
    currency: str = Field(default="INR")
    date: dt.date = Field(
        ...,
        description="Calendar date the expense was incurred"
    )
    category: Optional[str] = None
    subcategory: Optional[str] = None
    vendor: Optional[str] = None
    description: Optional[str] = None
    ai_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    created_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc),
        description="When the record was saved"
    )


# =============================================================================
# AGGREGATION MODELS
# =============================================================================

class DailySpend(BaseModel):
    """Sum of amounts for one calendar date."""
    model_config = ConfigDict(frozen=True)

    date: dt.date
    amount: Decimal


class CategorySpend(BaseModel):
    """Sum of amounts for one category label."""
    model_config = ConfigDict(frozen=True)

    category: str
    amount: Decimal


class AggregatedView(BaseModel):
    """
    Dashboard summary derived from the currently loaded records.

    Never persisted - recomputed on every fetch.
    """
    model_config = ConfigDict(frozen=True)

    total_spend: Decimal = Decimal("0")
    transaction_count: int = Field(default=0, ge=0)
    average_per_transaction: Decimal = Decimal("0")
    daily_series: list[DailySpend] = Field(default_factory=list)
    top_categories: list[CategorySpend] = Field(default_factory=list)
