"""
Canonicalizer: turns raw ingestion payloads into typed records.

Deposit notifications arrive as the (title, text) pair forwarded from the
banking app, e.g.::

    title: "30,000원 입금"
    text:  "서동윤23 →  모임통장 (2581)"

Parsing is pure. Anything that is not a deposit into the target account
comes back as a ``ParseError`` value; callers drop it without persisting.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

from dues.core.clock import parse_timestamp
from dues.errors import ValidationError

ARROW_MARKER = "→"

# fields lifted out of an application payload; everything else is metadata
APPLICATION_FIELDS = ("name", "studentId", "email", "department", "phone", "submittedAt")


@dataclass(frozen=True)
class ParsedDeposit:
    depositor_name: str
    amount: int


@dataclass(frozen=True)
class ParseError:
    reason: str


DepositParseResult = Union[ParsedDeposit, ParseError]


@dataclass
class ApplicationSubmission:
    name: str
    student_id: str
    email: str | None = None
    department: str | None = None
    phone: str | None = None
    submitted_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def raw_notification(title: str, text: str) -> str:
    return f"{title} | {text}"


def parse_deposit_notification(
    title: str,
    text: str,
    *,
    account_marker: str,
    withdrawal_keyword: str,
    currency_marker: str,
) -> DepositParseResult:
    title = title or ""
    text = text or ""

    if not title or not text:
        return ParseError("title and text are required")

    # allow-list: deposits into the target account only
    if withdrawal_keyword and (withdrawal_keyword in title or withdrawal_keyword in text):
        return ParseError("withdrawal notification")
    if account_marker not in text:
        return ParseError("not the target account")

    amount_match = re.search(r"(\d[\d,]*)" + re.escape(currency_marker), title)
    if not amount_match:
        return ParseError(f"no amount in title: {title!r}")
    amount = int(amount_match.group(1).replace(",", ""))

    name_match = re.match(r"^\s*(.+?)\s*" + re.escape(ARROW_MARKER), text)
    if not name_match or not name_match.group(1).strip():
        return ParseError(f"no depositor name in text: {text!r}")

    return ParsedDeposit(depositor_name=name_match.group(1).strip(), amount=amount)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def canonicalize_application(payload: dict[str, Any]) -> ApplicationSubmission:
    """Validate a form submission. Raises ValidationError on missing fields."""
    if not isinstance(payload, dict):
        raise ValidationError("application payload must be a JSON object")

    name = _optional_text(payload.get("name"))
    student_id = _optional_text(payload.get("studentId"))
    missing = [key for key, value in (("name", name), ("studentId", student_id)) if not value]
    if missing:
        raise ValidationError(f"missing required fields: {', '.join(missing)}")

    submitted_at = None
    raw_submitted_at = payload.get("submittedAt")
    if raw_submitted_at:
        try:
            submitted_at = parse_timestamp(raw_submitted_at)
        except ValueError as exc:
            raise ValidationError(f"invalid submittedAt: {raw_submitted_at!r}") from exc

    return ApplicationSubmission(
        name=name,
        student_id=student_id,
        email=_optional_text(payload.get("email")),
        department=_optional_text(payload.get("department")),
        phone=_optional_text(payload.get("phone")),
        submitted_at=submitted_at,
        metadata={k: v for k, v in payload.items() if k not in APPLICATION_FIELDS},
    )
