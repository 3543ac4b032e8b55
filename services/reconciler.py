"""
Member/Bill reconciliation.

Maps parsed feed rows onto Member records and synthesizes maintenance
bills from each member's status and outstanding dues.

Bill synthesis rules:
- dues > 0 or status != paid: one bill for the current month, due on
  the 15th, for the outstanding amount (or the default amount)
- status == paid: one paid bill for the previous month, paid on the
  10th and due on the 15th

Both rules read the same status field, so a paid member who still has
dues on the sheet gets both bills in the same pass.
"""

import calendar
import logging
import math
import re
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from models.society import (
    DuesSummary,
    MaintenanceBill,
    MaintenanceStatus,
    Member,
    RawRow,
    ReconcileResult,
    SheetMember,
    UserRole,
)

logger = logging.getLogger(__name__)

DEFAULT_MAINTENANCE_AMOUNT = 5000.0
BILL_DUE_DAY = 15
BILL_PAID_DAY = 10
UNKNOWN_NAME = "Unknown"

# Canonical field -> header aliases, first non-empty match wins
FIELD_ALIASES: List[Tuple[str, Tuple[str, ...]]] = [
    ("member_id", ("memberid", "member_id", "sr.no.")),
    ("name", ("name(primarymember)", "name")),
    ("email", ("emailaddress", "email")),
    ("phone", ("contactnumber(primarymember)", "phone")),
    ("flat_no", ("flatno.", "flatno", "flat")),
    ("wing", ("wing", "building")),
    ("role", ("role",)),
    ("maintenance_status", ("maintenancestatus", "status")),
]

DUES_ALIASES: Tuple[str, ...] = ("outstandingdues", "dues", "amountdue")

_PAID_VALUES = {"paid", "clear", "yes"}
_OVERDUE_VALUES = {"overdue", "late", "no"}

# Currency symbols, thousands separators and whitespace
_AMOUNT_NOISE_RE = re.compile(r"[,\s₹$€£]|rs\.?|inr", re.IGNORECASE)


def resolve_fields(row: RawRow) -> Dict[str, str]:
    """Resolve every canonical field of a row through its alias list."""
    resolved = {}
    for field_name, aliases in FIELD_ALIASES:
        resolved[field_name] = ""
        for alias in aliases:
            value = (row.get(alias) or "").strip()
            if value:
                resolved[field_name] = value
                break
    return resolved


def normalize_status(value: str) -> MaintenanceStatus:
    """Map free-text sheet status to paid/overdue/pending."""
    normalized = (value or "").strip().lower()
    if normalized in _PAID_VALUES:
        return MaintenanceStatus.PAID
    if normalized in _OVERDUE_VALUES:
        return MaintenanceStatus.OVERDUE
    return MaintenanceStatus.PENDING


def _parse_amount(value: str) -> Optional[float]:
    cleaned = _AMOUNT_NOISE_RE.sub("", value or "")
    if not cleaned:
        return None
    try:
        amount = float(cleaned)
    except ValueError:
        return None
    return amount if math.isfinite(amount) else None


def parse_dues(row: RawRow) -> float:
    """Outstanding dues from the first numeric dues column; 0 when absent. Never negative."""
    for alias in DUES_ALIASES:
        amount = _parse_amount(row.get(alias, ""))
        if amount is not None:
            return max(amount, 0.0)
    return 0.0


def synthesize_member_id(ordinal: int) -> str:
    return f"USR{ordinal:03d}"


def build_member(row: RawRow, ordinal: int) -> Optional[Member]:
    """Build a Member from a row, or None when the row has no usable name."""
    fields = resolve_fields(row)

    name = fields["name"]
    if not name or name == UNKNOWN_NAME:
        return None

    role = UserRole.MANAGER if fields["role"].lower() == UserRole.MANAGER.value else UserRole.USER

    return Member(
        member_id=fields["member_id"] or synthesize_member_id(ordinal),
        name=name,
        email=fields["email"].lower(),
        phone=fields["phone"],
        flat_no=fields["flat_no"],
        wing=fields["wing"],
        role=role,
        maintenance_status=normalize_status(fields["maintenance_status"]),
        outstanding_dues=parse_dues(row),
    )


def build_sheet_member(row: RawRow, ordinal: int) -> Optional[SheetMember]:
    """Build the membership-check projection, or None when the row has no email."""
    fields = resolve_fields(row)

    email = fields["email"].lower()
    if not email:
        return None

    return SheetMember(
        member_id=fields["member_id"] or synthesize_member_id(ordinal),
        email=email,
        name=fields["name"],
        phone=fields["phone"],
        flat_no=fields["flat_no"],
        wing=fields["wing"],
        maintenance_status=normalize_status(fields["maintenance_status"]),
    )


def _previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def _bill_id(member_id: str, year: int, month: int, ordinal: int) -> str:
    return f"{member_id}-{year}{month:02d}-{ordinal}"


def synthesize_bills(
    member: Member,
    ordinal: int,
    today: date,
    default_amount: float = DEFAULT_MAINTENANCE_AMOUNT,
) -> List[MaintenanceBill]:
    """Derive current and previous period bills for one member."""
    bills = []
    status = member.maintenance_status

    if member.outstanding_dues > 0 or status != MaintenanceStatus.PAID:
        amount = member.outstanding_dues if member.outstanding_dues > 0 else default_amount
        bills.append(MaintenanceBill(
            id=_bill_id(member.member_id, today.year, today.month, ordinal),
            user_id=member.member_id,
            flat_no=member.flat_no,
            amount=amount,
            due_date=date(today.year, today.month, BILL_DUE_DAY).isoformat(),
            status=status,
            month=calendar.month_name[today.month],
            year=today.year,
        ))

    if status == MaintenanceStatus.PAID:
        year, month = _previous_month(today.year, today.month)
        bills.append(MaintenanceBill(
            id=_bill_id(member.member_id, year, month, ordinal),
            user_id=member.member_id,
            flat_no=member.flat_no,
            amount=default_amount,
            due_date=date(year, month, BILL_DUE_DAY).isoformat(),
            status=MaintenanceStatus.PAID,
            paid_date=date(year, month, BILL_PAID_DAY).isoformat(),
            month=calendar.month_name[month],
            year=year,
        ))

    return bills


def row_ordinal(row: RawRow, position: int) -> int:
    """Data-line number of a parsed row; plain mappings fall back to their position."""
    return getattr(row, "line_number", 0) or position


def reconcile(
    rows: Sequence[RawRow],
    today: Optional[date] = None,
    default_amount: float = DEFAULT_MAINTENANCE_AMOUNT,
) -> ReconcileResult:
    """Map feed rows to members and synthesized bills, preserving row order."""
    today = today or date.today()
    members: List[Member] = []
    bills: List[MaintenanceBill] = []
    skipped = 0

    for position, row in enumerate(rows, start=1):
        ordinal = row_ordinal(row, position)
        member = build_member(row, ordinal)
        if member is None:
            skipped += 1
            continue
        members.append(member)
        bills.extend(synthesize_bills(member, ordinal, today, default_amount))

    logger.info(
        f"Reconciled {len(members)} members and {len(bills)} bills "
        f"({skipped} rows skipped without a name)"
    )
    return ReconcileResult(members=members, bills=bills)


def collect_sheet_members(rows: Sequence[RawRow]) -> List[SheetMember]:
    """Project feed rows onto SheetMember records, skipping rows without an email."""
    sheet_members = []
    for position, row in enumerate(rows, start=1):
        sheet_member = build_sheet_member(row, row_ordinal(row, position))
        if sheet_member is not None:
            sheet_members.append(sheet_member)
    return sheet_members


def summarize(members: Sequence[Member]) -> DuesSummary:
    """Dashboard dues figures for a member collection."""
    return DuesSummary(
        total_members=len(members),
        pending_dues=sum(1 for m in members if m.maintenance_status != MaintenanceStatus.PAID),
        total_dues_amount=sum(m.outstanding_dues for m in members),
        recent_payments=sum(1 for m in members if m.maintenance_status == MaintenanceStatus.PAID),
    )
