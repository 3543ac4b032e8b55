"""Data models for the housing society backend."""
from dataclasses import dataclass
from typing import Dict, List, Optional
from enum import Enum


# One parsed spreadsheet line, keyed by normalized header
RawRow = Dict[str, str]


class FeedRow(dict):
    """A RawRow that remembers its 1-based data-line number, blank lines included."""

    def __init__(self, values=(), line_number: int = 0):
        super().__init__(values)
        self.line_number = line_number


class MaintenanceStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"
    OVERDUE = "overdue"


class UserRole(str, Enum):
    MANAGER = "manager"
    USER = "user"


@dataclass
class Member:
    """A society member reconstructed from one spreadsheet row."""
    member_id: str
    name: str
    email: str = ""
    phone: str = ""
    flat_no: str = ""
    wing: str = ""
    role: UserRole = UserRole.USER
    maintenance_status: MaintenanceStatus = MaintenanceStatus.PENDING
    outstanding_dues: float = 0.0

    def to_dict(self) -> dict:
        return {
            "memberId": self.member_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "flatNo": self.flat_no,
            "wing": self.wing,
            "role": self.role.value,
            "maintenanceStatus": self.maintenance_status.value,
            "outstandingDues": self.outstanding_dues,
        }


@dataclass
class MaintenanceBill:
    """
    A maintenance bill synthesized from a member's status and dues.

    These are not ledger entries: they are rebuilt on every sync and
    their ids depend on the row position in the spreadsheet.
    """
    id: str
    user_id: str
    flat_no: str
    amount: float
    due_date: str
    status: MaintenanceStatus
    month: str
    year: int
    paid_date: Optional[str] = None

    def to_dict(self) -> dict:
        bill = {
            "id": self.id,
            "userId": self.user_id,
            "flatNo": self.flat_no,
            "amount": self.amount,
            "dueDate": self.due_date,
            "status": self.status.value,
            "month": self.month,
            "year": self.year,
        }
        if self.paid_date:
            bill["paidDate"] = self.paid_date
        return bill


@dataclass
class SheetMember:
    """Minimal member projection used to answer membership checks and seed profiles."""
    member_id: str
    email: str
    name: str = ""
    phone: str = ""
    flat_no: str = ""
    wing: str = ""
    maintenance_status: MaintenanceStatus = MaintenanceStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "memberId": self.member_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "flatNo": self.flat_no,
            "wing": self.wing,
            "maintenanceStatus": self.maintenance_status.value,
        }


@dataclass
class DuesSummary:
    """Dashboard figures derived from the member collection."""
    total_members: int = 0
    pending_dues: int = 0
    total_dues_amount: float = 0.0
    recent_payments: int = 0

    def to_dict(self) -> dict:
        return {
            "totalMembers": self.total_members,
            "pendingDues": self.pending_dues,
            "totalDuesAmount": self.total_dues_amount,
            "recentPayments": self.recent_payments,
        }


@dataclass
class ReconcileResult:
    """Output of one reconciliation pass."""
    members: List[Member]
    bills: List[MaintenanceBill]
