"""
Order record model: statuses, actors, timeline events and the order entity.

The admin-approval sub-record is not stored independently. An order carries its
status plus an optional approval decision, and `adminApproval` is derived from
the pair; construction fails for any pair that breaks the approval invariants.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, computed_field, model_validator
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    AWAITING_APPROVAL = "awaiting_approval"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"  # cancelled by the customer before any admin decision


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class OrderCategory(str, Enum):
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REJECTED})

FULFILLMENT_STATUSES = (
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

CATEGORY_BY_STATUS: dict[OrderStatus, OrderCategory] = {
    OrderStatus.AWAITING_APPROVAL: OrderCategory.ONGOING,
    OrderStatus.CONFIRMED: OrderCategory.ONGOING,
    OrderStatus.PROCESSING: OrderCategory.ONGOING,
    OrderStatus.SHIPPED: OrderCategory.ONGOING,
    OrderStatus.DELIVERED: OrderCategory.COMPLETED,
    OrderStatus.CANCELLED: OrderCategory.CANCELLED,
    OrderStatus.REJECTED: OrderCategory.CANCELLED,
}

STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.AWAITING_APPROVAL: "Awaiting Admin Approval",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.PROCESSING: "Processing",
    OrderStatus.SHIPPED: "Shipped",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.REJECTED: "Rejected",
}

# Exact decimal in Python, plain JSON number on the wire. Whole cents only.
Money = Annotated[
    Decimal,
    Field(ge=0, decimal_places=2),
    PlainSerializer(float, return_type=float, when_used="json"),
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Immutable model serialized with camelCase keys; accepts snake_case too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Actor(CamelModel):
    id: str = Field(..., min_length=1, description="User id of whoever triggers the action")
    role: Role
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class TimelineEvent(CamelModel):
    status: OrderStatus
    note: str = ""
    timestamp: datetime
    updated_by: Actor | None = None


class ApprovalDecision(CamelModel):
    """What an admin decided on a pending order."""

    approved: bool
    remarks: str | None = None
    decided_by: Actor
    decided_at: datetime


class AdminApproval(CamelModel):
    status: ApprovalStatus
    remarks: str | None = None
    decided_by: Actor | None = None
    decided_at: datetime | None = None


class Order(CamelModel):
    id: str
    order_number: str
    customer_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    status: OrderStatus = OrderStatus.AWAITING_APPROVAL
    decision: ApprovalDecision | None = Field(default=None, exclude=True)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: str | None = None
    total_amount: Money
    timeline: tuple[TimelineEvent, ...] = ()
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def _decision_from_admin_approval(cls, data):
        # Serialized orders carry only adminApproval; rebuild the decision it was derived from.
        if not isinstance(data, dict) or "decision" in data:
            return data
        approval = data.get("adminApproval", data.get("admin_approval"))
        if isinstance(approval, AdminApproval):
            approval = approval.model_dump()
        if not isinstance(approval, dict) or approval.get("status") not in ("approved", "rejected"):
            return data
        decision = {
            "approved": approval["status"] == "approved",
            "remarks": approval.get("remarks"),
            "decided_by": approval.get("decidedBy", approval.get("decided_by")),
            "decided_at": approval.get("decidedAt", approval.get("decided_at")),
        }
        return {**data, "decision": decision}

    @model_validator(mode="after")
    def _check_approval_state(self) -> "Order":
        if self.decision is None:
            consistent = self.status in (OrderStatus.AWAITING_APPROVAL, OrderStatus.CANCELLED)
        elif self.decision.approved:
            consistent = self.status not in (OrderStatus.AWAITING_APPROVAL, OrderStatus.REJECTED)
        else:
            consistent = self.status is OrderStatus.REJECTED
        if not consistent:
            decided = "none" if self.decision is None else ("approved" if self.decision.approved else "rejected")
            raise ValueError(f"order status {self.status.value!r} is inconsistent with approval decision {decided!r}")
        return self

    @property
    def approval_status(self) -> ApprovalStatus:
        if self.decision is not None:
            return ApprovalStatus.APPROVED if self.decision.approved else ApprovalStatus.REJECTED
        if self.status is OrderStatus.AWAITING_APPROVAL:
            return ApprovalStatus.PENDING
        return ApprovalStatus.WITHDRAWN

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @computed_field(alias="adminApproval")
    @property
    def admin_approval(self) -> AdminApproval:
        d = self.decision
        return AdminApproval(
            status=self.approval_status,
            remarks=d.remarks if d else None,
            decided_by=d.decided_by if d else None,
            decided_at=d.decided_at if d else None,
        )

    @computed_field(alias="category")
    @property
    def category(self) -> OrderCategory:
        return CATEGORY_BY_STATUS[self.status]

    def evolve(self, **changes) -> "Order":
        """Copy with changes applied, re-running validation (model_copy would skip it)."""
        return Order(**{**dict(self), **changes})


class NewOrder(CamelModel):
    """Order as handed over by checkout."""

    order_number: str | None = None
    customer_id: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    payment_method: str | None = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    total_amount: Money
