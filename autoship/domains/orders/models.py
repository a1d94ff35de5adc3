import enum


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    PAID = "paid"
    DECLINED = "declined"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED, RequestStatus.DECLINED})

STATUS_LABELS: dict[RequestStatus, str] = {
    RequestStatus.PENDING: "Pending",
    RequestStatus.QUOTED: "Quoted",
    RequestStatus.ACCEPTED: "Accepted",
    RequestStatus.PAID: "Paid",
    RequestStatus.DECLINED: "Declined",
    RequestStatus.IN_PROGRESS: "In Progress",
    RequestStatus.COMPLETED: "Completed",
    RequestStatus.CANCELLED: "Cancelled",
}

# Customer-facing milestones in lifecycle order. `accepted` and `paid` share a milestone.
PROGRESS_STEPS: list[tuple[str, str, frozenset[RequestStatus]]] = [
    ("submitted", "Order Submitted", frozenset({RequestStatus.PENDING})),
    ("quoted", "Quote Provided", frozenset({RequestStatus.QUOTED})),
    ("paid", "Payment Received", frozenset({RequestStatus.ACCEPTED, RequestStatus.PAID})),
    ("in_progress", "In Transit", frozenset({RequestStatus.IN_PROGRESS})),
    ("completed", "Delivered", frozenset({RequestStatus.COMPLETED})),
]

TIMELINE_MESSAGES: dict[str, str] = {
    "submitted": "Order submitted and received",
    "quoted": "Quote prepared and sent to customer",
    "paid": "Payment received, carrier being scheduled",
    "in_progress": "Vehicle picked up from origin",
    "completed": "Vehicle delivered successfully",
}
