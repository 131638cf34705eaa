"""Domain enumerations and state-transition rules."""

import enum


class UserRole(str, enum.Enum):
    PASSENGER = "PASSENGER"
    DRIVER = "DRIVER"
    ADMIN = "ADMIN"


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# State machine: maps current status -> set of valid next statuses
REQUEST_TRANSITIONS: dict[RequestStatus, set[RequestStatus]] = {
    RequestStatus.PENDING: {RequestStatus.ACCEPTED, RequestStatus.CANCELLED},
    RequestStatus.ACCEPTED: {RequestStatus.COMPLETED},
    RequestStatus.COMPLETED: set(),
    RequestStatus.CANCELLED: set(),
}

# Statuses that count towards the one-active-request-per-passenger rule
ACTIVE_STATUSES = (RequestStatus.PENDING, RequestStatus.ACCEPTED)

# Statuses in which the chat channel is open
CHAT_STATUSES = (RequestStatus.ACCEPTED, RequestStatus.COMPLETED)
