from enum import StrEnum


class BookingErrorKind(StrEnum):
    PROGRAM_NOT_FOUND = "program_not_found"
    USER_CAP_EXCEEDED = "user_cap_exceeded"
    USER_DAY_CAP_EXCEEDED = "user_day_cap_exceeded"
    SLOT_FULL = "slot_full"
    DUPLICATE_BOOKING = "duplicate_booking"
    STORAGE_UNAVAILABLE = "storage_unavailable"


ERROR_MESSAGES: dict[BookingErrorKind, str] = {
    BookingErrorKind.PROGRAM_NOT_FOUND: "Program not found.",
    BookingErrorKind.USER_CAP_EXCEEDED: (
        "You have reached the maximum number of active bookings for this program. "
        "Cancel an existing booking to book again."
    ),
    BookingErrorKind.USER_DAY_CAP_EXCEEDED: (
        "You have reached the maximum number of bookings per day for this program. Try another date."
    ),
    BookingErrorKind.SLOT_FULL: "This time slot is already full. Please choose another time.",
    BookingErrorKind.DUPLICATE_BOOKING: "You already have a booking for this time slot.",
    BookingErrorKind.STORAGE_UNAVAILABLE: (
        "The booking service is unavailable right now. Check your bookings before trying again."
    ),
}


class BookingRejected(Exception):
    """Expected, user-facing refusal of a booking request."""

    kind: BookingErrorKind

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or ERROR_MESSAGES[self.kind])


class ProgramNotFoundError(BookingRejected):
    kind = BookingErrorKind.PROGRAM_NOT_FOUND


class UserCapExceededError(BookingRejected):
    kind = BookingErrorKind.USER_CAP_EXCEEDED

    def __init__(self, limit: int | None = None) -> None:
        self.limit = limit
        if limit is None:
            super().__init__()
        else:
            super().__init__(
                f"You have reached the limit of {limit} active booking(s) for this program. "
                "Cancel an existing booking to book again."
            )


class UserDayCapExceededError(BookingRejected):
    kind = BookingErrorKind.USER_DAY_CAP_EXCEEDED

    def __init__(self, limit: int | None = None) -> None:
        self.limit = limit
        if limit is None:
            super().__init__()
        else:
            super().__init__(
                f"You have reached the limit of {limit} booking(s) per day for this program. Try another date."
            )


class SlotFullError(BookingRejected):
    kind = BookingErrorKind.SLOT_FULL


class DuplicateBookingError(BookingRejected):
    kind = BookingErrorKind.DUPLICATE_BOOKING


class InvalidSlotError(ValueError):
    """Requested slot is not an enabled slot of the program (caller contract violation)."""


class StorageError(Exception):
    """
    The store failed to answer or to confirm a write.

    `outcome_unknown` is set when a write may have been applied anyway: the
    connection dropped during commit, or the deadline expired mid-transaction.
    Failures before commit are rolled back and leave it False.
    """

    kind = BookingErrorKind.STORAGE_UNAVAILABLE

    def __init__(self, message: str, *, outcome_unknown: bool = False) -> None:
        super().__init__(message)
        self.outcome_unknown = outcome_unknown
