"""Exceptions raised by the business-day engine."""


class BusinessDayError(Exception):
    """Base exception for business-day errors."""

    pass


class InvalidTimeError(BusinessDayError, ValueError):
    """A time-of-day string could not be parsed."""

    def __init__(self, value: object):
        super().__init__(f"Invalid time of day {value!r}, expected HH:MM")
        self.value = value


class InvalidRangeError(BusinessDayError, ValueError):
    """A business day range does not start before it ends."""

    pass


class ClosingInProgressError(BusinessDayError):
    """A manual close was requested while another close is running."""

    pass
