"""
Error hierarchy shared by the booking and payment services.

Every error carries a machine-readable ``reason`` code, a human message and a
``details`` dict with whatever the caller needs to fix the request (the hours
that clashed, the expected payment amount, ...). Views render them with
``to_dict()`` and ``status_code``.
"""


class BookingError(Exception):
    reason = 'error'
    status_code = 400

    def __init__(self, message, reason=None, details=None):
        self.message = message
        if reason:
            self.reason = reason
        self.details = details or {}
        super().__init__(message)

    def to_dict(self):
        body = {'success': False, 'reason': self.reason, 'error': self.message}
        body.update(self.details)
        return body


class ValidationError(BookingError):
    """Malformed or out-of-range input. Not retryable."""
    reason = 'invalid_input'
    status_code = 400


class ConflictError(BookingError):
    """A requested slot is taken. Retry after re-reading availability."""
    reason = 'slot_conflict'
    status_code = 409

    def __init__(self, message, conflicting_slots, details=None):
        details = dict(details or {})
        details['conflicting_slots'] = sorted(conflicting_slots)
        super().__init__(message, details=details)

    @property
    def conflicting_slots(self):
        return self.details['conflicting_slots']


class StateError(BookingError):
    """The booking is in the wrong lifecycle state for the operation."""
    reason = 'wrong_status'
    status_code = 409


class NotFoundError(BookingError):
    reason = 'not_found'
    status_code = 404


class AmountMismatchError(BookingError):
    reason = 'amount_mismatch'
    status_code = 400


class SplitMismatchError(BookingError):
    reason = 'split_mismatch'
    status_code = 400


class MissingOnlineMethodError(BookingError):
    reason = 'missing_online_method'
    status_code = 400


class StorageError(BookingError):
    reason = 'storage_error'
    status_code = 500
