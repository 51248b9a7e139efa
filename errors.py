"""
Errors raised by the repositories.

main.py maps each one to an HTTP status code.
"""


class SipenaError(Exception):
    status_code = 500


class StoreUnavailable(SipenaError):
    """No database configured or reachable."""
    status_code = 500


class InvalidArgument(SipenaError):
    """Malformed or missing identifier, rejected before any store call."""
    status_code = 400


class NotFound(SipenaError):
    status_code = 404


class WriteFailed(SipenaError):
    """The store rejected an insert, update or delete."""
    status_code = 503
