"""
Error types raised by the data gateway and auth layer.

Routes translate these into HTTP responses in main.py; nothing here is
retried.
"""


class GatewayError(Exception):
    """A call against the data store failed."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RecordNotFoundError(GatewayError):
    """No record with the requested identity."""

    status_code = 404

    def __init__(self, family: str, record_id: str):
        super().__init__(f"{family} not found")
        self.family = family
        self.record_id = record_id


class DuplicateRecordError(GatewayError):
    """A uniqueness rule rejected the write."""

    status_code = 409


class AuthError(Exception):
    """Login failed or no active session."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
