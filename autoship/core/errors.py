class StoreError(Exception):
    """A hosted-table call failed (network error or non-2xx response)."""

    def __init__(self, message: str, *, status_code: int | None = None, table: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.table = table


class AuthError(Exception):
    """The hosted auth API rejected a request."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiError(Exception):
    """Error for routes whose public contract is a flat `{"error": ...}` body."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
