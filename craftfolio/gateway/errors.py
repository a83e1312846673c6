from typing import Optional

NO_ROWS = "PGRST116"
UNIQUE_VIOLATION = "23505"
UNAUTHORIZED = "401"
SERVER_ERROR = "500"


class GatewayError(Exception):
    """Raised by every failed gateway call."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def is_no_rows(self) -> bool:
        return self.code == NO_ROWS

    def __repr__(self) -> str:
        return f"GatewayError(code={self.code!r}, message={self.message!r})"
