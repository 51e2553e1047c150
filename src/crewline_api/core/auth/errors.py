"""Caller identity and route-guard error types."""


class AuthenticationError(Exception):
    """Raised when a request carries no usable caller identity."""


class PermissionDeniedError(Exception):
    """Raised when the caller's role does not grant a required permission."""

    def __init__(self, permission_key: str, *, user_id: str | None = None) -> None:
        self.permission_key = permission_key
        self.user_id = user_id
        super().__init__(f"Permission '{permission_key}' denied")
