from .errors import AuthenticationError, PermissionDeniedError

__all__ = ["AuthenticationError", "PermissionDeniedError"]
