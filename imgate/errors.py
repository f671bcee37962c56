class GatewayError(Exception):
    """Base class for failures rendered as a `{code, message, data}` envelope."""

    code: int = 1
    status_code: int = 500
    message: str = "Internal error"

    def __init__(self, message: str | None = None, data: object = None) -> None:
        self.message = message or self.message
        self.data = data
        super().__init__(self.message)


class NotAuthenticated(GatewayError):
    code = 10
    status_code = 401
    message = "Not authenticated"


class AuthFailed(GatewayError):
    code = 11
    status_code = 403
    message = "Auth failed"


class SystemMisconfigured(GatewayError):
    code = 12
    status_code = 500
    message = "System auth not configured"


class ValidationError(GatewayError):
    code = 20
    status_code = 400
    message = "Invalid request"


class NotFound(GatewayError):
    code = 30
    status_code = 404
    message = "Object not found"


class RangeNotSatisfiable(GatewayError):
    code = 31
    status_code = 416
    message = "Range not satisfiable"

    def __init__(self, size: int) -> None:
        super().__init__(data={"size": size})
        self.size = size


class RateLimited(GatewayError):
    code = 40
    status_code = 429
    message = "Too Many Requests"


class StoreError(GatewayError):
    code = 50
    status_code = 502
    message = "Object store operation failed"
