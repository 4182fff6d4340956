from fastapi import HTTPException, status


class AppException(HTTPException):
    """Structured failure: a stable `kind` plus a human readable message."""

    kind = "Internal"

    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)

    def to_dict(self) -> dict:
        return {"message": self.detail, "kind": self.kind}


class NotFoundError(AppException):
    kind = "NotFound"

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class InvalidStateError(AppException):
    kind = "InvalidState"

    def __init__(self, detail: str = "Invalid state for this action"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidOperationError(AppException):
    kind = "InvalidOperation"

    def __init__(self, detail: str = "Invalid operation"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ConflictError(AppException):
    kind = "Conflict"

    def __init__(self, detail: str = "Conflict", conflict: str | None = None):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)
        self.conflict = conflict

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.conflict:
            data["conflict"] = self.conflict
        return data


class StoreTimeoutError(AppException):
    kind = "Timeout"

    def __init__(self, detail: str = "Operation timed out"):
        super().__init__(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=detail)


class InternalError(AppException):
    kind = "Internal"

    def __init__(self, detail: str = "Internal server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
