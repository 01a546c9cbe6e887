from enum import Enum
from typing import Any, Optional

from fastapi import HTTPException, status


class ProvenanceError(HTTPException):
    """
    Base class for every domain failure raised by the services.

    It is an HTTPException so services can raise it the same way they raise
    plain HTTP errors; FastAPI renders it as
    {"detail": {"code": ..., "message": ...}} with the class status code.
    """
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, message: str, code: Optional[str] = None, **context: Any):
        self.message = message
        if code:
            self.code = code
        self.context = context
        detail = {"code": self.code, "message": message}
        if context:
            detail["context"] = {k: v for k, v in context.items() if v is not None}
        super().__init__(status_code=self.status_code, detail=detail)

    def __str__(self) -> str:
        return self.message


class ValidationError(ProvenanceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


class NotFoundError(ProvenanceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(ProvenanceError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class AlreadyAnchoredError(ConflictError):
    code = "already_anchored"


class InvalidOperationError(ProvenanceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_operation"


class UnauthorizedError(ProvenanceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"


class ChainErrorKind(str, Enum):
    INSUFFICIENT_FUNDS = "insufficient_funds"
    USER_REJECTED = "user_rejected"
    UNDERPRICED = "underpriced"
    REVERTED = "reverted"
    BATCH_EXISTS = "batch_exists"
    NETWORK = "network"
    UNKNOWN = "unknown"


class ChainError(ProvenanceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "chain_error"

    def __init__(self, kind: ChainErrorKind, message: str, underlying: Optional[str] = None):
        self.kind = kind
        self.underlying = underlying
        super().__init__(message, kind=kind.value)


class MintConfirmationError(ProvenanceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "mint_confirmation_error"


class PendingConfirmationError(ProvenanceError):
    status_code = status.HTTP_202_ACCEPTED
    code = "pending_confirmation"


class ReconciliationError(ProvenanceError):
    status_code = status.HTTP_202_ACCEPTED
    code = "reconciliation_pending"
