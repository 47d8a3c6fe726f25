from typing import List, Optional
from fastapi import HTTPException, status

class BaseAppException(HTTPException):
    def __init__(self, status_code: int, detail):
        super().__init__(status_code=status_code, detail=detail)

class ValidationError(BaseAppException):
    def __init__(self, detail: str = "Validation error"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)

class NotFoundError(BaseAppException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class SourceUnavailableError(BaseAppException):
    """Ledger store or actual-stock source could not be reached"""
    def __init__(self, detail: str = "Stock source unavailable", status_code: int = status.HTTP_503_SERVICE_UNAVAILABLE):
        super().__init__(status_code=status_code, detail=detail)

class SourceTimeoutError(SourceUnavailableError):
    def __init__(self, detail: str = "Stock source timed out"):
        super().__init__(detail=detail, status_code=status.HTTP_504_GATEWAY_TIMEOUT)

class PostingPartialFailure(BaseAppException):
    """
    The stock movement was recorded but its financial posting was not.
    Callers should retry the pending postings, never the whole submission.
    """
    def __init__(self, movement_id: int, pending_posting_ids: List[int], reason: Optional[str] = None):
        self.movement_id = movement_id
        self.pending_posting_ids = pending_posting_ids
        self.reason = reason
        super().__init__(
            status_code=status.HTTP_207_MULTI_STATUS,
            detail={
                "message": "Stock movement recorded but financial posting failed",
                "movement_id": movement_id,
                "pending_posting_ids": pending_posting_ids,
                "reason": reason,
            },
        )
