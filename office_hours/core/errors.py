from fastapi import HTTPException, status


def storage_failure(detail: str) -> HTTPException:
    """500 carrying only a per-operation message; the driver error is logged by the caller."""
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )
