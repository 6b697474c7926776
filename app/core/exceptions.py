"""HTTP exceptions raised by the service layer."""

from fastapi import HTTPException, status


class BadRequestException(HTTPException):
    """Invalid input or a failed verification (400)."""

    def __init__(self, detail: str = "Bad Request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class UnauthorizedException(HTTPException):
    """Missing or invalid bearer credential (401)."""

    def __init__(self, detail: str = "Could not validate credentials."):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InternalServerException(HTTPException):
    """A downstream dependency (store, mail provider) failed (500)."""

    def __init__(self, detail: str = "Internal server error."):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
