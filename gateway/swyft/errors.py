from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class RideError(Exception):
    """Base class for failures reported to clients as ``{"error": message}``."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RideError):
    status_code = 400


class NotFoundError(RideError):
    status_code = 404


class ConflictError(RideError):
    status_code = 400


class InvalidStateError(RideError):
    status_code = 400


class AuthenticationError(RideError):
    status_code = 401


class StoreError(RideError):
    status_code = 500


async def ride_error_handler(request: Request, exc: RideError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        if loc:
            fields.append(".".join(loc))
    message = "Please provide all required fields"
    if fields:
        message = f"{message}: invalid or missing {', '.join(sorted(set(fields)))}"
    return JSONResponse(status_code=400, content={"error": message})


def register_error_handlers(app):
    app.add_exception_handler(RideError, ride_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
