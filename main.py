import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from rebound.core import config
from rebound.core.errors import ServiceError
from rebound.db.base import Base
from rebound.db.session import engine, ensure_database
from rebound.realtime.registry import ConnectionRegistry
from rebound.routers import connections
from rebound.routers import messages
from rebound.routers import notifications
from rebound.routers import realtime

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

ensure_database(config.DATABASE_URL)
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Rebound")
app.state.registry = ConnectionRegistry()


def error_response(status_code: int, code: str, message: str, fields: dict = None, headers: dict = None):
    error = {"code": code, "message": message}
    if fields:
        error["fields"] = fields
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return error_response(exc.status_code, exc.code, exc.message)


HTTP_ERROR_CODES = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return error_response(
        exc.status_code,
        HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = {}
    for err in exc.errors():
        # Drop the "body"/"query" prefix from the location
        loc = ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0])
        fields[loc] = err["msg"]
    return error_response(400, "VALIDATION_ERROR", "Invalid request data", fields=fields)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logging.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
    return error_response(500, "SERVER_ERROR", "Something went wrong")


app.include_router(connections.router, prefix="/api/connections", tags=["Connections"])
app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(realtime.router, tags=["Realtime"])
