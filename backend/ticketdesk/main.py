"""FastAPI application: support ticket CRUD behind a shared API key."""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from ticketdesk.api import tickets
from ticketdesk.auth.api_key import ApiKeyMiddleware
from ticketdesk.config import get_settings
from ticketdesk.deps import get_db
from ticketdesk.errors import StoreError, TicketDeskError
from ticketdesk.schemas.error import ErrorOut
from ticketdesk.storage.db import close_db, init_db, ping_db

settings = get_settings()

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    try:
        yield
    finally:
        await close_db()


app = FastAPI(
    title="Support Ticket API",
    description="Tickets, comments and feedback with a status/priority lifecycle",
    version="0.1.0",
    lifespan=lifespan,
    openapi_url="/v3/api-docs",
    docs_url="/swagger-ui",
    swagger_ui_oauth2_redirect_url="/swagger-ui/oauth2-redirect",
    redoc_url=None,
)

app.add_middleware(ApiKeyMiddleware, api_key=settings.api_key, header_name=settings.api_key_header)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str, errors: list[str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorOut(message=message, errors=errors).model_dump(exclude_none=True),
    )


def _validation_message(err: dict) -> str:
    msg = err.get("msg", "invalid value")
    # pydantic prefixes messages raised from field validators
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return msg


@app.exception_handler(TicketDeskError)
async def ticket_error_handler(request: Request, exc: TicketDeskError):
    if not isinstance(exc, StoreError):
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    for err in errors:
        loc = err.get("loc", ())
        if loc and loc[0] == "path":
            return _error(400, f"Invalid value for parameter '{loc[-1]}': {err.get('input')}")
    messages = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ())]
        field = ".".join(loc[1:]) or (loc[0] if loc else "request")
        messages.append(f"{field}: {_validation_message(err)}")
    logger.warning("%s %s -> 400: %s", request.method, request.url.path, "; ".join(messages))
    return _error(400, "Validation failed", messages)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorOut(message=str(exc.detail)).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return 500 as JSON so CORS middleware adds headers; the cause stays in the log."""
    logger.exception("Unhandled error: %s", exc)
    return _error(500, "An unexpected error occurred")


app.include_router(tickets.router)


@app.get("/health")
async def health(session: AsyncSession = Depends(get_db)):
    db_ok = await ping_db(session)
    return {
        "status": "ok" if db_ok else "degraded",
        "database": "ok" if db_ok else "unavailable",
    }


@app.get("/test", response_class=PlainTextResponse)
def liveness_text():
    return "Support ticket API is running"


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("ticketdesk.main:app", host=settings.host, port=settings.port)
