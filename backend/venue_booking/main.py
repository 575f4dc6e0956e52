from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, Response

from .config import get_settings
from .database import init_models
from .domain.events import event_bus
from .routers import reservations, venues
from .utils.audit_log import emit_audit_log
from .utils.log_config import configure_logging
from .utils.request_context import REQUEST_ID_HEADER, generate_request_id, set_request_id

settings = get_settings()
configure_logging(settings.log_level)
event_bus.subscribe(emit_audit_log)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    if settings.create_tables:
        await init_models()
    yield


app = FastAPI(title="Venue Booking API", lifespan=lifespan)


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


app.middleware("http")(request_id_middleware)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(reservations.router)
app.include_router(venues.router)
