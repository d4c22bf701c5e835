import asyncio
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.settings import settings
from app.logging import configure_logging
from app.error_handlers import attach_error_handlers
from api.router import api_router
from infra.db.session import init_db

configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title=settings.APP_NAME)


@app.on_event("startup")
def _on_startup():
    init_db()


@app.middleware("http")
async def request_timeout(request: Request, call_next):
    try:
        return await asyncio.wait_for(call_next(request), timeout=settings.REQUEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Request %s %s timed out", request.method, request.url.path)
        return JSONResponse(status_code=408, content={"detail": "Request timeout"})


attach_error_handlers(app)
app.include_router(api_router)
