import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .core.errors import FinanceError
from .core.log import configure_logging
from .database import init_db
from .routers import ai as ai_router
from .routers import auth as auth_router
from .routers import budgets as budgets_router
from .routers import expenses as expenses_router
from .routers import recurring as recurring_router

logger = logging.getLogger(__name__)


async def finance_error_handler(request: Request, exc: FinanceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = {"detail": exc.message}
    if exc.details:
        body["errors"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Finance Tracker – Budgets & Recurring Expenses", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(FinanceError, finance_error_handler)

    @app.on_event("startup")
    def on_startup():
        init_db()
        logger.info("Started (%s)", settings.environment)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(auth_router.router)
    app.include_router(expenses_router.router)
    app.include_router(budgets_router.router)
    app.include_router(recurring_router.router)
    app.include_router(ai_router.router)

    return app


app = create_app()
