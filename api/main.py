from __future__ import annotations

import enum
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core import config, db
from core.services import ServiceRegistry
from users import router as users_router
from users.service import SERVICE_NAME, UsersService

logger = logging.getLogger(__name__)

INVALID_REQUEST = "INVALID_REQUEST"


class StartupState(str, enum.Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class StartupError(RuntimeError):
    pass


async def startup(app: FastAPI) -> None:
    """
    Open the connection, apply the schema and register the users service.

    Any failure is fatal; there is no retry.
    """
    app.state.startup_state = StartupState.INITIALIZING
    try:
        conn = await db.connect()
        app.state.connection = conn
        await db.apply_schema(conn, config.schema_path())
        logger.info("schema_applied path=%s", config.schema_path())

        users_service = UsersService(conn)
        await users_service.init()
        app.state.services.set_service(SERVICE_NAME, users_service)
    except Exception as exc:
        app.state.startup_state = StartupState.FAILED
        logger.exception("startup_failed")
        await db.close(app.state.connection)
        app.state.connection = None
        raise StartupError("Failed to set up database.") from exc

    app.state.startup_state = StartupState.READY
    logger.info("startup_complete")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup(app)
    try:
        yield
    finally:
        await db.close(app.state.connection)
        app.state.connection = None


async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed ids and non-object bodies are the caller's fault.
    messages = [f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"code": INVALID_REQUEST, "message": "; ".join(messages) or "Invalid request."},
    )


def create_application(services: ServiceRegistry | None = None) -> FastAPI:
    """
    Build the app. Passing `services` skips the database startup sequence.
    """
    if services is None:
        app = FastAPI(title="Users API", lifespan=lifespan)
        app.state.services = ServiceRegistry()
    else:
        app = FastAPI(title="Users API")
        app.state.services = services

    app.state.connection = None
    app.state.startup_state = StartupState.INITIALIZING
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(users_router.router, tags=["users"])
    return app


app = create_application()


def run() -> None:
    config.configure_logging()
    logger.info("starting host=%s port=%s", config.host(), config.port())
    # uvicorn exits non-zero on its own when startup raises.
    uvicorn.run(app, host=config.host(), port=config.port(), log_config=None)


if __name__ == "__main__":
    run()
