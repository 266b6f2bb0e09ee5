from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agora.core import logger, register_logger
from agora.core.config import settings
from agora.core.database import create_tables
from agora.core.errors import MembershipError
from agora.schemas.member import ErrorOut
from agora.api.communities import router as communities_router
from agora.api.memberships import router as memberships_router
from agora.api.users import router as users_router


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorOut(error=message).model_dump(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MembershipError)
    async def membership_error_handler(request: Request, exc: MembershipError):
        logger.warning(
            "membership_error",
            kind=exc.kind.name,
            error=exc.message,
            path=request.url.path,
        )
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error(400, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("unhandled_error", path=request.url.path, exc_info=exc)
        return _error(500, "Internal server error")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # -------------------------------------
    # CORS
    # -------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_logger(app)
    register_exception_handlers(app)

    # -------------------------------------
    # Routing
    # -------------------------------------
    app.include_router(communities_router)
    app.include_router(memberships_router)
    app.include_router(users_router)

    @app.get("/health", tags=["system"])
    async def health():
        return {"success": True, "data": {"status": "ok"}}

    # -------------------------------------
    # Startup event
    # -------------------------------------
    @app.on_event("startup")
    async def startup_event():
        logger.info("server_starting", env=settings.ENV)
        if settings.DEBUG:
            logger.info("debug_mode_creating_tables")
            await create_tables()

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("server_shutting_down")

    return app


app = create_app()
