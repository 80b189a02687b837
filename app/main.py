"""
app/main.py — Entry Point
UBS Manager v1.0
FastAPI + Record Store (relational or in-memory)
Run with: uvicorn app.main:create_app --factory
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.routers import diseases, employees, medical_records, statistics, ubs
from core.config import Settings, get_settings
from core.errors import AuthorizationError, ConstraintError
from core.logging_config import configure_logging, get_logger
from core.middleware import RequestCorrelationMiddleware
from services.factory import build_storage
from services.storage import Storage

logger = get_logger()


# ══════════════════════════════════════════════════════════════
# Error mapping
# ══════════════════════════════════════════════════════════════

def _issues(errors) -> list[dict]:
    issues = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        issues.append({"path": ".".join(loc), "reason": err.get("msg", "")})
    return issues


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Dados inválidos", "errors": _issues(exc.errors())},
    )


async def _constraint_handler(request: Request, exc: ConstraintError):
    logger.warning(f"❌ {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": exc.message})


async def _authorization_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": exc.message})


# ══════════════════════════════════════════════════════════════
# Application factory
# ══════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None, storage: Optional[Storage] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    storage = storage or build_storage(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 UBS Manager starting...")
        await storage.init()
        yield
        await storage.close()
        logger.info("🛑 UBS Manager shutting down")

    app = FastAPI(
        title="UBS Manager",
        version="1.0",
        description="Unidades, funcionários, doenças e prontuários de sífilis congênita",
        lifespan=lifespan,
    )
    app.state.storage = storage
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestCorrelationMiddleware)

    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(ConstraintError, _constraint_handler)
    app.add_exception_handler(AuthorizationError, _authorization_handler)

    for module in (statistics, ubs, employees, diseases, medical_records):
        app.include_router(module.router)

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:create_app", factory=True, host="0.0.0.0", port=8000)
