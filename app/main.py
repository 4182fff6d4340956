import logging
import traceback
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import Base, engine
from app.exceptions import AppException
from app.logging_config import configure_logging, append_error_log
from app.routers.auth import router as auth_router
from app.routers.tasks import router as tasks_router
from app.routers.assign_tasks import router as assign_tasks_router
from app.routers.socket import router as socket_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if settings.AUTO_CREATE_TABLES:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("[STARTUP] database schema ensured")

    yield

    await engine.dispose()
    logger.info("[SHUTDOWN] database engine disposed")


app = FastAPI(
    lifespan=lifespan,
    title="Collaborative Task Manager API",
    description="Personal tasks, task assignment between collaborators and real-time notifications",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    content = exc.to_dict()
    content["detail"] = content.pop("message")
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


# Global exception handler: log everything, leak nothing
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_msg = traceback.format_exc()
    logger.error("CRITICAL ERROR on %s %s: %s", request.method, request.url.path, error_msg)
    append_error_log(f"\n[{datetime.now()}] 500 Error:\n{error_msg}\n")

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error", "kind": "Internal"},
    )


app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(assign_tasks_router)
app.include_router(socket_router)


@app.get("/")
def root():
    return {"message": "Task Manager API running"}
