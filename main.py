from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import AppError
from app.core.logging import setup_logging
from app.db.init_db import init_db
from app.db.session import engine
from app.routers import incidents, stops, subscriptions
from app.services.websocket_manager import route_monitor_manager

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.CREATE_TABLES_ON_STARTUP:
        await init_db(engine)
    yield
    await route_monitor_manager.stop_all()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API for TransitWatch - rider-reported transit incidents with community confirmation",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


app.include_router(incidents.router, prefix=settings.API_PREFIX, tags=["Incidents"])
app.include_router(stops.router, prefix=settings.API_PREFIX, tags=["Stops"])
app.include_router(subscriptions.router, prefix=settings.API_PREFIX, tags=["Subscriptions"])

@app.get("/api/health", tags=["Health"])
async def health_check():
    return {"status": "ok"}

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
