"""FastAPI application assembly."""
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from api.admin import create_admin_router
from api.businesses import create_businesses_router, default_places_client
from api.reports import create_reports_router
from errors import DirectoryError
from jobs import JobRunner, runner as default_runner
from progress import ProgressTracker
from utils.hostinger import HostingerUploader


def create_app(
    *,
    runner: Optional[JobRunner] = None,
    uploader_factory: Callable[[], HostingerUploader] = HostingerUploader,
    places_factory: Callable = default_places_client,
    static_data_path: Optional[str] = None,
    recover_jobs: bool = True,
) -> FastAPI:
    runner = runner or default_runner
    tracker: ProgressTracker = runner.tracker

    app = FastAPI(title="Dubai Visa Services Directory API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DirectoryError)
    async def directory_error_handler(request: Request, exc: DirectoryError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc)})

    @app.on_event("startup")
    async def recover_interrupted_jobs():
        if recover_jobs:
            runner.recover()

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    app.include_router(create_businesses_router(places_factory=places_factory, static_data_path=static_data_path))
    app.include_router(create_reports_router())
    app.include_router(create_admin_router(
        runner=runner,
        tracker=tracker,
        uploader_factory=uploader_factory,
        places_factory=places_factory,
    ))
    return app
