import os
import time
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from config import CORS_ORIGINS, LOG_LEVEL, UPLOAD_DIR, THUMBNAILS_DIR
from routers.generation import router
from services import FFmpegThumbnailer, create_service

# --------------------------------------------------------------------------
# --- Configuration & Setup ---
# --------------------------------------------------------------------------

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")


def create_app(service=None, thumbnailer=None, upload_dir=UPLOAD_DIR, thumbnails_dir=THUMBNAILS_DIR):
    """Builds the FastAPI app around one CombinationService and its processing queue."""
    service = service or create_service()
    thumbnailer = thumbnailer or FFmpegThumbnailer(thumbnails_dir)

    for directory in (upload_dir, thumbnails_dir, service.combinations_dir):
        os.makedirs(directory, exist_ok=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logging.info("Shutting down processing queue...")
        await app.state.service.queue.shutdown()

    app = FastAPI(
        title="Clip Combiner",
        description="Combines hook, story and call-to-action clips into every possible video.",
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.thumbnailer = thumbnailer
    app.state.upload_dir = upload_dir

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_api_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            duration = int((time.perf_counter() - start) * 1000)
            log_line = f"{request.method} {request.url.path} {response.status_code} in {duration}ms"
            if len(log_line) > 80:
                log_line = log_line[:79] + "…"
            logging.info(log_line)
        return response

    app.include_router(router)

    # --- Static media ---
    app.mount("/thumbnails", StaticFiles(directory=thumbnails_dir), name="thumbnails")
    app.mount("/combinations", StaticFiles(directory=service.combinations_dir), name="combinations")
    app.mount("/uploads", StaticFiles(directory=upload_dir), name="uploads")

    return app


app = create_app()
