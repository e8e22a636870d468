"""
Router for clip upload and combination endpoints.
Handles segment uploads, combination generation, and status polling.
"""

import os
import uuid
import shutil
import logging
from typing import List, Optional
from fastapi import APIRouter, HTTPException, File, Form, UploadFile, Depends, Request
from fastapi.concurrency import run_in_threadpool
from config import POOL_TYPES
from exceptions import MissingInputsError, ThumbnailError
from schemas import SegmentOut, CombinationOut, StatusResponse
from services import CombinationService


# Create the router
router = APIRouter(tags=["generation"])


def get_service(request: Request) -> CombinationService:
    """Dependency returning the service built once in create_app()."""
    return request.app.state.service


def _save_upload(file: UploadFile, file_path: str):
    with open(file_path, "wb") as buffer:
        shutil.copyfileobj(file.file, buffer)


@router.get("/", response_model=StatusResponse)
def read_root():
    return {"status": "🚀 Clip Combiner is running!"}


@router.post("/api/videos/upload", response_model=SegmentOut)
async def upload_video(
    request: Request,
    file: Optional[UploadFile] = File(None),
    segment_type: Optional[str] = Form(None, alias="type"),
    service: CombinationService = Depends(get_service),
):
    """Saves an uploaded clip, grabs a thumbnail and registers it in its pool."""
    if file is None or not segment_type:
        raise HTTPException(status_code=400, detail="Missing file or type")
    if segment_type not in POOL_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown segment type: {segment_type}")

    upload_dir = request.app.state.upload_dir
    extension = os.path.splitext(file.filename or "")[1]
    file_path = os.path.join(upload_dir, f"{uuid.uuid4()}{extension}")

    try:
        await run_in_threadpool(_save_upload, file, file_path)
        logging.info(f"[Upload] Processing video file: {file_path}")

        thumbnail_path = await run_in_threadpool(request.app.state.thumbnailer.generate, file_path)
        logging.info(f"[Upload] Generated thumbnail: {thumbnail_path}")
    except (OSError, ThumbnailError) as e:
        logging.error(f"[Upload] Error: {e}")
        if os.path.exists(file_path):
            os.remove(file_path)
        raise HTTPException(status_code=500, detail="Failed to process video")

    return service.register_upload(
        segment_type,
        file_path,
        thumbnail_url=f"/thumbnails/{os.path.basename(thumbnail_path)}",
    )


@router.get("/api/segments", response_model=List[SegmentOut])
def list_segments(type: Optional[str] = None, service: CombinationService = Depends(get_service)):
    if type is not None and type not in POOL_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown segment type: {type}")
    return service.list_segments(type)


@router.post("/api/combinations/generate", response_model=List[CombinationOut])
async def generate_combinations(service: CombinationService = Depends(get_service)):
    """
    Creates every hook/story/cta combination and queues them for rendering.
    Returns only the new records, all still "processing".
    """
    try:
        return service.generate_combinations()
    except MissingInputsError as e:
        logging.warning(f"[Combinations] {e}")
        raise HTTPException(status_code=400, detail="Missing required segments")


@router.get("/api/combinations", response_model=List[CombinationOut])
async def list_combinations(service: CombinationService = Depends(get_service)):
    """Current state of every combination, in creation order. Clients poll this."""
    return service.list_combinations()
