"""Scan pipeline API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Header, UploadFile, status

from gamescan.api.deps import get_pipeline
from gamescan.pipeline.service import ScanPipeline
from gamescan.pipeline.types import (
    ConfirmInput,
    ConfirmScanResult,
    CreateScanResult,
    DraftInput,
    DraftResult,
    PricingInput,
    PricingResult,
    ScanView,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/scans", tags=["scans"])


@router.post("", response_model=CreateScanResult, status_code=status.HTTP_201_CREATED)
async def create_scan(
    file: UploadFile = File(...),
    x_session_id: Optional[str] = Header(default=None, alias="X-Session-Id", max_length=64),
    pipeline: ScanPipeline = Depends(get_pipeline),
):
    """
    Upload a photo and start recognition.

    Returns immediately with status UPLOADED; poll the scan for progress.
    """
    # One byte over the limit is enough to reject the upload
    data = await file.read(pipeline.file_store.max_bytes + 1)
    return await pipeline.create_scan(data, file.content_type, session_id=x_session_id)


@router.get("/{scan_id}", response_model=ScanView)
async def get_scan(scan_id: str, pipeline: ScanPipeline = Depends(get_pipeline)):
    """Get the current state of a scan."""
    return await pipeline.get_scan(scan_id)


@router.post("/{scan_id}/confirm", response_model=ConfirmScanResult)
async def confirm_scan(
    scan_id: str,
    data: ConfirmInput,
    pipeline: ScanPipeline = Depends(get_pipeline),
):
    """Confirm title, edition, language, condition and completeness."""
    return await pipeline.confirm_scan(scan_id, data)


@router.post("/{scan_id}/pricing", response_model=PricingResult)
async def calculate_pricing(
    scan_id: str,
    data: Optional[PricingInput] = None,
    pipeline: ScanPipeline = Depends(get_pipeline),
):
    """Compute a price recommendation, optionally from manual prices."""
    return await pipeline.calculate_pricing(scan_id, data or PricingInput())


@router.post("/{scan_id}/draft", response_model=DraftResult)
async def generate_draft(
    scan_id: str,
    data: DraftInput,
    pipeline: ScanPipeline = Depends(get_pipeline),
):
    """Generate the marketplace listing draft."""
    return await pipeline.generate_draft(scan_id, data)
