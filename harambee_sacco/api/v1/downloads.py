"""GET/POST /api/downloads - export any dataset as a CSV or JSON attachment"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from harambee_sacco.api.dependencies import get_request_id
from harambee_sacco.api.v1.schemas import DownloadRequest
from harambee_sacco.domain.exceptions import ValidationError
from harambee_sacco.domain.models import DownloadOptions, ExportFile
from harambee_sacco.infrastructure.database.session import get_session_factory
from harambee_sacco.services.downloads import (
    DOWNLOAD_CATALOGUE,
    generate_download,
    parse_download_format,
    parse_download_type,
)
from harambee_sacco.utils.date_utils import to_naive_utc

router = APIRouter()

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _file_response(export: ExportFile) -> Response:
    return Response(
        content=export.data,
        media_type=export.content_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"', **NO_CACHE_HEADERS},
    )


def _failure(e: Exception, request_id: str) -> JSONResponse:
    logging.error(f"Download error: {e}", extra={"request_id": request_id})
    return JSONResponse(status_code=500, content={"error": f"Download failed: {e}"})


def _parse_date(value: Optional[str], name: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError as e:
        raise ValidationError(f"Invalid {name}: {value}") from e


@router.get("/downloads")
async def download(
    request: Request,
    type: Optional[str] = None,
    format: str = "csv",
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    memberId: Optional[int] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Download a dataset. Without `type`, lists the available downloads.
    """
    if not type:
        return {
            "availableTypes": DOWNLOAD_CATALOGUE,
            "message": "Provide 'type' parameter to download data",
        }

    try:
        options = DownloadOptions(
            type=parse_download_type(type),
            format=parse_download_format(format),
            start_date=_parse_date(startDate, "startDate"),
            end_date=_parse_date(endDate, "endDate"),
            member_id=memberId,
            status=status or None,
            search=search or None,
        )
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    try:
        return _file_response(await generate_download(session_factory, options))
    except Exception as e:
        return _failure(e, get_request_id(request))


@router.post("/downloads")
async def download_with_body(
    request_body: DownloadRequest,
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Same as GET, with filters in a JSON body"""
    if not request_body.type:
        return JSONResponse(status_code=400, content={"error": "Download type is required"})

    try:
        options = DownloadOptions(
            type=parse_download_type(request_body.type),
            format=parse_download_format(request_body.format),
            start_date=request_body.start_date,
            end_date=request_body.end_date,
            member_id=request_body.member_id,
            status=request_body.status,
            search=request_body.search,
        )
        return _file_response(await generate_download(session_factory, options))
    except Exception as e:
        return _failure(e, get_request_id(request))
