"""Routes: GET/PUT /api/metadata/{key}, GET /api/search."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from bucketview.api.server_models import UpdateMetadataRequest
from bucketview.auth import require_user
from bucketview.auth_models import UserProfile
from bucketview.metadata import MetadataService

router = APIRouter()


def _metadata(request: Request) -> MetadataService:
    return request.app.state.metadata


@router.get("/api/metadata/{key:path}")
async def get_metadata(key: str, request: Request, user: UserProfile = Depends(require_user)):
    return await _metadata(request).get(key)


@router.put("/api/metadata/{key:path}")
async def update_metadata(
    key: str,
    body: UpdateMetadataRequest,
    request: Request,
    user: UserProfile = Depends(require_user),
):
    return await _metadata(request).update(key, body.http_metadata, body.custom_metadata)


@router.get("/api/search")
async def search(
    request: Request,
    tags: Optional[str] = None,
    description: Optional[str] = None,
    type: Optional[str] = None,
    date_from: Optional[str] = Query(default=None, alias="dateFrom"),
    date_to: Optional[str] = Query(default=None, alias="dateTo"),
    prefix: Optional[str] = None,
    user: UserProfile = Depends(require_user),
):
    """Linear metadata search over every object under ``prefix``."""
    return await _metadata(request).search(
        tags=tags,
        description=description,
        type=type,
        date_from=date_from,
        date_to=date_to,
        prefix=prefix,
    )
