"""Routes: GET/POST /api/folders, POST /api/folders/rename, DELETE /api/folders/{path}."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from bucketview.api.server_models import CreateFolderRequest, RenameFolderRequest
from bucketview.auth import require_user
from bucketview.auth_models import UserProfile
from bucketview.namespace import NamespaceManager

router = APIRouter()


def _namespace(request: Request) -> NamespaceManager:
    return request.app.state.namespace


@router.get("/api/folders")
async def list_folder(
    request: Request,
    prefix: str = "",
    user: UserProfile = Depends(require_user),
):
    listing = await _namespace(request).list(prefix)
    return listing.to_response()


@router.post("/api/folders")
async def create_folder(
    body: CreateFolderRequest,
    request: Request,
    user: UserProfile = Depends(require_user),
):
    return await _namespace(request).create_folder(body.path)


@router.post("/api/folders/rename")
async def rename_folder(
    body: RenameFolderRequest,
    request: Request,
    user: UserProfile = Depends(require_user),
):
    report = await _namespace(request).rename_folder(body.old_path, body.new_path)
    report.raise_for_failures()
    return report.to_response()


@router.delete("/api/folders/{path:path}")
async def delete_folder(
    path: str,
    request: Request,
    user: UserProfile = Depends(require_user),
):
    report = await _namespace(request).delete_folder(path)
    report.raise_for_failures()
    return report.to_response()
