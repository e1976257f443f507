"""Route: POST /api/upload (multipart)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from bucketview.auth import require_user
from bucketview.auth_models import UserProfile
from bucketview.errors import BucketViewError, ErrorCode
from bucketview.upload import UploadService

router = APIRouter()


@router.post("/api/upload")
async def upload(
    request: Request,
    file: Optional[UploadFile] = File(default=None),
    path: str = Form(default=""),
    description: Optional[str] = Form(default=None),
    tags: Optional[str] = Form(default=None),
    user: UserProfile = Depends(require_user),
):
    if file is None or not file.filename:
        raise BucketViewError(ErrorCode.INVALID_REQUEST, "No file provided")
    uploads: UploadService = request.app.state.uploads
    # One byte past the ceiling is enough to know it is too large
    body = await file.read(request.app.state.config.upload.max_bytes + 1)
    return await uploads.upload(
        file.filename,
        body,
        file.content_type or "application/octet-stream",
        path,
        uploaded_by=user.email,
        description=description,
        tags=tags,
    )
