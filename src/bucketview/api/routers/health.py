"""Route: GET /api/public/health."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/api/public/health")
async def health(request: Request):
    return {"status": "ok", "storage": request.app.state.namespace.store.backend_name}
