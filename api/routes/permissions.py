"""
api/routes/permissions.py -- Viewer permission management (sharers only).

Routes:
  POST /permissions/grant   -- allow a viewer to read my location (idempotent)
  POST /permissions/revoke  -- withdraw that permission
  GET  /permissions         -- list viewers currently allowed
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import PermissionRequest, PermissionResponse, ViewerRow
from auth.dependencies import bearer_token
from tracking.gateway import AuthGateway

router = APIRouter()


@router.post("/permissions/grant", response_model=PermissionResponse)
def grant_permission(
    request: Request,
    body: Optional[PermissionRequest] = None,
    token: Optional[str] = Depends(bearer_token),
) -> PermissionResponse:
    gateway: AuthGateway = request.app.state.gateway
    gateway.grant_permission(token, (body or PermissionRequest()).viewer_email)
    return PermissionResponse(message="permission_granted")


@router.post("/permissions/revoke", response_model=PermissionResponse)
def revoke_permission(
    request: Request,
    body: Optional[PermissionRequest] = None,
    token: Optional[str] = Depends(bearer_token),
) -> PermissionResponse:
    """Revoke a viewer's access. Revoking a grant that does not exist still succeeds."""
    gateway: AuthGateway = request.app.state.gateway
    gateway.revoke_permission(token, (body or PermissionRequest()).viewer_email)
    return PermissionResponse(message="permission_revoked")


@router.get("/permissions", response_model=list[ViewerRow])
def list_viewers(request: Request, token: Optional[str] = Depends(bearer_token)) -> list[ViewerRow]:
    gateway: AuthGateway = request.app.state.gateway
    return [ViewerRow.from_grant(g) for g in gateway.list_viewers(token)]
