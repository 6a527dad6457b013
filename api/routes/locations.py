"""
api/routes/locations.py -- Location posting and fetching.

Routes:
  POST /locations          -- sharer appends its current position
  GET  /locations/{email}  -- viewer reads a sharer's latest position

Both require a bearer token. Role and permission checks happen in the
gateway; these handlers only translate between HTTP and domain objects.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import LocationPost, LocationResponse, MessageResponse
from auth.dependencies import bearer_token
from tracking.gateway import AuthGateway

router = APIRouter()


@router.post("/locations", response_model=MessageResponse)
def post_location(
    request: Request,
    body: Optional[LocationPost] = None,
    token: Optional[str] = Depends(bearer_token),
) -> MessageResponse:
    gateway: AuthGateway = request.app.state.gateway
    body = body or LocationPost()
    gateway.post_location(token, body.lat, body.lng)
    return MessageResponse(message="location_saved")


@router.get("/locations/{email}", response_model=LocationResponse)
def get_location(
    request: Request,
    email: str,
    token: Optional[str] = Depends(bearer_token),
) -> LocationResponse:
    gateway: AuthGateway = request.app.state.gateway
    return LocationResponse.from_record(gateway.get_location(token, email))
