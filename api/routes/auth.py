"""
api/routes/auth.py -- Passcode login endpoints.

Routes:
  POST /request-otp  -- validate email, issue and send a passcode (public)
  POST /verify-otp   -- consume a passcode, return a bearer token (public)
  GET  /me           -- identity carried by the bearer token

Security:
  Both public endpoints are rate-limited per client IP (OTP_RATE_LIMIT).
  Cache-Control: no-store on the verify response, which carries the token.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import MeResponse, MessageResponse, OtpRequest, UserInfo, VerifyOtpRequest, VerifyOtpResponse
from auth.dependencies import bearer_token
from core.config import get_settings
from tracking.gateway import AuthGateway

# Auth policy:
# - POST /request-otp:  public -- rate limited
# - POST /verify-otp:   public -- rate limited
# - GET  /me:           requires bearer token (checked by the gateway)
router = APIRouter()

_OTP_LIMIT = get_settings().otp_rate_limit


@router.post("/request-otp", response_model=MessageResponse)
@limiter.limit(_OTP_LIMIT)  # below @router so the registered endpoint is the limited wrapper
def request_otp(request: Request, body: Optional[OtpRequest] = None) -> MessageResponse:
    """Send a one-time passcode to the given email address."""
    gateway: AuthGateway = request.app.state.gateway
    gateway.request_otp((body or OtpRequest()).email)
    return MessageResponse(message="otp_sent")


@router.post("/verify-otp", response_model=VerifyOtpResponse)
@limiter.limit(_OTP_LIMIT)
def verify_otp(request: Request, body: Optional[VerifyOtpRequest] = None) -> JSONResponse:
    """Exchange a passcode for a bearer token.

    The role in the body only matters for the first verification of an email.
    """
    gateway: AuthGateway = request.app.state.gateway
    body = body or VerifyOtpRequest()
    result = gateway.verify_otp(body.email, body.otp, body.role)
    resp = JSONResponse(
        content=VerifyOtpResponse(token=result.token, user=UserInfo.from_user(result.user)).model_dump(by_alias=True)
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/me", response_model=MeResponse)
def me(request: Request, token: Optional[str] = Depends(bearer_token)) -> MeResponse:
    """Return the email and role of the bearer token's owner."""
    gateway: AuthGateway = request.app.state.gateway
    return MeResponse.from_claims(gateway.me(token))
