"""
Google Calendar connection endpoints

Connecting lets a user import busy time as availability and get confirmed
meetings written to their calendar.
"""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..domain.scheduling.schemas import (
    CalendarCallbackRequest,
    CalendarConnectResponse,
    CalendarStatusResponse,
)
from ..models import Profile
from ..services import google_calendar_service as calendar

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/google-calendar", tags=["Google Calendar"])


def get_google_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for outbound Google requests; None means the default network transport"""
    return None


@router.get("/status", response_model=CalendarStatusResponse)
async def get_status(current_user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    integration = calendar.get_integration(db, current_user.id)
    if not integration:
        return CalendarStatusResponse(connected=False)
    return CalendarStatusResponse(
        connected=True,
        googleEmail=integration.google_user_email,
        calendarId=integration.google_calendar_id,
    )


@router.get("/connect", response_model=CalendarConnectResponse)
async def connect(current_user: Profile = Depends(get_current_user)):
    """Consent URL to send the user to; Google redirects back with `code` and `state`"""
    if not calendar.is_configured():
        raise HTTPException(status_code=500, detail="Google Calendar not configured")

    logger.info(f"📅 Google Calendar OAuth initiated for {current_user.id}")
    return CalendarConnectResponse(authorizationUrl=calendar.authorization_url(state=current_user.id))


@router.post("/callback", response_model=CalendarStatusResponse)
async def callback(
    data: CalendarCallbackRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_google_transport),
):
    # state carries the user id the flow was started for
    if data.state is not None and data.state != current_user.id:
        logger.warning(f"⚠️ OAuth state mismatch for {current_user.id}")
        raise HTTPException(status_code=400, detail="OAuth state does not match the signed-in user")

    integration = await calendar.connect_calendar(current_user.id, data.code, db, transport=transport)
    return CalendarStatusResponse(
        connected=True,
        googleEmail=integration.google_user_email,
        calendarId=integration.google_calendar_id,
    )


@router.post("/disconnect", response_model=CalendarStatusResponse)
async def disconnect(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_google_transport),
):
    await calendar.disconnect_calendar(current_user.id, db, transport=transport)
    return CalendarStatusResponse(connected=False)
