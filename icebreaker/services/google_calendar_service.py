"""
Google Calendar Service
Handles the OAuth connection, token storage/refresh, busy-time fetching for
availability import, and event creation for confirmed meetings
"""
import base64
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

import httpx
from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI, SCHEDULING_TIMEZONE, SECRET_KEY
from ..domain.scheduling.calendar_import import BusyInterval
from ..domain.scheduling.errors import (
    CalendarAuthorizationError,
    CalendarNotConnectedError,
    CalendarServiceError,
)
from ..models import Meeting, Profile
from ..models_google_calendar import GoogleCalendarIntegration

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
# Busy-time import reads events, confirmed meetings are written back
GOOGLE_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _cipher() -> Fernet:
    key = base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest())
    return Fernet(key)


def encrypt_token(token: str) -> str:
    return _cipher().encrypt(token.encode()).decode()


def decrypt_token(token: str) -> str:
    return _cipher().decrypt(token.encode()).decode()


def get_integration(db: Session, profile_id: str) -> Optional[GoogleCalendarIntegration]:
    return (
        db.query(GoogleCalendarIntegration)
        .filter(GoogleCalendarIntegration.profile_id == profile_id)
        .first()
    )


def is_configured() -> bool:
    return bool(GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET)


def authorization_url(state: str) -> str:
    """Google consent screen URL; offline access so busy time can be re-read later"""
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(GOOGLE_CALENDAR_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def connect_calendar(
    profile_id: str,
    code: str,
    db: Session,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GoogleCalendarIntegration:
    """
    Exchange an OAuth authorization code and store the encrypted tokens

    Raises:
        CalendarAuthorizationError: Google rejected the code or returned no refresh token
        CalendarServiceError: Google could not be reached
    """
    try:
        async with httpx.AsyncClient(transport=transport) as client:
            token_response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "redirect_uri": GOOGLE_REDIRECT_URI,
                    "grant_type": "authorization_code",
                },
            )
            if token_response.status_code != 200:
                logger.error(f"❌ Token exchange failed: {token_response.text}")
                raise CalendarAuthorizationError("Failed to exchange authorization code")

            tokens = token_response.json()
            access_token = tokens.get("access_token")
            refresh_token = tokens.get("refresh_token")
            if not access_token or not refresh_token:
                raise CalendarAuthorizationError("Google did not grant offline calendar access")

            headers = {"Authorization": f"Bearer {access_token}"}
            user_info = await client.get(GOOGLE_USERINFO_URL, headers=headers)
            primary = await client.get(f"{GOOGLE_CALENDAR_API}/users/me/calendarList/primary", headers=headers)

        google_email = user_info.json().get("email") if user_info.status_code == 200 else None
        calendar_id = primary.json().get("id", "primary") if primary.status_code == 200 else "primary"
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"❌ Google Calendar callback error: {str(e)}")
        raise CalendarServiceError("Failed to reach Google") from e

    integration = get_integration(db, profile_id)
    if integration is None:
        integration = GoogleCalendarIntegration(profile_id=profile_id)
        db.add(integration)
    integration.access_token = encrypt_token(access_token)
    integration.refresh_token = encrypt_token(refresh_token)
    integration.token_expires_at = utcnow() + timedelta(seconds=tokens.get("expires_in", 3600))
    integration.google_user_email = google_email
    integration.google_calendar_id = calendar_id
    db.commit()
    db.refresh(integration)

    logger.info(f"✅ Google Calendar connected for profile {profile_id} ({calendar_id})")
    return integration


async def disconnect_calendar(
    profile_id: str,
    db: Session,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """
    Revoke the Google grant (best-effort) and forget the stored tokens

    Raises:
        CalendarNotConnectedError: nothing to disconnect
    """
    integration = get_integration(db, profile_id)
    if not integration:
        raise CalendarNotConnectedError()

    try:
        async with httpx.AsyncClient(transport=transport) as client:
            await client.post(GOOGLE_REVOKE_URL, params={"token": decrypt_token(integration.refresh_token)})
    except (httpx.HTTPError, InvalidToken) as e:
        logger.warning(f"⚠️ Failed to revoke Google tokens: {str(e)}")

    db.delete(integration)
    db.commit()
    logger.info(f"✅ Google Calendar disconnected for profile {profile_id}")


async def get_valid_access_token(
    integration: GoogleCalendarIntegration,
    db: Session,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if refresh fails
    """
    try:
        # Check if token is expired or about to expire (within 5 minutes)
        if integration.token_expires_at > utcnow() + timedelta(minutes=5):
            return decrypt_token(integration.access_token)

        logger.info("🔄 Google Calendar token expired, refreshing...")
        refresh_token = decrypt_token(integration.refresh_token)

        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )

        if response.status_code != 200:
            logger.error(f"❌ Token refresh failed: {response.text}")
            return None

        tokens = response.json()
        new_access_token = tokens.get("access_token")
        expires_in = tokens.get("expires_in", 3600)

        if not new_access_token:
            logger.error("❌ No access token in refresh response")
            return None

        integration.access_token = encrypt_token(new_access_token)
        integration.token_expires_at = utcnow() + timedelta(seconds=expires_in)
        db.commit()

        logger.info("✅ Google Calendar token refreshed successfully")
        return new_access_token

    except (httpx.HTTPError, InvalidToken, ValueError) as e:
        logger.error(f"❌ Error getting valid access token: {str(e)}")
        return None
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to store refreshed Google Calendar token: {str(e)}")
        return None


def _to_local(value: str) -> datetime:
    """RFC 3339 timestamp to naive wall-clock time in SCHEDULING_TIMEZONE"""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed
    return parsed.astimezone(ZoneInfo(SCHEDULING_TIMEZONE)).replace(tzinfo=None)


def events_to_busy_intervals(items: list[dict]) -> list[BusyInterval]:
    """Convert Google Calendar event resources to busy intervals"""
    intervals = []
    for item in items:
        if item.get("status") == "cancelled" or item.get("transparency") == "transparent":
            continue

        start = item.get("start") or {}
        end = item.get("end") or {}
        try:
            if "dateTime" in start:
                intervals.append(BusyInterval(_to_local(start["dateTime"]), _to_local(end["dateTime"])))
            elif "date" in start:
                intervals.append(
                    BusyInterval(
                        datetime.fromisoformat(start["date"]),
                        datetime.fromisoformat(end.get("date", start["date"])),
                        all_day=True,
                    )
                )
        except (KeyError, ValueError) as e:
            logger.warning(f"⚠️ Skipping calendar event {item.get('id')}: {e}")
    return intervals


async def fetch_busy_intervals(
    profile: Profile,
    db: Session,
    days: int,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[BusyInterval]:
    """
    Fetch the user's busy time for the next `days` days

    Raises:
        CalendarNotConnectedError: No integration or token refresh failed
        CalendarServiceError: Google Calendar API error
    """
    integration = get_integration(db, profile.id)
    if not integration:
        raise CalendarNotConnectedError()

    access_token = await get_valid_access_token(integration, db, transport=transport)
    if not access_token:
        raise CalendarNotConnectedError("Google Calendar authorization expired, please reconnect")

    now = utcnow()
    calendar_id = integration.google_calendar_id or "primary"
    params = {
        "timeMin": now.isoformat() + "Z",
        "timeMax": (now + timedelta(days=days)).isoformat() + "Z",
        "singleEvents": "true",
        "orderBy": "startTime",
        "maxResults": "2500",
    }

    try:
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.get(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                params=params,
            )
    except httpx.HTTPError as e:
        raise CalendarServiceError(f"Google Calendar request failed: {e}") from e

    if response.status_code != 200:
        logger.error(f"❌ Failed to fetch calendar events: {response.text}")
        raise CalendarServiceError(f"Calendar API error (HTTP {response.status_code})")

    items = response.json().get("items", [])
    logger.info(f"📅 Fetched {len(items)} Google Calendar events for profile {profile.id}")
    return events_to_busy_intervals(items)


async def create_meeting_event(
    profile: Profile,
    meeting: Meeting,
    attendee: Optional[Profile],
    db: Session,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[str]:
    """
    Create a Google Calendar event for a confirmed meeting
    Returns the Google Calendar event ID if successful, None otherwise
    """
    try:
        integration = get_integration(db, profile.id)
        if not integration:
            logger.info("ℹ️ Google Calendar not connected")
            return None

        access_token = await get_valid_access_token(integration, db, transport=transport)
        if not access_token:
            logger.error("❌ Failed to get valid access token")
            return None

        start_datetime = meeting.scheduled_at
        end_datetime = start_datetime + timedelta(minutes=meeting.duration_minutes or 60)
        other_name = (attendee.full_name if attendee else None) or "User"
        interest = meeting.connected_interest or "shared interests"

        event_data = {
            "summary": f"Icebreaker Meeting with {other_name}",
            "description": f"Meeting scheduled via Icebreaker app. Connected interest: {interest}",
            "start": {"dateTime": start_datetime.isoformat(), "timeZone": SCHEDULING_TIMEZONE},
            "end": {"dateTime": end_datetime.isoformat(), "timeZone": SCHEDULING_TIMEZONE},
        }
        if attendee and attendee.email:
            event_data["attendees"] = [{"email": attendee.email}]
        if meeting.location:
            event_data["location"] = meeting.location

        calendar_id = integration.google_calendar_id or "primary"
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                json=event_data,
            )

        if response.status_code not in [200, 201]:
            logger.error(f"❌ Failed to create calendar event: {response.text}")
            return None

        event_id = response.json().get("id")
        logger.info(f"✅ Google Calendar event created: {event_id}")
        return event_id

    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"❌ Error creating calendar event: {str(e)}")
        return None
