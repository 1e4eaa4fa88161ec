"""
AI Gateway Client
Calls an OpenAI-compatible chat completions endpoint with a forced tool call
to rank meeting times and to parse availability descriptions.
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from ..config import AI_GATEWAY_API_KEY, AI_GATEWAY_MODEL, AI_GATEWAY_TIMEOUT_SECONDS, AI_GATEWAY_URL
from ..domain.scheduling.availability import WEEKDAYS
from ..domain.scheduling.errors import RankingServiceError

logger = logging.getLogger(__name__)


class RateLimitedError(RankingServiceError):
    """Rate limits exceeded, please try again later"""

    code = "rate_limited"


class PaymentRequiredError(RankingServiceError):
    """Payment required, please add credits to your workspace"""

    code = "payment_required"


class AIServiceError(RankingServiceError):
    """AI gateway error"""

    code = "ai_service_error"


SUGGEST_MEETING_TIMES_TOOL = {
    "type": "function",
    "function": {
        "name": "suggest_meeting_times",
        "description": "Return optimal meeting time suggestions chosen from the candidate slots",
        "parameters": {
            "type": "object",
            "properties": {
                "suggestions": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "day": {"type": "string", "enum": list(WEEKDAYS)},
                            "date": {"type": "string", "description": "ISO date format YYYY-MM-DD"},
                            "startTime": {"type": "string", "description": "HH:mm format"},
                            "endTime": {"type": "string", "description": "HH:mm format"},
                            "reason": {"type": "string", "description": "Brief reason why this time is good"},
                        },
                        "required": ["day", "date", "startTime", "endTime", "reason"],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["suggestions"],
            "additionalProperties": False,
        },
    },
}

_DAY_SCHEMA = {
    "type": "object",
    "properties": {
        "active": {"type": "boolean"},
        "start": {"type": "string", "pattern": "^([0-1][0-9]|2[0-3]):[0-5][0-9]$"},
        "end": {"type": "string", "pattern": "^([0-1][0-9]|2[0-3]):[0-5][0-9]$"},
    },
    "required": ["active", "start", "end"],
}

SET_AVAILABILITY_TOOL = {
    "type": "function",
    "function": {
        "name": "set_availability",
        "description": "Set weekly availability schedule",
        "parameters": {
            "type": "object",
            "properties": {day: _DAY_SCHEMA for day in WEEKDAYS},
            "required": list(WEEKDAYS),
            "additionalProperties": False,
        },
    },
}


class AIGatewayClient:
    """Thin async client for the AI gateway"""

    def __init__(
        self,
        api_key: Optional[str] = AI_GATEWAY_API_KEY,
        url: str = AI_GATEWAY_URL,
        model: str = AI_GATEWAY_MODEL,
        timeout: float = AI_GATEWAY_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self.transport = transport

    async def _call_tool(self, system_prompt: str, user_prompt: str, tool: dict) -> dict[str, Any]:
        if not self.api_key:
            raise AIServiceError("AI gateway API key is not configured")

        tool_name = tool["function"]["name"]
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "tools": [tool],
            "tool_choice": {"type": "function", "function": {"name": tool_name}},
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise AIServiceError(f"AI gateway request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitedError()
        if response.status_code == 402:
            raise PaymentRequiredError()
        if response.status_code >= 400:
            logger.error(f"❌ AI gateway error: {response.status_code} {response.text[:500]}")
            raise AIServiceError(f"AI gateway error (HTTP {response.status_code})")

        try:
            data = response.json()
            tool_call = data["choices"][0]["message"]["tool_calls"][0]
            return json.loads(tool_call["function"]["arguments"])
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIServiceError("No tool call in AI response") from e

    async def rank_slots(
        self,
        requester_availability: dict,
        recipient_availability: dict,
        candidates: list[dict],
        now: datetime,
        preference_text: Optional[str] = None,
    ) -> list[dict]:
        """
        Ask the model to pick and order the best candidate slots.

        Returns:
            List of {day, date, startTime, endTime, reason} in ranked order
        """
        today = now.date().isoformat()
        current_time = now.strftime("%H:%M")

        system_prompt = f"""You are a smart meeting scheduler. Analyze two users' weekly availability and suggest the best meeting times.

CRITICAL: Only suggest times that are in the future. Current date is {today} and current time is {current_time}.
Only choose from the candidate slots provided; never invent other times.

Consider:
- Preferred days (weekdays are usually better than weekends)
- Time of day (mid-morning and early afternoon are often ideal)
- Any stated preferences
- Provide diverse options across different days"""

        user_prompt = (
            f"Requester availability: {json.dumps(requester_availability)}\n"
            f"Recipient availability: {json.dumps(recipient_availability)}\n"
            f"Candidate slots: {json.dumps(candidates)}\n"
        )
        if preference_text:
            user_prompt += f"Preferences: {preference_text}\n"
        user_prompt += "Suggest 5-8 optimal meeting times from the candidates."

        result = await self._call_tool(system_prompt, user_prompt, SUGGEST_MEETING_TIMES_TOOL)
        suggestions = result.get("suggestions")
        if not isinstance(suggestions, list):
            raise AIServiceError("AI response missing suggestions")

        logger.info(f"🤖 AI gateway returned {len(suggestions)} meeting suggestions")
        return suggestions

    async def parse_availability(self, text: str, now: datetime) -> dict:
        """Convert a natural-language description into the weekly availability shape"""
        system_prompt = (
            "You are a calendar parsing assistant. Convert natural language availability into a weekly "
            f"schedule format. Current date/time: {now.isoformat()}. Return a weekly schedule where each "
            "day (monday-sunday) has: active (boolean), start (HH:mm format), end (HH:mm format). If user "
            'says "free all the time" or "available always", set all days active from 09:00 to 17:00. '
            "If specific days/times mentioned, parse accordingly."
        )
        return await self._call_tool(system_prompt, f'Parse this availability: "{text}"', SET_AVAILABILITY_TOOL)


def get_ai_gateway() -> Optional[AIGatewayClient]:
    """Configured gateway client, or None when no API key is set"""
    if not AI_GATEWAY_API_KEY:
        return None
    return AIGatewayClient()
