"""
Meeting Proposal Ranker
Orders and annotates candidate slots through the AI gateway, falling back to
the chronological candidates whenever the gateway is missing, fails or is
too slow. The ranker never returns a slot the intersection engine did not
produce.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ...config import AI_GATEWAY_TIMEOUT_SECONDS, MAX_SLOTS, SLOT_HORIZON_DAYS, SLOT_LENGTH_MINUTES
from ...shared.validators import parse_iso_date, parse_time_of_day
from .availability import AvailabilityModel
from .errors import RankingServiceError
from .intersection import TimeSlot, compute_overlap

logger = logging.getLogger(__name__)

SOURCE_AI = "ai"
SOURCE_FALLBACK = "fallback"


@dataclass
class RankingResult:
    slots: list[TimeSlot] = field(default_factory=list)
    source: str = SOURCE_FALLBACK

    @property
    def ranked(self) -> bool:
        return self.source == SOURCE_AI


class MeetingProposalRanker:
    def __init__(
        self,
        gateway=None,
        timeout: float = AI_GATEWAY_TIMEOUT_SECONDS,
        horizon_days: int = SLOT_HORIZON_DAYS,
        slot_length_minutes: int = SLOT_LENGTH_MINUTES,
        max_slots: int = MAX_SLOTS,
    ):
        self.gateway = gateway
        self.timeout = timeout
        self.horizon_days = horizon_days
        self.slot_length_minutes = slot_length_minutes
        self.max_slots = max_slots

    def candidates(self, requester: AvailabilityModel, recipient: AvailabilityModel, now: datetime) -> list[TimeSlot]:
        return compute_overlap(
            requester,
            recipient,
            now,
            horizon_days=self.horizon_days,
            slot_length_minutes=self.slot_length_minutes,
            max_slots=self.max_slots,
        )

    def fallback(self, candidates: list[TimeSlot]) -> RankingResult:
        return RankingResult(slots=candidates[: self.max_slots], source=SOURCE_FALLBACK)

    def select_suggestions(self, suggestions: list[dict], candidates: list[TimeSlot]) -> list[TimeSlot]:
        """
        Keep suggestions that match a candidate exactly, in the gateway's
        order, annotated with its reason. Unknown or duplicate slots are
        dropped.
        """
        by_key = {slot.key: slot for slot in candidates}
        selected: list[TimeSlot] = []
        seen = set()

        for suggestion in suggestions:
            try:
                key = (
                    parse_iso_date(suggestion["date"]),
                    parse_time_of_day(suggestion["startTime"]),
                    parse_time_of_day(suggestion["endTime"]),
                )
            except (KeyError, TypeError, ValueError):
                logger.warning(f"⚠️ Ignoring malformed suggestion: {suggestion!r}")
                continue

            slot = by_key.get(key)
            if slot is None:
                logger.warning(f"⚠️ Ignoring suggestion outside mutual availability: {suggestion!r}")
                continue
            if key in seen:
                continue

            seen.add(key)
            reason = suggestion.get("reason")
            selected.append(slot.with_rationale(str(reason) if reason else None))
            if len(selected) >= self.max_slots:
                break

        return selected

    async def rank(
        self,
        requester: AvailabilityModel,
        recipient: AvailabilityModel,
        now: datetime,
        preference_text: Optional[str] = None,
    ) -> RankingResult:
        candidates = self.candidates(requester, recipient, now)
        if not candidates:
            logger.info("ℹ️ No mutual availability found")
            return RankingResult(slots=[], source=SOURCE_FALLBACK)

        if self.gateway is None:
            return self.fallback(candidates)

        try:
            suggestions = await asyncio.wait_for(
                self.gateway.rank_slots(
                    requester.to_dict(),
                    recipient.to_dict(),
                    [slot.to_dict() for slot in candidates],
                    now,
                    preference_text=preference_text,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"⚠️ Ranking timed out after {self.timeout}s, using chronological slots")
            return self.fallback(candidates)
        except RankingServiceError as e:
            logger.warning(f"⚠️ Ranking service failed ({e.code}): {e}, using chronological slots")
            return self.fallback(candidates)

        selected = self.select_suggestions(suggestions or [], candidates)
        if not selected:
            logger.warning("⚠️ Ranking returned no usable slots, using chronological slots")
            return self.fallback(candidates)

        return RankingResult(slots=selected, source=SOURCE_AI)
