"""
Slot Scoring Engine for the Availability Engine.

This module determines the 'Quality' of a valid slot.
Unlike hard constraints (binary Yes/No), this provides a gradient that orders
slots by how well they fit the requester's preferences. Weights are explicit
constants (see models.ScoreWeights) so results are reproducible:

- Base score: 50
- +30 on the exact preferred (anchor) date
- +20 when the slot starts inside the requested time-of-day band
- On the anchor date only: -2 per hour away from the ideal hour (10:00)
"""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from models import CandidateSlot, ScoreWeights, SlotPreferences, TimeInterval

PREFERRED_DATE = "preferred_date"
TIME_BAND = "time_band"


class SlotScorer:
    """
    Evaluates candidate slots against soft preferences. Stateless.
    """

    def __init__(self, default_weights: Optional[ScoreWeights] = None):
        self.default_weights = default_weights or ScoreWeights()

    def calculate_score(self, interval: TimeInterval, preferences: SlotPreferences) -> Tuple[float, List[str]]:
        """
        Master scoring function. Returns (score, matched preference names).
        """
        weights = preferences.weights or self.default_weights
        local = self._local(interval.start, preferences)
        matched: List[str] = []

        score = weights.base

        # 1. Exact date match (+30)
        on_anchor = preferences.anchor_date is not None and local.date() == preferences.anchor_date
        if on_anchor:
            score += weights.preferred_date
            matched.append(PREFERRED_DATE)

        # 2. Time-of-day band (+20)
        if preferences.time_band is not None and preferences.time_band.range.contains_time(local.time()):
            score += weights.time_band
            matched.append(TIME_BAND)

        # 3. Centering penalty, anchor date only
        if on_anchor:
            hour = local.hour + local.minute / 60.0
            score -= weights.distance_penalty * abs(hour - weights.ideal_hour)

        return score, matched

    def score_slot(self, slot: CandidateSlot, preferences: SlotPreferences) -> CandidateSlot:
        """Return a scored copy; the input slot is left untouched."""
        score, matched = self.calculate_score(slot.interval, preferences)
        return slot.model_copy(update={"score": score, "matched_preferences": matched})

    def rank(self, slots: Iterable[CandidateSlot], preferences: SlotPreferences) -> List[CandidateSlot]:
        """
        Score and order slots: best score first, ties broken by earliest start.
        Python's sort is stable, so equal (score, start) pairs keep input order.
        """
        scored = [self.score_slot(s, preferences) for s in slots]
        return sorted(scored, key=lambda s: (-s.score, s.start))

    @staticmethod
    def _local(moment: datetime, preferences: SlotPreferences) -> datetime:
        if moment.tzinfo is not None and preferences.timezone:
            return moment.astimezone(ZoneInfo(preferences.timezone))
        return moment
