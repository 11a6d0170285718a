"""
Fairness scoring for multi-invitee scheduling.

When several invitees in different timezones book the same slot, each slot is
scored by how well it suits all of them. Scorers are pluggable: anything
callable as ``scorer(invitee_times) -> float`` can be handed to the resolver.
"""

from typing import Any, Dict


class ReasonableHoursScorer:
    """Share of invitees whose local start time falls within reasonable hours."""

    def __init__(self, start_hour: int = 9, end_hour: int = 18):
        self.start_hour = start_hour
        self.end_hour = end_hour

    def is_reasonable(self, local_start_hour: int) -> bool:
        return self.start_hour <= local_start_hour <= self.end_hour

    def __call__(self, invitee_times: Dict[str, Dict[str, Any]]) -> float:
        if not invitee_times:
            return 1.0
        reasonable = sum(1 for times in invitee_times.values() if times.get("is_reasonable"))
        return round(reasonable / len(invitee_times), 4)
