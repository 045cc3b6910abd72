"""
Rest Rules - participant rest between allocated matches

Minimum rest is one full slot on the same day: a participant who played slot k
may next play slot k + 2. A new day always counts as rested.

The allocator relaxes this rule (forced slot) when no queued match satisfies it.
"""
from datetime import date
from typing import Dict, Iterable, List, Optional

# ============================================================================
# Configuration
# ============================================================================

MIN_REST_SLOTS = 1


# ============================================================================
# Participant Rest State Tracking
# ============================================================================


class ParticipantRestState:
    """Tracks rest state for a single participant"""

    def __init__(self):
        self.last_day: Optional[date] = None
        self.last_slot_in_day: Optional[int] = None

    def update(self, day: date, slot_in_day: int):
        """Update participant state after match allocation"""
        self.last_day = day
        self.last_slot_in_day = slot_in_day

    def has_previous_match(self) -> bool:
        return self.last_day is not None

    def is_rested(self, day: date, slot_in_day: int) -> bool:
        if not self.has_previous_match() or self.last_day != day:
            return True
        return slot_in_day - self.last_slot_in_day > MIN_REST_SLOTS


class RestStateTracker:
    """Tracks rest state for all participants during allocation"""

    def __init__(self):
        self.participant_states: Dict[int, ParticipantRestState] = {}

    def get_or_create_state(self, participant_id: int) -> ParticipantRestState:
        if participant_id not in self.participant_states:
            self.participant_states[participant_id] = ParticipantRestState()
        return self.participant_states[participant_id]

    def update_participant_state(self, participant_id: int, day: date, slot_in_day: int):
        self.get_or_create_state(participant_id).update(day, slot_in_day)

    def get_participant_state(self, participant_id: int) -> Optional[ParticipantRestState]:
        return self.participant_states.get(participant_id)

    def unrested(self, participant_ids: Iterable[int], day: date, slot_in_day: int) -> List[int]:
        """Participants that would play without the minimum rest."""
        result = []
        for pid in participant_ids:
            state = self.participant_states.get(pid)
            if state is not None and not state.is_rested(day, slot_in_day):
                result.append(pid)
        return result
