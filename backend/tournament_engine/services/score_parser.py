"""
Score parser for set/game tallies.

Supports:
  {"sets": [{"a": 6, "b": 3}, {"a": 4, "b": 6}]}  → structured sets (side A / side B games)
  "8-4"             → 1 set, games 8-4
  "6-3 4-6 10-7"    → 3 sets, games summed
  "6-3, 4-6, 10-7"  → comma-separated variant
  {"display": "8-4"} → extracts display string first

Returns None on parse failure; callers decide whether that is fatal.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from tournament_engine.models.match import SIDE_A, SIDE_B


@dataclass
class ParsedScore:
    sets: List[Tuple[int, int]]  # (side_a_games, side_b_games) per set
    side_a_sets_won: int
    side_b_sets_won: int
    side_a_games: int
    side_b_games: int

    @property
    def winner_side(self) -> Optional[str]:
        """More sets wins, then more games; None when both are level (a draw)."""
        if self.side_a_sets_won != self.side_b_sets_won:
            return SIDE_A if self.side_a_sets_won > self.side_b_sets_won else SIDE_B
        if self.side_a_games != self.side_b_games:
            return SIDE_A if self.side_a_games > self.side_b_games else SIDE_B
        return None

    def games_for(self, side: str) -> int:
        return self.side_a_games if side == SIDE_A else self.side_b_games


def parse_score(score_json: Optional[Any]) -> Optional[ParsedScore]:
    """Parse a score_json blob into structured set/game counts.

    Returns None if the score cannot be parsed.
    """
    if not score_json:
        return None

    raw: Optional[str] = None
    if isinstance(score_json, str):
        raw = score_json
    elif isinstance(score_json, dict):
        if "sets" in score_json and isinstance(score_json["sets"], list):
            return _parse_structured_sets(score_json["sets"])
        raw = str(score_json.get("display") or score_json.get("score") or "")
    if not raw or not raw.strip():
        return None

    return _parse_score_string(raw.strip())


def _build(sets: List[Tuple[int, int]]) -> ParsedScore:
    return ParsedScore(
        sets=sets,
        side_a_sets_won=sum(1 for a, b in sets if a > b),
        side_b_sets_won=sum(1 for a, b in sets if b > a),
        side_a_games=sum(a for a, _ in sets),
        side_b_games=sum(b for _, b in sets),
    )


def _parse_structured_sets(sets_list: list) -> Optional[ParsedScore]:
    sets: List[Tuple[int, int]] = []
    for s in sets_list:
        if not isinstance(s, dict):
            return None
        try:
            a = int(s.get("a", 0))
            b = int(s.get("b", 0))
        except (TypeError, ValueError):
            return None
        if a < 0 or b < 0:
            return None
        sets.append((a, b))
    if not sets:
        return None
    return _build(sets)


def _parse_score_string(raw: str) -> Optional[ParsedScore]:
    """Parse strings like '8-4', '6-3 4-6 10-7', '6-3, 4-6, 10-7'."""
    # Normalize: replace commas with spaces, collapse whitespace
    normalized = raw.replace(",", " ").strip()
    parts = normalized.split()

    sets: List[Tuple[int, int]] = []
    for part in parts:
        pair = part.split("-")
        if len(pair) != 2:
            return None
        try:
            a = int(pair[0])
            b = int(pair[1])
        except ValueError:
            return None
        sets.append((a, b))

    if not sets:
        return None

    return _build(sets)


def score_from_sets(sets: List[Tuple[int, int]]) -> Dict[str, Any]:
    """Build the structured score_json blob stored on Match."""
    return {"sets": [{"a": a, "b": b} for a, b in sets]}
