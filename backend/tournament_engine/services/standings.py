"""
Group standings and tie-breaks.

Ranking order inside a group:
1. wins
2. points (win = 2, draw = 1)
3. head-to-head, only when exactly two participants share wins and points
   (three-way ties fall through without resolving the sub-cycle)
4. game differential
5. games won
6. seed (seeded first), then registration order, then id

Wildcards (best participant at a given group position across groups) compare
wins → game differential → games won → group label.

Standings are only meaningful once every group match of the category is
completed; the progression engine checks that before asking for them.
"""
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from tournament_engine.errors import InconsistentBracketStateError
from tournament_engine.models.match import SIDE_A, SIDE_B, Match
from tournament_engine.models.participant import Participant
from tournament_engine.services.score_parser import parse_score
from tournament_engine.utils.seeding import seed_sort_key

POINTS_WIN = 2
POINTS_DRAW = 1


@dataclass
class StandingRow:
    participant_id: int
    group_label: str
    display_name: str = ""
    order_key: Tuple = ()  # seed/registration order
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    games_won: int = 0
    games_lost: int = 0
    position: int = 0  # 1-based, set after ranking

    @property
    def points(self) -> int:
        return self.wins * POINTS_WIN + self.draws * POINTS_DRAW

    @property
    def game_diff(self) -> int:
        return self.games_won - self.games_lost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "participant_id": self.participant_id,
            "display_name": self.display_name,
            "group_label": self.group_label,
            "position": self.position,
            "played": self.played,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "points": self.points,
            "games_won": self.games_won,
            "games_lost": self.games_lost,
            "game_diff": self.game_diff,
        }


def _match_result(match: Match) -> Tuple[Optional[str], int, int]:
    """(winner_side or None for a draw, side A games, side B games)."""
    parsed = parse_score(match.score_json)
    if parsed is None:
        if match.winner_side in (SIDE_A, SIDE_B):
            return match.winner_side, 0, 0
        raise InconsistentBracketStateError(match.match_code, "completed group match has no parsable score")
    winner = match.winner_side if match.winner_side in (SIDE_A, SIDE_B) else parsed.winner_side
    return winner, parsed.side_a_games, parsed.side_b_games


def compute_group_standings(
    participants: Sequence[Participant], matches: Iterable[Match]
) -> Dict[str, List[StandingRow]]:
    """Ranked standings per group label from completed group matches."""
    rows: Dict[int, StandingRow] = {}
    for p in sorted(participants, key=seed_sort_key):
        if p.group_label:
            rows[p.id] = StandingRow(
                participant_id=p.id,
                group_label=p.group_label,
                display_name=p.display_name,
                order_key=seed_sort_key(p),
            )

    head_to_head: Dict[Tuple[int, int], int] = defaultdict(int)

    for match in matches:
        if not match.is_group_match or not match.is_completed:
            continue
        winner, a_games, b_games = _match_result(match)
        sides = {SIDE_A: match.side_ids(SIDE_A), SIDE_B: match.side_ids(SIDE_B)}
        games = {SIDE_A: (a_games, b_games), SIDE_B: (b_games, a_games)}

        for side, ids in sides.items():
            for pid in ids:
                row = rows.get(pid)
                if row is None:
                    raise InconsistentBracketStateError(
                        match.match_code, f"participant {pid} is not assigned to a group"
                    )
                row.played += 1
                row.games_won += games[side][0]
                row.games_lost += games[side][1]
                if winner is None:
                    row.draws += 1
                elif winner == side:
                    row.wins += 1
                else:
                    row.losses += 1

        if winner is not None:
            loser = SIDE_B if winner == SIDE_A else SIDE_A
            for w in sides[winner]:
                for l in sides[loser]:
                    head_to_head[(w, l)] += 1
                    head_to_head[(l, w)] -= 1

    grouped: Dict[str, List[StandingRow]] = defaultdict(list)
    for row in rows.values():
        grouped[row.group_label].append(row)

    return {label: _rank_group(group_rows, head_to_head) for label, group_rows in sorted(grouped.items())}


def _rank_group(rows: List[StandingRow], head_to_head: Dict[Tuple[int, int], int]) -> List[StandingRow]:
    ranked = sorted(rows, key=lambda r: (-r.wins, -r.points, -r.game_diff, -r.games_won, r.order_key))

    # Two-way ties on (wins, points) are settled head-to-head when it is decisive
    i = 0
    while i < len(ranked):
        j = i
        while j + 1 < len(ranked) and (ranked[j + 1].wins, ranked[j + 1].points) == (ranked[i].wins, ranked[i].points):
            j += 1
        if j - i == 1:
            first, second = ranked[i], ranked[j]
            if head_to_head.get((second.participant_id, first.participant_id), 0) > 0:
                ranked[i], ranked[j] = second, first
        i = j + 1

    for position, row in enumerate(ranked, start=1):
        row.position = position
    return ranked


def rank_wildcards(standings: Dict[str, List[StandingRow]], position: int) -> List[StandingRow]:
    """Rows at `position` (1-based) in every group, best first."""
    candidates = [rows[position - 1] for _, rows in sorted(standings.items()) if len(rows) >= position]
    return sorted(candidates, key=lambda r: (-r.wins, -r.game_diff, -r.games_won, r.group_label))
