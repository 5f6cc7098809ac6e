"""
Rank ladder, teams and badge numbers.

Levels run 1 (Cadet) to 17. Each team covers a level range and owns a range
of badge numbers; badges read ``PD-<n>`` and nicknames ``[PD-<n>] Name``.
"""
import re
from dataclasses import dataclass
from typing import Iterable, Optional


RANKS = {
    1: "Cadet",
    2: "Officer I",
    3: "Officer II",
    4: "Officer III",
    5: "Senior Officer",
    6: "Corporal",
    7: "Sergeant I",
    8: "Sergeant II",
    9: "Staff Sergeant",
    10: "Lieutenant I",
    11: "Lieutenant II",
    12: "Captain",
    13: "Commander",
    14: "Deputy Chief",
    15: "Assistant Chief",
    16: "Chief of Police",
    17: "Commissioner",
}
MIN_LEVEL = min(RANKS)
MAX_LEVEL = max(RANKS)

BADGE_PREFIX = "PD"
_BADGE_RE = re.compile(r"^([A-Z]+)-(\d+)$")
_NICK_PREFIX_RE = re.compile(r"^\[[A-Z]+-\d+\]\s*")


@dataclass(frozen=True)
class Team:
    name: str
    min_level: int
    max_level: int
    badge_min: int
    badge_max: int
    lock_weeks: int = 0

    @property
    def label(self) -> str:
        return f"Team {self.name}"


TEAMS = (
    Team("Green", 1, 5, 100, 299, lock_weeks=1),
    Team("Silver", 6, 9, 60, 99, lock_weeks=2),
    Team("Gold", 10, 12, 30, 59, lock_weeks=4),
    Team("Red", 13, 15, 10, 29),
    Team("White", 16, 17, 1, 9),
)


def rank_for_level(level: int) -> str:
    try:
        return RANKS[level]
    except KeyError:
        raise ValueError(f"Unknown rank level {level}")


def level_for_rank(rank: str) -> Optional[int]:
    for level, name in RANKS.items():
        if name.lower() == rank.lower():
            return level
    return None


def team_for_level(level: int) -> Team:
    for team in TEAMS:
        if team.min_level <= level <= team.max_level:
            return team
    raise ValueError(f"No team for level {level}")


def team_by_name(name: str) -> Optional[Team]:
    """Accepts ``Gold`` or ``Team Gold``, case-insensitive."""
    key = name.lower().removeprefix("team ").strip()
    for team in TEAMS:
        if team.name.lower() == key:
            return team
    return None


def lock_weeks_for_team(name: str) -> int:
    team = team_by_name(name)
    return team.lock_weeks if team else 0


def parse_badge(badge: str) -> Optional[int]:
    match = _BADGE_RE.match(badge.strip().upper())
    if not match or match.group(1) != BADGE_PREFIX:
        return None
    return int(match.group(2))


def format_badge(number: int) -> str:
    return f"{BADGE_PREFIX}-{number:02d}"


def badge_fits_level(badge: str, level: int) -> bool:
    number = parse_badge(badge)
    if number is None:
        return False
    team = team_for_level(level)
    return team.badge_min <= number <= team.badge_max


def find_free_badge(team: Team, taken: Iterable[str]) -> Optional[str]:
    """Lowest unused badge in the team's range, None if the range is full."""
    used = {n for n in (parse_badge(b) for b in taken if b) if n is not None}
    for number in range(team.badge_min, team.badge_max + 1):
        if number not in used:
            return format_badge(number)
    return None


def strip_badge_prefix(name: str) -> str:
    return _NICK_PREFIX_RE.sub("", name or "").strip()


def nickname(badge: Optional[str], name: str) -> str:
    base = strip_badge_prefix(name)
    return f"[{badge}] {base}" if badge else base
