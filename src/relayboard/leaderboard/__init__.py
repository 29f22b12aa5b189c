from relayboard.leaderboard.engine import (
    LeaderboardEngine,
    LeaderboardRecord,
    PlayerStats,
    RankedEntry,
    ScoreTags,
    days_playing,
    is_streak_expired,
    parse_int_tag,
    win_rate,
)

__all__ = [
    "LeaderboardEngine",
    "LeaderboardRecord",
    "PlayerStats",
    "RankedEntry",
    "ScoreTags",
    "days_playing",
    "is_streak_expired",
    "parse_int_tag",
    "win_rate",
]
