"""Level thresholds and computation.

Level is a pure, non-decreasing function of cumulative XP.
"""

from __future__ import annotations

LEVEL_THRESHOLDS: list[dict] = [
    {"level": 1, "title": "Newcomer", "xp_required": 0, "cumulative": 0},
    {"level": 2, "title": "Explorer", "xp_required": 100, "cumulative": 100},
    {"level": 3, "title": "Apprentice", "xp_required": 150, "cumulative": 250},
    {"level": 4, "title": "Contributor", "xp_required": 250, "cumulative": 500},
    {"level": 5, "title": "Connector", "xp_required": 500, "cumulative": 1000},
    {"level": 6, "title": "Trendsetter", "xp_required": 1000, "cumulative": 2000},
    {"level": 7, "title": "Mentor", "xp_required": 1500, "cumulative": 3500},
    {"level": 8, "title": "Luminary", "xp_required": 2500, "cumulative": 6000},
    {"level": 9, "title": "Sage", "xp_required": 4000, "cumulative": 10000},
    {"level": 10, "title": "Legend", "xp_required": 10000, "cumulative": 20000},
]


def validate_thresholds(thresholds: list[dict]) -> None:
    """Raise ValueError unless levels and cumulative XP both strictly increase from (1, 0)."""
    if not thresholds:
        raise ValueError("Threshold table must not be empty")
    first = thresholds[0]
    if first["level"] != 1 or first["cumulative"] != 0:
        raise ValueError("Threshold table must start at level 1 with 0 XP")
    for prev, cur in zip(thresholds, thresholds[1:]):
        if cur["level"] <= prev["level"] or cur["cumulative"] <= prev["cumulative"]:
            raise ValueError(
                f"Thresholds must strictly increase: level {prev['level']} -> {cur['level']}"
            )


def compute_level(total_xp: int, thresholds: list[dict] | None = None) -> dict:
    """Compute level info from total XP."""
    table = thresholds or LEVEL_THRESHOLDS

    current = table[0]
    next_level = table[1] if len(table) > 1 else table[0]

    for i in range(len(table) - 1):
        if total_xp >= table[i]["cumulative"]:
            current = table[i]
            next_level = table[i + 1]

    # Handle XP beyond max level
    if total_xp >= table[-1]["cumulative"]:
        current = table[-1]
        next_level = table[-1]

    xp_into_level = total_xp - current["cumulative"]
    xp_for_level = next_level["cumulative"] - current["cumulative"]

    # At max level, avoid division by zero
    if xp_for_level == 0:
        xp_for_level = 1

    return {
        "level": current["level"],
        "title": current["title"],
        "xp_into_level": xp_into_level,
        "xp_for_level": xp_for_level,
        "next_level": next_level["level"],
        "next_title": next_level["title"],
    }
