# teastore/services/loyalty.py
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LoyaltyLevel:
    level: int
    name: str
    min_xp: int
    max_xp: int | None
    discount: int
    benefits: tuple = field(default_factory=tuple)

    def as_api(self):
        return {
            "level": self.level,
            "name": self.name,
            "min_xp": self.min_xp,
            "max_xp": self.max_xp,
            "discount": self.discount,
            "benefits": list(self.benefits),
        }


LOYALTY_LEVELS = (
    LoyaltyLevel(1, "Novice", 0, 2999, 0, (
        "Access to the base catalog",
    )),
    LoyaltyLevel(2, "Connoisseur", 3000, 6999, 5, (
        "5% off every purchase",
        "Access to the base catalog",
    )),
    LoyaltyLevel(3, "Tea Master", 7000, 14999, 10, (
        "10% off every purchase",
        "Personal consultation chat",
        "Invitations to private tea evenings",
        "Request any tea",
    )),
    LoyaltyLevel(4, "Tea Guru", 15000, None, 15, (
        "15% off every purchase",
        "All level 3 privileges",
        "Priority service",
        "Exclusive offers",
    )),
)


def get_loyalty_level(xp) -> LoyaltyLevel:
    xp = xp or 0
    for level in reversed(LOYALTY_LEVELS):
        if xp >= level.min_xp:
            return level
    return LOYALTY_LEVELS[0]


def get_loyalty_discount(xp) -> int:
    return get_loyalty_level(xp).discount


def get_loyalty_progress(xp) -> dict:
    xp = xp or 0
    current = get_loyalty_level(xp)
    idx = LOYALTY_LEVELS.index(current)
    nxt = LOYALTY_LEVELS[idx + 1] if idx < len(LOYALTY_LEVELS) - 1 else None

    xp_to_next = 0
    progress = 100.0
    if nxt:
        xp_to_next = nxt.min_xp - xp
        progress = max(0.0, (xp - current.min_xp) / (nxt.min_xp - current.min_xp) * 100)

    return {
        "current_level": current.as_api(),
        "current_xp": xp,
        "next_level": nxt.as_api() if nxt else None,
        "xp_to_next_level": xp_to_next,
        "progress_percentage": progress,
    }
