"""MiningRigBoost: Swap/session boost formula for Pond0x mining rigs.

Formula:
    boost = total_swaps / 6 + mining_sessions * -3, clamped to [0, 615]

Every 6 swaps add one boost point and every mining session costs three.
615 is the effective maximum.

.. code-block:: python

    >>> compute_boost(3690, 0).boost
    615.0
    >>> compute_boost(0, 300).boost
    0.0
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass

SWAPS_PER_POINT = 6
SESSION_PENALTY = -3
MAX_BOOST = 615
MIN_BOOST = 0


@dataclass(frozen=True)
class BoostBreakdown:
    """Mining rig boost and the projections derived from it.

    :ivar boost: Clamped boost, rounded to 2 decimals.
    :ivar raw_boost: Unclamped boost.
    :ivar swap_boost: Contribution from swaps.
    :ivar session_boost: Contribution from mining sessions (<= 0).
    :ivar swaps_needed_for_max: Extra swaps needed to reach MAX_BOOST.
    :ivar sessions_until_max: Sessions before the raw boost falls to MAX_BOOST.
    :ivar sessions_until_zero: Sessions before the raw boost falls to 0.
    """

    boost: float
    raw_boost: float
    swap_boost: float
    session_boost: float
    swaps_needed_for_max: int
    sessions_until_max: int
    sessions_until_zero: int

    def to_dict(self) -> dict[str, float | int]:
        """Convert to a camelCase dict for JSON responses."""
        d = asdict(self)
        return {
            "miningRigBoost": d["boost"],
            "rawBoost": round(d["raw_boost"], 2),
            "swapBoost": round(d["swap_boost"], 2),
            "sessionBoost": d["session_boost"],
            "swapsNeededForMaxBoost": d["swaps_needed_for_max"],
            "sessionsUntilMaxBoost": d["sessions_until_max"],
            "sessionsUntilZeroBoost": d["sessions_until_zero"],
        }


def clamp_boost(value: float) -> float:
    """Clamp a raw boost into [MIN_BOOST, MAX_BOOST]."""
    return min(max(value, MIN_BOOST), MAX_BOOST)


def compute_boost(total_swaps: int | float, mining_sessions: int | float) -> BoostBreakdown:
    """Compute the mining rig boost for a wallet.

    :param total_swaps: Lifetime swap count.
    :param mining_sessions: Lifetime mining session count.
    :returns: BoostBreakdown with the clamped boost and projections.
    """
    swap_boost = total_swaps / SWAPS_PER_POINT
    session_boost = mining_sessions * SESSION_PENALTY
    raw = swap_boost + session_boost

    return BoostBreakdown(
        boost=round(float(clamp_boost(raw)), 2),
        raw_boost=float(raw),
        swap_boost=float(swap_boost),
        session_boost=float(session_boost),
        swaps_needed_for_max=max(
            0, math.ceil((MAX_BOOST - session_boost) * SWAPS_PER_POINT) - int(total_swaps)
        ),
        sessions_until_max=max(0, math.ceil((raw - MAX_BOOST) / -SESSION_PENALTY)),
        sessions_until_zero=max(0, math.ceil(raw / -SESSION_PENALTY)),
    )
