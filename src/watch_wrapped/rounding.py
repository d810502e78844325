from __future__ import annotations

import math


def round_half_up(value: float, digits: int = 0) -> float | int:
    """Round to ``digits`` places with halves rounded up."""
    scale = 10**digits
    rounded = math.floor(value * scale + 0.5)
    if digits == 0:
        return int(rounded)
    return rounded / scale
