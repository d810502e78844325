from __future__ import annotations

from watch_wrapped.rounding import round_half_up


def fun_time_equivalent(hours: float) -> str:
    """Describe a number of watched hours as an everyday comparison."""
    if hours < 1:
        return "barely a bathroom break"
    if hours < 10:
        return f"{round_half_up(hours)} hours, about a road trip to the next state"
    if hours < 24:
        return f"{round_half_up(hours)} hours, almost a full day without sleep"

    days = round_half_up(hours / 24)
    if days == 1:
        return "a full 24-hour day of non-stop watching"
    if days < 7:
        return f"{days} full days, a vacation's worth of content"
    if days < 30:
        return f"{days} days, that's {round_half_up(hours / 12)} flights from New York to Tokyo"

    months = round_half_up(days / 30)
    return (
        f"{days} days ({months} months!), you could've driven around the world "
        f"{round_half_up(hours / 480)} times"
    )
