"""
Reward arithmetic and display helpers for executed stake requests.
"""
from stake_datum_types import Rational

_THOUSAND = 10 ** 3
_MILLION = 10 ** 6
_BILLION = 10 ** 9
_TRILLION = 10 ** 12
_QUADRILLION = 10 ** 15


def apply_reward(principal: int, multiplier: Rational) -> int:
    """
    Principal plus reward: floor(principal * (1 + multiplier)).

    Computed on unreduced fractions, exactly as the stake pool validator does.
    """
    return Rational.from_int(principal).mul(Rational.from_int(1).add(multiplier)).floor()


def abbreviated_amount(amount: int, decimals: int) -> str:
    """Whole-unit amount with a K/M/B/T/Q suffix, e.g. 1500 -> '1K'."""
    whole = amount // (10 ** decimals)

    if whole >= _QUADRILLION:
        quadrillions = whole // _QUADRILLION
        return "***Q" if quadrillions > 999 else f"{quadrillions}Q"
    if whole >= _TRILLION:
        return f"{whole // _TRILLION}T"
    if whole >= _BILLION:
        return f"{whole // _BILLION}B"
    if whole >= _MILLION:
        return f"{whole // _MILLION}M"
    if whole >= _THOUSAND:
        return f"{whole // _THOUSAND}K"
    return str(whole)


def time_to_datestring(time: int) -> str:
    """POSIX ms to a UTC 'YYMMDD' string (days-to-civil conversion)."""
    days = time // 1000 // 86400 + 719468
    era = days // 146097
    doe = days - era * 146097
    yoe = (doe - doe // 1460 + doe // 36524 - doe // 146096) // 365
    year = yoe + era * 400
    doy = doe - (365 * yoe + yoe // 4 - yoe // 100)
    mp = (5 * doy + 2) // 153
    day = doy - (153 * mp + 2) // 5 + 1
    month = mp + 3 if mp < 10 else mp - 9
    if month <= 2:
        year += 1

    return f"{year % 100:02d}{month:02d}{day:02d}"


def floor_to_second(time: int) -> int:
    return time // 1000 * 1000
