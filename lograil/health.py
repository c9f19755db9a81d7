"""Health scoring: clamped normalization plus table-driven severity indicators."""

from lograil.config import DEFAULT_HEALTH_RANGES, HealthRange

HEALTH_MIN = -100
HEALTH_MAX = 100
UNKNOWN_INDICATOR = "❓"
DEFAULT_BAR_WIDTH = 20


def clamp_health(value: int) -> int:
    """Clamp a health value to the valid -100..+100 range."""
    return max(HEALTH_MIN, min(HEALTH_MAX, value))


def normalize_health(raw: int, total: int) -> int:
    """Convert raw cumulative health to a clamped percentage of *total*.

    With no declared total (0), the raw value is treated as already being a
    percentage. Division truncates toward zero.
    """
    if total == 0:
        return clamp_health(raw)
    scaled = raw * 100
    percent = abs(scaled) // abs(total)
    if (scaled < 0) != (total < 0):
        percent = -percent
    return clamp_health(percent)


def health_indicator(health: int, ranges: tuple[HealthRange, ...] = DEFAULT_HEALTH_RANGES) -> str:
    """Return the indicator of the first range whose threshold *health* reaches."""
    for band in ranges:
        if health >= band.threshold:
            return band.indicator
    return UNKNOWN_INDICATOR


def health_description(health: int, ranges: tuple[HealthRange, ...] = DEFAULT_HEALTH_RANGES) -> str:
    for band in ranges:
        if health >= band.threshold:
            return band.description
    return ""


def health_bar(health: int, width: int = DEFAULT_BAR_WIDTH) -> str:
    """Render a fixed-width bar where -100 is empty and +100 is full."""
    filled = (clamp_health(health) - HEALTH_MIN) * width // (HEALTH_MAX - HEALTH_MIN)
    filled = max(0, min(width, filled))
    return "[" + "█" * filled + "░" * (width - filled) + "]"


def format_delta(delta: int) -> str:
    """Signed delta: +5, -10, 0."""
    return f"+{delta}" if delta > 0 else str(delta)


class HealthScorer:
    """Running health accumulator for one logger.

    Raw health is never clamped and never reset; only the normalized view is
    bounded to -100..+100.
    """

    def __init__(self):
        self._raw = 0
        self._total = 0
        self._normalized = 0

    @property
    def raw(self) -> int:
        return self._raw

    @property
    def total(self) -> int:
        return self._total

    @property
    def normalized(self) -> int:
        return self._normalized

    def declare_total(self, total: int):
        """Set the denominator used by subsequent updates."""
        self._total = int(total)

    def update(self, delta: int) -> int:
        """Apply *delta* and return the new normalized health."""
        self._raw += int(delta)
        self._normalized = normalize_health(self._raw, self._total)
        return self._normalized
