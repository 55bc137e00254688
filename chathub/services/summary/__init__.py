"""Session summary cache and refresh loop."""

from .cache import SummaryCache
from .refresher import SummaryRefresher

__all__ = [
    "SummaryCache",
    "SummaryRefresher",
]
