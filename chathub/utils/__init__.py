from .ids import generate_id
from .responses import error_response, hub_error_response
from .timestamps import UTC, isoformat, parse_timestamp, utc_now

__all__ = [
    "error_response",
    "generate_id",
    "hub_error_response",
    "UTC",
    "isoformat",
    "parse_timestamp",
    "utc_now",
]
