"""statesize: per-key breakdown of oversized serialized state."""

__version__ = "1.0.0"

from .config import StateSizeSettings
from .core import (
    # Breakdown Tree
    BreakdownNode,
    # Logging Entry Points
    LoggingSink,
    LogSink,
    # Report Formatter
    breakdown_report,
    container_label,
    format_breakdown,
    is_nested_container,
    log_breakdown,
    log_breakdown_at,
    # Measurement Engine
    measure,
)
from .exceptions import (
    ConfigurationError,
    MeasurementFailure,
    # Base Exception
    StateSizeError,
    UnsupportedValue,
)
from .serializers import get_sizer, json_size, msgpack_size

__all__ = [
    # Version
    "__version__",
    # Breakdown Tree
    "BreakdownNode",
    # Measurement Engine
    "measure",
    "is_nested_container",
    "container_label",
    # Report Formatter
    "format_breakdown",
    "breakdown_report",
    # Logging Entry Points
    "log_breakdown",
    "log_breakdown_at",
    "LogSink",
    "LoggingSink",
    # Wire Formats
    "msgpack_size",
    "json_size",
    "get_sizer",
    # Configuration
    "StateSizeSettings",
    # Exceptions
    "StateSizeError",
    "MeasurementFailure",
    "UnsupportedValue",
    "ConfigurationError",
]
