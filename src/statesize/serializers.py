"""Wire-format size primitives built on msgspec."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import msgspec

from .exceptions import ConfigurationError

Sizer = Callable[[Any], int]


def msgpack_size(obj: Any) -> int:
    """Return the size in bytes of ``obj`` encoded as MessagePack."""
    return len(msgspec.msgpack.encode(obj))


def json_size(obj: Any) -> int:
    """Return the size in bytes of ``obj`` encoded as compact JSON."""
    return len(msgspec.json.encode(obj))


_SIZERS: dict[str, Sizer] = {
    "msgpack": msgpack_size,
    "json": json_size,
}


def get_sizer(wire_format: str = "msgpack") -> Sizer:
    """
    Look up the size primitive for a wire format.

    Args:
        wire_format: Name of the format ("msgpack" or "json").

    Returns:
        A callable mapping a container to its encoded size in bytes.

    Raises:
        ConfigurationError: If the format is not known.
    """
    try:
        return _SIZERS[wire_format]
    except KeyError:
        raise ConfigurationError(
            f"Unknown wire format: {wire_format!r}",
            suggestion=f"use one of {', '.join(sorted(_SIZERS))}",
        ) from None
