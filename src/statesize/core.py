"""Differential serialized-size measurement for nested key-value state."""

from __future__ import annotations

import logging
from collections.abc import Callable, MutableMapping
from typing import Any, Protocol

import msgspec

from .exceptions import MeasurementFailure, StateSizeError, UnsupportedValue
from .serializers import Sizer, msgpack_size

# Configure logging
logger = logging.getLogger(__name__)

_INDENT = "   "

ContainerTest = Callable[[Any], bool]

# ============================================================================
# Breakdown Tree
# ============================================================================


class BreakdownNode(msgspec.Struct, frozen=True):
    """Serialized-size contribution of one entry, with nested entries as children."""

    key: str
    size_bytes: int
    children: tuple[BreakdownNode, ...] = ()


def is_nested_container(value: Any) -> bool:
    """Default capability test: mutable mappings are broken down recursively."""
    return isinstance(value, MutableMapping)


def container_label(container: Any) -> str:
    """Identity-derived label used as the key of a container's root node."""
    return f"{type(container).__name__}{id(container)}"


# ============================================================================
# Measurement Engine
# ============================================================================


def _size_of(container: Any, label: str, sizer: Sizer) -> int:
    try:
        return sizer(container)
    except StateSizeError:
        raise
    except Exception as e:
        logger.error(f"Size primitive failed for {label}: {e}")
        raise MeasurementFailure(container_label=label, original_error=e) from e


def _reinsert(container: MutableMapping[Any, Any], snapshot: dict[Any, Any]) -> None:
    for key, value in snapshot.items():
        try:
            container[key] = value
        except Exception as e:
            logger.error(f"Failed to restore {key!r} into {container_label(container)}: {e}")
            raise UnsupportedValue(key=key, operation="restore", original_error=e) from e


def _restore(container: MutableMapping[Any, Any], snapshot: dict[Any, Any]) -> None:
    _reinsert(container, snapshot)
    if list(container) == list(snapshot):
        return

    # Re-inserted keys landed at the end, rebuild in snapshot order
    label = container_label(container)
    try:
        container.clear()
    except Exception as e:
        logger.error(f"Failed to reorder {label}: {e}")
        raise UnsupportedValue(
            operation="restore",
            original_error=e,
            message=f"Cannot restore key order of {label}",
        ) from e
    _reinsert(container, snapshot)


def measure(
    container: Any,
    depth_limit: int = -1,
    *,
    sizer: Sizer | None = None,
    is_container: ContainerTest | None = None,
) -> BreakdownNode:
    """
    Break down the serialized size of a container, entry by entry.

    Each entry's size is derived by removing it from the container and
    measuring how much the serialized size shrinks. Entries are removed
    cumulatively, so every delta is relative to the container with all
    earlier entries already gone. The container is always put back exactly
    as it was (same keys, same values, same order) before this returns or
    raises.

    The caller must hold exclusive access to ``container`` for the duration
    of the call.

    Args:
        container: The mutable mapping to measure. Mutated in place, then restored.
        depth_limit: 0 reports only the total size, a negative value recurses
            without limit, and ``n > 0`` allows ``n`` more levels of nesting.
        sizer: Returns the serialized size in bytes of a container.
            Defaults to MessagePack via msgspec.
        is_container: Decides which values are broken down recursively.
            Defaults to :func:`is_nested_container`.

    Returns:
        The root BreakdownNode. Its ``size_bytes`` is measured after restoration.

    Raises:
        MeasurementFailure: If the size primitive fails.
        UnsupportedValue: If the container cannot be mutated, or an entry
            cannot be removed or restored.

    Note:
        Child sizes can be negative when the wire format shares or interns
        values across entries. They are reported as measured.

    Example:
        >>> state = {"title": "hello", "tags": {"a": 1, "b": 2}}
        >>> tree = measure(state)
        >>> [child.key for child in tree.children]
        ['title', 'tags']
    """
    sizer = sizer or msgpack_size
    is_container = is_container or is_nested_container
    label = container_label(container)

    if depth_limit == 0:
        return BreakdownNode(key=label, size_bytes=_size_of(container, label, sizer))

    if not isinstance(container, MutableMapping):
        raise UnsupportedValue(
            operation="break down",
            message=f"Cannot break down {label}: not a mutable mapping",
        )

    # Measurements run on the original object, the snapshot is only for restoring
    snapshot = dict(container.items())
    children: list[BreakdownNode] = []

    try:
        prev_size = _size_of(container, label, sizer)
        for key in snapshot:
            value = container[key]
            try:
                del container[key]
            except (KeyError, TypeError) as e:
                raise UnsupportedValue(key=key, operation="remove", original_error=e) from e

            new_size = _size_of(container, label, sizer)

            grandchildren: tuple[BreakdownNode, ...] = ()
            if is_container(value):
                grandchildren = measure(
                    value, depth_limit - 1, sizer=sizer, is_container=is_container
                ).children

            children.append(
                BreakdownNode(key=str(key), size_bytes=prev_size - new_size, children=grandchildren)
            )
            prev_size = new_size
    finally:
        _restore(container, snapshot)

    node = BreakdownNode(
        key=label,
        size_bytes=_size_of(container, label, sizer),
        children=tuple(children),
    )
    logger.debug(f"Measured {label}: {len(node.children)} keys, {node.size_bytes} bytes")
    return node


# ============================================================================
# Report Formatter
# ============================================================================


def _kilobytes(size_bytes: int) -> str:
    # Fixed format, independent of the process locale
    return f"{size_bytes / 1000:,.1f}"


def format_breakdown(tree: BreakdownNode, indent_depth: int = 0) -> str:
    """
    Render a breakdown tree as an indented, multi-line report.

    Args:
        tree: Root of the breakdown to render.
        indent_depth: Indentation level of the summary line.

    Returns:
        The report, without a trailing newline.

    Example:
        >>> node = BreakdownNode("B", 2000, (BreakdownNode("x", 1500), BreakdownNode("y", 500)))
        >>> print(format_breakdown(node))
        B contains 2 keys and measures 2.0 KB when serialized
         * x = 1.5 KB
         * y = 0.5 KB
    """
    padding = _INDENT * indent_depth
    lines = [
        f"{padding}{tree.key} contains {len(tree.children)} keys "
        f"and measures {_kilobytes(tree.size_bytes)} KB when serialized"
    ]
    for child in tree.children:
        lines.append(f"{padding} * {child.key} = {_kilobytes(child.size_bytes)} KB")
        if child.children:
            lines.append(format_breakdown(child, indent_depth + 1))
    return "\n".join(lines)


def breakdown_report(
    container: Any,
    depth_limit: int = -1,
    *,
    sizer: Sizer | None = None,
    is_container: ContainerTest | None = None,
) -> str:
    """Measure a container and return its formatted breakdown report."""
    tree = measure(container, depth_limit, sizer=sizer, is_container=is_container)
    return format_breakdown(tree)


# ============================================================================
# Logging Entry Points
# ============================================================================


class LogSink(Protocol):
    """Destination for formatted reports."""

    def log(self, priority: int, tag: str, message: str) -> None: ...


class LoggingSink:
    """Send reports to the stdlib logger named by the tag."""

    def log(self, priority: int, tag: str, message: str) -> None:
        logging.getLogger(tag).log(priority, message)


def log_breakdown_at(
    tag: str,
    priority: int,
    container: Any,
    *,
    depth_limit: int = -1,
    sink: LogSink | None = None,
    sizer: Sizer | None = None,
) -> None:
    """
    Log the breakdown report of a container.

    Args:
        tag: Logger name (or sink tag) to log under.
        priority: A stdlib logging level, e.g. ``logging.INFO``.
        container: The mapping to measure.
        depth_limit: How deep to break down nested mappings.
        sink: Where to send the report. Defaults to :class:`LoggingSink`.
        sizer: Size primitive, defaults to MessagePack.
    """
    report = breakdown_report(container, depth_limit, sizer=sizer)
    (sink or LoggingSink()).log(priority, tag, report)


def log_breakdown(
    tag: str,
    container: Any,
    *,
    depth_limit: int = -1,
    sink: LogSink | None = None,
    sizer: Sizer | None = None,
) -> None:
    """Log the breakdown report of a container at DEBUG level."""
    log_breakdown_at(
        tag, logging.DEBUG, container, depth_limit=depth_limit, sink=sink, sizer=sizer
    )
