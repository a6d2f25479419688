"""
Coordinate mapping between the world space notes are stored in and the view
space they are drawn in, plus the polling helpers that detect when the host's
pan/zoom has changed.

The host canvas uses the convention `view = (world + offset) * scale`, so every
mapping here is expressed in those terms.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewTransform:
    """A snapshot of the host's pan/zoom state. `scale` is always positive."""

    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0


def to_view(transform, world_x, world_y):
    """
    Maps a world-space point to view space.

    Args:
        transform (ViewTransform): The transform snapshot valid right now.
        world_x (float): World x coordinate.
        world_y (float): World y coordinate.

    Returns:
        tuple[float, float]: The point in view coordinates.
    """
    return (
        (world_x + transform.offset_x) * transform.scale,
        (world_y + transform.offset_y) * transform.scale,
    )


def to_world(transform, view_x, view_y):
    """
    Maps a view-space point back to world space. Inverse of `to_view`.

    Args:
        transform (ViewTransform): The transform snapshot valid right now.
        view_x (float): View x coordinate.
        view_y (float): View y coordinate.

    Returns:
        tuple[float, float]: The point in world coordinates.
    """
    return (
        view_x / transform.scale - transform.offset_x,
        view_y / transform.scale - transform.offset_y,
    )


class TransformOracle:
    """
    Reads the host's current view transform on demand. The provider is a
    zero-argument callable returning a ViewTransform, or None while the host
    canvas is not available.
    """
    def __init__(self, provider):
        self._provider = provider

    def current(self):
        """Returns the transform valid at call time, or None if the host has none."""
        return self._provider()

    def require(self):
        """Returns the current transform, falling back to identity when unavailable."""
        return self._provider() or ViewTransform()


class TransformWatcher:
    """
    A "changed since last tick" comparator. The host sends no notification when
    the user pans or zooms, so the overlay polls this every tick and resyncs
    only when it reports a change.
    """
    def __init__(self, oracle):
        self._oracle = oracle
        self._last = None

    @property
    def last_seen(self):
        return self._last

    def reset(self):
        """Forgets the last observation so the next tick reports a change."""
        self._last = None

    def tick(self, has_notes):
        """
        Compares the host transform against the last observed one.

        Args:
            has_notes (bool): Whether any notes exist. When False the tick is a
                no-op and the transform is not even read.

        Returns:
            bool: True if the transform changed and a resync is needed.
        """
        if not has_notes:
            return False
        current = self._oracle.current()
        if current is None:
            return False
        if current == self._last:
            return False
        self._last = current
        return True
