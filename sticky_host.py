"""
Adapters between the overlay and the host canvas it decorates.

The overlay only needs two things from a host: the current view transform and
the viewport widget to draw over. `HostCanvas` is that contract;
`GraphicsViewHost` implements it for a plain QGraphicsView, whose scene
coordinates serve as world coordinates.
"""

import logging

from sticky_transform import ViewTransform

logger = logging.getLogger(__name__)


class HostCanvas:
    """Base class for host canvas adapters."""

    def view_transform(self):
        """Returns the current ViewTransform, or None while unavailable."""
        raise NotImplementedError

    def viewport(self):
        """Returns the widget notes are drawn over, or None while unavailable."""
        raise NotImplementedError

    def is_ready(self):
        return self.viewport() is not None and self.view_transform() is not None


class GraphicsViewHost(HostCanvas):
    """
    Host adapter for a QGraphicsView. Scale is the view's horizontal scale
    factor; the offset is the viewport translation expressed in world units.
    Rotation and shear are not supported.
    """
    def __init__(self, view_getter):
        """
        Args:
            view_getter (callable): Returns the host QGraphicsView, or None if
                it has not been created yet.
        """
        self._view_getter = view_getter

    def view(self):
        return self._view_getter()

    def viewport(self):
        view = self.view()
        return view.viewport() if view is not None else None

    def view_transform(self):
        view = self.view()
        if view is None:
            return None
        matrix = view.viewportTransform()
        scale = matrix.m11()
        if scale <= 0:
            return None
        return ViewTransform(scale=scale, offset_x=matrix.dx() / scale, offset_y=matrix.dy() / scale)


class StaticHost(HostCanvas):
    """A fixed transform over a given widget. Useful for embedding and tests."""

    def __init__(self, widget=None, transform=None):
        self.widget = widget
        self.transform = transform

    def viewport(self):
        return self.widget

    def view_transform(self):
        return self.transform
