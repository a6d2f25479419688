"""
Wires the sticky notes overlay into a running host application.

An `OverlaySession` waits for the host canvas to become available, then builds
the per-session objects (context, renderer, controller, persistence), installs
the global input filter and starts the transform polling tick. `detach` undoes
all of it.
"""

import logging

from PySide6.QtCore import QObject, QEvent, QTimer, Qt
from PySide6.QtGui import QWindow
from PySide6.QtWidgets import QApplication

import sticky_config as config
from sticky_bindings import Action, KeyBindings, focus_target, is_typing
from sticky_interaction import InteractionController, qt_scheduler
from sticky_overlay import NoteContent, OverlayRenderer
from sticky_persistence import PersistenceAdapter, install_document_hooks
from sticky_store import OverlayContext
from sticky_transform import TransformOracle, TransformWatcher

logger = logging.getLogger(__name__)


class _InputFilter(QObject):
    """
    Application-wide event filter for the document-global shortcuts and for
    primary clicks on the host canvas.
    """
    def __init__(self, session):
        super().__init__()
        self._session = session

    def eventFilter(self, watched, event):
        session = self._session
        controller = session.controller
        if controller is None:
            return False
        kind = event.type()
        try:
            if kind == QEvent.Type.KeyPress and self._is_host_window(watched):
                # Key events reach the window before the focus widget; handle
                # them there so each physical key press is seen once.
                action = session.bindings.action_for_event(event)
                if action is None:
                    return False
                if action is Action.CREATE_MODE and event.isAutoRepeat():
                    return False
                typing = is_typing()
                # Host text fields keep every key, Escape included.
                if typing and not isinstance(focus_target(), NoteContent):
                    return False
                return controller.handle_action(action, typing)
            if kind == QEvent.Type.KeyRelease and self._is_host_window(watched):
                if not event.isAutoRepeat() and \
                        session.bindings.action_for_event(event) is Action.CREATE_MODE:
                    controller.set_creation_mode(False)
                return False
            if kind == QEvent.Type.ApplicationDeactivate:
                controller.set_creation_mode(False)
                return False
            if kind == QEvent.Type.MouseButtonPress and watched is session.viewport \
                    and event.button() == Qt.MouseButton.LeftButton:
                pos = event.position()
                return controller.canvas_pressed(pos.x(), pos.y())
        except Exception:
            logger.exception("Sticky notes input handling failed")
        return False

    def _is_host_window(self, watched):
        # Only the window holding the host canvas; dialogs and other
        # top-levels keep their keys.
        if not isinstance(watched, QWindow):
            return False
        viewport = self._session.viewport
        return viewport is not None and watched is viewport.window().windowHandle()


class OverlaySession:
    """
    One attached sticky notes overlay. Everything it creates is owned by the
    session and released by `detach`.
    """
    def __init__(self, host, document=None, bindings=None, scheduler=qt_scheduler):
        """
        Args:
            host (HostCanvas): Supplies the view transform and viewport.
            document (optional): Host document with `serialize`/`load` to hook.
            bindings (dict, optional): Key binding overrides, see `KeyBindings`.
            scheduler (callable): `scheduler(delay_ms, callback)` for deferred work.
        """
        self.host = host
        self.document = document
        self.bindings = KeyBindings(bindings)
        self._scheduler = scheduler

        self.context = None
        self.oracle = None
        self.renderer = None
        self.controller = None
        self.persistence = None
        self.watcher = None
        self.viewport = None
        self._hooks = None
        self._filter = None
        self._timer = None

        self._attempts = 0
        self._pending = False

    @property
    def attached(self):
        return self.controller is not None

    @property
    def attempts(self):
        return self._attempts

    def attach(self):
        """
        Attaches to the host as soon as its canvas is ready, polling every
        ATTACH_POLL_INTERVAL_MS up to ATTACH_MAX_ATTEMPTS times. Calling it on
        an attached or attaching session does nothing.
        """
        if self.attached or self._pending:
            return
        if self.document is not None and self._hooks is None:
            # Hooked before the canvas is ready so an early load keeps its notes.
            self._hooks = install_document_hooks(self.document, scheduler=self._scheduler)
        self._attempts = 0
        self._pending = True
        self._try_attach()

    def _try_attach(self):
        if not self._pending:
            return
        self._attempts += 1
        try:
            ready = self.host.is_ready()
        except Exception:
            logger.exception("Host canvas readiness check failed")
            ready = False

        if ready:
            self._pending = False
            self._build()
            return
        if self._attempts >= config.ATTACH_MAX_ATTEMPTS:
            self._pending = False
            logger.warning("Host canvas not available after %s attempts; sticky notes disabled",
                           self._attempts)
            return
        self._scheduler(config.ATTACH_POLL_INTERVAL_MS, self._try_attach)

    def _build(self):
        self.viewport = self.host.viewport()
        self.context = OverlayContext()
        self.oracle = TransformOracle(self.host.view_transform)
        self.renderer = OverlayRenderer(self.context.store, self.oracle, self.viewport)
        self.controller = InteractionController(self.context, self.oracle, self.renderer, self._scheduler)
        self.persistence = PersistenceAdapter(self.context, self.controller)
        self.watcher = TransformWatcher(self.oracle)

        if self._hooks is not None:
            self._hooks.bind(self.persistence)

        self._filter = _InputFilter(self)
        QApplication.instance().installEventFilter(self._filter)

        self._timer = QTimer()
        self._timer.setInterval(config.TICK_INTERVAL_MS)
        self._timer.timeout.connect(self.tick)
        self._timer.start()
        logger.info("Sticky notes attached after %s attempt(s)", self._attempts)

    def tick(self):
        """Resyncs every note if the host transform changed since the last tick."""
        if not self.attached:
            return
        try:
            if self.watcher.tick(len(self.context.store) > 0):
                self.renderer.sync_all()
        except Exception:
            logger.exception("Sticky notes transform sync failed")

    def refresh(self):
        """
        Forces every note to be restyled and repositioned on the next tick,
        e.g. after `sticky_config.apply_theme`.
        """
        if self.attached:
            self.watcher.reset()

    def detach(self):
        """Stops polling, removes all hooks and notes, and drops the session state."""
        self._pending = False
        if self._hooks is not None:
            self._hooks.uninstall()
            self._hooks = None
        if not self.attached:
            return
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
        if self._filter is not None:
            QApplication.instance().removeEventFilter(self._filter)
            self._filter = None

        self.controller.clear_notes()
        self.renderer.dispose()
        self.context = self.oracle = self.renderer = None
        self.controller = self.persistence = self.watcher = None
        self.viewport = None
        logger.info("Sticky notes detached")
