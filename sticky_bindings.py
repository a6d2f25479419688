"""Keyboard bindings for the document-global sticky note shortcuts."""

import logging
from enum import Enum

from PySide6.QtCore import Qt, QKeyCombination
from PySide6.QtGui import QKeySequence
from PySide6.QtWidgets import (
    QApplication, QGraphicsProxyWidget, QGraphicsView, QLineEdit, QPlainTextEdit, QTextEdit
)

logger = logging.getLogger(__name__)


class Action(Enum):
    CREATE_MODE = "create_mode"
    COPY = "copy"
    PASTE = "paste"
    DUPLICATE = "duplicate"
    DELETE = "delete"
    CANCEL = "cancel"


# Action name -> key sequences in QKeySequence portable text form.
# "Ctrl" maps to Command on macOS.
DEFAULT_BINDINGS = {
    "create_mode": ["T"],
    "copy": ["Ctrl+C"],
    "paste": ["Ctrl+V"],
    "duplicate": ["Ctrl+D"],
    "delete": ["Del", "Backspace"],
    "cancel": ["Esc"],
}


def focus_target(widget=None):
    """
    Returns the widget that actually receives typed keys: `widget` (default:
    the application's focus widget), or the focused widget embedded in it
    when it is a graphics view.
    """
    if widget is None:
        widget = QApplication.focusWidget()
    # Widgets embedded in a graphics scene keep focus inside their proxy.
    if isinstance(widget, QGraphicsView) and widget.scene() is not None:
        item = widget.scene().focusItem()
        if isinstance(item, QGraphicsProxyWidget) and item.widget() is not None:
            widget = item.widget().focusWidget() or item.widget()
    return widget


def is_typing(widget=None):
    """
    Returns True if the focus target (see `focus_target`) is an editable text
    field, in which case shortcuts must not steal keystrokes.
    """
    widget = focus_target(widget)
    if isinstance(widget, QLineEdit):
        return not widget.isReadOnly()
    if isinstance(widget, (QTextEdit, QPlainTextEdit)):
        return not widget.isReadOnly()
    return False


class KeyBindings:
    """Maps key presses to overlay actions."""

    def __init__(self, overrides=None):
        """
        Args:
            overrides (dict, optional): Action name -> list of key sequence
                strings, replacing the defaults for those actions.
        """
        merged = dict(DEFAULT_BINDINGS)
        merged.update(overrides or {})
        self._sequences = {}
        for name, sequences in merged.items():
            try:
                action = Action(name)
            except ValueError:
                logger.warning("Skipping binding for unknown action '%s'", name)
                continue
            parsed = []
            for text in sequences or []:
                sequence = QKeySequence(text)
                if sequence.isEmpty():
                    logger.warning("Skipping invalid binding for action '%s': sequence='%s'", name, text)
                    continue
                parsed.append(sequence)
            self._sequences[action] = parsed

    def sequences(self, action):
        return list(self._sequences.get(action, []))

    def action_for(self, key, modifiers=Qt.KeyboardModifier.NoModifier):
        """
        Looks up the action bound to a key press.

        Shift is ignored as a fallback so "T" also matches Shift+T.

        Args:
            key (Qt.Key): The pressed key.
            modifiers (Qt.KeyboardModifier): Active modifiers.

        Returns:
            Action or None: The bound action, if any.
        """
        modifiers = modifiers & ~Qt.KeyboardModifier.KeypadModifier
        candidates = [modifiers]
        if modifiers & Qt.KeyboardModifier.ShiftModifier:
            candidates.append(modifiers & ~Qt.KeyboardModifier.ShiftModifier)
        for mods in candidates:
            pressed = QKeySequence(QKeyCombination(mods, key))
            for action, sequences in self._sequences.items():
                if any(sequence == pressed for sequence in sequences):
                    return action
        return None

    def action_for_event(self, event):
        """Convenience wrapper around `action_for` for a QKeyEvent."""
        try:
            key = Qt.Key(event.key())
        except ValueError:
            return None
        return self.action_for(key, event.modifiers())
