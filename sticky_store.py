"""
The authoritative set of sticky notes for one overlay session.

`NoteStore` owns note entities, id allocation and the single selection. It has
no rendering or input logic; `OverlayContext` bundles it with the other
per-session state (clipboard, creation-mode flag) so nothing lives in module
globals.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum

import sticky_config as config
from sticky_styles import NOTE_COLORS

logger = logging.getLogger(__name__)


class InteractionState(Enum):
    IDLE = "idle"
    SELECTED = "selected"
    EDITING = "editing"
    DRAGGING = "dragging"
    RESIZING = "resizing"


def now_ms():
    """Current wall-clock time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def normalize_color(color):
    """Returns `color` if it is a palette key, otherwise the default key."""
    return color if color in NOTE_COLORS else config.DEFAULT_COLOR


def clamp_size(width, height):
    """Clamps a (width, height) pair to the minimum note dimensions."""
    return max(config.MIN_WIDTH, width), max(config.MIN_HEIGHT, height)


@dataclass
class Note:
    """A single sticky note. Position and size are in world units."""

    id: int
    x: float
    y: float
    width: float = config.DEFAULT_WIDTH
    height: float = config.DEFAULT_HEIGHT
    text: str = config.DEFAULT_TEXT
    color: str = config.DEFAULT_COLOR
    created_at: int = field(default_factory=now_ms)
    state: InteractionState = InteractionState.IDLE

    @property
    def is_editing(self):
        return self.state is InteractionState.EDITING

    def resize_to(self, width, height):
        """Sets the size, clamped to the minimum dimensions."""
        self.width, self.height = clamp_size(width, height)


@dataclass(frozen=True)
class ClipboardSnapshot:
    """What copy keeps of a note: everything except identity and position."""

    width: float
    height: float
    text: str
    color: str

    @classmethod
    def of(cls, note):
        return cls(width=note.width, height=note.height, text=note.text, color=note.color)


class NoteStore:
    """
    Holds every live note in creation order plus the current selection.
    All mutation is synchronous; nothing here is cached or derived.
    """
    def __init__(self):
        self._notes = {}
        self._next_id = 1
        self._selected_id = None

    def __len__(self):
        return len(self._notes)

    def __contains__(self, note_id):
        return note_id in self._notes

    def _allocate_id(self, requested):
        if isinstance(requested, int) and not isinstance(requested, bool) \
                and requested > 0 and requested not in self._notes:
            note_id = requested
        else:
            note_id = self._next_id
        self._next_id = max(self._next_id, note_id + 1)
        return note_id

    def create(self, x, y, width=None, height=None, text=None, color=None,
               created_at=None, note_id=None):
        """
        Creates and stores a new note.

        Args:
            x (float): World x coordinate. Must be finite.
            y (float): World y coordinate. Must be finite.
            width (float, optional): World width. Defaults to DEFAULT_WIDTH.
            height (float, optional): World height. Defaults to DEFAULT_HEIGHT.
            text (str, optional): Raw markdown. Defaults to DEFAULT_TEXT.
            color (str, optional): Palette key. Unknown keys use the default.
            created_at (int, optional): ms epoch. Defaults to now.
            note_id (int, optional): Requested id, honoured only if it is a
                positive integer not already in use.

        Returns:
            Note: The newly created note.
        """
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ValueError(f"Note position must be finite, got ({x}, {y})")
        width, height = clamp_size(
            config.DEFAULT_WIDTH if width is None else width,
            config.DEFAULT_HEIGHT if height is None else height,
        )
        note = Note(
            id=self._allocate_id(note_id),
            x=float(x),
            y=float(y),
            width=width,
            height=height,
            text=config.DEFAULT_TEXT if text is None else text,
            color=normalize_color(color),
            created_at=now_ms() if created_at is None else created_at,
        )
        self._notes[note.id] = note
        logger.debug("Created note %s at (%.1f, %.1f)", note.id, note.x, note.y)
        return note

    def find(self, note_id):
        return self._notes.get(note_id)

    def all(self):
        """Returns the live notes in creation order."""
        return list(self._notes.values())

    def remove(self, note_id):
        """
        Removes a note. Unknown ids are ignored.

        Returns:
            Note or None: The removed note, if there was one.
        """
        note = self._notes.pop(note_id, None)
        if note is None:
            return None
        if self._selected_id == note_id:
            self._selected_id = None
        logger.debug("Removed note %s", note_id)
        return note

    def clear(self):
        """Removes every note and clears the selection. Returns the removed notes."""
        removed = list(self._notes.values())
        self._notes.clear()
        self._selected_id = None
        return removed

    # --- Selection ---
    @property
    def selected_id(self):
        return self._selected_id

    def selected(self):
        """Returns the selected note, or None."""
        if self._selected_id is None:
            return None
        return self._notes.get(self._selected_id)

    def select(self, note_id):
        """
        Makes `note_id` the only selected note. The previously selected note,
        if idle-selected, drops back to IDLE. Unknown ids are ignored.
        """
        note = self._notes.get(note_id)
        if note is None:
            return None
        if self._selected_id != note_id:
            self.deselect()
        self._selected_id = note_id
        if note.state is InteractionState.IDLE:
            note.state = InteractionState.SELECTED
        return note

    def deselect(self):
        """Clears the selection."""
        previous = self.selected()
        self._selected_id = None
        if previous is not None and previous.state is InteractionState.SELECTED:
            previous.state = InteractionState.IDLE
        return previous

    def settle(self, note):
        """Returns a note to SELECTED or IDLE after a gesture or edit ends."""
        note.state = (InteractionState.SELECTED if self._selected_id == note.id
                      else InteractionState.IDLE)


class OverlayContext:
    """
    Per-session state shared by the interaction controller and the
    persistence adapter: the note store, the clipboard and the creation-mode
    flag. One instance exists per attached overlay and is dropped on detach.
    """
    def __init__(self):
        self.store = NoteStore()
        self.clipboard = None
        self.creation_mode = False
