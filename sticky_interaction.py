"""
Input handling for sticky notes.

Each note gets its own `NoteBinding`, which owns that note's gesture state and
a single disposal handle for everything wired up on its behalf. The
`InteractionController` handles the document-global side: note lifecycle,
selection, creation mode and the clipboard shortcuts.

The controller talks to the renderer through a small set of methods
(`materialize`, `destroy`, `sync`, `sync_all`, `visual_position`,
`move_visual`, `show_editor`, `show_rendered`, `editor_text`, `view_center`),
so it can be driven without any widgets.
"""

import logging
from contextlib import ExitStack
from dataclasses import dataclass

from PySide6.QtCore import QTimer

import sticky_config as config
from sticky_bindings import Action
from sticky_store import ClipboardSnapshot, InteractionState
from sticky_styles import NOTE_COLORS
from sticky_transform import to_world

logger = logging.getLogger(__name__)


def qt_scheduler(delay_ms, callback):
    """Runs `callback` once on the Qt event loop after `delay_ms`."""
    QTimer.singleShot(delay_ms, callback)


@dataclass
class _Gesture:
    """Where a drag or resize started, in global pointer and note terms."""
    pointer_x: float
    pointer_y: float
    start_a: float
    start_b: float


class NoteBinding:
    """
    The interaction wiring of a single note.

    Holds the note's drag and resize state so concurrent gestures on
    different notes never share anything. Resources acquired for the note
    (signal connections, the visual) are released exactly once by `dispose`.
    """
    def __init__(self, controller, note_id):
        self._controller = controller
        self.note_id = note_id
        self._drag = None
        self._resize = None
        self._resources = ExitStack()
        self._disposed = False

    @property
    def disposed(self):
        return self._disposed

    @property
    def gesture_active(self):
        return self._drag is not None or self._resize is not None

    def acquire(self, release):
        """Registers a release callback. Callbacks run in reverse order on dispose."""
        if release is not None:
            self._resources.callback(release)

    def dispose(self):
        """Releases everything held for this note. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        self._drag = self._resize = None
        self._resources.close()

    def _note(self):
        if self._disposed:
            return None
        return self._controller.store.find(self.note_id)

    # --- Selection, editing and per-note controls ---
    def on_pressed(self):
        """Pointer-down anywhere on the note selects it."""
        if self._note() is not None:
            self._controller.select(self.note_id)

    def on_content_activated(self):
        """Double activation of the content area starts editing."""
        if self._note() is not None:
            self._controller.begin_edit(self.note_id)

    def on_edit_confirmed(self):
        if self._note() is not None:
            self._controller.commit_edit(self.note_id)

    def on_edit_focus_lost(self):
        """
        Commits after a short delay so a click that moved focus elsewhere
        (e.g. onto another control of the same note) is handled first.
        """
        note = self._note()
        if note is None or not note.is_editing:
            return
        self._controller.schedule(config.BLUR_COMMIT_DELAY_MS, self._commit_if_still_editing)

    def _commit_if_still_editing(self):
        note = self._note()
        if note is not None and note.is_editing:
            self._controller.commit_edit(self.note_id)

    def on_color_picked(self, color_key):
        if self._note() is not None:
            self._controller.set_color(self.note_id, color_key)

    def on_close_clicked(self):
        if self._note() is not None:
            self._controller.remove_note(self.note_id)

    # --- Dragging ---
    def on_drag_pressed(self, pointer_x, pointer_y):
        note = self._prepare_gesture()
        if note is None:
            return
        view_x, view_y = self._controller.renderer.visual_position(note)
        self._drag = _Gesture(pointer_x, pointer_y, view_x, view_y)
        note.state = InteractionState.DRAGGING
        self._controller.renderer.sync(note)

    def on_drag_moved(self, pointer_x, pointer_y):
        note = self._note()
        if note is None or self._drag is None:
            return
        gesture = self._drag
        self._controller.renderer.move_visual(
            note,
            gesture.start_a + (pointer_x - gesture.pointer_x),
            gesture.start_b + (pointer_y - gesture.pointer_y),
        )

    def on_drag_released(self, pointer_x, pointer_y):
        note = self._note()
        if note is None or self._drag is None:
            return
        self.on_drag_moved(pointer_x, pointer_y)
        self._drag = None
        # World position is derived once, from the final view position.
        view_x, view_y = self._controller.renderer.visual_position(note)
        note.x, note.y = to_world(self._controller.oracle.require(), view_x, view_y)
        self._controller.store.settle(note)
        self._controller.renderer.sync(note)
        logger.debug("Moved note %s to (%.1f, %.1f)", note.id, note.x, note.y)

    # --- Resizing ---
    def on_resize_pressed(self, pointer_x, pointer_y):
        note = self._prepare_gesture()
        if note is None:
            return
        self._resize = _Gesture(pointer_x, pointer_y, note.width, note.height)
        note.state = InteractionState.RESIZING
        self._controller.renderer.sync(note)

    def on_resize_moved(self, pointer_x, pointer_y):
        note = self._note()
        if note is None or self._resize is None:
            return
        gesture = self._resize
        scale = self._controller.oracle.require().scale
        note.resize_to(
            gesture.start_a + (pointer_x - gesture.pointer_x) / scale,
            gesture.start_b + (pointer_y - gesture.pointer_y) / scale,
        )
        self._controller.renderer.sync(note)

    def on_resize_released(self, pointer_x, pointer_y):
        note = self._note()
        if note is None or self._resize is None:
            return
        self.on_resize_moved(pointer_x, pointer_y)
        self._resize = None
        self._controller.store.settle(note)
        self._controller.renderer.sync(note)

    def _prepare_gesture(self):
        note = self._note()
        if note is None or self.gesture_active:
            return None
        if note.is_editing:
            self._controller.commit_edit(self.note_id)
        self._controller.select(self.note_id)
        return note

    def cancel_gesture(self):
        """
        Abandons an active drag or resize and puts the note back where it was
        when the gesture started.

        Returns:
            bool: True if a gesture was cancelled.
        """
        note = self._note()
        if note is None or not self.gesture_active:
            return False
        if self._resize is not None:
            note.resize_to(self._resize.start_a, self._resize.start_b)
        # A drag never touched the stored position, so syncing restores it.
        self._drag = self._resize = None
        self._controller.store.settle(note)
        self._controller.renderer.sync(note)
        return True


class InteractionController:
    """
    Mutates the note store in response to user input and keeps the overlay
    renderer in step. Store mutation always happens before the matching
    visual sync.
    """
    def __init__(self, context, oracle, renderer, scheduler=qt_scheduler):
        """
        Args:
            context (OverlayContext): The session's notes, clipboard and flags.
            oracle (TransformOracle): Source of the current view transform.
            renderer: The overlay renderer (or a stand-in with the same methods).
            scheduler (callable): `scheduler(delay_ms, callback)` for deferred work.
        """
        self.context = context
        self.oracle = oracle
        self.renderer = renderer
        self._scheduler = scheduler
        self._bindings = {}

    @property
    def store(self):
        return self.context.store

    def binding(self, note_id):
        return self._bindings.get(note_id)

    def schedule(self, delay_ms, callback):
        self._scheduler(delay_ms, callback)

    # --- Note lifecycle ---
    def spawn_note(self, x, y, **fields):
        """
        Creates a note at world (x, y), materializes its visual and wires its
        input. Keyword arguments are passed to `NoteStore.create`.

        Returns:
            Note: The new note.
        """
        note = self.store.create(x, y, **fields)
        binding = NoteBinding(self, note.id)
        self._bindings[note.id] = binding
        try:
            binding.acquire(lambda: self.renderer.destroy(note))
            binding.acquire(self.renderer.materialize(note, binding))
        except Exception:
            self._bindings.pop(note.id, None)
            self.store.remove(note.id)
            binding.dispose()
            raise
        self.renderer.sync(note)
        return note

    def remove_note(self, note_id):
        """Removes a note and releases its wiring. Unknown ids are ignored."""
        note = self.store.remove(note_id)
        binding = self._bindings.pop(note_id, None)
        if binding is not None:
            binding.dispose()
        return note is not None

    def clear_notes(self):
        """Removes every note, releasing each note's wiring exactly once."""
        for note in self.store.clear():
            binding = self._bindings.pop(note.id, None)
            if binding is not None:
                binding.dispose()
        # Bindings for notes already gone from the store.
        for binding in self._bindings.values():
            binding.dispose()
        self._bindings.clear()

    def create_note_at_view(self, view_x, view_y):
        """Creates a default note at a view-space point and selects it."""
        world_x, world_y = to_world(self.oracle.require(), view_x, view_y)
        note = self.spawn_note(world_x, world_y)
        self.select(note.id)
        logger.debug("Created note %s from view point (%.1f, %.1f)", note.id, view_x, view_y)
        return note

    # --- Selection ---
    def select(self, note_id):
        previous = self.store.selected()
        note = self.store.select(note_id)
        if note is None:
            return None
        if previous is not None and previous is not note:
            self.renderer.sync(previous)
        self.renderer.sync(note)
        return note

    def deselect(self):
        previous = self.store.deselect()
        if previous is not None:
            self.renderer.sync(previous)
        return previous

    # --- Editing ---
    def begin_edit(self, note_id):
        note = self.store.find(note_id)
        if note is None or note.state in (InteractionState.DRAGGING, InteractionState.RESIZING):
            return False
        if note.is_editing:
            return True
        self.select(note_id)
        note.state = InteractionState.EDITING
        self.renderer.show_editor(note)
        self.renderer.sync(note)
        return True

    def commit_edit(self, note_id):
        """
        Ends editing, storing whatever is in the editor. The text is only
        re-rendered if it actually changed.
        """
        note = self.store.find(note_id)
        if note is None or not note.is_editing:
            return False
        text = self.renderer.editor_text(note)
        changed = text != note.text
        note.text = text
        self.store.settle(note)
        self.renderer.show_rendered(note)
        self.renderer.sync(note)
        if changed:
            logger.debug("Updated text of note %s", note.id)
        return True

    def set_color(self, note_id, color_key):
        note = self.store.find(note_id)
        if note is None:
            return False
        if color_key not in NOTE_COLORS:
            logger.debug("Ignoring unknown color '%s' for note %s", color_key, note_id)
            return False
        note.color = color_key
        self.renderer.sync(note)
        return True

    # --- Global input ---
    def set_creation_mode(self, active):
        self.context.creation_mode = bool(active)

    def canvas_pressed(self, view_x, view_y):
        """
        A primary click on the host canvas. In creation mode it creates a note
        there; otherwise it clears the selection.

        Returns:
            bool: True if the click was consumed.
        """
        if self.context.creation_mode:
            self.create_note_at_view(view_x, view_y)
            return True
        self.deselect()
        return False

    def copy_selected(self):
        note = self.store.selected()
        if note is None:
            return False
        self.context.clipboard = ClipboardSnapshot.of(note)
        return True

    def paste(self):
        """Creates a note from the clipboard at the centre of the view."""
        snapshot = self.context.clipboard
        if snapshot is None:
            return None
        center_x, center_y = self.renderer.view_center()
        world_x, world_y = to_world(self.oracle.require(), center_x, center_y)
        note = self.spawn_note(world_x, world_y, width=snapshot.width, height=snapshot.height,
                               text=snapshot.text, color=snapshot.color)
        self.select(note.id)
        return note

    def duplicate_selected(self):
        """Clones the selected note at a fixed world offset and selects the clone."""
        source = self.store.selected()
        if source is None:
            return None
        note = self.spawn_note(
            source.x + config.DUPLICATE_OFFSET,
            source.y + config.DUPLICATE_OFFSET,
            width=source.width,
            height=source.height,
            text=source.text,
            color=source.color,
        )
        self.select(note.id)
        return note

    def delete_selected(self):
        note = self.store.selected()
        if note is None or note.is_editing:
            return False
        return self.remove_note(note.id)

    def cancel(self):
        """
        The global cancel action: commits any edit in progress, otherwise
        reverts active gestures, otherwise clears the selection.

        Returns:
            bool: True if anything was done.
        """
        editing = [note for note in self.store.all() if note.is_editing]
        if editing:
            for note in editing:
                self.commit_edit(note.id)
            return True
        cancelled = [binding.cancel_gesture() for binding in list(self._bindings.values())]
        if any(cancelled):
            return True
        return self.deselect() is not None

    def handle_action(self, action, typing=False):
        """
        Dispatches a shortcut action. Everything except cancel is ignored
        while a text field has focus.

        Returns:
            bool: True if the action was handled and the key should be consumed.
        """
        if action is Action.CANCEL:
            return self.cancel()
        if typing:
            return False
        if action is Action.CREATE_MODE:
            self.set_creation_mode(True)
            return False
        if action is Action.COPY:
            return self.copy_selected()
        if action is Action.PASTE:
            return self.paste() is not None
        if action is Action.DUPLICATE:
            return self.duplicate_selected() is not None
        if action is Action.DELETE:
            return self.delete_selected()
        return False

