"""
Saving and restoring sticky notes as part of the host document.

Notes live in the document's open-ended `extra` section under
`sticky_config.EXTENSION_KEY`. The host never learns about them: its
`serialize`/`load` methods are wrapped so the notes ride along.
"""

import logging
import math
import numbers

import sticky_config as config
from sticky_interaction import qt_scheduler

logger = logging.getLogger(__name__)


def _is_real(value):
    # bool is an int subclass but never a coordinate.
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _finite(value):
    return _is_real(value) and math.isfinite(value)


def _positive_or_none(value):
    return value if _finite(value) and value > 0 else None


def note_to_record(note):
    """Returns the persisted form of one note."""
    return {
        "id": note.id,
        "x": note.x,
        "y": note.y,
        "width": note.width,
        "height": note.height,
        "text": note.text,
        "color": note.color,
        "createdAt": note.created_at,
    }


class PersistenceAdapter:
    """Converts the session's notes to and from persisted records."""

    def __init__(self, context, controller):
        """
        Args:
            context (OverlayContext): The session's notes.
            controller (InteractionController): Used to create and remove
                notes so their visuals and bindings stay consistent.
        """
        self.context = context
        self.controller = controller

    def serialize(self):
        """
        Snapshots every live note, in creation order.

        Returns:
            list[dict]: One record per note.
        """
        return [note_to_record(note) for note in self.context.store.all()]

    def clear_all(self):
        """Removes every note, disposing its visual and interaction wiring."""
        count = len(self.context.store)
        self.controller.clear_notes()
        if count:
            logger.debug("Cleared %s notes", count)

    def deserialize(self, records):
        """
        Creates notes from persisted records. Records without a finite numeric
        position are skipped; missing or invalid optional fields get defaults.

        Args:
            records (list): Persisted records, typically from `serialize`.

        Returns:
            int: How many notes were restored.
        """
        if not isinstance(records, list) or not records:
            return 0

        restored = 0
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                logger.warning("Skipping sticky note record %s: not an object", index)
                continue
            x, y = record.get("x"), record.get("y")
            if not (_finite(x) and _finite(y)):
                logger.warning("Skipping sticky note record %s: invalid position (%r, %r)", index, x, y)
                continue

            text = record.get("text")
            color = record.get("color")
            created_at = record.get("createdAt")
            note_id = record.get("id")
            try:
                self.controller.spawn_note(
                    x, y,
                    width=_positive_or_none(record.get("width")),
                    height=_positive_or_none(record.get("height")),
                    text=text if isinstance(text, str) else None,
                    color=color if isinstance(color, str) else None,
                    created_at=int(created_at) if _finite(created_at) else None,
                    note_id=note_id if isinstance(note_id, int) and not isinstance(note_id, bool) else None,
                )
            except Exception:
                logger.exception("Skipping sticky note record %s: could not be created", index)
                continue
            restored += 1

        skipped = len(records) - restored
        if skipped:
            logger.info("Restored %s sticky notes (%s skipped)", restored, skipped)
        else:
            logger.info("Restored %s sticky notes", restored)
        return restored


class DocumentHooks:
    """
    The wrappers installed on a host document. Keeps the original bound
    methods so `uninstall` can put them back.

    The hooks can be installed before the overlay has an adapter (the host
    canvas may not be ready yet). Notes of a document loaded in that window
    are held back, written out unchanged on save, and restored once `bind`
    supplies the adapter.
    """
    def __init__(self, document, adapter=None, scheduler=qt_scheduler):
        self.document = document
        self.adapter = adapter
        self._scheduler = scheduler
        self._original_serialize = document.serialize
        self._original_load = document.load
        self._installed = False
        self._pending = None
        # Bumped on every load; restores scheduled by an older load are dropped.
        self._generation = 0

    @property
    def installed(self):
        return self._installed

    @property
    def pending(self):
        return self._pending

    def install(self):
        if self._installed:
            return self
        self.document.serialize = self._serialize
        self.document.load = self._load
        self._installed = True
        return self

    def uninstall(self):
        """Restores the document's own serialize and load."""
        if not self._installed:
            return
        self.document.serialize = self._original_serialize
        self.document.load = self._original_load
        self._installed = False

    def bind(self, adapter):
        """
        Supplies the persistence adapter once the overlay exists. Records held
        back from an earlier load are restored after the usual delay.
        """
        self.adapter = adapter
        if self._pending is not None:
            records, self._pending = self._pending, None
            self._schedule_restore(records)

    def _serialize(self, *args, **kwargs):
        data = self._original_serialize(*args, **kwargs)
        try:
            if isinstance(data, dict):
                if self.adapter is not None:
                    notes = self.adapter.serialize()
                elif self._pending is not None:
                    notes = self._pending
                else:
                    return data
                extra = data.get("extra")
                if not isinstance(extra, dict):
                    extra = data["extra"] = {}
                extra[config.EXTENSION_KEY] = notes
        except Exception:
            logger.exception("Failed to add sticky notes to the saved document")
        return data

    def _load(self, data, *args, **kwargs):
        self._generation += 1
        self._pending = None
        if self.adapter is not None:
            try:
                self.adapter.clear_all()
            except Exception:
                logger.exception("Failed to clear sticky notes before load")

        result = self._original_load(data, *args, **kwargs)

        records = None
        if isinstance(data, dict) and isinstance(data.get("extra"), dict):
            records = data["extra"].get(config.EXTENSION_KEY)
        if records is not None:
            if self.adapter is None:
                self._pending = records
            else:
                self._schedule_restore(records)
        return result

    def _schedule_restore(self, records):
        generation = self._generation
        # Give the host time to settle its view before notes are placed.
        self._scheduler(config.LOAD_RESTORE_DELAY_MS, lambda: self._restore(records, generation))

    def _restore(self, records, generation):
        if generation != self._generation:
            logger.debug("Dropping sticky note restore from a superseded load")
            return
        try:
            self.adapter.deserialize(records)
        except Exception:
            logger.exception("Failed to restore sticky notes from document")


def install_document_hooks(document, adapter=None, scheduler=qt_scheduler):
    """
    Wraps `document.serialize` and `document.load` so sticky notes are saved
    with and restored from the document.

    Args:
        document: Any object with `serialize() -> dict` and `load(dict)`.
        adapter (PersistenceAdapter, optional): The session's persistence
            adapter. May be supplied later through `DocumentHooks.bind`.
        scheduler (callable): `scheduler(delay_ms, callback)` for the deferred restore.

    Returns:
        DocumentHooks: Call `uninstall()` on it to undo.
    """
    return DocumentHooks(document, adapter, scheduler).install()
