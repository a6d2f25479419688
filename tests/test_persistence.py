import pytest

import sticky_config as config
from sticky_interaction import InteractionController
from sticky_persistence import PersistenceAdapter, install_document_hooks
from sticky_store import OverlayContext
from sticky_transform import TransformOracle, ViewTransform

from fakes import FakeRenderer


class FakeDocument:
    def __init__(self):
        self.loaded = []
        self.extra = {"other": {"keep": True}}

    def serialize(self):
        return {"nodes": [1, 2], "extra": dict(self.extra)}

    def load(self, data):
        self.loaded.append(data)
        return "loaded"


@pytest.fixture()
def adapter(scheduler):
    oracle = TransformOracle(lambda: ViewTransform())
    context = OverlayContext()
    controller = InteractionController(context, oracle, FakeRenderer(oracle), scheduler)
    return PersistenceAdapter(context, controller)


def test_round_trip_reproduces_notes(adapter):
    controller = adapter.controller
    controller.spawn_note(10.5, -20, width=300, height=150, text="# hi", color="pink")
    controller.spawn_note(0, 0, color="blue")
    records = adapter.serialize()

    adapter.clear_all()
    assert len(adapter.context.store) == 0
    assert adapter.deserialize(records) == 2

    assert adapter.serialize() == records


def test_serialize_uses_persisted_field_names(adapter):
    note = adapter.controller.spawn_note(1, 2)
    record = adapter.serialize()[0]
    assert set(record) == {"id", "x", "y", "width", "height", "text", "color", "createdAt"}
    assert record["createdAt"] == note.created_at


def test_bad_position_is_skipped_and_siblings_load(adapter):
    restored = adapter.deserialize([
        {"id": 1, "x": 5, "y": 5},
        {"id": 2, "x": "abc", "y": 5},
        {"id": 3, "x": True, "y": 5},
        {"id": 4, "x": float("nan"), "y": 5},
        "not a record",
        {"id": 5, "x": 7, "y": 8},
    ])
    assert restored == 2
    assert [note.id for note in adapter.context.store.all()] == [1, 5]


def test_missing_optional_fields_get_defaults(adapter):
    adapter.deserialize([{"x": 1, "y": 2, "width": "wide", "height": -4, "text": 12, "color": "teal"}])
    note = adapter.context.store.all()[0]
    assert (note.width, note.height) == (config.DEFAULT_WIDTH, config.DEFAULT_HEIGHT)
    assert note.text == config.DEFAULT_TEXT
    assert note.color == config.DEFAULT_COLOR
    assert note.created_at > 0


@pytest.mark.parametrize("records", [None, [], {"x": 1}, "text"])
def test_non_list_or_empty_input_is_a_no_op(adapter, records):
    assert adapter.deserialize(records) == 0
    assert len(adapter.context.store) == 0


def test_serialize_hook_adds_notes_and_keeps_other_extra_keys(adapter, scheduler):
    document = FakeDocument()
    install_document_hooks(document, adapter, scheduler)
    adapter.controller.spawn_note(3, 4)

    data = document.serialize()
    assert data["nodes"] == [1, 2]
    assert data["extra"]["other"] == {"keep": True}
    assert data["extra"][config.EXTENSION_KEY] == adapter.serialize()


def test_serialize_hook_creates_missing_extra(adapter, scheduler):
    document = FakeDocument()
    document.serialize = lambda: {"nodes": []}
    install_document_hooks(document, adapter, scheduler)
    assert document.serialize()["extra"] == {config.EXTENSION_KEY: []}


def test_load_hook_clears_then_restores_after_delay(adapter, scheduler):
    document = FakeDocument()
    install_document_hooks(document, adapter, scheduler)
    adapter.controller.spawn_note(0, 0, text="old")

    data = {"nodes": [], "extra": {config.EXTENSION_KEY: [{"id": 9, "x": 1, "y": 1, "text": "new"}]}}
    assert document.load(data) == "loaded"
    assert document.loaded == [data]
    assert len(adapter.context.store) == 0
    assert scheduler.pending[0][0] == config.LOAD_RESTORE_DELAY_MS

    scheduler.run_all()
    notes = adapter.context.store.all()
    assert [(note.id, note.text) for note in notes] == [(9, "new")]


def test_load_without_notes_only_clears(adapter, scheduler):
    document = FakeDocument()
    install_document_hooks(document, adapter, scheduler)
    adapter.controller.spawn_note(0, 0)
    document.load({"nodes": []})
    assert len(adapter.context.store) == 0
    assert scheduler.pending == []


def test_restore_failure_is_logged_not_raised(adapter, scheduler, caplog):
    document = FakeDocument()
    install_document_hooks(document, adapter, scheduler)

    def broken(records):
        raise RuntimeError("bad")

    adapter.deserialize = broken
    document.load({"extra": {config.EXTENSION_KEY: [{"x": 1, "y": 1}]}})
    scheduler.run_all()
    assert "Failed to restore sticky notes" in caplog.text


def test_uninstall_restores_document_methods(adapter, scheduler):
    document = FakeDocument()
    hooks = install_document_hooks(document, adapter, scheduler)
    hooks.uninstall()
    assert config.EXTENSION_KEY not in document.serialize()["extra"]
    assert not hooks.installed


def test_record_that_fails_to_materialize_does_not_abort_siblings(adapter, caplog, monkeypatch):
    renderer = adapter.controller.renderer
    materialize = renderer.materialize

    def failing(note, binding):
        if note.id == 2:
            raise RuntimeError("no widget")
        return materialize(note, binding)

    monkeypatch.setattr(renderer, "materialize", failing)
    restored = adapter.deserialize([
        {"id": 1, "x": 0, "y": 0},
        {"id": 2, "x": 1, "y": 1},
        {"id": 3, "x": 2, "y": 2},
    ])
    assert restored == 2
    assert [note.id for note in adapter.context.store.all()] == [1, 3]
    assert "record 1: could not be created" in caplog.text
    assert "1 skipped" in caplog.text


def test_second_load_supersedes_pending_restore(adapter, scheduler):
    document = FakeDocument()
    install_document_hooks(document, adapter, scheduler)

    first = {"extra": {config.EXTENSION_KEY: [{"id": 1, "x": 0, "y": 0, "text": "from A"}]}}
    second = {"extra": {config.EXTENSION_KEY: [{"id": 2, "x": 5, "y": 5, "text": "from B"}]}}
    document.load(first)
    document.load(second)
    assert len(scheduler.pending) == 2

    scheduler.run_all()
    assert [note.text for note in adapter.context.store.all()] == ["from B"]


def test_load_without_notes_cancels_earlier_restore(adapter, scheduler):
    document = FakeDocument()
    install_document_hooks(document, adapter, scheduler)
    document.load({"extra": {config.EXTENSION_KEY: [{"x": 0, "y": 0}]}})
    document.load({"nodes": []})
    scheduler.run_all()
    assert len(adapter.context.store) == 0


def test_load_before_bind_is_restored_once_bound(adapter, scheduler):
    document = FakeDocument()
    hooks = install_document_hooks(document, scheduler=scheduler)
    records = [{"id": 4, "x": 1, "y": 2, "text": "early"}]

    document.load({"extra": {config.EXTENSION_KEY: records}})
    assert hooks.pending == records
    assert scheduler.pending == []

    hooks.bind(adapter)
    assert hooks.pending is None
    scheduler.run_all()
    assert [(note.id, note.text) for note in adapter.context.store.all()] == [(4, "early")]


def test_save_before_bind_keeps_loaded_notes(scheduler):
    document = FakeDocument()
    install_document_hooks(document, scheduler=scheduler)
    assert config.EXTENSION_KEY not in document.serialize()["extra"]

    records = [{"id": 1, "x": 0, "y": 0}]
    document.load({"extra": {config.EXTENSION_KEY: records}})
    assert document.serialize()["extra"][config.EXTENSION_KEY] == records
