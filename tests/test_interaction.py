import pytest

import sticky_config as config
from sticky_bindings import Action
from sticky_interaction import InteractionController
from sticky_store import InteractionState, OverlayContext
from sticky_transform import TransformOracle, ViewTransform

from fakes import FakeRenderer


@pytest.fixture()
def transform():
    return {"value": ViewTransform()}


@pytest.fixture()
def controller(transform, scheduler):
    oracle = TransformOracle(lambda: transform["value"])
    return InteractionController(OverlayContext(), oracle, FakeRenderer(oracle), scheduler)


def test_spawn_materializes_and_remove_disposes_once(controller):
    note = controller.spawn_note(0, 0)
    assert controller.renderer.materialized == [note.id]
    assert controller.remove_note(note.id) is True
    assert controller.remove_note(note.id) is False
    assert controller.renderer.released == [note.id]
    assert controller.renderer.destroyed == [note.id]
    assert controller.binding(note.id) is None


def test_spawn_rolls_back_when_materialize_fails(controller):
    def boom(note, binding):
        raise RuntimeError("no surface")

    controller.renderer.materialize = boom
    with pytest.raises(RuntimeError):
        controller.spawn_note(0, 0)
    assert len(controller.store) == 0


def test_clear_notes_disposes_every_binding(controller):
    ids = [controller.spawn_note(i, i).id for i in range(3)]
    controller.clear_notes()
    assert sorted(controller.renderer.released) == ids
    assert len(controller.store) == 0


def test_creation_mode_click_creates_note_at_world_point(controller, transform):
    transform["value"] = ViewTransform(scale=2.0, offset_x=10.0, offset_y=0.0)
    controller.set_creation_mode(True)
    assert controller.canvas_pressed(100.0, 60.0) is True
    note = controller.store.all()[0]
    assert (note.x, note.y) == (40.0, 30.0)
    assert controller.store.selected() is note


def test_click_without_creation_mode_clears_selection(controller):
    note = controller.spawn_note(0, 0)
    controller.select(note.id)
    assert controller.canvas_pressed(5.0, 5.0) is False
    assert controller.store.selected() is None
    assert len(controller.store) == 1


def test_drag_at_scale_two_stores_world_position(controller, transform):
    transform["value"] = ViewTransform(scale=2.0)
    note = controller.spawn_note(100, 100)
    binding = controller.binding(note.id)

    binding.on_drag_pressed(500.0, 500.0)
    assert note.state is InteractionState.DRAGGING
    binding.on_drag_moved(540.0, 520.0)
    assert (note.x, note.y) == (100.0, 100.0)
    binding.on_drag_released(560.0, 540.0)

    assert (note.x, note.y) == (130.0, 120.0)
    assert note.state is InteractionState.SELECTED


def test_resize_divides_by_scale_and_clamps(controller, transform):
    transform["value"] = ViewTransform(scale=2.0)
    note = controller.spawn_note(0, 0)
    binding = controller.binding(note.id)

    binding.on_resize_pressed(0.0, 0.0)
    binding.on_resize_moved(100.0, 40.0)
    assert (note.width, note.height) == (config.DEFAULT_WIDTH + 50, config.DEFAULT_HEIGHT + 20)
    binding.on_resize_moved(-10000.0, -10000.0)
    assert (note.width, note.height) == (config.MIN_WIDTH, config.MIN_HEIGHT)
    binding.on_resize_released(-10000.0, -10000.0)
    assert note.state is InteractionState.SELECTED


def test_cancel_reverts_active_drag_and_resize(controller):
    dragged = controller.spawn_note(10, 10)
    resized = controller.spawn_note(50, 50)

    controller.binding(dragged.id).on_drag_pressed(0.0, 0.0)
    controller.binding(dragged.id).on_drag_moved(300.0, 300.0)
    controller.binding(resized.id).on_resize_pressed(0.0, 0.0)
    controller.binding(resized.id).on_resize_moved(200.0, 200.0)

    assert controller.cancel() is True
    assert (dragged.x, dragged.y) == (10.0, 10.0)
    assert controller.renderer.positions[dragged.id] == (10.0, 10.0)
    assert (resized.width, resized.height) == (config.DEFAULT_WIDTH, config.DEFAULT_HEIGHT)
    assert not controller.binding(dragged.id).gesture_active
    assert not controller.binding(resized.id).gesture_active


def test_edit_commits_on_confirm_and_on_cancel(controller):
    note = controller.spawn_note(0, 0)
    binding = controller.binding(note.id)

    binding.on_content_activated()
    assert note.state is InteractionState.EDITING
    controller.renderer.editor[note.id] = "**done**"
    binding.on_edit_confirmed()
    assert note.text == "**done**"
    assert note.state is InteractionState.SELECTED

    binding.on_content_activated()
    controller.renderer.editor[note.id] = "second"
    assert controller.handle_action(Action.CANCEL, typing=True) is True
    assert note.text == "second"
    assert not note.is_editing


def test_focus_loss_commits_after_delay_if_still_live(controller, scheduler):
    note = controller.spawn_note(0, 0)
    binding = controller.binding(note.id)
    binding.on_content_activated()
    controller.renderer.editor[note.id] = "blurred"

    binding.on_edit_focus_lost()
    assert scheduler.pending[0][0] == config.BLUR_COMMIT_DELAY_MS
    assert note.is_editing
    scheduler.run_all()
    assert note.text == "blurred"
    assert not note.is_editing


def test_focus_loss_after_removal_is_a_no_op(controller, scheduler):
    note = controller.spawn_note(0, 0)
    binding = controller.binding(note.id)
    binding.on_content_activated()
    binding.on_edit_focus_lost()
    controller.remove_note(note.id)
    scheduler.run_all()
    binding.on_pressed()
    binding.on_drag_pressed(0.0, 0.0)
    binding.on_color_picked("pink")
    assert len(controller.store) == 0


def test_drag_press_while_editing_commits_first(controller):
    note = controller.spawn_note(0, 0)
    binding = controller.binding(note.id)
    binding.on_content_activated()
    controller.renderer.editor[note.id] = "kept"
    binding.on_drag_pressed(0.0, 0.0)
    assert note.text == "kept"
    assert note.state is InteractionState.DRAGGING


def test_copy_paste_places_clone_at_view_center(controller, transform):
    transform["value"] = ViewTransform(scale=2.0, offset_x=0.0, offset_y=0.0)
    source = controller.spawn_note(0, 0, width=300, text="copy me", color="green")
    controller.select(source.id)

    assert controller.handle_action(Action.COPY) is True
    assert controller.handle_action(Action.PASTE) is True

    pasted = controller.store.selected()
    assert pasted is not source
    assert (pasted.x, pasted.y) == (200.0, 150.0)
    assert (pasted.width, pasted.text, pasted.color) == (300, "copy me", "green")


def test_paste_with_empty_clipboard_does_nothing(controller):
    assert controller.handle_action(Action.PASTE) is False
    assert len(controller.store) == 0


def test_duplicate_offsets_and_selects_clone(controller):
    source = controller.spawn_note(10, 20, text="dup")
    controller.select(source.id)
    assert controller.handle_action(Action.DUPLICATE) is True
    clone = controller.store.selected()
    assert (clone.x, clone.y) == (10 + config.DUPLICATE_OFFSET, 20 + config.DUPLICATE_OFFSET)
    assert clone.text == "dup"
    assert controller.context.clipboard is None


def test_delete_refused_while_editing(controller):
    note = controller.spawn_note(0, 0)
    controller.binding(note.id).on_content_activated()
    assert controller.delete_selected() is False
    controller.commit_edit(note.id)
    assert controller.handle_action(Action.DELETE) is True
    assert len(controller.store) == 0


def test_shortcuts_ignored_while_typing(controller):
    note = controller.spawn_note(0, 0)
    controller.select(note.id)
    for action in (Action.COPY, Action.DUPLICATE, Action.DELETE, Action.CREATE_MODE):
        assert controller.handle_action(action, typing=True) is False
    assert len(controller.store) == 1
    assert controller.context.clipboard is None
    assert controller.context.creation_mode is False


def test_create_mode_action_sets_flag_without_consuming(controller):
    assert controller.handle_action(Action.CREATE_MODE) is False
    assert controller.context.creation_mode is True
    controller.set_creation_mode(False)
    assert controller.context.creation_mode is False


def test_cancel_without_activity_clears_selection(controller):
    note = controller.spawn_note(0, 0)
    controller.select(note.id)
    assert controller.cancel() is True
    assert note.state is InteractionState.IDLE
    assert controller.cancel() is False


def test_set_color_ignores_unknown_keys(controller):
    note = controller.spawn_note(0, 0)
    assert controller.set_color(note.id, "pink") is True
    assert controller.set_color(note.id, "octarine") is False
    assert note.color == "pink"


def test_close_button_removes_note(controller):
    note = controller.spawn_note(0, 0)
    controller.select(note.id)
    controller.binding(note.id).on_close_clicked()
    assert note.id not in controller.store
    assert controller.store.selected() is None
