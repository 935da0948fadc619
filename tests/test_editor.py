from tandem.editor import (
    DebouncedTask,
    DualPaneController,
    build_decorations,
    find_identical_lines,
)
from tandem.errors import ErrorCategory
from tandem.policy import ErrorPolicy
from tandem.structures import Pane, UNTRANSLATED_STYLE

from conftest import FakeEditorWidget, ManualScheduler


ORIGINAL = "# Title\nSome text\n\ndef f(x):\n  return x;\nend"
MODIFIED = "# Titel\nEin Text\n\ndef f(x):\n  return x;\nende"


def mounted(widget, scheduler, original=ORIGINAL, modified=MODIFIED, **kwargs):
    controller = DualPaneController(original, modified, scheduler=scheduler, **kwargs)
    controller.mount(widget)
    return controller


def test_mount_loads_snapshot_and_schedules_one_decoration_pass(widget, scheduler):
    controller = mounted(widget, scheduler)

    assert controller.ready
    assert widget.values == {Pane.ORIGINAL: ORIGINAL, Pane.MODIFIED: MODIFIED}
    assert len(scheduler.pending) == 1

    scheduler.advance(500)

    assert controller.untranslated_lines == [3, 4]


def test_identical_lines_are_decorated_on_both_panes(widget, scheduler):
    original = "a\nb\nc\nd\n  return x;\nf"
    modified = "A\nB\nC\nD\n  return x;\nF"
    controller = mounted(widget, scheduler, original, modified)

    indices = controller.recompute_decorations()

    assert indices == [4]
    for pane in Pane:
        (decoration,) = widget.decorations[pane].values()
        assert decoration.line_number == 5
        assert decoration.start_column == 1
        assert decoration.end_column == len("  return x;") + 1
        assert decoration.style_class == UNTRANSLATED_STYLE
        assert decoration.whole_line


def test_editing_the_line_clears_its_mark_on_next_pass(widget, scheduler):
    original = "a\nb\nc\nd\n  return x;\nf"
    modified = "A\nB\nC\nD\n  return x;\nF"
    controller = mounted(widget, scheduler, original, modified)
    scheduler.advance(500)
    old_ids = controller.decoration_ids(Pane.MODIFIED)
    assert old_ids

    widget.type_into(Pane.MODIFIED, "A\nB\nC\nD\n  renvoyer x;\nF")
    scheduler.advance(500)

    assert controller.untranslated_lines == []
    assert widget.decorations[Pane.MODIFIED] == {}
    assert widget.replace_calls[-1][1] == old_ids
    assert controller.decoration_ids(Pane.MODIFIED) == []


def test_user_edits_reach_the_owner(widget, scheduler):
    seen = []
    mounted(widget, scheduler, on_modified_change=seen.append)

    widget.type_into(Pane.MODIFIED, "typed")

    assert seen == ["typed"]


def test_owner_echo_does_not_touch_the_pane(widget, scheduler):
    controller = mounted(widget, scheduler)
    widget.type_into(Pane.MODIFIED, "user text")
    pending_before = dict(scheduler.pending)
    writes_before = len(widget.set_calls)

    written = controller.apply_external_update(Pane.MODIFIED, "user text")

    assert written is False
    assert len(widget.set_calls) == writes_before
    assert scheduler.pending == pending_before
    assert controller.last_external_value(Pane.MODIFIED) == "user text"


def test_stale_owner_value_does_not_overwrite_typing(widget, scheduler):
    controller = mounted(widget, scheduler)
    widget.type_into(Pane.MODIFIED, MODIFIED + " more")

    written = controller.apply_external_update(Pane.MODIFIED, MODIFIED)

    assert written is False
    assert widget.values[Pane.MODIFIED] == MODIFIED + " more"


def test_new_owner_value_overwrites_and_schedules_short_refresh(widget, scheduler):
    controller = mounted(widget, scheduler)
    scheduler.advance(500)
    calls_before = len(widget.replace_calls)

    written = controller.apply_external_update(Pane.MODIFIED, ORIGINAL)

    assert written is True
    assert widget.values[Pane.MODIFIED] == ORIGINAL
    scheduler.advance(99)
    assert len(widget.replace_calls) == calls_before
    scheduler.advance(1)
    assert len(widget.replace_calls) == calls_before + 2


def test_rapid_edits_produce_a_single_recompute(widget, scheduler):
    mounted(widget, scheduler)
    scheduler.advance(500)
    calls_before = len(widget.replace_calls)

    widget.type_into(Pane.MODIFIED, "x")
    scheduler.advance(200)
    widget.type_into(Pane.MODIFIED, "xy")
    scheduler.advance(200)
    widget.type_into(Pane.MODIFIED, "xyz")
    scheduler.advance(499)
    assert len(widget.replace_calls) == calls_before

    scheduler.advance(1)
    assert len(widget.replace_calls) == calls_before + 2


class LeakyScheduler(ManualScheduler):
    """A timer whose cancel arrives too late to stop the callback."""

    def cancel(self, handle):
        pass


def test_stale_timer_does_not_fire():
    scheduler = LeakyScheduler()
    fired = []
    task = DebouncedTask(scheduler, lambda: fired.append(scheduler.now))

    task.schedule(100)
    scheduler.advance(50)
    task.schedule(100)
    scheduler.advance(200)

    assert len(fired) == 1
    assert not task.pending


def test_decoration_failure_is_reported_and_other_pane_still_updates(widget, scheduler):
    policy = ErrorPolicy()
    controller = mounted(widget, scheduler, policy=policy)
    widget.fail_decorations_for = {Pane.ORIGINAL}

    indices = controller.recompute_decorations()

    assert indices == [3, 4]
    assert controller.decoration_ids(Pane.ORIGINAL) == []
    assert len(controller.decoration_ids(Pane.MODIFIED)) == 2
    assert policy.messages(ErrorCategory.DECORATION_APPLY)


def test_operations_before_mount_are_no_ops():
    policy = ErrorPolicy()
    controller = DualPaneController(
        "a", "b", scheduler=ManualScheduler(), policy=policy
    )

    assert controller.get_original_value() == ""
    assert controller.get_modified_value() == ""
    controller.set_modified_value("x")
    controller.insert_text_at_cursor("y")
    assert controller.recompute_decorations() == []
    assert len(policy.messages(ErrorCategory.EDITOR_NOT_READY)) == 2


def test_external_update_before_mount_joins_the_snapshot(widget, scheduler):
    controller = DualPaneController("a", "b", scheduler=scheduler)

    assert controller.apply_external_update(Pane.ORIGINAL, "pre-mount") is False
    controller.mount(widget)

    assert widget.values[Pane.ORIGINAL] == "pre-mount"
    assert controller.get_original_value() == "pre-mount"


def test_insert_text_at_cursor_replaces_selection_and_focuses(widget, scheduler):
    controller = mounted(widget, scheduler, "src", "Hello world")
    widget.selection = (6, 11)

    controller.insert_text_at_cursor("there")

    assert controller.get_modified_value() == "Hello there"
    assert widget.focused is Pane.MODIFIED


def test_insert_without_selection_does_nothing(widget, scheduler):
    controller = mounted(widget, scheduler, "src", "Hello")
    widget.selection = None

    controller.insert_text_at_cursor("x")

    assert controller.get_modified_value() == "Hello"
    assert widget.focused is None


def test_sync_reconciles_original_pane_first(widget, scheduler):
    controller = mounted(widget, scheduler)
    widget.set_calls.clear()

    assert controller.sync(original="new source", modified="new target") == (True, True)
    assert [pane for pane, _ in widget.set_calls] == [Pane.ORIGINAL, Pane.MODIFIED]


def test_forced_set_updates_the_echo_marker(widget, scheduler):
    controller = mounted(widget, scheduler)

    controller.set_modified_value("forced")

    assert widget.values[Pane.MODIFIED] == "forced"
    assert controller.last_external_value(Pane.MODIFIED) == "forced"
    assert controller.apply_external_update(Pane.MODIFIED, "forced") is False


def test_second_mount_is_ignored(widget, scheduler):
    controller = mounted(widget, scheduler)
    other = FakeEditorWidget()

    controller.mount(other)

    assert other.set_calls == []


def test_unmount_cancels_pending_work(widget, scheduler):
    controller = mounted(widget, scheduler)

    controller.unmount()
    scheduler.advance(1000)

    assert not controller.ready
    assert widget.replace_calls == []


def test_remount_loads_the_values_current_at_unmount(widget, scheduler):
    controller = DualPaneController("a", "b", scheduler=scheduler)
    controller.mount(widget)
    controller.sync(modified="B2")
    widget.type_into(Pane.ORIGINAL, "a2")

    controller.unmount()
    controller.mount(widget)
    written = controller.apply_external_update(Pane.MODIFIED, "B2")

    assert written is False
    assert widget.values == {Pane.ORIGINAL: "a2", Pane.MODIFIED: "B2"}


def test_remount_on_same_widget_forwards_each_edit_once(widget, scheduler):
    seen = []
    controller = mounted(widget, scheduler, on_modified_change=seen.append)

    controller.unmount()
    controller.mount(widget)
    widget.type_into(Pane.MODIFIED, "x")

    assert seen == ["x"]
    assert [len(widget.callbacks[pane]) for pane in Pane] == [1, 1]


def test_unmount_stops_forwarding_edits(widget, scheduler):
    seen = []
    controller = mounted(widget, scheduler, on_modified_change=seen.append)

    controller.unmount()
    widget.type_into(Pane.MODIFIED, "after")

    assert seen == []
    assert widget.callbacks == {Pane.ORIGINAL: [], Pane.MODIFIED: []}


def test_unmount_clears_applied_decorations(widget, scheduler):
    controller = mounted(widget, scheduler)
    scheduler.advance(500)
    assert widget.decorations[Pane.MODIFIED]

    controller.unmount()

    assert widget.decorations == {Pane.ORIGINAL: {}, Pane.MODIFIED: {}}


def test_find_identical_lines_ignores_blank_and_extra_lines():
    assert find_identical_lines("a\n\n  \nb\nc", "a\n\n  \nx") == [0]


def test_build_decorations_uses_one_based_lines():
    (decoration,) = build_decorations(["", "abc"], [1])

    assert (decoration.line_number, decoration.end_column) == (2, 4)


def test_skipped_sync_reports_the_live_pane_text(widget, scheduler):
    controller = mounted(widget, scheduler)
    widget.type_into(Pane.MODIFIED, "edited")

    assert controller.sync(modified=MODIFIED) == (False, False)
    assert controller.get_modified_value() == "edited"
