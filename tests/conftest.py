"""Shared fixtures for the Tandem test suite."""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from tandem.editor import EditorWidget, Scheduler
from tandem.structures import Pane


class ManualScheduler(Scheduler):
    """Timer that only fires when the test advances the clock."""

    def __init__(self):
        self.now = 0
        self._next_handle = 0
        self.pending = {}

    def call_later(self, delay_ms, callback):
        self._next_handle += 1
        self.pending[self._next_handle] = (self.now + delay_ms, callback)
        return self._next_handle

    def cancel(self, handle):
        self.pending.pop(handle, None)

    def advance(self, ms):
        self.now += ms
        due = sorted(
            (when, handle)
            for handle, (when, _) in self.pending.items()
            if when <= self.now
        )
        for _, handle in due:
            entry = self.pending.pop(handle, None)
            if entry is not None:
                entry[1]()


class FakeEditorWidget(EditorWidget):
    """In-memory stand-in for the two-pane text widget."""

    def __init__(self):
        self.values = {Pane.ORIGINAL: "", Pane.MODIFIED: ""}
        self.callbacks = {Pane.ORIGINAL: [], Pane.MODIFIED: []}
        self.decorations = {Pane.ORIGINAL: {}, Pane.MODIFIED: {}}
        self.replace_calls = []
        self.set_calls = []
        self.selection = (0, 0)
        self.focused = None
        self.fail_decorations_for = set()
        self._next_id = 0

    def get_value(self, pane):
        return self.values[pane]

    def set_value(self, pane, value):
        self.set_calls.append((pane, value))
        self.values[pane] = value

    def replace_decorations(self, pane, old_ids, decorations):
        self.replace_calls.append((pane, list(old_ids), list(decorations)))
        if pane in self.fail_decorations_for:
            raise RuntimeError("decoration backend failure")
        for old in old_ids:
            self.decorations[pane].pop(old, None)
        new_ids = []
        for decoration in decorations:
            self._next_id += 1
            new_id = f"d{self._next_id}"
            self.decorations[pane][new_id] = decoration
            new_ids.append(new_id)
        return new_ids

    def subscribe(self, pane, callback):
        self.callbacks[pane].append(callback)
        return lambda: self.callbacks[pane].remove(callback)

    def get_selection(self, pane):
        return self.selection

    def insert_text(self, pane, selection, text):
        start, end = selection
        value = self.values[pane]
        self.values[pane] = value[:start] + text + value[end:]

    def focus(self, pane):
        self.focused = pane

    def type_into(self, pane, value):
        """Simulate the user editing ``pane``."""
        self.values[pane] = value
        for callback in self.callbacks[pane]:
            callback(value)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def widget():
    return FakeEditorWidget()
