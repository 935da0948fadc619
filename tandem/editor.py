"""Dual-pane review editor controller.

Keeps a source pane and a translation pane in step with their owner,
flags lines that look untranslated and never lets the owner's echo of an
edit overwrite what the user is typing. The widget and the timer are
supplied from outside (see ``tandem.gui`` for the Tk versions).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum, auto
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence

from .errors import ErrorCategory
from .policy import ErrorPolicy
from .structures import ChangeCallback, Decoration, Pane, Unsubscribe

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 500
DEFAULT_SYNC_DELAY_MS = 100


class EditorWidget(ABC):
    """Capabilities the controller needs from a two-buffer text widget."""

    @abstractmethod
    def get_value(self, pane: Pane) -> str:
        """Return the full text of ``pane``."""

    @abstractmethod
    def set_value(self, pane: Pane, value: str) -> None:
        """Replace the full text of ``pane``."""

    @abstractmethod
    def replace_decorations(
        self,
        pane: Pane,
        old_ids: Sequence[str],
        decorations: Sequence[Decoration],
    ) -> List[str]:
        """Remove exactly ``old_ids``, apply ``decorations``, return the new ids."""

    @abstractmethod
    def subscribe(self, pane: Pane, callback: ChangeCallback) -> Unsubscribe:
        """Call ``callback`` with the new text whenever ``pane`` changes.

        Returns a function that removes the subscription again.
        """

    @abstractmethod
    def get_selection(self, pane: Pane) -> Optional[Any]:
        """Current cursor/selection of ``pane`` in the widget's own terms."""

    @abstractmethod
    def insert_text(self, pane: Pane, selection: Any, text: str) -> None:
        """Replace ``selection`` in ``pane`` with ``text``."""

    @abstractmethod
    def focus(self, pane: Pane) -> None:
        """Give keyboard focus to ``pane``."""


class Scheduler(ABC):
    """Deferred callbacks on the UI thread."""

    @abstractmethod
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Any:
        """Run ``callback`` after ``delay_ms``; return a handle for ``cancel``."""

    @abstractmethod
    def cancel(self, handle: Any) -> None:
        """Drop a callback that has not run yet."""


class DebouncedTask:
    """Runs a callback once per quiet period.

    Every ``schedule`` cancels the pending run and bumps a generation
    counter; a timer that still fires with an older generation does nothing.
    """

    def __init__(self, scheduler: Scheduler, callback: Callable[[], None]) -> None:
        self._scheduler = scheduler
        self._callback = callback
        self._generation = 0
        self._handle: Any = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay_ms: int) -> None:
        self.cancel()
        generation = self._generation
        self._handle = self._scheduler.call_later(
            delay_ms, partial(self._fire, generation)
        )

    def cancel(self) -> None:
        if self._handle is not None:
            self._scheduler.cancel(self._handle)
            self._handle = None
        self._generation += 1

    def _fire(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._handle = None
        self._callback()


def find_identical_lines(original: str, modified: str) -> List[int]:
    """0-based indices whose lines match on both sides after stripping.

    Lines that are empty after stripping never count.
    """

    original_lines = original.split("\n")
    modified_lines = modified.split("\n")
    identical: List[int] = []
    for index in range(min(len(original_lines), len(modified_lines))):
        left = original_lines[index].strip()
        right = modified_lines[index].strip()
        if left and right and left == right:
            identical.append(index)
    return identical


def build_decorations(lines: Sequence[str], indices: Sequence[int]) -> List[Decoration]:
    return [
        Decoration(
            line_number=index + 1,
            start_column=1,
            end_column=len(lines[index]) + 1,
        )
        for index in indices
    ]


class ControllerState(Enum):
    UNMOUNTED = auto()
    MOUNTING = auto()
    READY = auto()


class DualPaneController:
    """Owns the state shared between the owner and the two editor panes.

    Values pushed by the owner pass through ``apply_external_update``. A
    value is written to a pane only when it differs from both the last
    value the owner pushed for that pane and the pane's live text; the
    owner echoing back the user's own edit is therefore a no-op.
    """

    def __init__(
        self,
        original_value: str = "",
        modified_value: str = "",
        *,
        scheduler: Scheduler,
        on_original_change: ChangeCallback | None = None,
        on_modified_change: ChangeCallback | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        sync_delay_ms: int = DEFAULT_SYNC_DELAY_MS,
        policy: ErrorPolicy | None = None,
    ) -> None:
        self.state = ControllerState.UNMOUNTED
        self.debounce_ms = debounce_ms
        self.sync_delay_ms = sync_delay_ms
        self.policy = policy
        self.untranslated_lines: List[int] = []

        self._widget: EditorWidget | None = None
        self._initial: Dict[Pane, str] = {
            Pane.ORIGINAL: original_value,
            Pane.MODIFIED: modified_value,
        }
        self._last_external: Dict[Pane, str] = dict(self._initial)
        self._decoration_ids: Dict[Pane, List[str]] = {
            Pane.ORIGINAL: [],
            Pane.MODIFIED: [],
        }
        self._owner_callbacks: Dict[Pane, ChangeCallback | None] = {
            Pane.ORIGINAL: on_original_change,
            Pane.MODIFIED: on_modified_change,
        }
        self._subscriptions: List[Unsubscribe] = []
        self._decoration_task = DebouncedTask(scheduler, self.recompute_decorations)

    @property
    def ready(self) -> bool:
        return self.state is ControllerState.READY and self._widget is not None

    def decoration_ids(self, pane: Pane) -> List[str]:
        return list(self._decoration_ids[pane])

    def last_external_value(self, pane: Pane) -> str:
        return self._last_external[pane]

    # Lifecycle

    def mount(self, widget: EditorWidget) -> None:
        """Load the initial snapshot into ``widget`` and start listening."""

        if self.state is not ControllerState.UNMOUNTED:
            logger.warning("Editor controller is already mounted; ignoring mount.")
            return

        self.state = ControllerState.MOUNTING
        self._widget = widget
        for pane in Pane:
            widget.set_value(pane, self._initial[pane])
        self._subscriptions = [
            widget.subscribe(pane, partial(self._handle_change, pane)) for pane in Pane
        ]
        self.state = ControllerState.READY
        self._decoration_task.schedule(self.debounce_ms)

    def unmount(self) -> None:
        """Detach from the widget, keeping its current text for the next mount."""

        self._decoration_task.cancel()
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

        widget = self._widget
        if widget is not None:
            for pane in Pane:
                self._initial[pane] = widget.get_value(pane)
                if self._decoration_ids[pane]:
                    try:
                        widget.replace_decorations(pane, self._decoration_ids[pane], [])
                    except Exception as exc:
                        self._report(
                            ErrorCategory.DECORATION_APPLY,
                            f"Failed to clear {pane.value} pane decorations: {exc}",
                        )
        self._last_external = dict(self._initial)

        self._widget = None
        self._decoration_ids = {Pane.ORIGINAL: [], Pane.MODIFIED: []}
        self.untranslated_lines = []
        self.state = ControllerState.UNMOUNTED

    # Owner -> panes

    def apply_external_update(self, pane: Pane, value: str) -> bool:
        """Reconcile a value pushed by the owner; return True if the pane was rewritten."""

        if not self.ready:
            # Not mounted yet: the value becomes part of the mount snapshot.
            self._initial[pane] = value
            self._last_external[pane] = value
            return False

        assert self._widget is not None
        overwrite = (
            value != self._last_external[pane]
            and value != self._widget.get_value(pane)
        )
        if overwrite:
            self._widget.set_value(pane, value)
            self._decoration_task.schedule(self.sync_delay_ms)
        self._last_external[pane] = value
        return overwrite

    def sync(
        self,
        original: str | None = None,
        modified: str | None = None,
    ) -> tuple[bool, bool]:
        """Reconcile both panes pushed in the same tick, original pane first."""

        original_written = (
            self.apply_external_update(Pane.ORIGINAL, original)
            if original is not None
            else False
        )
        modified_written = (
            self.apply_external_update(Pane.MODIFIED, modified)
            if modified is not None
            else False
        )
        return original_written, modified_written

    # Panes -> owner

    def _handle_change(self, pane: Pane, value: str) -> None:
        if not self.ready:
            return
        callback = self._owner_callbacks[pane]
        if callback is not None:
            callback(value)
        self._decoration_task.schedule(self.debounce_ms)

    # Decorations

    def recompute_decorations(self) -> List[int]:
        """Flag lines that are identical in both panes; return their indices."""

        if not self.ready:
            return []
        assert self._widget is not None

        original_text = self._widget.get_value(Pane.ORIGINAL)
        modified_text = self._widget.get_value(Pane.MODIFIED)
        indices = find_identical_lines(original_text, modified_text)
        batches = {
            Pane.ORIGINAL: build_decorations(original_text.split("\n"), indices),
            Pane.MODIFIED: build_decorations(modified_text.split("\n"), indices),
        }

        for pane, decorations in batches.items():
            try:
                self._decoration_ids[pane] = self._widget.replace_decorations(
                    pane, self._decoration_ids[pane], decorations
                )
            except Exception as exc:
                self._report(
                    ErrorCategory.DECORATION_APPLY,
                    f"Failed to update {pane.value} pane decorations: {exc}",
                )

        self.untranslated_lines = indices
        return indices

    # Imperative API for the owner

    def get_original_value(self) -> str:
        return self._read(Pane.ORIGINAL)

    def get_modified_value(self) -> str:
        return self._read(Pane.MODIFIED)

    def set_original_value(self, value: str) -> None:
        self._force(Pane.ORIGINAL, value)

    def set_modified_value(self, value: str) -> None:
        self._force(Pane.MODIFIED, value)

    def insert_text_at_cursor(self, text: str) -> None:
        """Insert ``text`` at the cursor of the translation pane."""

        if not self.ready:
            self._not_ready("insert_text_at_cursor")
            return
        assert self._widget is not None
        selection = self._widget.get_selection(Pane.MODIFIED)
        if selection is None:
            return
        self._widget.insert_text(Pane.MODIFIED, selection, text)
        self._widget.focus(Pane.MODIFIED)

    def _read(self, pane: Pane) -> str:
        if not self.ready:
            return ""
        assert self._widget is not None
        return self._widget.get_value(pane)

    def _force(self, pane: Pane, value: str) -> None:
        if not self.ready:
            self._not_ready(f"set_{pane.value}_value")
            return
        assert self._widget is not None
        self._widget.set_value(pane, value)
        self._last_external[pane] = value

    def _not_ready(self, operation: str) -> None:
        self._report(
            ErrorCategory.EDITOR_NOT_READY,
            f"Editor not ready; ignoring {operation}.",
        )

    def _report(self, category: ErrorCategory, message: str) -> None:
        if self.policy is not None:
            self.policy.handle_error(category, message)
        elif category is ErrorCategory.EDITOR_NOT_READY:
            logger.debug(message)
        else:
            logger.warning(message)
