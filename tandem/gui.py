"""Tkinter review window: source and translation side by side."""

from __future__ import annotations

import itertools
import logging
import pathlib
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

import tkinter as tk
from tkinter import filedialog, messagebox, ttk

from .cli import create_provider, read_text, resolve_provider_options
from .comments import CommentSelection
from .configuration import OFFLINE_PROVIDERS, get_settings
from .editor import DEFAULT_DEBOUNCE_MS, DualPaneController, EditorWidget, Scheduler
from .errors import ErrorCategory, TandemError, TranslationProviderConfigurationError
from .policy import ErrorPolicy
from .progress import measure_progress
from .sanitizer import cleanup, has_corrupted_placeholders
from .structures import ChangeCallback, CommentLine, Decoration, Pane, Unsubscribe
from .translator import ContentTranslator, TranslationOutcome
from .usage import UsageStats, format_cost, format_count

logger = logging.getLogger(__name__)

HIGHLIGHT_COLOUR = "#fff3c4"
TEXT_FILETYPES = [
    ("Markdown", "*.md *.mdx"),
    ("Text", "*.txt"),
    ("All files", "*.*"),
]


class TkScheduler(Scheduler):
    def __init__(self, root: tk.Misc) -> None:
        self.root = root

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Any:
        return self.root.after(delay_ms, callback)

    def cancel(self, handle: Any) -> None:
        self.root.after_cancel(handle)


class TkDualPaneWidget(EditorWidget):
    """Two ``tk.Text`` buffers exposed through the editor widget interface.

    Decorations are text tags; the tag name doubles as the decoration id.
    """

    def __init__(self, parent: tk.Misc) -> None:
        self.frame = ttk.Frame(parent)
        self.frame.columnconfigure(0, weight=1)
        self.frame.columnconfigure(1, weight=1)
        self.frame.rowconfigure(1, weight=1)

        self._ids = itertools.count(1)
        self._callbacks: Dict[Pane, List[ChangeCallback]] = {pane: [] for pane in Pane}
        self._last_seen: Dict[Pane, str] = {pane: "" for pane in Pane}
        self._texts: Dict[Pane, tk.Text] = {}

        for column, (pane, title) in enumerate(
            ((Pane.ORIGINAL, "Source"), (Pane.MODIFIED, "Translation"))
        ):
            ttk.Label(self.frame, text=title).grid(row=0, column=column, sticky="w")
            text = tk.Text(self.frame, wrap="none", undo=True, width=60, height=30)
            text.grid(row=1, column=column, sticky="nsew", padx=(0, 6) if column == 0 else 0)
            text.bind("<<Modified>>", lambda event, pane=pane: self._on_modified(pane))
            self._texts[pane] = text

    def text(self, pane: Pane) -> tk.Text:
        return self._texts[pane]

    def get_value(self, pane: Pane) -> str:
        return self._texts[pane].get("1.0", "end-1c")

    def set_value(self, pane: Pane, value: str) -> None:
        text = self._texts[pane]
        self._last_seen[pane] = value
        text.delete("1.0", "end")
        text.insert("1.0", value)
        text.edit_modified(False)

    def replace_decorations(
        self,
        pane: Pane,
        old_ids: Sequence[str],
        decorations: Sequence[Decoration],
    ) -> List[str]:
        text = self._texts[pane]
        for tag in old_ids:
            text.tag_delete(tag)

        new_ids: List[str] = []
        for decoration in decorations:
            tag = f"{decoration.style_class}-{next(self._ids)}"
            line = decoration.line_number
            if decoration.whole_line:
                start, end = f"{line}.0", f"{line}.0 lineend +1c"
            else:
                start = f"{line}.{decoration.start_column - 1}"
                end = f"{line}.{decoration.end_column - 1}"
            text.tag_add(tag, start, end)
            text.tag_configure(tag, background=HIGHLIGHT_COLOUR)
            new_ids.append(tag)
        return new_ids

    def subscribe(self, pane: Pane, callback: ChangeCallback) -> Unsubscribe:
        callbacks = self._callbacks[pane]
        callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def get_selection(self, pane: Pane) -> Optional[tuple[str, str]]:
        text = self._texts[pane]
        try:
            return text.index("sel.first"), text.index("sel.last")
        except tk.TclError:
            cursor = text.index("insert")
            return cursor, cursor

    def insert_text(self, pane: Pane, selection: Any, value: str) -> None:
        start, end = selection
        text = self._texts[pane]
        if start != end:
            text.delete(start, end)
        text.insert(start, value)

    def focus(self, pane: Pane) -> None:
        self._texts[pane].focus_set()

    def _on_modified(self, pane: Pane) -> None:
        text = self._texts[pane]
        if not text.edit_modified():
            return
        text.edit_modified(False)
        value = self.get_value(pane)
        # Programmatic writes already updated _last_seen.
        if value == self._last_seen[pane]:
            return
        self._last_seen[pane] = value
        for callback in list(self._callbacks[pane]):
            callback(value)


class CommentSelectionDialog:
    """Modal checklist of comment lines the reviewer wants translated."""

    def __init__(self, parent: tk.Misc, selection: CommentSelection) -> None:
        self.selection = selection
        self.result: Optional[List[CommentLine]] = None

        self.window = tk.Toplevel(parent)
        self.window.title("Select comments to translate")
        self.window.transient(parent)

        body = ttk.Frame(self.window, padding=12)
        body.grid(row=0, column=0, sticky="nsew")

        self.count_var = tk.StringVar()
        ttk.Label(body, textvariable=self.count_var).grid(row=0, column=0, sticky="w")

        self.vars: List[tk.BooleanVar] = []
        listing = ttk.Frame(body)
        listing.grid(row=1, column=0, sticky="nsew", pady=8)
        for index, comment in enumerate(selection.comments):
            var = tk.BooleanVar(value=comment.is_selected)
            self.vars.append(var)
            ttk.Checkbutton(
                listing,
                text=f"{comment.line_number:>4}: {comment.comment_text}",
                variable=var,
                command=lambda index=index: self._toggle(index),
            ).grid(row=index, column=0, sticky="w")
        if not selection.comments:
            ttk.Label(listing, text="No comments found.").grid(row=0, column=0)

        buttons = ttk.Frame(body)
        buttons.grid(row=2, column=0, sticky="e")
        ttk.Button(buttons, text="Select all", command=self._select_all).grid(
            row=0, column=0, padx=(0, 6)
        )
        ttk.Button(buttons, text="Select none", command=self._select_none).grid(
            row=0, column=1, padx=(0, 6)
        )
        ttk.Button(buttons, text="Confirm", command=self._confirm).grid(
            row=0, column=2, padx=(0, 6)
        )
        ttk.Button(buttons, text="Cancel", command=self.window.destroy).grid(
            row=0, column=3
        )

        self._refresh_count()
        self.window.grab_set()

    def wait(self) -> Optional[List[CommentLine]]:
        self.window.wait_window()
        return self.result

    def _toggle(self, index: int) -> None:
        self.selection.toggle(index)
        self._refresh_count()

    def _select_all(self) -> None:
        self.selection.select_all()
        self._sync_vars()

    def _select_none(self) -> None:
        self.selection.select_none()
        self._sync_vars()

    def _sync_vars(self) -> None:
        for var, comment in zip(self.vars, self.selection.comments):
            var.set(comment.is_selected)
        self._refresh_count()

    def _refresh_count(self) -> None:
        self.count_var.set(
            f"{self.selection.selected_count} of {len(self.selection)} comments selected"
        )

    def _confirm(self) -> None:
        self.result = self.selection.confirm()
        self.window.destroy()


class TandemReviewGUI:
    """Review window that owns the two document values."""

    def __init__(
        self,
        *,
        root: tk.Tk,
        args: Any,
        provider: Optional[str],
        model: Optional[str],
        provider_debug: bool,
        sanitize: bool,
        debounce_ms: int,
        configuration_error: Optional[str] = None,
    ) -> None:
        self.root = root
        self.args = args
        self.provider_name = provider
        self.model = model
        self.provider_debug = provider_debug
        self.sanitize = sanitize
        self.configuration_error = configuration_error

        self.exit_code = 0
        self.translation_in_progress = False
        self.source_text = ""
        self.translation_text = ""
        self.source_path: Optional[pathlib.Path] = None
        self.translation_path: Optional[pathlib.Path] = None
        self.selected_comments: List[CommentLine] = []

        self.stats = UsageStats()
        self.policy = ErrorPolicy()
        self._translator: Optional[ContentTranslator] = None

        self._build_variables()
        self._build_ui()

        self.controller = DualPaneController(
            scheduler=TkScheduler(self.root),
            on_original_change=self._on_source_edited,
            on_modified_change=self._on_translation_edited,
            debounce_ms=debounce_ms,
            policy=self.policy,
        )
        self.controller.mount(self.widget)
        self._load_initial_files()

        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

    def _build_variables(self) -> None:
        self.target_language_var = tk.StringVar(
            value=getattr(self.args, "target_language", "") or ""
        )
        self.source_language_var = tk.StringVar(
            value=getattr(self.args, "source_language", "") or ""
        )
        self.code_var = tk.BooleanVar(value=False)
        self.status_var = tk.StringVar(
            value="Open a source document, then translate or edit the right pane."
        )
        self.progress_var = tk.StringVar(value="")
        self.usage_var = tk.StringVar(value="Session: 0 calls, 0 tokens, Free")

    def _build_ui(self) -> None:
        self.root.title("Tandem Review")
        self.root.geometry("1100x700")
        self.root.columnconfigure(0, weight=1)
        self.root.rowconfigure(1, weight=1)

        toolbar = ttk.Frame(self.root, padding=(10, 8))
        toolbar.grid(row=0, column=0, sticky="we")

        ttk.Button(toolbar, text="Open source…", command=self._open_source).grid(
            row=0, column=0, padx=(0, 6)
        )
        ttk.Button(
            toolbar, text="Open translation…", command=self._open_translation
        ).grid(row=0, column=1, padx=(0, 6))
        ttk.Button(toolbar, text="Save translation…", command=self._save_translation).grid(
            row=0, column=2, padx=(0, 12)
        )

        ttk.Label(toolbar, text="From").grid(row=0, column=3)
        ttk.Entry(toolbar, textvariable=self.source_language_var, width=10).grid(
            row=0, column=4, padx=(4, 8)
        )
        ttk.Label(toolbar, text="To").grid(row=0, column=5)
        ttk.Entry(toolbar, textvariable=self.target_language_var, width=10).grid(
            row=0, column=6, padx=(4, 8)
        )
        ttk.Checkbutton(toolbar, text="Source is code", variable=self.code_var).grid(
            row=0, column=7, padx=(0, 8)
        )
        ttk.Button(toolbar, text="Comments…", command=self._choose_comments).grid(
            row=0, column=8, padx=(0, 6)
        )
        ttk.Button(
            toolbar, text="Insert source selection", command=self._insert_source_selection
        ).grid(row=0, column=9, padx=(0, 6))
        self.translate_button = ttk.Button(
            toolbar, text="Translate", command=self._on_translate
        )
        self.translate_button.grid(row=0, column=10)

        self.widget = TkDualPaneWidget(self.root)
        self.widget.frame.grid(row=1, column=0, sticky="nsew", padx=10)

        status = ttk.Frame(self.root, padding=(10, 6))
        status.grid(row=2, column=0, sticky="we")
        status.columnconfigure(0, weight=1)
        ttk.Label(status, textvariable=self.status_var, foreground="#555").grid(
            row=0, column=0, sticky="w"
        )
        ttk.Label(status, textvariable=self.progress_var).grid(
            row=0, column=1, padx=(12, 0)
        )
        ttk.Label(status, textvariable=self.usage_var).grid(row=0, column=2, padx=(12, 0))

    # Documents

    def _load_initial_files(self) -> None:
        for attr, pane in (("source_file", Pane.ORIGINAL), ("target_file", Pane.MODIFIED)):
            raw = getattr(self.args, attr, None)
            if raw:
                self._load_file(pathlib.Path(raw).expanduser(), pane)

    def _load_file(self, path: pathlib.Path, pane: Pane) -> None:
        try:
            content = read_text(path)
        except (OSError, TandemError) as exc:
            message = f"Could not read {path}: {exc}"
            self.policy.handle_error(ErrorCategory.FILE_IO, message)
            messagebox.showerror("Tandem", message)
            return

        # An identical push is an echo and leaves the pane's live text in place.
        if pane is Pane.ORIGINAL:
            self.source_path = path
            self.selected_comments = []
            self.controller.sync(original=content)
            self.source_text = self.controller.get_original_value()
        else:
            self.translation_path = path
            self.controller.sync(modified=content)
            self.translation_text = self.controller.get_modified_value()
        self._refresh_progress()
        self.status_var.set(f"Loaded {path.name}.")

    def _open_source(self) -> None:
        selection = filedialog.askopenfilename(
            title="Select the source document", filetypes=TEXT_FILETYPES
        )
        if selection:
            self._load_file(pathlib.Path(selection), Pane.ORIGINAL)

    def _open_translation(self) -> None:
        selection = filedialog.askopenfilename(
            title="Select an existing translation", filetypes=TEXT_FILETYPES
        )
        if selection:
            self._load_file(pathlib.Path(selection), Pane.MODIFIED)

    def _save_translation(self) -> None:
        selection = filedialog.asksaveasfilename(
            title="Save translation as",
            filetypes=TEXT_FILETYPES,
            defaultextension=".md",
        )
        if not selection:
            return

        content = self.translation_text
        if has_corrupted_placeholders(content) and messagebox.askyesno(
            "Tandem",
            "The translation still contains damaged placeholders. Remove them before saving?",
        ):
            content = cleanup(content)
            self.translation_text = content
            self.controller.set_modified_value(content)

        path = pathlib.Path(selection)
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            message = f"Could not write {path}: {exc}"
            self.policy.handle_error(ErrorCategory.FILE_IO, message)
            messagebox.showerror("Tandem", message)
            return
        self.translation_path = path
        self.status_var.set(f"Saved {path.name}.")

    # Owner callbacks

    def _on_source_edited(self, value: str) -> None:
        self.source_text = value
        self._refresh_progress()

    def _on_translation_edited(self, value: str) -> None:
        self.translation_text = value
        self._refresh_progress()

    def _refresh_progress(self) -> None:
        report = measure_progress(self.source_text, self.translation_text)
        self.progress_var.set(
            f"{report.percentage}% translated "
            f"({report.untranslated_count} lines left)"
        )

    def _refresh_usage(self) -> None:
        session = self.stats.snapshot().session
        self.usage_var.set(
            f"Session: {session.calls} calls, {format_count(session.tokens)} tokens, "
            f"{format_cost(session.cost)}"
        )

    # Comments and insertion

    def _choose_comments(self) -> None:
        selection = CommentSelection(self.source_text, self.selected_comments)
        result = CommentSelectionDialog(self.root, selection).wait()
        if result is None:
            return
        self.selected_comments = result
        self.status_var.set(f"{len(result)} comment lines will be translated.")

    def _insert_source_selection(self) -> None:
        source_widget = self.widget.text(Pane.ORIGINAL)
        try:
            snippet = source_widget.get("sel.first", "sel.last")
        except tk.TclError:
            snippet = source_widget.get("insert linestart", "insert lineend")
        if snippet:
            self.controller.insert_text_at_cursor(snippet)

    # Translation

    def _get_translator(self) -> Optional[ContentTranslator]:
        if self._translator is not None:
            return self._translator
        if self.configuration_error:
            messagebox.showerror("Tandem", self.configuration_error)
            return None
        try:
            provider = create_provider(self.provider_name or "openai", self.provider_debug)
        except TranslationProviderConfigurationError as exc:
            messagebox.showerror("Tandem", str(exc))
            return None
        self._translator = ContentTranslator(
            provider,
            stats=self.stats,
            policy=self.policy,
            sanitize=self.sanitize,
        )
        return self._translator

    def _on_translate(self) -> None:
        if self.translation_in_progress:
            return

        target_language = self.target_language_var.get().strip()
        if not target_language:
            messagebox.showerror("Tandem", "Please provide a target language.")
            return
        if not self.source_text.strip():
            messagebox.showerror("Tandem", "Open or type a source document first.")
            return

        translator = self._get_translator()
        if translator is None:
            return

        self.translation_in_progress = True
        self.translate_button.config(state="disabled")
        self.status_var.set("Translating, please wait.")

        request = {
            "text": self.source_text,
            "source_language": self.source_language_var.get().strip() or None,
            "target_language": target_language,
            "selected_comments": list(self.selected_comments),
            "model": self.model,
            "whole_text_is_code": self.code_var.get(),
        }
        threading.Thread(
            target=self._execute_translation,
            args=(translator, request),
            daemon=True,
        ).start()

    def _execute_translation(
        self, translator: ContentTranslator, request: dict[str, Any]
    ) -> None:
        """Run the provider call off the UI thread."""

        try:
            outcome = translator.translate_content(**request)
        except TandemError as exc:
            self.root.after(0, self._handle_failure, str(exc))
            return
        self.root.after(0, self._handle_result, outcome)

    def _handle_result(self, outcome: TranslationOutcome) -> None:
        # Whatever the user typed into the translation pane while the call was
        # running is replaced by this result.
        self.translation_in_progress = False
        self.translate_button.config(state="normal")
        self._refresh_usage()

        if not outcome.ok:
            self.status_var.set("Translation unavailable.")
            messagebox.showwarning("Tandem", outcome.error or "Translation failed.")
            return
        if outcome.skipped:
            self.status_var.set("Nothing to translate.")
            return

        self.translation_text = outcome.text
        self.controller.sync(modified=outcome.text)
        self._refresh_progress()

        if outcome.lost_placeholders:
            self.status_var.set(
                f"Translated with {len(outcome.lost_placeholders)} protected lines lost; "
                "check the highlighted lines."
            )
        else:
            self.status_var.set(
                f"Translated in {outcome.elapsed_seconds:.1f}s "
                f"({outcome.protected_lines} lines protected)."
            )

    def _handle_failure(self, message: str) -> None:
        self.translation_in_progress = False
        self.translate_button.config(state="normal")
        self.status_var.set("Translation ended with issues.")
        messagebox.showwarning("Tandem", message)

    def _on_close(self) -> None:
        if self.translation_in_progress:
            confirm = messagebox.askyesno(
                "Tandem",
                "A translation is currently in progress. Do you want to stop it and exit?",
            )
            if not confirm:
                return
            self.exit_code = 2

        self.controller.unmount()
        self.root.destroy()


def launch_review(*, args: Any, provider_debug: bool) -> int:
    """Entry point called from the CLI ``review`` command."""

    provider = getattr(args, "provider", None)
    model = getattr(args, "model", None)
    sanitize = True
    debounce_ms = DEFAULT_DEBOUNCE_MS
    configuration_error: Optional[str] = None

    try:
        provider, model, provider_debug, sanitize = resolve_provider_options(
            provider, model, provider_debug
        )
        if provider.strip().lower() not in OFFLINE_PROVIDERS:
            debounce_ms = int(get_settings().TANDEM_DECORATION_DELAY_MS)
    except TranslationProviderConfigurationError as exc:
        # Reviewing still works; only the translate button is unavailable.
        logger.warning("Translation disabled: %s", exc)
        configuration_error = str(exc)

    root = tk.Tk()
    app = TandemReviewGUI(
        root=root,
        args=args,
        provider=provider,
        model=model,
        provider_debug=provider_debug,
        sanitize=sanitize,
        debounce_ms=debounce_ms,
        configuration_error=configuration_error,
    )
    root.mainloop()
    return app.exit_code
