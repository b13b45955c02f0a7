"""Tkinter popup for choosing a page and target language and watching progress."""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

import tkinter as tk
from tkinter import filedialog, messagebox, ttk

from .bus import MessageBus
from .configuration import get_settings, state_file
from .controller import SessionController
from .languages import LANGUAGE_NAMES, language_name
from .preferences import PreferenceStore
from .runtime import TranslationSummary


TranslationExecutor = Callable[..., tuple[int, Optional[TranslationSummary], Optional[str]]]
SummaryPrinter = Callable[[TranslationSummary], None]


class TkSessionView:
    """Session view that marshals controller updates onto the Tk thread."""

    def __init__(self, gui: "PagewarpGUI") -> None:
        self.gui = gui

    def set_busy(self, busy: bool) -> None:
        self.gui.root.after(0, self.gui.set_busy, busy)

    def show_status(self, text: str) -> None:
        self.gui.root.after(0, self.gui.status_var.set, text)

    def show_progress(self, percent: Optional[int]) -> None:
        self.gui.root.after(0, self.gui.set_progress, percent)


class PagewarpGUI:
    """Encapsulates the Tkinter UI and translation workflow."""

    def __init__(
        self,
        *,
        root: tk.Tk,
        args: Any,
        translation_executor: TranslationExecutor,
        summary_printer: SummaryPrinter,
        provider_debug: bool,
        preferences: PreferenceStore,
    ) -> None:
        self.root = root
        self.args = args
        self.translation_executor = translation_executor
        self.summary_printer = summary_printer
        self.provider_debug = provider_debug
        self.preferences = preferences

        self.exit_code: int = 0
        self.translation_in_progress = False

        self._build_variables()
        self._build_ui()
        self._restore_state()

        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

    def _build_variables(self) -> None:
        """Initialise Tkinter control variables from CLI arguments."""

        self.input_path_var = tk.StringVar(value=getattr(self.args, "input_file", "") or "")
        self.output_path_var = tk.StringVar(value=getattr(self.args, "output", "") or "")
        self.target_language_var = tk.StringVar(
            value=getattr(self.args, "target_language", "") or "fr"
        )
        self.status_var = tk.StringVar(
            value="Select a page, choose a target language, then translate."
        )
        self.force_var = tk.BooleanVar(value=bool(getattr(self.args, "force", False)))

    def _build_ui(self) -> None:
        """Construct the Tkinter layout."""

        self.root.title("Pagewarp Translator")
        self.root.geometry("520x330")
        self.root.resizable(False, False)

        main_frame = ttk.Frame(self.root, padding=20)
        main_frame.grid(row=0, column=0, sticky="nsew")

        self.root.columnconfigure(0, weight=1)
        self.root.rowconfigure(0, weight=1)

        ttk.Label(main_frame, text="Page (.html)").grid(row=0, column=0, sticky="w")
        ttk.Entry(main_frame, textvariable=self.input_path_var, width=45).grid(
            row=1, column=0, sticky="we", pady=(0, 10)
        )
        ttk.Button(main_frame, text="Browse…", command=self._choose_input).grid(
            row=1, column=1, padx=(10, 0), sticky="we"
        )

        ttk.Label(main_frame, text="Output file (optional)").grid(row=2, column=0, sticky="w")
        ttk.Entry(main_frame, textvariable=self.output_path_var, width=45).grid(
            row=3, column=0, sticky="we", pady=(0, 10)
        )

        ttk.Label(main_frame, text="Target language").grid(row=4, column=0, sticky="w")
        ttk.Combobox(
            main_frame,
            textvariable=self.target_language_var,
            values=sorted(LANGUAGE_NAMES),
            width=10,
        ).grid(row=5, column=0, sticky="w", pady=(0, 10))

        ttk.Checkbutton(
            main_frame,
            text="Force overwrite existing output",
            variable=self.force_var,
        ).grid(row=6, column=0, sticky="w")

        ttk.Label(main_frame, textvariable=self.status_var, foreground="#555").grid(
            row=7, column=0, columnspan=2, sticky="w", pady=(5, 5)
        )
        self.progress = ttk.Progressbar(main_frame, maximum=100, length=460)
        self.progress.grid(row=8, column=0, columnspan=2, sticky="we", pady=(0, 10))
        self.progress.grid_remove()

        self.start_button = ttk.Button(
            main_frame, text="Translate Page", command=self._on_start
        )
        self.start_button.grid(row=9, column=1, sticky="e")

        self.root.bind("<Return>", self._on_start_event)

    def _restore_state(self) -> None:
        """Show what the last session left behind in the durable record."""

        controller = SessionController(MessageBus(), self.preferences, TkSessionView(self))
        state = controller.restore()
        if state.target_lang and not getattr(self.args, "target_language", None):
            self.target_language_var.set(state.target_lang)

    def set_busy(self, busy: bool) -> None:
        self.start_button.config(
            state="disabled" if busy else "normal",
            text="Translating..." if busy else "Translate Page",
        )

    def set_progress(self, percent: Optional[int]) -> None:
        if percent is None:
            self.progress.grid_remove()
            self.progress["value"] = 0
            return
        self.progress.grid()
        self.progress["value"] = percent

    def _choose_input(self) -> None:
        selection = filedialog.askopenfilename(
            title="Select a page",
            filetypes=[("HTML pages", "*.html *.htm"), ("All files", "*.*")],
        )
        if selection:
            self.input_path_var.set(selection)

    def _on_start_event(self, event: Any) -> None:
        self._on_start()

    def _on_start(self) -> None:
        """Gather configuration and begin the translation in a worker thread."""

        if self.translation_in_progress:
            return

        input_path = self.input_path_var.get().strip()
        target_language = self.target_language_var.get().strip()
        if not input_path:
            messagebox.showerror("Pagewarp", "Please choose an .html page.")
            return
        if not target_language:
            messagebox.showerror("Pagewarp", "Please choose a target language.")
            return

        self.translation_in_progress = True
        self.status_var.set(f"Translating to {language_name(target_language)}...")
        self.set_busy(True)

        config = {
            "input_file": input_path,
            "output_file": self.output_path_var.get().strip() or None,
            "target_language": target_language,
            "source_language": getattr(self.args, "source_language", None),
            "provider": getattr(self.args, "provider", None),
            "model": getattr(self.args, "model", None),
            "batch_size": getattr(self.args, "batch_size", None),
            "force_overwrite": self.force_var.get(),
            "provider_debug": self.provider_debug,
            "view": TkSessionView(self),
        }

        threading.Thread(
            target=self._execute_translation,
            args=(config,),
            daemon=True,
        ).start()

    def _execute_translation(self, config: dict[str, Any]) -> None:
        """Invoke the translation executor in a worker thread."""

        exit_code, summary, message = self.translation_executor(**config)
        self.root.after(0, self._handle_result, exit_code, summary, message)

    def _handle_result(
        self,
        exit_code: int,
        summary: Optional[TranslationSummary],
        message: Optional[str],
    ) -> None:
        """Re-enable the popup once the session has finished."""

        self.translation_in_progress = False
        self.set_busy(False)
        self.set_progress(None)
        self.exit_code = exit_code

        if exit_code == 0 and summary is not None:
            self.summary_printer(summary)
            self.status_var.set(summary.status)
        elif message:
            self.status_var.set(message)

    def _on_close(self) -> None:
        if self.translation_in_progress:
            confirm = messagebox.askyesno(
                "Pagewarp",
                "A translation is currently in progress. Do you want to stop it and exit?",
            )
            if not confirm:
                return
            self.exit_code = 2
        self.root.destroy()


def launch_gui(
    *,
    args: Any,
    translation_executor: TranslationExecutor,
    summary_printer: SummaryPrinter,
    provider_debug: bool,
) -> int:
    """Entry point called from the CLI when --gui is provided."""

    root = tk.Tk()
    app = PagewarpGUI(
        root=root,
        args=args,
        translation_executor=translation_executor,
        summary_printer=summary_printer,
        provider_debug=provider_debug,
        preferences=PreferenceStore(state_file(get_settings())),
    )
    root.mainloop()
    return app.exit_code
