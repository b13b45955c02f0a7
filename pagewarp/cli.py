"""Command line interface for the Pagewarp translator."""

from __future__ import annotations

import argparse
import asyncio
import logging
import pathlib
import sys
from typing import Iterable, Optional

from .configuration import get_settings, state_file, validate_provider_settings
from .document import HtmlDocument
from .errors import (
    OverwriteRefusedError,
    PagewarpError,
    TranslationProviderConfigurationError,
    UnsupportedFileTypeError,
)
from .languages import sanitise_language_for_filename
from .preferences import PreferenceStore
from .providers import build_translator
from .runtime import TranslationSummary, translate_document, validate_paths


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagewarp",
        description="Translate the visible text of an HTML page while preserving markup.",
    )
    parser.add_argument(
        "input_file",
        nargs="?",
        help="Path to the .html file to translate.",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        required=False,
        help="Destination locale code (for example fr, de, ja).",
    )
    parser.add_argument(
        "-s",
        "--source-language",
        help="Optional source locale hint.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target language code.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider identifier (openai, azure_openai, echo).",
    )
    parser.add_argument(
        "-m",
        "--model",
        help="Provider-specific model or deployment identifier.",
    )
    parser.add_argument(
        "-b",
        "--batch-size",
        type=int,
        default=None,
        help="Maximum characters per translation batch (default: 5000).",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    parser.add_argument(
        "--gui",
        action="store_true",
        help="Launch the graphical interface for configuring and running translations.",
    )
    return parser


def derive_output_path(input_path: pathlib.Path, language: str) -> pathlib.Path:
    suffix = input_path.suffix
    stem = input_path.stem
    addition = sanitise_language_for_filename(language)
    candidate = f"{stem}_{addition}{suffix}"
    return input_path.with_name(candidate)


class ConsoleView:
    """Renders controller state as console lines."""

    def __init__(self, *, stream=None) -> None:
        self.stream = stream or sys.stdout
        self._last_status: Optional[str] = None

    def set_busy(self, busy: bool) -> None:
        pass

    def show_status(self, text: str) -> None:
        if text and text != self._last_status:
            print(text, file=self.stream)
            self._last_status = text

    def show_progress(self, percent: Optional[int]) -> None:
        pass


def execute_translation(
    *,
    input_file: str,
    output_file: str | None,
    target_language: str,
    source_language: str | None,
    provider: str | None,
    model: str | None,
    batch_size: int | None,
    force_overwrite: bool,
    provider_debug: bool,
    view=None,
) -> tuple[int, TranslationSummary | None, str | None]:
    """Execute a translation run and return the exit code, summary, and message."""

    input_path = pathlib.Path(input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(input_path, target_language)
    )

    try:
        validate_paths(input_path, output_path, force_overwrite=force_overwrite)
        settings = get_settings()
        validate_provider_settings(settings, provider)
        translator = build_translator(
            provider, settings=settings, model=model, debug=provider_debug
        )
        document = HtmlDocument.from_path(input_path)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except OverwriteRefusedError as exc:
        return 1, None, str(exc)
    except UnsupportedFileTypeError as exc:
        return 1, None, str(exc)
    except TranslationProviderConfigurationError as exc:
        return 1, None, str(exc)
    except PagewarpError as exc:
        return 1, None, str(exc)

    try:
        summary = asyncio.run(
            translate_document(
                document,
                target_language=target_language,
                translator=translator,
                preferences=PreferenceStore(state_file(settings)),
                source_language=source_language,
                batch_size=batch_size or settings.PAGEWARP_BATCH_SIZE,
                request_timeout=settings.PAGEWARP_REQUEST_TIMEOUT,
                view=view or ConsoleView(),
            )
        )
    except PagewarpError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    if not summary.succeeded:
        return 1, summary, summary.status

    output_path.parent.mkdir(parents=True, exist_ok=True)
    document.save(output_path)
    summary.output_path = output_path
    return 0, summary, None


def print_summary(summary: TranslationSummary) -> None:
    """Output a friendly report once processing completes."""

    print(f"\n{summary.status}")
    if summary.input_path:
        print(f"  Input file:      {summary.input_path}")
    if summary.output_path:
        print(f"  Output file:     {summary.output_path}")
    print(
        "  Text units:      "
        f"{summary.applied_units} translated / {summary.total_units} total "
        f"({summary.skipped_units} skipped)"
    )
    print(f"  Batches:         {summary.total_batches}")
    if summary.source_language:
        print(f"  Source language: {summary.source_language}")
    print(f"  Target language: {summary.target_language}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")


def configure_logging(*, verbose: bool, provider_debug: bool) -> None:
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if provider_debug:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.batch_size is not None and args.batch_size <= 0:
        parser.error("--batch-size must be a positive integer")

    provider_debug = bool(args.debug_provider)
    if not provider_debug:
        try:
            settings = get_settings()
        except TranslationProviderConfigurationError as exc:
            print(exc)
            return 1
        provider_debug = bool(settings.PAGEWARP_PROVIDER_DEBUG)

    configure_logging(verbose=args.verbose, provider_debug=provider_debug)

    if args.gui:
        from .gui import launch_gui

        return launch_gui(
            args=args,
            translation_executor=execute_translation,
            summary_printer=print_summary,
            provider_debug=provider_debug,
        )

    if args.input_file is None:
        parser.error("the following arguments are required: input_file")
    if not args.target_language:
        parser.error("the following arguments are required: -t/--target-language")

    exit_code, summary, message = execute_translation(
        input_file=args.input_file,
        output_file=args.output,
        target_language=args.target_language,
        source_language=args.source_language,
        provider=args.provider,
        model=args.model,
        batch_size=args.batch_size,
        force_overwrite=args.force,
        provider_debug=provider_debug,
    )

    if message:
        print(message)
    if summary and exit_code == 0:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
