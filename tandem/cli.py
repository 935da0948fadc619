"""Command line interface for the Tandem translation pipeline."""

from __future__ import annotations

import argparse
import logging
import pathlib
import re
import sys
from typing import Iterable, Optional, Sequence

from .comments import CommentSelection
from .configuration import OFFLINE_PROVIDERS, get_settings, provider_credentials
from .errors import TandemError
from .policy import ErrorPolicy
from .progress import measure_progress
from .providers import TranslationProvider, build_provider
from .sanitizer import cleanup, has_corrupted_placeholders
from .translator import ContentTranslator, TranslationOutcome, validate_paths
from .usage import UsageStats, format_cost, format_count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tandem",
        description=(
            "Translate markdown articles while keeping links, media and code "
            "comments intact, then review the result side by side."
        ),
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
    commands = parser.add_subparsers(dest="command", required=True)

    translate = commands.add_parser("translate", help="Translate a markdown file.")
    translate.add_argument("input_file", help="Path to the markdown or text file.")
    translate.add_argument(
        "-t",
        "--target-language",
        required=True,
        help="Destination language (name or ISO-639 code).",
    )
    translate.add_argument(
        "-s",
        "--source-language",
        help="Optional source language hint (name or ISO-639 code).",
    )
    translate.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target language code.",
    )
    translate.add_argument(
        "-p",
        "--provider",
        help="Translation provider identifier (default: openai).",
    )
    translate.add_argument(
        "-m",
        "--model",
        help="Provider-specific model or engine identifier.",
    )
    comment_group = translate.add_mutually_exclusive_group()
    comment_group.add_argument(
        "--comments",
        help="Comma-separated line numbers of code comments to translate.",
    )
    comment_group.add_argument(
        "--all-comments",
        action="store_true",
        help="Translate every code comment found in the file.",
    )
    translate.add_argument(
        "--code",
        action="store_true",
        help="Treat the whole file as source code rather than markdown.",
    )
    translate.add_argument(
        "--no-sanitize",
        action="store_true",
        help="Keep placeholder debris in the output instead of removing it.",
    )
    translate.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )

    comments = commands.add_parser(
        "comments", help="List the code comments that can be opted into translation."
    )
    comments.add_argument("input_file")

    clean = commands.add_parser(
        "clean", help="Remove leftover placeholder fragments from a file."
    )
    clean.add_argument("input_file")
    clean.add_argument("-o", "--output", help="Write the result here instead of stdout.")
    clean.add_argument("-f", "--force", action="store_true")

    progress = commands.add_parser(
        "progress", help="Report how much of a translation still matches its source."
    )
    progress.add_argument("source_file")
    progress.add_argument("target_file")

    review = commands.add_parser(
        "review", help="Open the side-by-side review window."
    )
    review.add_argument("source_file", nargs="?")
    review.add_argument("target_file", nargs="?")
    review.add_argument("-t", "--target-language", default="")
    review.add_argument("-s", "--source-language")
    review.add_argument("-p", "--provider")
    review.add_argument("-m", "--model")

    return parser


def configure_logging(*, verbose: bool, provider_debug: bool) -> None:
    if provider_debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="[tandem] %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def sanitise_language_for_filename(language: str) -> str:
    """Generate a filesystem-friendly suffix from a language descriptor."""

    collapsed = re.sub(r"\s+", "-", language.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-]+", "", ascii_only)
    return cleaned or "translated"


def derive_output_path(input_path: pathlib.Path, language: str) -> pathlib.Path:
    suffix = input_path.suffix
    stem = input_path.stem
    addition = sanitise_language_for_filename(language)
    candidate = f"{stem}_{addition}{suffix}"
    return input_path.with_name(candidate)


def parse_line_numbers(raw: str) -> list[int]:
    numbers: list[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit() or int(part) < 1:
            raise TandemError(f"Invalid comment line number '{part}'.")
        numbers.append(int(part))
    return numbers


def read_text(path: pathlib.Path) -> str:
    """Read a UTF-8 text file; undecodable content raises ``TandemError``."""

    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise TandemError(
            f"{path} is not UTF-8 text ({exc.reason} at byte {exc.start})."
        ) from exc


def resolve_provider_options(
    provider: str | None,
    model: str | None,
    provider_debug: bool,
) -> tuple[str, str | None, bool, bool]:
    """Merge CLI flags with configuration: (provider, model, debug, sanitize)."""

    if provider and provider.strip().lower() in OFFLINE_PROVIDERS:
        return provider, model, provider_debug, True

    settings = get_settings()
    return (
        provider or settings.TANDEM_PROVIDER,
        model or settings.TANDEM_MODEL,
        provider_debug or bool(settings.TANDEM_PROVIDER_DEBUG),
        bool(settings.TANDEM_SANITIZE_OUTPUT),
    )


def create_provider(name: str, debug: bool) -> TranslationProvider:
    """Build a provider, taking credentials from the layered configuration."""

    if name.strip().lower() in OFFLINE_PROVIDERS:
        return build_provider(name, debug=debug)
    return build_provider(name, debug=debug, credentials=provider_credentials())


def execute_translation(
    *,
    input_file: str,
    output_file: str | None,
    target_language: str,
    source_language: str | None,
    provider: str | None,
    model: str | None,
    comment_lines: Sequence[int] | None,
    all_comments: bool,
    whole_text_is_code: bool,
    sanitize: bool,
    force_overwrite: bool,
    provider_debug: bool,
    stats: UsageStats,
) -> tuple[int, TranslationOutcome | None, str | None]:
    """Execute a translation run and return the exit code, outcome, and message."""

    input_path = pathlib.Path(input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(input_path, target_language)
    )

    try:
        validate_paths(input_path, output_path, force_overwrite=force_overwrite)
        provider_name, model, provider_debug, configured_sanitize = (
            resolve_provider_options(provider, model, provider_debug)
        )
        translation_provider = create_provider(provider_name, provider_debug)
        text = read_text(input_path)
    except (FileNotFoundError, TandemError) as exc:
        return 1, None, str(exc)
    except OSError as exc:
        return 1, None, f"Could not read {input_path}: {exc}"

    selection = CommentSelection(text)
    if all_comments:
        selection.select_all()
    elif comment_lines:
        selection.select_lines(comment_lines)

    translator = ContentTranslator(
        translation_provider,
        stats=stats,
        policy=ErrorPolicy(),
        sanitize=sanitize and configured_sanitize,
    )
    try:
        outcome = translator.translate_content(
            text,
            source_language=source_language,
            target_language=target_language,
            selected_comments=selection.confirm(),
            model=model,
            whole_text_is_code=whole_text_is_code,
        )
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    if not outcome.ok:
        return 1, outcome, outcome.error

    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        output_path.write_text(outcome.text, encoding="utf-8")
    except OSError as exc:
        return 1, outcome, f"Could not write {output_path}: {exc}"

    return 0, outcome, f"Translated content written to {output_path}"


def print_summary(outcome: TranslationOutcome, stats: UsageStats) -> None:
    """Output a friendly report once processing completes."""

    snapshot = stats.snapshot()
    print("\nTranslation complete." if outcome.ok else "\nTranslation failed.")
    print(f"  Provider:        {outcome.provider_name}")
    if outcome.source_language:
        print(f"  Source language: {outcome.source_language}")
    print(f"  Target language: {outcome.target_language}")
    print(f"  Protected lines: {outcome.protected_lines}")
    if outcome.skipped:
        print("  Nothing to translate; content copied unchanged.")
    print(f"  Tokens:          {format_count(snapshot.session.tokens)}")
    print(f"  Cost:            {format_cost(snapshot.session.cost)}")
    print(f"  Elapsed time:    {outcome.elapsed_seconds:.2f} seconds")
    if outcome.lost_placeholders:
        print("  Notes:")
        for token in outcome.lost_placeholders:
            print(f"    - {token} was altered by the provider; its line was not restored.")


def list_comments(input_file: str) -> int:
    try:
        text = read_text(pathlib.Path(input_file).expanduser())
    except OSError as exc:
        print(f"Could not read {input_file}: {exc}")
        return 1
    except TandemError as exc:
        print(exc)
        return 1

    selection = CommentSelection(text)
    print(f"{len(selection)} comments found")
    for comment in selection.comments:
        print(
            f"  line {comment.line_number:>4}  "
            f"[{comment.comment_type.value:<5}]  {comment.comment_text}"
        )
    return 0


def clean_file(input_file: str, output_file: str | None, force: bool) -> int:
    input_path = pathlib.Path(input_file).expanduser()
    try:
        text = read_text(input_path)
    except OSError as exc:
        print(f"Could not read {input_file}: {exc}")
        return 1
    except TandemError as exc:
        print(exc)
        return 1

    if has_corrupted_placeholders(text):
        print("Corrupted placeholders detected; removing them.", file=sys.stderr)
    cleaned = cleanup(text)

    if output_file is None:
        sys.stdout.write(cleaned + "\n")
        return 0

    output_path = pathlib.Path(output_file).expanduser()
    if output_path.exists() and not force:
        print("The output file already exists. Rename it or use the overwrite flag.")
        return 1
    output_path.write_text(cleaned, encoding="utf-8")
    return 0


def report_progress(source_file: str, target_file: str) -> int:
    try:
        source = read_text(pathlib.Path(source_file).expanduser())
        target = read_text(pathlib.Path(target_file).expanduser())
    except OSError as exc:
        print(f"Could not read input: {exc}")
        return 1
    except TandemError as exc:
        print(exc)
        return 1

    report = measure_progress(source, target)
    print(
        f"{report.translated_lines}/{report.total_lines} lines translated "
        f"({report.percentage}%)"
    )
    if report.untranslated_lines:
        listed = ", ".join(str(index + 1) for index in report.untranslated_lines)
        print(f"Untranslated lines: {listed}")
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    provider_debug = bool(args.debug_provider)
    configure_logging(verbose=args.verbose, provider_debug=provider_debug)

    if args.command == "comments":
        return list_comments(args.input_file)
    if args.command == "clean":
        return clean_file(args.input_file, args.output, args.force)
    if args.command == "progress":
        return report_progress(args.source_file, args.target_file)
    if args.command == "review":
        from .gui import launch_review

        return launch_review(args=args, provider_debug=provider_debug)

    try:
        comment_lines = parse_line_numbers(args.comments) if args.comments else None
    except TandemError as exc:
        parser.error(str(exc))

    stats = UsageStats()
    exit_code, outcome, message = execute_translation(
        input_file=args.input_file,
        output_file=args.output,
        target_language=args.target_language,
        source_language=args.source_language,
        provider=args.provider,
        model=args.model,
        comment_lines=comment_lines,
        all_comments=args.all_comments,
        whole_text_is_code=args.code,
        sanitize=not args.no_sanitize,
        force_overwrite=args.force,
        provider_debug=provider_debug,
        stats=stats,
    )

    if message:
        print(message)
    if outcome:
        print_summary(outcome, stats)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
