import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, NoReturn

import structlog

from editmode import __version__
from editmode.diff import ALIGNMENTS, POSITIONAL
from editmode.ingest import collect_body_text_tokens
from editmode.models import Commit, Edit, EditorConfig
from editmode.patch.engine import patch_source
from editmode.patch.policy import decide
from editmode.reconcile import build_edits, reconcile

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_NEEDS_REVIEW = 2


class EditModeArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with 1 (argparse's default is 2, which here means 'needs review')."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def _configure_logging(verbose: bool):
    # stdout carries the report; everything else goes to stderr
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(stream=sys.stderr, level=level, force=True)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _read_html(path: Path) -> str:
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(EXIT_USAGE)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: Could not read {path}: {e}", file=sys.stderr)
        sys.exit(EXIT_USAGE)


def _write_html(path: Path, html: str):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(html)


def _load_edits_from_json(path: Path) -> List[Edit]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        edits = []
        for item in data:
            old_val = item.get("old_text") or item.get("oldText")
            new_val = item.get("new_text") or item.get("newText")
            edits.append(Edit(old_text=(old_val or "").strip(), new_text=(new_val or "").strip()))
        return edits
    except (OSError, ValueError, AttributeError) as e:
        print(f"Error parsing JSON edits: {e}", file=sys.stderr)
        sys.exit(EXIT_USAGE)


def _warn_drift():
    print("Warning: text block counts differ between files. Mapping is best-effort only.", file=sys.stderr)


def handle_restore(args):
    original_html = _read_html(args.original)
    edited_html = _read_html(args.edited)

    try:
        report = reconcile(original_html, edited_html, alignment=args.align)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_USAGE)

    _write_html(args.out, report.html)

    print(f"Original text blocks: {report.original_token_count}")
    print(f"Edited text blocks: {report.edited_token_count}")
    print(f"Detected text edits: {len(report.edits)}")
    print(f"Applied edits: {report.result.applied_count}")
    if report.edits:
        print(f"Wrote restored file: {args.out}")
    else:
        print(f"No text differences found. Wrote original file to: {args.out}")

    if not report.fully_applied:
        print(
            "Warning: some edits could not be mapped back to the original source. Check the output manually.",
            file=sys.stderr,
        )
        for unmatched in report.result.unmatched_edits:
            print(
                f"  [!] '{unmatched.old_preview}' -> '{unmatched.new_preview}' "
                f"({unmatched.candidate_count} candidates)",
                file=sys.stderr,
            )

    if report.structural_drift:
        _warn_drift()

    if report.exit_code != EXIT_OK:
        sys.exit(report.exit_code)


def handle_tokens(args):
    tokens = collect_body_text_tokens(_read_html(args.input))
    if args.json:
        print(json.dumps(tokens, indent=2, ensure_ascii=False))
    else:
        print(f"Found {len(tokens)} text blocks:", file=sys.stderr)
        for token in tokens:
            print(token)


def handle_diff(args):
    try:
        edits, original_count, edited_count = build_edits(
            _read_html(args.original), _read_html(args.edited), alignment=args.align
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_USAGE)

    if original_count != edited_count:
        _warn_drift()

    if args.json:
        print(json.dumps([e.model_dump() for e in edits], indent=2, ensure_ascii=False))
    else:
        print(f"Found {len(edits)} changes:", file=sys.stderr)
        for e in edits:
            print(f"[~] '{e.old_text}' -> '{e.new_text}'")


def handle_apply(args):
    source = _read_html(args.source)
    if not args.edits.exists():
        print(f"Error: Edits file not found: {args.edits}", file=sys.stderr)
        sys.exit(EXIT_USAGE)
    edits = _load_edits_from_json(args.edits)

    if not edits:
        print("Warning: No edits found in JSON file.", file=sys.stderr)

    print(f"Applying {len(edits)} edits...", file=sys.stderr)
    config = EditorConfig(strip_marker=not args.keep_marker)
    result = patch_source(source, edits)
    decision = decide(result, edits, config)

    print(f"Stats: {result.applied_count} applied, {len(edits) - result.applied_count} not applied.")

    if not isinstance(decision, Commit):
        print(f"Not saved: {decision.reason.value}. Export the live document instead.", file=sys.stderr)
        for unmatched in result.unmatched_edits:
            print(f"  [!] '{unmatched.old_preview}' ({unmatched.candidate_count} candidates)", file=sys.stderr)
        sys.exit(EXIT_NEEDS_REVIEW)

    output_path = args.output or args.source.with_name(f"{args.source.stem}_edited{args.source.suffix}")
    _write_html(output_path, decision.html)
    print(f"Saved to {output_path}")


def build_parser() -> argparse.ArgumentParser:
    parser = EditModeArgumentParser(
        prog="editmode", description="Source-preserving text patches for HTML pages"
    )
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Debug logging on stderr")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Subcommands")

    p_restore = subparsers.add_parser(
        "restore",
        help="Replay text edits from a fallback-exported page onto the original source",
    )
    p_restore.add_argument("--original", type=Path, required=True, help="Original HTML file")
    p_restore.add_argument("--edited", type=Path, required=True, help="Edited (DOM-exported) HTML file")
    p_restore.add_argument("--out", type=Path, required=True, help="Output HTML path")
    p_restore.add_argument(
        "--align",
        choices=ALIGNMENTS,
        default=POSITIONAL,
        help="How text blocks are paired between the two files (default: positional)",
    )
    p_restore.set_defaults(func=handle_restore)

    p_tokens = subparsers.add_parser("tokens", help="List the visible text blocks of an HTML file")
    p_tokens.add_argument("input", type=Path, help="HTML file")
    p_tokens.add_argument("--json", action="store_true", help="Output a JSON array")
    p_tokens.set_defaults(func=handle_tokens)

    p_diff = subparsers.add_parser("diff", help="Show the text edits between two HTML files")
    p_diff.add_argument("original", type=Path, help="Original HTML file")
    p_diff.add_argument("edited", type=Path, help="Edited HTML file")
    p_diff.add_argument("--json", action="store_true", help="Output raw JSON edits")
    p_diff.add_argument("--align", choices=ALIGNMENTS, default=POSITIONAL, help="Token pairing strategy")
    p_diff.set_defaults(func=handle_diff)

    p_apply = subparsers.add_parser("apply", help="Apply a JSON edit list to an HTML source")
    p_apply.add_argument("source", type=Path, help="Original HTML file")
    p_apply.add_argument("edits", type=Path, help="JSON file containing [{old_text, new_text}, ...]")
    p_apply.add_argument("-o", "--output", type=Path, help="Output HTML path (default: <source>_edited.html)")
    p_apply.add_argument(
        "--keep-marker",
        action="store_true",
        help="Keep the editor's <script> tag in the output (stripped by default)",
    )
    p_apply.set_defaults(func=handle_apply)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    args.func(args)


def restore_main(argv=None):
    """Entry point for `editmode-restore --original A --edited B --out C`."""
    if argv is None:
        argv = sys.argv[1:]
    main(["restore"] + list(argv))


if __name__ == "__main__":
    main()
