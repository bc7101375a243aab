"""
CLI entrypoint for precoding package.
"""
import argparse
import datetime
import logging
import sys
from pathlib import Path
from typing import List, Optional

from colorama import Fore, Style, just_fix_windows_console

from . import __author__, __license__, __version__
from .core import (
    DEFAULT_PATTERNS,
    IGNORED_FOLDER_NAMES,
    OUTPUT_FILENAME,
    aggregate,
    copy_to_clipboard,
    fits_clipboard,
    load_ignored_folders,
    load_template,
    validate_root,
    walk,
    write_output,
    InvalidRootError,
    ConfigFileError,
    OutputError,
)

def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="precoding",
        description="Aggregate source files into one AllSourceFiles.txt with per-file headers.",
        epilog=(
            "examples:\n"
            "  precoding                          search the current dir with default patterns\n"
            "  precoding <targetDir>              search targetDir with default patterns\n"
            "  precoding -files file1.cs file2.json\n"
            "                                     search for the given file names instead"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    p.add_argument(
        "target",
        nargs="?",
        type=Path,
        help="Directory to aggregate (default: current directory)",
    )
    p.add_argument(
        "-files",
        "--files",
        nargs="+",
        metavar="NAME",
        help="File names or single-level globs to search for instead of the defaults",
    )
    p.add_argument(
        "--template",
        type=Path,
        help="Header template (default: prompt_header.md shipped with the package)",
    )
    p.add_argument(
        "--config",
        type=Path,
        help="Path to a file with extra folder names to ignore (one per line)",
    )
    p.add_argument(
        "--out",
        default=OUTPUT_FILENAME,
        help=f"Output file name inside the target directory (default: {OUTPUT_FILENAME})",
    )
    p.add_argument(
        "--no-clipboard",
        action="store_true",
        help="Do not copy the output to the clipboard",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    p.add_argument("-h", "-help", "--help", action="help", help="Show this help message and exit")
    return p.parse_args(argv)


def _say(msg: str, colour: str = "", file=None) -> None:
    if colour:
        msg = colour + msg + Style.RESET_ALL
    print(msg, file=file or sys.stdout)


def _fail(msg: str) -> None:
    _say(f"Error: {msg}", Fore.RED, file=sys.stderr)
    sys.exit(1)


def _build_time() -> str:
    """Last-modified time of the installed package."""
    try:
        mtime = Path(__file__).stat().st_mtime
    except OSError:
        return "Unknown"
    return datetime.datetime.fromtimestamp(mtime).strftime("%Y-%m-%d %H:%M:%S")


def _print_banner() -> None:
    print(f"PreCoding Tool [Version: {__version__}]")
    print(f"Author:  {__author__}")
    print(f"License: {__license__}")
    print(f"Build:   {_build_time()}")
    print("Ensure your source code files are UTF-8 encoded.\n")


def main(argv: Optional[List[str]] = None) -> None:
    try:
        ns = _parse_args(argv)
        just_fix_windows_console()
        logging.basicConfig(
            level=logging.DEBUG if ns.verbose else logging.WARNING,
            format="[precoding] %(levelname)s: %(message)s",
        )
        _print_banner()

        print("========== File Aggregation Started ==========")
        try:
            root = validate_root(ns.target if ns.target is not None else Path.cwd())
        except InvalidRootError as e:
            _fail(str(e))

        ignored = set(IGNORED_FOLDER_NAMES)
        header = None
        try:
            if ns.config:
                ignored.update(load_ignored_folders(ns.config.resolve()))
                if ns.verbose:
                    print(f"[precoding] Loaded extra ignored folders from {ns.config}")
            header = load_template(ns.template)
        except ConfigFileError as e:
            _fail(str(e))

        patterns = ns.files or DEFAULT_PATTERNS
        print(f"Mode:            {'File List' if ns.files else 'Pattern Search'}")
        print(f"Search Targets:  {', '.join(patterns)}")
        print(f"Ignored Folders: {', '.join(sorted(ignored, key=str.casefold))}")

        if ns.verbose:
            print(f"[precoding] Scanning {root} …")
        matched = list(walk(root, patterns, ignored))
        if not matched:
            print("No matching source files found. Exiting.")
            print("========== Aggregation Complete ==============")
            return

        result = aggregate(matched, root, header)
        out_path = root / ns.out
        try:
            size = write_output(result.content, out_path)
        except OutputError as e:
            _fail(str(e))

        _say(f"Completed! Aggregated {result.file_count} files.", Fore.GREEN)
        print(f"Output written to: {out_path} [{size / (1024 * 1024):.2f} MB]")

        if ns.no_clipboard:
            print("Clipboard copy disabled; only written to file.")
        elif not fits_clipboard(result.size_bytes):
            _say("Output too large for clipboard; only written to file.", Fore.YELLOW)
        elif copy_to_clipboard(result.content):
            print("Output copied to clipboard.")
        else:
            _say("Could not reach the clipboard; only written to file.", Fore.YELLOW)
        print("========== Aggregation Complete ==============")

        if result.errors:
            lines = [f"ERROR reading {path}: {message}" for path, message in result.errors]
            _say("[WARN] Some files could not be read:\n" + "\n".join(lines), Fore.YELLOW)

    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
