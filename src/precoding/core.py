"""
Core logic for precoding package.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import pathspec
import pyperclip

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Exceptions
class PrecodingError(Exception): ...
class InvalidRootError(PrecodingError): ...
class ConfigFileError(PrecodingError): ...
class OutputError(PrecodingError): ...

# Defaults & helpers
DEFAULT_PATTERNS: List[str] = [
    "*.cs",
    "*.tsx",
    "*.ts",
    "package.json",
    "*.csproj",
]

IGNORED_FOLDER_NAMES: FrozenSet[str] = frozenset({
    "node_modules",
    "Migrations",
    "obj",
    "app-example",
    "staticdata",
    "docs",
})

OUTPUT_FILENAME = "AllSourceFiles.txt"
TEMPLATE_FILENAME = "prompt_header.md"
CLIPBOARD_LIMIT_BYTES = 1024 * 1024

DEFAULT_HEADER = "\n".join([
    "## Instructions:",
    "1. **Code-First Replies:** Always respond with a code block containing the exact code "
    "(method, function, or class) to be replaced or inserted.",
    "   - For long files, include only the full method/function/class that is being changed.",
    "2. **Clear Change Comments:** Clearly mark your changes using `// CHANGED`, `// ADDED`, "
    "`// REMOVED`, etc.",
    "3. **No Redundant Suggestions:** Double-check my code and **do not suggest fixes for "
    "issues already handled**.",
    "4. **Prefer Inline Solutions:** Use concise, inline code when possible. Avoid multiple "
    "lines for changes that can be made in one.",
    "5. **Be Accurate, Direct, and Minimal:**",
    "   - Do not add extra features or explanations unless requested.",
    "   - Provide only code and necessary comments.",
    "6. **Reference the Provided Codebase:** Use the code files and their filenames below as "
    "context for your responses.",
    "",
    "## Below are all the source code files for reference:",
])

_LANG_MAP: Dict[str, str] = {
    ".bat": "bat",
    ".c": "c",
    ".cc": "cpp",
    ".cmd": "bat",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".css": "css",
    ".dart": "dart",
    ".diff": "diff",
    ".env": "env",
    ".go": "go",
    ".graphql": "graphql",
    ".gql": "graphql",
    ".h": "cpp",
    ".htm": "html",
    ".html": "html",
    ".ini": "ini",
    ".java": "java",
    ".jl": "julia",
    ".js": "javascript",
    ".json": "json",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".latex": "latex",
    ".lisp": "lisp",
    ".lsp": "lisp",
    ".lua": "lua",
    ".md": "markdown",
    ".mjs": "javascript",
    ".php": "php",
    ".pl": "perl",
    ".pm": "perl",
    ".properties": "properties",
    ".ps1": "powershell",
    ".psm1": "powershell",
    ".py": "python",
    ".pyw": "python",
    ".r": "r",
    ".rb": "ruby",
    ".rs": "rust",
    ".scala": "scala",
    ".sh": "bash",
    ".sql": "sql",
    ".swift": "swift",
    ".tex": "latex",
    ".toml": "toml",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".txt": "plaintext",
    ".xml": "xml",
    ".yml": "yaml",
    ".yaml": "yaml",
}


def _lang_from_ext(path: Path) -> str:
    return _LANG_MAP.get(path.suffix.lower(), "")


def _fold(names: Iterable[str]) -> FrozenSet[str]:
    return frozenset(n.casefold() for n in names)


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


# Exclusion rules
def is_excluded(
    name: str,
    hidden: bool = False,
    ignored: FrozenSet[str] = frozenset(),
) -> bool:
    """
    Return True if a directory entry called *name* must be left out.

    Shared by the directory and the file checks: files only ever pass their
    name, directories also pass their hidden flag and the casefolded set of
    ignored folder names.
    """
    if name.startswith("."):
        return True
    if hidden:
        return True
    return name.casefold() in ignored


def _is_hidden(entry: os.DirEntry) -> bool:
    """Hidden attribute on Windows, ``UF_HIDDEN`` flag on BSD/macOS."""
    try:
        st = entry.stat(follow_symlinks=False)
    except OSError:
        return False
    if getattr(st, "st_file_attributes", 0) & stat.FILE_ATTRIBUTE_HIDDEN:
        return True
    return bool(getattr(st, "st_flags", 0) & stat.UF_HIDDEN)


# Root / config / template loading
def validate_root(root: PathLike) -> Path:
    try:
        root = Path(os.path.abspath(root))
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Could not resolve root path '{root}': {e}")
    if not root.exists():
        raise InvalidRootError(f"Target directory does not exist: {root}")
    if not root.is_dir():
        raise InvalidRootError(f"Target path is not a directory: {root}")
    return root


def load_ignored_folders(config_path: Path) -> List[str]:
    """Read extra ignored folder names from *config_path*, one per line."""
    if not config_path.exists():
        raise ConfigFileError(f"Config file '{config_path}' does not exist")
    if not config_path.is_file():
        raise ConfigFileError(f"'{config_path}' is not a file")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            return [
                ln.strip()
                for ln in fh
                if ln.strip() and not ln.lstrip().startswith("#")
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read config file '{config_path}': {e}")


def load_template(template_path: Optional[Path] = None) -> Optional[str]:
    """
    Return the header template text, or None when the built-in header applies.

    Without an explicit *template_path*, ``prompt_header.md`` is looked up
    next to the installed package and silently ignored when absent.
    """
    explicit = template_path is not None
    path = template_path if explicit else Path(__file__).with_name(TEMPLATE_FILENAME)
    if not path.is_file():
        if explicit:
            raise ConfigFileError(f"Template file '{path}' does not exist")
        return None
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read template file '{path}': {e}")


# Traversal
NameMatcher = Callable[[str], bool]


def _escape_glob(pattern: str) -> str:
    """Escape gitignore syntax so that only ``*`` and ``?`` stay wildcards."""
    escaped = "".join("\\" + ch if ch in "[]\\ " else ch for ch in pattern)
    if escaped[:1] in ("!", "#"):
        escaped = "\\" + escaped
    return escaped


def _name_matcher(pattern: str) -> NameMatcher:
    if "*" not in pattern and "?" not in pattern:
        return lambda name: name == pattern
    spec = pathspec.PathSpec.from_lines("gitwildmatch", [_escape_glob(pattern)])
    return spec.match_file


def compile_patterns(patterns: Sequence[str]) -> List[Tuple[str, NameMatcher]]:
    """
    Compile each search pattern on its own, matched against bare file names.

    Patterns without ``*`` or ``?`` are literal names and match exactly.
    """
    return [(pattern, _name_matcher(pattern)) for pattern in patterns]


def _match_files(directory: Path, matches: NameMatcher) -> List[Path]:
    matched: List[Path] = []
    with os.scandir(directory) as it:
        for entry in it:
            if not entry.is_file() or is_excluded(entry.name):
                continue
            if matches(entry.name):
                matched.append(directory / entry.name)
    return matched


def _subdirectories(directory: Path, ignored: FrozenSet[str]) -> List[Path]:
    subdirs: List[Path] = []
    with os.scandir(directory) as it:
        for entry in it:
            if not entry.is_dir():
                continue
            if is_excluded(entry.name, hidden=_is_hidden(entry), ignored=ignored):
                logger.debug("Skipping folder %s", os.path.join(directory, entry.name))
                continue
            subdirs.append(directory / entry.name)
    return subdirs


def walk(
    root: PathLike,
    patterns: Sequence[str],
    ignored_folder_names: Iterable[str] = IGNORED_FOLDER_NAMES,
) -> Iterator[Path]:
    """
    Yield absolute paths of files under *root* matching any of *patterns*.

    Depth-first over an explicit stack. Ignored, hidden and dot-prefixed
    folders are never entered, except *root* itself. A file matching several
    patterns is yielded once per pattern; order follows the filesystem, so
    callers sort. Directories or patterns that cannot be listed are skipped
    and only logged at DEBUG level.
    """
    matchers = compile_patterns(patterns)
    ignored = _fold(ignored_folder_names)
    stack: List[Path] = [Path(os.path.abspath(root))]

    while stack:
        current = stack.pop()

        for pattern, matches in matchers:
            try:
                matched = _match_files(current, matches)
            except OSError as e:
                logger.debug("Could not list %r in %s: %s", pattern, current, e)
                continue
            yield from matched

        try:
            subdirs = _subdirectories(current, ignored)
        except OSError as e:
            logger.debug("Could not list folders in %s: %s", current, e)
            continue
        stack.extend(subdirs)


# Aggregation
@dataclass
class AggregationResult:
    content: str = ""
    file_count: int = 0
    errors: List[Tuple[Path, str]] = field(default_factory=list)

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))


def _read_source(path: Path) -> str:
    # newline="" keeps the file's own line endings
    with path.open("r", encoding="utf-8-sig", newline="") as fh:
        return fh.read()


def aggregate(
    paths: Iterable[PathLike],
    root: PathLike,
    header: Optional[str] = None,
) -> AggregationResult:
    """
    Concatenate the files in *paths* into one annotated text.

    Paths are deduplicated and sorted by their full path string first. Each
    readable file becomes a ``### --- FILENAME: <rel> ---`` section followed
    by a fenced block; files that cannot be read or decoded as UTF-8 are
    recorded in ``errors`` and left out of ``content``.
    """
    root = Path(os.path.abspath(root))
    ordered = sorted({os.path.abspath(p) for p in paths})

    result = AggregationResult()
    parts: List[str] = [(DEFAULT_HEADER if header is None else header) + "\n"]

    for name in ordered:
        p = Path(name)
        try:
            text = _read_source(p)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Could not read %s: %s", p, e)
            result.errors.append((p, str(e)))
            continue

        lang = _lang_from_ext(p)
        parts.append(f"### --- FILENAME: {_relative(p, root)} ---\n")
        parts.append(f"```{lang}\n{text}\n```\n")
        result.file_count += 1

    result.content = "".join(parts)
    return result


# Output
def write_output(content: str, out_path: Path) -> int:
    """Write *content* to *out_path* as UTF-8 and return its size in bytes."""
    try:
        out_path = out_path.resolve()
    except (OSError, RuntimeError) as e:
        raise OutputError(f"Could not resolve output path '{out_path}': {e}")

    if not out_path.parent.exists():
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(f"Could not create directory '{out_path.parent}': {e}")

    try:
        with out_path.open("w", encoding="utf-8", newline="\n") as out_fh:
            out_fh.write(content)
        return out_path.stat().st_size
    except OSError as e:
        raise OutputError(f"Could not write to output file '{out_path}': {e}")


def fits_clipboard(size_bytes: int) -> bool:
    return size_bytes <= CLIPBOARD_LIMIT_BYTES


def copy_to_clipboard(text: str) -> bool:
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        logger.warning("Could not copy output to clipboard: %s", e)
        return False
    return True
