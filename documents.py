"""Enumerate the knowledge folder, honouring .healthmate_ignore.

Ignore rules are scoped to the knowledge folder itself: an enclosing
repository's .gitignore does not apply.
"""

from pathlib import Path

from pathspec import PathSpec

IGNORE_FILE = ".healthmate_ignore"

DEFAULT_IGNORE_PATTERNS = [
    ".git/",
    ".env",
    ".DS_Store",
    IGNORE_FILE,
]


def load_ignore_lines(path: Path) -> list[str]:
    if not path.exists():
        return []
    return path.read_text().splitlines()


def build_ignore_specs(folder: Path) -> list[tuple[PathSpec, Path]]:
    specs: list[tuple[PathSpec, Path]] = [
        (PathSpec.from_lines("gitwildmatch", DEFAULT_IGNORE_PATTERNS), folder),
    ]

    folder_lines = load_ignore_lines(folder / IGNORE_FILE)
    if folder_lines:
        specs.append((PathSpec.from_lines("gitwildmatch", folder_lines), folder))

    return specs


def is_ignored(path: Path, specs: list[tuple[PathSpec, Path]]) -> bool:
    for spec, base in specs:
        try:
            candidate = path.relative_to(base).as_posix()
        except ValueError:
            candidate = path.as_posix()
        if spec.match_file(candidate):
            return True
    return False


def scan_document_files(folder: Path) -> tuple[list[tuple[str, Path]], list[str]]:
    """Return (documents to upload, relative paths skipped by ignore rules).

    A missing folder yields nothing.
    """
    if not folder.is_dir():
        return [], []
    specs = build_ignore_specs(folder)
    entries: list[tuple[str, Path]] = []
    skipped: list[str] = []
    for file_path in sorted(folder.rglob("*")):
        if not file_path.is_file():
            continue
        rel_path = file_path.relative_to(folder).as_posix()
        if is_ignored(file_path, specs):
            skipped.append(rel_path)
        else:
            entries.append((rel_path, file_path))
    return entries, skipped


def iter_document_files(folder: Path) -> list[tuple[str, Path]]:
    """Return (relative posix path, absolute path) for every file to upload."""
    entries, _ = scan_document_files(folder)
    return entries
