"""Terraform file-set snapshots.

A FileSet maps forward-slash relative paths to file text. It is immutable:
edits return a new FileSet and leave the original untouched. The flat form
is what the backend accepts in ``tf_files``; the nested tree form exists for
display and for history payloads that arrive nested.
"""

from collections.abc import Iterator, Mapping
from typing import Any

FileTree = dict[str, "str | FileTree"]

_LANGUAGES: dict[str, str] = {
    ".tf": "hcl",
    ".tfvars": "hcl",
    ".hcl": "hcl",
    ".sh": "shell",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".md": "markdown",
}


def normalize_path(path: str) -> str:
    """Normalize a relative file path to the canonical forward-slash form.

    Raises ValueError for empty paths, empty segments and parent references.
    """
    cleaned = path.replace("\\", "/").strip()
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    cleaned = cleaned.lstrip("/")
    if not cleaned:
        raise ValueError("File path must not be empty")

    parts = cleaned.split("/")
    for part in parts:
        if part in ("", ".", ".."):
            raise ValueError(f"Invalid file path: {path!r}")
    return "/".join(parts)


def file_language(path: str) -> str:
    """Editor language identifier for a file path."""
    name = path.rsplit("/", 1)[-1].lower()
    for suffix, language in _LANGUAGES.items():
        if name.endswith(suffix):
            return language
    return "plaintext"


class FileSet(Mapping[str, str]):
    """Immutable mapping of relative path to file content."""

    __slots__ = ("_files",)

    def __init__(self, files: Mapping[str, str] | None = None) -> None:
        normalized: dict[str, str] = {}
        for path, content in (files or {}).items():
            if not isinstance(content, str):
                raise TypeError(f"Content for {path!r} must be a string")
            normalized[normalize_path(path)] = content
        self._files = normalized

    @classmethod
    def from_tree(cls, tree: Mapping[str, Any] | None) -> "FileSet":
        """Flatten a nested (or already flat) tree into a FileSet.

        Directory nodes are mappings; leaves are strings. Keys may already
        contain slashes, so flat and nested payloads both load.
        """
        flat: dict[str, str] = {}

        def walk(node: Mapping[str, Any], prefix: str) -> None:
            for key, value in node.items():
                path = f"{prefix}/{key}" if prefix else key
                if isinstance(value, Mapping):
                    walk(value, path)
                elif isinstance(value, str):
                    flat[path] = value
                elif value is None:
                    flat[path] = ""
                else:
                    raise TypeError(f"Unsupported file-tree node at {path!r}")

        walk(tree or {}, "")
        return cls(flat)

    def __getitem__(self, path: str) -> str:
        return self._files[normalize_path(path)]

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            return normalize_path(path) in self._files
        except ValueError:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FileSet):
            return self._files == other._files
        if isinstance(other, Mapping):
            return self._files == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._files.items()))

    def __repr__(self) -> str:
        return f"FileSet({sorted(self._files)!r})"

    def with_file(self, path: str, content: str) -> "FileSet":
        """Return a copy with ``path`` set to ``content``."""
        updated = dict(self._files)
        updated[normalize_path(path)] = content
        return FileSet(updated)

    def without_file(self, path: str) -> "FileSet":
        """Return a copy with ``path`` removed. Missing paths raise KeyError."""
        key = normalize_path(path)
        if key not in self._files:
            raise KeyError(path)
        return FileSet({p: c for p, c in self._files.items() if p != key})

    def has_content(self) -> bool:
        """True when at least one file has non-whitespace content."""
        return any(content.strip() for content in self._files.values())

    def first_path(self) -> str | None:
        return next(iter(self._files), None)

    def to_payload(self) -> dict[str, str]:
        """Plain dict for the ``tf_files`` request field."""
        return dict(self._files)

    def to_tree(self) -> FileTree:
        """Build the nested directory view used for display."""
        tree: FileTree = {}
        for path, content in self._files.items():
            *dirs, name = path.split("/")
            node = tree
            for directory in dirs:
                child = node.setdefault(directory, {})
                if isinstance(child, str):
                    raise ValueError(f"Path {path!r} conflicts with file {directory!r}")
                node = child
            if isinstance(node.get(name), dict):
                raise ValueError(f"Path {path!r} conflicts with a directory")
            node[name] = content
        return tree


EMPTY_FILESET = FileSet()
