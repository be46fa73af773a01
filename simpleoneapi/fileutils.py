"""Path and file helpers."""

from __future__ import annotations

import os


def get_absolute_path(path: str) -> str:
    """Return the absolute, normalised form of ``path``."""
    return os.path.abspath(path)


def resolve_relative_path_to_absolute(filename: str) -> str:
    """Return ``filename`` unchanged if absolute, else join it onto the working directory."""
    if os.path.isabs(filename):
        return filename
    return os.path.normpath(os.path.join(os.getcwd(), filename))


def get_absolute_path_dir(filename: str) -> str:
    """Return the absolute directory that contains ``filename``."""
    if os.path.isabs(filename):
        return os.path.normpath(os.path.dirname(filename))
    absolute = os.path.normpath(os.path.join(os.getcwd(), filename))
    return os.path.dirname(absolute)


def _base_name(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip(os.sep)
    if not stripped:
        return os.sep
    return os.path.basename(stripped)


def get_file_name_and_type(file_path: str) -> tuple[str, str]:
    """Split the last path element into its name and its extension (without the dot)."""
    base = _base_name(file_path)
    dot = base.rfind(".")
    extension = base[dot:] if dot >= 0 else ""
    file_type = extension.removeprefix(".")
    file_name = base.removesuffix(file_type).removesuffix(".")
    return file_name, file_type


def is_simple_file_name(file_name: str) -> bool:
    """Tell whether ``file_name`` is a bare name with no directory part."""
    return not file_name.startswith("/") and "/" not in file_name


def file_exists(filename: str) -> bool:
    """Tell whether ``filename`` exists; only a missing entry counts as absent."""
    try:
        os.stat(filename)
    except FileNotFoundError:
        return False
    except OSError:
        return True
    return True