"""Partition a remote listing into files and folders."""

from __future__ import annotations

import posixpath
from collections.abc import Collection, Iterable

from dropbox_nodes.remote.models import RemoteEntry


def file_extension(name: str) -> str:
    """Return the extension of a file name including the dot, case preserved."""
    return posixpath.splitext(name)[1]


def classify_files(
    entries: Iterable[RemoteEntry], allowed_extensions: Collection[str]
) -> list[RemoteEntry]:
    """Return file entries whose extension is in the allow-list.

    Matching is case-sensitive. Entries without an extension never match.

    Args:
        entries: Raw listing entries.
        allowed_extensions: Extensions including the dot (e.g. ".md").

    Returns:
        Matching file entries in listing order.
    """
    matched: list[RemoteEntry] = []
    for entry in entries:
        if not entry.is_file:
            continue
        ext = file_extension(entry.name)
        if ext and ext in allowed_extensions:
            matched.append(entry)
    return matched


def classify_folders(entries: Iterable[RemoteEntry]) -> list[RemoteEntry]:
    """Return folder entries in listing order."""
    return [entry for entry in entries if entry.is_folder]
