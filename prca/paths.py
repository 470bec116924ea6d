"""Path normalisation and path-relative equality.

Analysis tools and the pull request service rarely agree on how a file is
spelled: one reports ``C:\\agent\\src\\App.ts``, the other ``src/app.ts``.
Two paths are considered equal when the relative path from one to the other
is empty, i.e. both resolve to the same location once separators, ``.`` and
``..`` segments, relative-vs-absolute form and letter case are normalised.
"""

from __future__ import annotations

import os
import posixpath
import re
from typing import Iterable

_DRIVE_RE = re.compile(r"^[A-Za-z]:/")


def _is_absolute(path: str) -> bool:
    return path.startswith("/") or bool(_DRIVE_RE.match(path))


def normalize_path(
    path: str,
    base_dir: str | None = None,
    case_sensitive: bool = False,
) -> str:
    """Return the canonical form of *path* used for comparisons.

    Backslashes become forward slashes, relative paths are resolved against
    *base_dir* (the current working directory when omitted) and redundant
    segments are collapsed.  The result is lower-cased unless
    *case_sensitive* is set.
    """
    text = path.strip().replace("\\", "/")
    if not _is_absolute(text):
        root = (base_dir if base_dir is not None else os.getcwd()).replace("\\", "/")
        text = f"{root.rstrip('/')}/{text}"
    text = posixpath.normpath(text)
    # normpath keeps a leading "//"; collapse it like any other separator run
    if text.startswith("//"):
        text = "/" + text.lstrip("/")
    return text if case_sensitive else text.lower()


def paths_equal(
    a: str,
    b: str,
    base_dir: str | None = None,
    case_sensitive: bool = False,
) -> bool:
    """True iff *a* and *b* resolve to the same location."""
    return normalize_path(a, base_dir, case_sensitive) == normalize_path(b, base_dir, case_sensitive)


def find_matching_path(
    path: str,
    candidates: Iterable[str],
    base_dir: str | None = None,
    case_sensitive: bool = False,
) -> str | None:
    """Return the first entry of *candidates* equal to *path*, else ``None``."""
    target = normalize_path(path, base_dir, case_sensitive)
    for candidate in candidates:
        if normalize_path(candidate, base_dir, case_sensitive) == target:
            return candidate
    return None
