"""File filters applied to diff fragments before a review pass."""

from __future__ import annotations

import fnmatch

NON_CODE_EXTENSIONS = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".bmp",
    ".pdf",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
    ".otf",
    ".mp4",
    ".mp3",
    ".wav",
    ".ogg",
    ".zip",
    ".tar",
    ".gz",
    ".rar",
    ".7z",
    ".lock",  # e.g. package-lock.json, Pipfile.lock
}


def is_code_file(file_name: str) -> bool:
    return not any(file_name.lower().endswith(ext) for ext in NON_CODE_EXTENSIONS)


def is_excluded(file_path: str, patterns: list[str] | tuple[str, ...]) -> bool:
    """Return True if file_path matches any exclude pattern.

    Patterns are fnmatch globs tried against the full path and the basename
    ("src/gen/*.py", "*.min.js"), or directory names matching any file inside
    that tree ("migrations/", "vendor").
    """
    basename = file_path.rsplit("/", 1)[-1]
    for pattern in patterns:
        if fnmatch.fnmatch(file_path, pattern) or fnmatch.fnmatch(basename, pattern):
            return True
        prefix = pattern.rstrip("/") + "/"
        if file_path.startswith(prefix) or ("/" + prefix) in file_path:
            return True
    return False


def should_review(file_path: str, patterns: list[str] | tuple[str, ...] = ()) -> bool:
    return is_code_file(file_path) and not is_excluded(file_path, patterns)
