"""Filename sanitization — the dedup fingerprint of a remote record."""

from __future__ import annotations

import re

MAX_NAME_LENGTH = 255
MAX_FILENAME_BYTES = 255
UNTITLED = "Untitled"

_ILLEGAL_RE = re.compile(r'[<>:"/\\|?*]')
_LEADING_DOTS_RE = re.compile(r"^\.+")
_TRAILING_RE = re.compile(r"[. ]+$")


def sanitize_name(title: str) -> str:
    """Turn a remote title into a safe local filename and dedup key.

    - ``<>:"/\\|?*`` become ``_``
    - a run of leading dots becomes a single ``_``
    - trailing dots and spaces are dropped
    - an empty result becomes ``_``
    - the result is cut to 255 characters

    >>> sanitize_name("a/b:c*d?")
    'a_b_c_d_'
    >>> sanitize_name("...")
    '_'
    """
    name = _ILLEGAL_RE.sub("_", title)
    name = _LEADING_DOTS_RE.sub("_", name)
    name = _TRAILING_RE.sub("", name)
    if not name:
        name = "_"
    return name[:MAX_NAME_LENGTH]


def filename_for(name: str, suffix: str) -> str:
    """Build an on-disk filename from *name* that fits the filesystem limit.

    Filesystems cap a filename at 255 bytes, not characters, so *name* is
    cut on its UTF-8 encoding to leave room for *suffix*. A multi-byte
    character is never split.

    >>> filename_for("Roadmap", ".md")
    'Roadmap.md'
    >>> len(filename_for("漢" * 100, ".md").encode("utf-8"))
    252
    """
    budget = MAX_FILENAME_BYTES - len(suffix.encode("utf-8"))
    stem = name.encode("utf-8")[:budget].decode("utf-8", errors="ignore")
    return f"{stem}{suffix}"
