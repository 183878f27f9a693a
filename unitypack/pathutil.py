from __future__ import annotations

import os
import re

# "C:" style drive spec at the start of a segment
_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def norm_path(p: str) -> str:
    """Normalize a project-relative path to forward-slash form.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Drop empty and '.' segments
    - Reject '..' segments
    """
    p = p.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    if ".." in parts:
        raise ValueError(f"Path may not contain '..': {p!r}")
    return "/".join(parts)


def check_identifier(ident: str) -> str:
    """Validate an entry identifier used as a top-level member directory."""
    if not ident or not ident.strip():
        raise ValueError("Entry identifier may not be empty")
    if "/" in ident or "\\" in ident or ident in (".", ".."):
        raise ValueError(f"Entry identifier may not contain path separators: {ident!r}")
    return ident


def safe_join(root: str, rel: str) -> str:
    """Join an archived pathname under root, refusing anything that escapes it.

    Drive specs are rejected, and the resolved target (following any
    symlinks already on disk) must stay inside the resolved root.
    """
    rel = norm_path(rel)
    if not rel:
        raise ValueError("Empty pathname")
    parts = rel.split("/")
    for part in parts:
        if _DRIVE_RE.match(part) or os.path.splitdrive(part)[0]:
            raise ValueError(f"Pathname may not contain a drive: {rel!r}")
    target = os.path.join(root, *parts)
    root_real = os.path.realpath(root)
    if os.path.commonpath([root_real, os.path.realpath(target)]) != root_real:
        raise ValueError(f"Pathname escapes the output directory: {rel!r}")
    return target
