from __future__ import annotations

import getpass
import hashlib
import os
import re
from typing import Dict, Iterator, List, Optional, Tuple

from .constants import (
    EXPORT_ROOTS,
    META_EXT,
    MANIFEST_PATH,
    MANIFEST_GUID,
    PACKAGE_EXT,
    DEFAULT_PACKAGE_NAME,
)
from .entries import Asset
from .pathutil import norm_path


_GUID_RE = re.compile(rb"^guid:\s*([0-9a-fA-F]{32})\s*$", re.MULTILINE)


def _is_hidden(name: str) -> bool:
    # the editor does not import dot-files or names ending in '~'
    return name.startswith(".") or name.endswith("~")


def collect_asset_paths(project_root: str) -> List[str]:
    """List exportable files relative to ``project_root``.

    Regular files under Assets/ and ProjectSettings/ (sidecars and hidden
    entries excluded) in sorted order, followed by Packages/manifest.json when
    the project has one.
    """
    paths: List[str] = []
    for top in EXPORT_ROOTS:
        base = os.path.join(project_root, top)
        if not os.path.isdir(base):
            continue
        for root, dirnames, filenames in os.walk(base):
            # prune symlinked and hidden directories
            dirnames[:] = [
                d for d in dirnames if not _is_hidden(d) and not os.path.islink(os.path.join(root, d))
            ]
            for fn in filenames:
                if fn.endswith(META_EXT) or _is_hidden(fn):
                    continue
                full = os.path.join(root, fn)
                if not os.path.isfile(full):
                    continue
                paths.append(norm_path(os.path.relpath(full, start=project_root)))
    paths.sort()
    if os.path.isfile(os.path.join(project_root, *MANIFEST_PATH.split("/"))):
        paths.append(MANIFEST_PATH)
    return paths


def parse_guid(meta: bytes) -> Optional[str]:
    m = _GUID_RE.search(meta)
    if m is None:
        return None
    return m.group(1).decode("ascii").lower()


def read_guid(meta_path: str) -> Optional[str]:
    """Return the ``guid:`` value of a .meta sidecar, or None if absent."""
    try:
        with open(meta_path, "rb") as fh:
            return parse_guid(fh.read())
    except FileNotFoundError:
        return None


def fallback_guid(rel_path: str) -> str:
    if rel_path == MANIFEST_PATH:
        return MANIFEST_GUID
    # stable 32 hex digits for files without a sidecar (e.g. ProjectSettings)
    return hashlib.md5(rel_path.encode("utf-8")).hexdigest()


def guid_for(project_root: str, rel_path: str, meta: Optional[bytes] = None) -> str:
    """GUID for a project file: from its sidecar, else a stable fallback.

    ``meta`` is the sidecar content when the caller has already read it;
    otherwise the sidecar next to the file is consulted.
    """
    if meta is not None:
        guid = parse_guid(meta)
    else:
        full = os.path.join(project_root, *rel_path.split("/"))
        guid = read_guid(full + META_EXT)
    return guid or fallback_guid(rel_path)


def iter_assets(
    project_root: str,
    *,
    user: str = "",
    group: str = "",
    paths: Optional[List[str]] = None,
) -> Iterator[Asset]:
    """Lazily read each exportable file into an Asset.

    Only one file (and its sidecar) is held in memory at a time.

    Args:
        project_root: Project directory containing Assets/.
        user: Owner user name written into every header.
        group: Owner group name written into every header.
        paths: Relative paths to export; defaults to collect_asset_paths().

    Raises:
        ValueError: if two files claim the same GUID.
    """
    seen: Dict[str, str] = {}
    for rel in (paths if paths is not None else collect_asset_paths(project_root)):
        rel = norm_path(rel)
        full = os.path.join(project_root, *rel.split("/"))
        with open(full, "rb") as fh:
            data = fh.read()
        mtime = int(os.path.getmtime(full))

        meta: Optional[bytes] = None
        meta_mtime: Optional[int] = None
        meta_path = full + META_EXT
        if os.path.isfile(meta_path):
            with open(meta_path, "rb") as fh:
                meta = fh.read()
            meta_mtime = int(os.path.getmtime(meta_path))

        guid = guid_for(project_root, rel, meta)
        if guid in seen:
            raise ValueError(f"Duplicate GUID {guid} for {seen[guid]} and {rel}")
        seen[guid] = rel

        yield Asset(
            guid=guid,
            data=data,
            pathname=rel,
            mtime=mtime,
            user=user,
            group=group,
            meta=meta,
            meta_mtime=meta_mtime,
        )


def is_project(project_root: str) -> bool:
    return os.path.isdir(os.path.join(project_root, "Assets"))


def default_owner() -> Tuple[str, str]:
    """Current account name, used for both the user and group header fields."""
    try:
        name = getpass.getuser()
    except (KeyError, OSError):
        name = ""
    return name, name


def default_output_path(project_root: str) -> str:
    name = os.path.basename(os.path.abspath(project_root))
    if not name:
        return DEFAULT_PACKAGE_NAME
    return name + PACKAGE_EXT
