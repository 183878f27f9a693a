from __future__ import annotations

import os
import sys
import time
import argparse
import zlib

from typing import List, Optional

from unitypack.codec import codec_from_name, codec_name, sniff_codec
from unitypack.constants import CODEC_NAMES
from unitypack.errors import UnityPackError
from unitypack.project import (
    collect_asset_paths,
    default_output_path,
    default_owner,
    is_project,
    iter_assets,
)
from unitypack.reader import ArchiveReader
from unitypack.writer import export_assets


def cmd_export(
    project: str,
    *,
    output: Optional[str] = None,
    user: Optional[str] = None,
    group: Optional[str] = None,
    codec: str = "gzip",
    level: Optional[int] = None,
    quiet: bool = False,
) -> bool:
    """Export a whole project (Assets, ProjectSettings, package manifest) to a package.

    Args:
        project: Project directory containing an Assets folder.
        output: Destination package path; defaults to ``<project-name>.unitypackage``.
        user: Owner user name for headers; defaults to the current account.
        group: Owner group name for headers; defaults to the user name.
        codec: Compression codec name ("gzip", "none" or "zstd").
        level: Optional compression level.
        quiet: Only print the final summary.
    """
    if not is_project(project):
        raise FileNotFoundError(f"No Assets folder in {project}; not a project directory")
    codec_id = codec_from_name(codec)
    out = output or default_output_path(project)
    default_user, default_group = default_owner()
    user = user if user is not None else default_user
    group = group if group is not None else (user or default_group)

    paths = collect_asset_paths(project)
    total = len(paths) or 1

    def _progress(i: int, asset) -> None:
        if not quiet:
            pct = (i + 1) * 100.0 / total
            print(f" {pct:6.2f}% exporting: {asset.pathname}")

    summary = export_assets(
        iter_assets(project, user=user, group=group, paths=paths),
        out,
        codec_id=codec_id,
        level=level,
        progress=_progress,
    )
    dt = max(0.000001, summary.elapsed)
    mib = summary.tar_bytes / (1024.0 * 1024.0)
    print(
        f"Done: {summary.assets} assets, {summary.members} members; "
        f"{mib:.2f} MiB tar -> {summary.package_bytes} bytes {codec_name(codec_id)} in {dt:.1f}s; "
        f"wrote {out}"
    )
    return True


def cmd_list(archive: str) -> bool:
    """List the assets in a package: identifier, content size and original path."""
    with ArchiveReader(archive) as r:
        for asset in r.assets():
            if asset.data is None:
                print(f"{asset.guid}\t-\t{asset.pathname}/")
            else:
                print(f"{asset.guid}\t{len(asset.data)}\t{asset.pathname}")
    return True


def cmd_info(archive: str, *, member: Optional[str] = None) -> bool:
    """Dump header fields of every member (or only ``member``)."""
    with open(archive, "rb") as fh:
        head = fh.read(4)
    found = False
    with ArchiveReader(archive) as r:
        headers = r.list()
        if member is None:
            print(f"Package: {archive}")
            print(f"  Codec: {codec_name(sniff_codec(head))}")
            print(f"  Members: {len(headers)}")
            print(f"    Containers: {len([h for h in headers if h.is_dir])}")
            print(f"    Files: {len([h for h in headers if not h.is_dir])}")
        for h in headers:
            if member is not None and h.path != member:
                continue
            found = True
            print()
            print(h.describe())
    if member is not None and not found:
        raise FileNotFoundError(f"No member named {member!r} in {archive}")
    return True


def cmd_extract(archive: str, *, outdir: str = ".", overwrite: bool = False, quiet: bool = False) -> bool:
    """Restore every asset (and its .meta sidecar) to its original project path under ``outdir``."""
    t0 = time.time()
    with ArchiveReader(archive) as r:
        written = r.extract(outdir, overwrite=overwrite)
    if not quiet:
        for path in written:
            print(f"  extracting: {os.path.relpath(path, outdir)}")
    dt = max(0.000001, time.time() - t0)
    print(f"Done: extracted {len(written)} paths to {outdir} in {dt:.1f}s")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="unitypack",
        description="Export projects to .unitypackage archives and inspect them",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_export = sub.add_parser("export", help="Export an entire project")
    ap_export.add_argument("project", help="Project directory (contains Assets/)")
    ap_export.add_argument("--output", "-o", help="Output package path (default: <project-name>.unitypackage)")
    ap_export.add_argument("--user", help="Owner user name written to headers (default: current account)")
    ap_export.add_argument("--group", help="Owner group name written to headers (default: same as user)")
    ap_export.add_argument(
        "--codec",
        choices=sorted(CODEC_NAMES),
        default="gzip",
        help="Compression applied to the tar stream (default: gzip, which the importer expects)",
    )
    ap_export.add_argument("--level", type=int, help="Compression level")
    ap_export.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_list = sub.add_parser("list", help="List package assets")
    ap_list.add_argument("archive", help="Package path")

    ap_info = sub.add_parser("info", help="Show package header details")
    ap_info.add_argument("archive", help="Package path")
    ap_info.add_argument("--member", help="Only show the header of this member")

    ap_extract = sub.add_parser("extract", help="Restore assets to their original paths")
    ap_extract.add_argument("archive", help="Package path")
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("--overwrite", action="store_true", help="Replace files that already exist")
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "export":
            cmd_export(
                args.project,
                output=args.output,
                user=args.user,
                group=args.group,
                codec=args.codec,
                level=args.level,
                quiet=args.quiet,
            )
        elif args.cmd == "list":
            cmd_list(args.archive)
        elif args.cmd == "info":
            cmd_info(args.archive, member=args.member)
        elif args.cmd == "extract":
            cmd_extract(args.archive, outdir=args.outdir, overwrite=args.overwrite, quiet=args.quiet)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (UnityPackError, OSError, EOFError, zlib.error) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
