"""
unitypack .unitypackage exporter

A package is a gzip-compressed POSIX ustar stream. Every project file becomes
a folder named after its GUID holding:

- ``asset``       the file contents
- ``asset.meta``  the editor's sidecar, when present
- ``pathname``    the original project-relative path

Current implementation includes:

- Byte-exact 512-byte ustar headers with checksum verification on read and
  prefix splitting for long names (header)
- Single-pass streaming writer with atomic replace of the output (writer)
- gzip (default), uncompressed, or zstd output streams (codec)
- Sequential reader for listing, inspecting and extracting packages (reader)
- Project enumeration with GUID lookup from .meta sidecars (project)
- Export, list, info and extract via CLI
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "header",
    "entries",
    "writer",
    "reader",
    "codec",
    "project",
]

# Programmatic API: unitypack.writer.ArchiveWriter / export_assets and
# unitypack.reader.ArchiveReader; the CLI functions in unitypack.cli
# (cmd_export, cmd_list, cmd_info, cmd_extract) take normal parameters.
