# Block layout
BLOCK_SIZE = 512
TERMINATOR_SIZE = 2 * BLOCK_SIZE  # two zero blocks end the archive

# Header field widths (bytes)
NAME_LEN = 100
PREFIX_LEN = 155
USER_NAME_LEN = 32
GROUP_NAME_LEN = 32

CHECKSUM_OFFSET = 148
CHECKSUM_LEN = 8

USTAR_MAGIC = "ustar"
USTAR_VERSION = "00"

# Type flag characters written by the exporter
TYPE_FILE = "0"
TYPE_DIRECTORY = "5"

# Default permissions and placeholder owner ids
DEFAULT_FILE_MODE = 0o644
DEFAULT_DIR_MODE = 0o755
DEFAULT_OWNER_ID = 0o765
DEFAULT_GROUP_ID = 0o24

# Member naming convention read by the importer
ASSET_SUFFIX = "asset"
META_SUFFIX = "asset.meta"
PATHNAME_SUFFIX = "pathname"
META_EXT = ".meta"

# Identifier used for the package manager manifest, which has no sidecar GUID
MANIFEST_PATH = "Packages/manifest.json"
MANIFEST_GUID = "packagemanagermanifest"

# Project folders included in a full export
EXPORT_ROOTS = ("Assets", "ProjectSettings")

PACKAGE_EXT = ".unitypackage"
DEFAULT_PACKAGE_NAME = "MyUnityProject" + PACKAGE_EXT


# Codec IDs (0=none, 1=gzip, 2=zstd)
CODEC_NONE = 0
CODEC_GZIP = 1
CODEC_ZSTD = 2

CODEC_NAMES = {
    "none": CODEC_NONE,
    "gzip": CODEC_GZIP,
    "zstd": CODEC_ZSTD,
}

DEFAULT_CODEC_ID = CODEC_GZIP
DEFAULT_GZIP_LEVEL = 6
DEFAULT_ZSTD_LEVEL = 3

GZIP_MAGIC = b"\x1f\x8b"
ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"

# Logical entry kinds (0=file, 1=container)
KIND_FILE = 0
KIND_CONTAINER = 1
