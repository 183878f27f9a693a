class UnityPackError(Exception):
    """Base class for unitypack-specific errors."""


# Header encoding
class FieldOverflow(UnityPackError, ValueError):
    """A value does not fit its fixed-width header field."""

    def __init__(self, field: str, value, width: int, message: str = ""):
        super().__init__(message or f"{field} value {value!r} does not fit in {width} bytes")
        self.field = field
        self.value = value
        self.width = width


class NameTooLong(FieldOverflow):
    """A member name cannot be split across the ustar name and prefix fields."""

    def __init__(self, name: str):
        super().__init__("name", name, 100, f"Name cannot be split to fit ustar name/prefix fields: {name!r}")


# Header decoding
class HeaderFormatError(UnityPackError, ValueError):
    pass


class CorruptHeader(UnityPackError, ValueError):
    def __init__(self, name: str, stored: int, computed: int):
        super().__init__(
            f"Header checksum mismatch for {name!r}: stored {stored:o}, computed {computed:o}"
        )
        self.name = name
        self.stored = stored
        self.computed = computed


# Stream level
class TruncatedArchive(UnityPackError, EOFError):
    pass


class ExportIOError(UnityPackError, OSError):
    """The output sink refused bytes; the export was aborted."""
