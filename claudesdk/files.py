"""File handling: creation from several sources, MIME detection, validation and hashing."""

from __future__ import annotations

import base64
import binascii
import enum
import hashlib
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import BinaryIO, Optional, Sequence, Union

DEFAULT_MAX_SIZE = 10 * 1024 * 1024
OCTET_STREAM = "application/octet-stream"

_EXTENSION_TYPES = {
    # Images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "bmp": "image/bmp",
    # Documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "txt": "text/plain",
    "md": "text/markdown",
    "rtf": "application/rtf",
    # Spreadsheets
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    # Presentations
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # Audio
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    # Video
    "mp4": "video/mp4",
    "avi": "video/x-msvideo",
    "mov": "video/quicktime",
    # Archives
    "zip": "application/zip",
    "tar": "application/x-tar",
    "gz": "application/gzip",
    # Structured text
    "json": "application/json",
    "xml": "text/xml",
}


class FileError(Exception):
    """Base class for file errors."""


class FileMissingError(FileError):
    """The file at the given path does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File not found: {path}")
        self.path = path


class FileTooLargeError(FileError):
    """The file exceeds the permitted size."""

    def __init__(self, size: int, max_size: int) -> None:
        super().__init__(f"File too large: {size} bytes (max: {max_size} bytes)")
        self.size = size
        self.max_size = max_size


class InvalidMimeTypeError(FileError):
    """The file's MIME type is not among the allowed ones."""

    def __init__(self, mime_type: str, allowed: Sequence[str]) -> None:
        self.mime_type = mime_type
        self.allowed = list(allowed)
        super().__init__(f"Invalid MIME type: {mime_type} (allowed: {self.allowed!r})")


class InvalidBase64Error(FileError):
    """The base64 payload could not be decoded."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid base64 data: {detail}")


class FileDataKind(enum.Enum):
    """Where a file's content lives."""

    BYTES = "bytes"
    BASE64 = "base64"
    PATH = "path"
    TEMP_FILE = "temp_file"


def _essence(mime_type: str) -> str:
    return mime_type.split(";", 1)[0].strip().lower()


def _top_level(mime_type: str) -> str:
    return _essence(mime_type).split("/", 1)[0]


def _decode_base64(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidBase64Error(str(exc)) from exc


@dataclass(frozen=True)
class FileConstraints:
    """Limits a file must satisfy."""

    max_size: int = DEFAULT_MAX_SIZE
    allowed_types: Optional[Sequence[str]] = None
    require_hash: bool = False


@dataclass
class File:
    """A file ready to be sent to the API."""

    name: str
    mime_type: str
    data: Union[bytes, str, Path]
    kind: FileDataKind
    size: int
    hash: Optional[str] = field(default=None)

    @classmethod
    def from_bytes(cls, name: str, data: bytes, mime_type: Optional[str] = None) -> "File":
        """Create a file held in memory."""
        content = bytes(data)
        if mime_type is None:
            mime_type = detect_mime_type(name, content)
        return cls(name, mime_type, content, FileDataKind.BYTES, len(content))

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "File":
        """Create a file that is read lazily from disk."""
        path = Path(path)
        if not path.exists():
            raise FileMissingError(str(path))
        size = path.stat().st_size
        name = path.name or "file"
        return cls(name, detect_mime_type(name, None), path, FileDataKind.PATH, size)

    @classmethod
    def from_base64(cls, name: str, base64_data: str, mime_type: Optional[str] = None) -> "File":
        """Create a file from base64-encoded content."""
        decoded = _decode_base64(base64_data)
        if mime_type is None:
            mime_type = detect_mime_type(name, decoded)
        return cls(name, mime_type, base64_data, FileDataKind.BASE64, len(decoded))

    @classmethod
    def from_stream(cls, stream: BinaryIO, name: str, mime_type: Optional[str] = None) -> "File":
        """Create a file by reading a binary stream to its end."""
        content = stream.read()
        if mime_type is None:
            mime_type = detect_mime_type(name, content)
        return cls(name, mime_type, content, FileDataKind.BYTES, len(content))

    def validate(self, constraints: FileConstraints) -> None:
        """Raise if the file breaks the given constraints."""
        if self.size > constraints.max_size:
            raise FileTooLargeError(self.size, constraints.max_size)
        if constraints.allowed_types is not None:
            own = _essence(self.mime_type)
            if not any(_essence(allowed) == own for allowed in constraints.allowed_types):
                raise InvalidMimeTypeError(self.mime_type, list(constraints.allowed_types))

    def to_bytes(self) -> bytes:
        """Return the file's content."""
        if self.kind is FileDataKind.BYTES:
            return self.data  # type: ignore[return-value]
        if self.kind is FileDataKind.BASE64:
            return _decode_base64(self.data)  # type: ignore[arg-type]
        return Path(self.data).read_bytes()  # type: ignore[arg-type]

    def to_base64(self) -> str:
        """Return the file's content encoded as base64."""
        if self.kind is FileDataKind.BASE64:
            return self.data  # type: ignore[return-value]
        return base64.b64encode(self.to_bytes()).decode("ascii")

    def calculate_hash(self) -> str:
        """Compute the SHA-256 digest, store it on the file and return it."""
        digest = hashlib.sha256(self.to_bytes()).hexdigest()
        self.hash = digest
        return digest

    def verify_hash(self, expected_hash: str) -> bool:
        """Tell whether the content's SHA-256 digest matches the expected one."""
        return hashlib.sha256(self.to_bytes()).hexdigest() == expected_hash

    def is_image(self) -> bool:
        return _top_level(self.mime_type) == "image"

    def is_text(self) -> bool:
        return _top_level(self.mime_type) == "text"

    def is_application(self) -> bool:
        return _top_level(self.mime_type) == "application"

    def __str__(self) -> str:
        return f"File {{ name: {self.name}, type: {self.mime_type}, size: {self.size} bytes }}"


class FileSourceKind(enum.Enum):
    """The kinds of input a file can be built from."""

    BYTES = "bytes"
    BASE64 = "base64"
    PATH = "path"
    STREAM = "stream"


@dataclass(frozen=True)
class FileSource:
    """An input for building a file; ``name`` is only used for streams."""

    kind: FileSourceKind
    value: object
    name: Optional[str] = None


def to_file(
    source: FileSource,
    name: Optional[str] = None,
    mime_type: Optional[str] = None,
) -> File:
    """Create a file from any supported source."""
    if source.kind is FileSourceKind.BYTES:
        return File.from_bytes(name or "file", source.value, mime_type)  # type: ignore[arg-type]
    if source.kind is FileSourceKind.BASE64:
        return File.from_base64(name or "file", source.value, mime_type)  # type: ignore[arg-type]
    if source.kind is FileSourceKind.PATH:
        return File.from_path(source.value)  # type: ignore[arg-type]
    resolved = name if name is not None else source.name
    return File.from_stream(source.value, resolved or "file", mime_type)  # type: ignore[arg-type]


def _extension(filename: str) -> Optional[str]:
    base = PurePath(filename).name
    if not base or base == "..":
        return None
    dot = base.rfind(".")
    if dot <= 0:
        return None
    return base[dot + 1:]


def detect_mime_type(filename: str, data: Optional[bytes] = None) -> str:
    """Guess a MIME type from the file extension, else from leading magic bytes."""
    extension = _extension(filename)
    if extension is not None:
        return _EXTENSION_TYPES.get(extension.lower(), OCTET_STREAM)

    if data is not None and len(data) >= 4:
        if data[:4] == b"\x89PNG":
            return "image/png"
        if data[:2] == b"\xff\xd8":
            return "image/jpeg"
        if data[:4] == b"%PDF":
            return "application/pdf"
        if data[:3] == b"GIF":
            return "image/gif"

    return OCTET_STREAM


class FileBuilder:
    """Builds a file from a source, validating it and optionally hashing it."""

    def __init__(self) -> None:
        self._name: Optional[str] = None
        self._mime_type: Optional[str] = None
        self._constraints = FileConstraints()
        self._calculate_hash = False

    def name(self, name: str) -> "FileBuilder":
        self._name = name
        return self

    def mime_type(self, mime_type: str) -> "FileBuilder":
        self._mime_type = mime_type
        return self

    def constraints(self, constraints: FileConstraints) -> "FileBuilder":
        self._constraints = constraints
        return self

    def with_hash(self) -> "FileBuilder":
        self._calculate_hash = True
        return self

    def build(self, source: FileSource) -> File:
        """Create the file, check it against the constraints and hash it if asked."""
        file = to_file(source, self._name, self._mime_type)
        file.validate(self._constraints)
        if self._calculate_hash:
            file.calculate_hash()
        return file