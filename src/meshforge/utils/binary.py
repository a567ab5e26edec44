"""Binary I/O utilities shared by the format codecs."""

import struct
from contextlib import contextmanager
from enum import Enum
from typing import BinaryIO, Iterator, List, Optional, Tuple, Type, TypeVar
from io import BytesIO


# Longest payload a 1-2 byte length prefix can describe: 127 + 255 * 128
MAX_PREFIXED_STRING_LENGTH = 0x7FFF


class ByteOrder(Enum):
    """Byte order enum for struct packing/unpacking."""
    BIG_ENDIAN = ">"
    LITTLE_ENDIAN = "<"


class BinaryError(ValueError):
    """
    Error raised while reading or writing binary data.

    Carries the byte offset where the failing field starts and the dotted
    path of the field being processed, e.g. ``meshes[0].vertices[3].weights``.
    """

    def __init__(self, message: str, offset: Optional[int] = None, field: str = ""):
        self.message = message
        self.offset = offset
        self.field = field
        super().__init__(message)

    def __str__(self) -> str:
        context = []
        if self.field:
            context.append(f"field '{self.field}'")
        if self.offset is not None:
            context.append(f"offset {self.offset} (0x{self.offset:X})")
        if not context:
            return self.message
        return f"{self.message} [{', '.join(context)}]"


class BinaryReadError(BinaryError):
    """Decoding failure."""


class EndOfBufferError(BinaryReadError):
    """The buffer ended before a field could be read in full."""

    def __init__(self, requested: int, available: int, offset: Optional[int] = None,
                 field: str = ""):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Unexpected end of data: needed {requested} byte(s), {available} left",
            offset, field)


class StringDecodeError(BinaryReadError):
    """String bytes could not be decoded."""


class BinaryWriteError(BinaryError):
    """A value could not be encoded at its fixed field width."""


E = TypeVar("E", bound=BinaryError)


def encode_prefixed_string(value: str, encoding: str = "utf-8") -> bytes:
    """
    Encode a string with a 1-2 byte length prefix.

    Lengths below 128 take one byte. Longer payloads set the high bit of the
    first byte and carry ``length // 128`` in a second byte.
    """
    try:
        payload = value.encode(encoding)
    except UnicodeEncodeError as e:
        raise BinaryWriteError(f"Cannot encode {value!r} as {encoding}: {e.reason}") from e

    length = len(payload)
    if length > MAX_PREFIXED_STRING_LENGTH:
        raise BinaryWriteError(
            f"String of {length} bytes exceeds the {MAX_PREFIXED_STRING_LENGTH} byte limit")
    if length < 0x80:
        return bytes([length]) + payload
    return bytes([0x80 | (length % 0x80), length // 0x80]) + payload


def encode_null_terminated_string(value: str, encoding: str = "utf-8") -> bytes:
    """Encode a string followed by a single NUL byte."""
    try:
        payload = value.encode(encoding)
    except UnicodeEncodeError as e:
        raise BinaryWriteError(f"Cannot encode {value!r} as {encoding}: {e.reason}") from e
    if b"\0" in payload:
        raise BinaryWriteError(f"String {value!r} contains an embedded NUL")
    return payload + b"\0"


class IoBuffer:
    """
    Binary reader/writer with endian support.

    Every read checks that enough bytes remain and raises EndOfBufferError
    otherwise, so a short buffer never yields a partial value. Use
    :meth:`field` to label the data being processed; the label ends up in
    any error raised inside the block.
    """

    def __init__(self, stream: BinaryIO, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN):
        self.stream = stream
        self.byte_order = byte_order
        self._fields: List[str] = []
        self._size = self._measure()

    @classmethod
    def from_bytes(cls, data: bytes, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> 'IoBuffer':
        """Create from bytes."""
        return cls(BytesIO(data), byte_order)

    @classmethod
    def for_writing(cls, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> 'IoBuffer':
        """Create an empty in-memory buffer to write into."""
        return cls(BytesIO(), byte_order)

    def _measure(self) -> int:
        current = self.stream.tell()
        self.stream.seek(0, 2)  # Seek to end
        end = self.stream.tell()
        self.stream.seek(current)  # Seek back
        return end

    def getvalue(self) -> bytes:
        """Everything written so far (in-memory buffers only)."""
        return self.stream.getvalue()

    # Field context

    @contextmanager
    def field(self, name: str) -> Iterator[None]:
        """Label the fields read or written inside the block."""
        self._fields.append(name)
        try:
            yield
        finally:
            self._fields.pop()

    @property
    def field_path(self) -> str:
        """Dotted path of the field currently being processed."""
        return ".".join(self._fields)

    def error(self, error_cls: Type[E], message: str, offset: Optional[int] = None) -> E:
        """Build an error carrying the current field path and position."""
        if offset is None:
            offset = self.position
        return error_cls(message, offset=offset, field=self.field_path)

    # Position

    @property
    def position(self) -> int:
        """Current position in stream."""
        return self.stream.tell()

    @position.setter
    def position(self, value: int):
        """Seek to position."""
        self.stream.seek(value)

    @property
    def size(self) -> int:
        """Total length of the underlying data."""
        return self._size

    @property
    def remaining(self) -> int:
        """Bytes left between the position and the end."""
        return max(self._size - self.stream.tell(), 0)

    @property
    def has_more(self) -> bool:
        """Check if there are more bytes to read."""
        return self.remaining > 0

    # Reads

    def _require(self, count: int):
        available = self.remaining
        if available < count:
            raise EndOfBufferError(count, available, offset=self.position, field=self.field_path)

    def _unpack(self, code: str, size: int):
        self._require(size)
        return struct.unpack(f"{self.byte_order.value}{code}", self.stream.read(size))[0]

    def read_bytes(self, count: int) -> bytes:
        """Read exactly count raw bytes."""
        self._require(count)
        return self.stream.read(count)

    def read_byte(self) -> int:
        """Read single byte (0-255)."""
        self._require(1)
        return self.stream.read(1)[0]

    def read_uint8(self) -> int:
        """Read unsigned 8-bit integer."""
        return self.read_byte()

    def read_uint16(self) -> int:
        """Read unsigned 16-bit integer."""
        return self._unpack('H', 2)

    def read_uint32(self) -> int:
        """Read unsigned 32-bit integer."""
        return self._unpack('I', 4)

    def read_int32(self) -> int:
        """Read signed 32-bit integer."""
        return self._unpack('i', 4)

    def read_float(self) -> float:
        """Read 32-bit float."""
        return self._unpack('f', 4)

    def read_floats(self, count: int) -> Tuple[float, ...]:
        """Read count consecutive 32-bit floats."""
        size = 4 * count
        self._require(size)
        return struct.unpack(f"{self.byte_order.value}{count}f", self.stream.read(size))

    def _decode(self, data: bytes, encoding: str, offset: int) -> str:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as e:
            raise StringDecodeError(
                f"Invalid {encoding} string data: {e.reason}",
                offset=offset, field=self.field_path) from e

    def read_null_terminated_string(self, encoding: str = "utf-8") -> str:
        """Read bytes up to (and consuming) a NUL terminator."""
        start = self.position
        data = bytearray()
        while True:
            byte = self.read_byte()
            if byte == 0:
                break
            data.append(byte)
        return self._decode(bytes(data), encoding, start)

    def read_prefixed_string(self, encoding: str = "utf-8") -> str:
        """Read a string with a 1-2 byte length prefix (see encode_prefixed_string)."""
        start = self.position
        first = self.read_byte()
        length = first
        if first >= 0x80:
            length = (first % 0x80) + self.read_byte() * 0x80
        return self._decode(self.read_bytes(length), encoding, start)

    # Writes

    def _pack(self, code: str, value):
        try:
            data = struct.pack(f"{self.byte_order.value}{code}", value)
        except (struct.error, OverflowError) as e:
            raise BinaryWriteError(f"Cannot pack {value!r} as '{code}': {e}",
                                   offset=self.position, field=self.field_path) from e
        self.stream.write(data)

    def write_bytes(self, data: bytes):
        """Write raw bytes."""
        self.stream.write(data)

    def write_uint8(self, value: int):
        """Write unsigned 8-bit integer."""
        self._pack('B', value)

    def write_uint16(self, value: int):
        """Write unsigned 16-bit integer."""
        self._pack('H', value)

    def write_uint32(self, value: int):
        """Write unsigned 32-bit integer."""
        self._pack('I', value)

    def write_int32(self, value: int):
        """Write signed 32-bit integer."""
        self._pack('i', value)

    def write_float(self, value: float):
        """Write 32-bit float."""
        self._pack('f', value)

    def write_floats(self, values):
        """Write a sequence of 32-bit floats."""
        for value in values:
            self._pack('f', value)

    def write_prefixed_string(self, value: str, encoding: str = "utf-8"):
        """Write a string with a 1-2 byte length prefix."""
        self.stream.write(encode_prefixed_string(value, encoding))

    def write_null_terminated_string(self, value: str, encoding: str = "utf-8"):
        """Write a string followed by a NUL byte."""
        self.stream.write(encode_null_terminated_string(value, encoding))
