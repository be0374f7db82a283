"""Binary point-cloud wire format for precipitation samples.

Layout (all little-endian, 4-byte aligned, no padding):

    [0, 4)          count       uint32
    [4, 8)          maxValue    float32
    [8, 8+4N)       latitudes   float32[N]
    [8+4N, 8+8N)    longitudes  float32[N]
    [8+8N, 8+12N)   intensities float32[N]

The three arrays are parallel: index ``i`` in each belongs to the same
sample. A buffer with ``count == 0`` is a valid empty cloud.

Decoding comes in two flavours. ``decode_point_cloud`` returns read-only
numpy views into the source buffer (zero copy); each view holds a reference
to the source through ``ndarray.base``, so the buffer lives as long as any
view does. Callers passing a mutable buffer (``bytearray``, writable
``memoryview``) must not modify it while views are alive.
``decode_point_cloud_copy`` does one bulk copy per array and returns owned,
writable, native-order arrays with no lifetime coupling.

Trailing bytes past ``8 + 12N`` are ignored by default (a longer buffer may
come from a newer producer) and reported via ``PointCloud.trailing_bytes``;
``strict=True`` rejects them.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, Iterator, NamedTuple

import numpy as np

from constants import (
    BYTES_PER_SAMPLE,
    FIELD_SIZE,
    FLOAT_DTYPE,
    HEADER_FORMAT,
    HEADER_SIZE,
    MAX_COUNT,
)

_HEADER = struct.Struct(HEADER_FORMAT)


class Sample(NamedTuple):
    lat: float
    lon: float
    value: float


# ─── Errors ───


class PointCloudError(ValueError):
    """Base class for point-cloud encode/decode failures.

    ``stage`` names the validation step that failed so a consumer can show
    a useful status line; ``expected``/``actual`` are byte (or sample)
    counts where they apply.
    """

    stage = "point_cloud"

    def __init__(self, message: str, *, expected: int | None = None, actual: int | None = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class TruncatedHeaderError(PointCloudError):
    stage = "header"


class TruncatedBodyError(PointCloudError):
    stage = "body"


class TrailingBytesError(PointCloudError):
    stage = "body"


class CountOverflowError(PointCloudError):
    stage = "encode"


# ─── Result type ───


@dataclass(frozen=True, eq=False)
class PointCloud:
    count: int
    max_value: float
    lats: np.ndarray
    lons: np.ndarray
    values: np.ndarray
    trailing_bytes: int = 0

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    @property
    def nbytes(self) -> int:
        return expected_length(self.count)

    def __len__(self) -> int:
        return self.count

    def samples(self) -> Iterator[Sample]:
        for lat, lon, value in zip(self.lats.tolist(), self.lons.tolist(), self.values.tolist()):
            yield Sample(lat, lon, value)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "maxValue": self.max_value,
            "lats": self.lats.tolist(),
            "lons": self.lons.tolist(),
            "values": self.values.tolist(),
        }


def expected_length(count: int) -> int:
    """Exact byte length of a buffer carrying ``count`` samples."""
    return HEADER_SIZE + BYTES_PER_SAMPLE * int(count)


# ─── Encoder ───


def _check_count(count: int) -> None:
    if count > MAX_COUNT:
        raise CountOverflowError(
            f"{count} samples do not fit the uint32 count field (max {MAX_COUNT})",
            expected=MAX_COUNT,
            actual=count,
        )


def encode_point_cloud(lats, lons, values) -> bytes:
    """Serialize three parallel columns into a point-cloud buffer.

    Columns may be any sequence or array of matching shape; multi-dimensional
    columns are flattened in C order. They are cast to little-endian float32
    whatever their original dtype or byte order. Intensities must be finite.
    """
    _check_count(len(values))

    lat32 = np.asarray(lats, dtype=FLOAT_DTYPE)
    lon32 = np.asarray(lons, dtype=FLOAT_DTYPE)
    val32 = np.asarray(values, dtype=FLOAT_DTYPE)
    if not (lat32.shape == lon32.shape == val32.shape):
        raise ValueError(f"Column length mismatch: lats={lat32.shape} lons={lon32.shape} values={val32.shape}")
    count = int(val32.size)
    _check_count(count)

    lat32 = np.ascontiguousarray(lat32).reshape(-1)
    lon32 = np.ascontiguousarray(lon32).reshape(-1)
    val32 = np.ascontiguousarray(val32).reshape(-1)
    if not np.isfinite(val32).all():
        raise ValueError(f"Intensities must be finite: {int((~np.isfinite(val32)).sum())} non-finite of {count}")

    # Max over the float32-rounded values so every stored intensity is <= maxValue.
    max_value = float(val32.max()) if count else 0.0

    return b"".join((_HEADER.pack(count, max_value), lat32.tobytes(), lon32.tobytes(), val32.tobytes()))


def encode_samples(samples: Iterable) -> bytes:
    """Serialize an iterable of ``(lat, lon, value)`` triples."""
    rows = list(samples)
    _check_count(len(rows))
    if not rows:
        return encode_point_cloud([], [], [])
    lats, lons, values = zip(*rows)
    return encode_point_cloud(lats, lons, values)


# ─── Decoder ───


def _read_header(view: memoryview) -> tuple[int, float]:
    if view.nbytes < HEADER_SIZE:
        raise TruncatedHeaderError(
            f"Buffer has {view.nbytes} bytes, header needs {HEADER_SIZE}",
            expected=HEADER_SIZE,
            actual=view.nbytes,
        )
    count, max_value = _HEADER.unpack_from(view, 0)
    return count, max_value


def _validate_body(view: memoryview, count: int, strict: bool) -> int:
    need = expected_length(count)
    have = view.nbytes
    if have < need:
        raise TruncatedBodyError(
            f"Header declares {count} samples ({need} bytes) but buffer has {have} bytes",
            expected=need,
            actual=have,
        )
    trailing = have - need
    if trailing and strict:
        raise TrailingBytesError(
            f"Buffer has {trailing} bytes past the declared {count} samples",
            expected=need,
            actual=have,
        )
    return trailing


def _decode(buffer, strict: bool, copy: bool) -> PointCloud:
    view = memoryview(buffer).cast("B")
    count, max_value = _read_header(view)
    trailing = _validate_body(view, count, strict)

    arrays = []
    for i in range(3):
        if count == 0:
            arr = np.empty(0, dtype=np.float32 if copy else FLOAT_DTYPE)
        else:
            offset = HEADER_SIZE + i * count * FIELD_SIZE
            arr = np.frombuffer(view, dtype=FLOAT_DTYPE, count=count, offset=offset)
        if copy:
            arr = arr.astype(np.float32)
        else:
            arr.flags.writeable = False
        arrays.append(arr)

    lats, lons, values = arrays
    return PointCloud(count, max_value, lats, lons, values, trailing)


def decode_point_cloud(buffer, *, strict: bool = False) -> PointCloud:
    """Decode a buffer into read-only views aliasing its memory."""
    return _decode(buffer, strict, copy=False)


def decode_point_cloud_copy(buffer, *, strict: bool = False) -> PointCloud:
    """Decode a buffer into owned, writable native-order float32 arrays."""
    return _decode(buffer, strict, copy=True)


# ─── Consumer layout helpers ───


def interleave_coords(cloud: PointCloud) -> np.ndarray:
    """Flatten positions to ``[lon, lat, lon, lat, ...]`` float32."""
    out = np.empty(cloud.count * 2, dtype=np.float32)
    out[0::2] = cloud.lons
    out[1::2] = cloud.lats
    return out


def interleave_coords_with_z(cloud: PointCloud, altitude: float) -> np.ndarray:
    """Flatten positions to ``[lon, lat, z, ...]`` float32 with a fixed z."""
    out = np.empty(cloud.count * 3, dtype=np.float32)
    out[0::3] = cloud.lons
    out[1::3] = cloud.lats
    out[2::3] = altitude
    return out
