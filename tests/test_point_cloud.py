"""Tests for backend/point_cloud.py: wire layout, decode validation, zero-copy views."""

from __future__ import annotations

import struct

import numpy as np
import pytest

from point_cloud import (
    CountOverflowError,
    PointCloudError,
    Sample,
    TrailingBytesError,
    TruncatedBodyError,
    TruncatedHeaderError,
    decode_point_cloud,
    decode_point_cloud_copy,
    encode_point_cloud,
    encode_samples,
    expected_length,
    interleave_coords,
    interleave_coords_with_z,
)

RAIN_SAMPLES = [(-6.5, 105.5, 3.2), (-6.6, 105.6, 12.7)]


def _random_columns(n: int, seed: int = 0):
    rng = np.random.default_rng(seed)
    lats = rng.uniform(-90, 90, n).astype(np.float32)
    lons = rng.uniform(-180, 180, n).astype(np.float32)
    values = rng.uniform(0, 80, n).astype(np.float32)
    return lats, lons, values


# ─── Encoder ───


def test_two_sample_scenario_layout():
    buf = encode_samples(RAIN_SAMPLES)
    assert len(buf) == 32
    count, max_value = struct.unpack_from("<If", buf, 0)
    assert count == 2
    assert max_value == float(np.float32(12.7))
    lats = struct.unpack_from("<2f", buf, 8)
    lons = struct.unpack_from("<2f", buf, 16)
    values = struct.unpack_from("<2f", buf, 24)
    assert lats == (float(np.float32(-6.5)), float(np.float32(-6.6)))
    assert lons == (float(np.float32(105.5)), float(np.float32(105.6)))
    assert values == (float(np.float32(3.2)), float(np.float32(12.7)))


def test_two_sample_scenario_decodes_in_order():
    cloud = decode_point_cloud(encode_samples(RAIN_SAMPLES))
    assert cloud.count == 2
    assert cloud.max_value == pytest.approx(12.7, rel=1e-6)
    got = list(cloud.samples())
    assert got[0] == Sample(*(float(np.float32(v)) for v in RAIN_SAMPLES[0]))
    assert got[1].lat == pytest.approx(-6.6, rel=1e-6)
    assert got[1].value == pytest.approx(12.7, rel=1e-6)


def test_empty_input_is_eight_byte_header():
    buf = encode_point_cloud([], [], [])
    assert buf == struct.pack("<If", 0, 0.0)
    assert encode_samples([]) == buf


def test_length_formula():
    for n in (0, 1, 7, 1000):
        lats, lons, values = _random_columns(n)
        assert len(encode_point_cloud(lats, lons, values)) == expected_length(n) == 8 + 12 * n


def test_column_length_mismatch_rejected():
    with pytest.raises(ValueError, match="mismatch"):
        encode_point_cloud([1.0, 2.0], [1.0], [1.0, 2.0])


def test_two_dimensional_columns_flatten_with_matching_count():
    lat2d, lon2d = np.meshgrid([0.0, 1.0], [10.0, 20.0, 30.0], indexing="ij")
    values = np.arange(1, 7, dtype=np.float64).reshape(2, 3)
    buf = encode_point_cloud(lat2d, lon2d, values)
    assert len(buf) == expected_length(6)
    cloud = decode_point_cloud(buf, strict=True)
    assert cloud.count == 6
    assert cloud.lats.tolist() == [0.0, 0.0, 0.0, 1.0, 1.0, 1.0]
    assert cloud.lons.tolist() == [10.0, 20.0, 30.0, 10.0, 20.0, 30.0]
    assert cloud.values.tolist() == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]


def test_column_shape_mismatch_rejected():
    with pytest.raises(ValueError, match="mismatch"):
        encode_point_cloud(np.zeros((2, 3)), np.zeros((3, 2)), np.ones((2, 3)))


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_intensity_rejected(bad):
    with pytest.raises(ValueError, match="finite"):
        encode_point_cloud([1.0, 2.0], [3.0, 4.0], [5.0, bad])


class _HugeColumn:
    def __len__(self):
        return 2 ** 32


def test_count_overflow_raised_before_encoding():
    col = _HugeColumn()
    with pytest.raises(CountOverflowError) as ei:
        encode_point_cloud(col, col, col)
    assert ei.value.stage == "encode"
    assert ei.value.actual == 2 ** 32
    assert isinstance(ei.value, ValueError)


def test_big_endian_and_float64_inputs_encode_little_endian():
    lats, lons, values = _random_columns(16, seed=3)
    reference = encode_point_cloud(lats, lons, values)
    swapped = encode_point_cloud(lats.astype(">f4"), lons.astype(">f4"), values.astype(">f4"))
    widened = encode_point_cloud(lats.astype(np.float64), lons.astype(np.float64), values.astype(np.float64))
    assert swapped == reference
    assert widened == reference
    assert reference[8:12] == struct.pack("<f", float(lats[0]))


def test_max_value_uses_float32_rounding():
    values = [0.1, 0.30000001, 0.2]
    buf = encode_point_cloud([0, 0, 0], [0, 0, 0], values)
    cloud = decode_point_cloud(buf)
    assert cloud.max_value == float(np.float32(0.30000001))
    assert (cloud.values <= cloud.max_value).all()


# ─── Decoder ───


def test_round_trip_bit_exact():
    lats, lons, values = _random_columns(500, seed=7)
    cloud = decode_point_cloud(encode_point_cloud(lats, lons, values))
    assert cloud.count == 500
    assert cloud.max_value == float(values.max())
    assert cloud.lats.tobytes() == lats.astype("<f4").tobytes()
    assert cloud.lons.tobytes() == lons.astype("<f4").tobytes()
    assert cloud.values.tobytes() == values.astype("<f4").tobytes()
    assert (cloud.values <= cloud.max_value).all()


def test_empty_buffer_decodes_to_empty_result():
    cloud = decode_point_cloud(struct.pack("<If", 0, 0.0))
    assert cloud.is_empty
    assert len(cloud) == 0
    assert cloud.max_value == 0.0
    assert cloud.lats.size == cloud.lons.size == cloud.values.size == 0
    assert list(cloud.samples()) == []


@pytest.mark.parametrize("n", range(8))
def test_short_buffer_is_truncated_header(n):
    with pytest.raises(TruncatedHeaderError) as ei:
        decode_point_cloud(b"\x00" * n)
    assert ei.value.stage == "header"
    assert ei.value.expected == 8
    assert ei.value.actual == n


def test_declared_count_longer_than_buffer_is_truncated_body():
    buf = struct.pack("<If", 10, 1.0) + b"\x00" * 92
    assert len(buf) == 100
    with pytest.raises(TruncatedBodyError) as ei:
        decode_point_cloud(buf)
    assert ei.value.stage == "body"
    assert ei.value.expected == 128
    assert ei.value.actual == 100
    with pytest.raises(TruncatedBodyError):
        decode_point_cloud_copy(buf)


def test_every_truncation_of_valid_buffer_fails():
    buf = encode_samples(RAIN_SAMPLES)
    for cut in range(len(buf)):
        with pytest.raises(PointCloudError):
            decode_point_cloud(buf[:cut])


def test_trailing_bytes_ignored_by_default():
    buf = encode_samples(RAIN_SAMPLES)
    cloud = decode_point_cloud(buf + b"\xff" * 5)
    assert cloud.count == 2
    assert cloud.trailing_bytes == 5
    assert cloud.values.tobytes() == decode_point_cloud(buf).values.tobytes()


def test_trailing_bytes_rejected_when_strict():
    buf = encode_samples(RAIN_SAMPLES)
    assert decode_point_cloud(buf, strict=True).trailing_bytes == 0
    with pytest.raises(TrailingBytesError) as ei:
        decode_point_cloud(buf + b"\x00" * 5, strict=True)
    assert ei.value.expected == 32
    assert ei.value.actual == 37
    with pytest.raises(TrailingBytesError):
        decode_point_cloud(struct.pack("<If", 0, 0.0) + b"\x00", strict=True)


def test_zero_copy_views_alias_buffer_and_are_read_only():
    raw = bytearray(encode_samples(RAIN_SAMPLES))
    cloud = decode_point_cloud(raw)
    assert cloud.lats.dtype == np.dtype("<f4")
    assert np.shares_memory(cloud.lats, np.frombuffer(raw, dtype=np.uint8))
    assert cloud.lats.base is not None
    with pytest.raises(ValueError):
        cloud.values[0] = 0.0

    raw[8:12] = struct.pack("<f", 1.5)
    assert cloud.lats[0] == 1.5
    assert raw == bytearray(encode_samples([(1.5, 105.5, 3.2), RAIN_SAMPLES[1]]))


def test_copy_decode_owns_native_arrays():
    raw = bytearray(encode_samples(RAIN_SAMPLES))
    cloud = decode_point_cloud_copy(raw)
    assert cloud.lats.dtype == np.dtype(np.float32)
    assert cloud.lats.flags.writeable
    assert not np.shares_memory(cloud.lats, np.frombuffer(raw, dtype=np.uint8))
    raw[8:12] = struct.pack("<f", 1.5)
    assert cloud.lats[0] == np.float32(-6.5)


def test_decode_accepts_memoryview_slice():
    buf = b"junk" + encode_samples(RAIN_SAMPLES)
    cloud = decode_point_cloud(memoryview(buf)[4:])
    assert cloud.count == 2
    assert cloud.lons[1] == np.float32(105.6)


def test_decode_does_not_mutate_input():
    buf = encode_samples(RAIN_SAMPLES)
    snapshot = bytes(buf)
    decode_point_cloud(buf)
    decode_point_cloud_copy(buf)
    assert buf == snapshot


def test_to_dict_is_json_ready():
    d = decode_point_cloud(encode_samples(RAIN_SAMPLES)).to_dict()
    assert d["count"] == 2
    assert len(d["lats"]) == len(d["lons"]) == len(d["values"]) == 2
    assert all(isinstance(v, float) for v in d["values"])


# ─── Layout helpers ───


def test_interleave_coords():
    cloud = decode_point_cloud(encode_samples(RAIN_SAMPLES))
    flat = interleave_coords(cloud)
    assert flat.dtype == np.float32
    assert flat.tolist() == [cloud.lons[0], cloud.lats[0], cloud.lons[1], cloud.lats[1]]


def test_interleave_coords_with_z():
    cloud = decode_point_cloud(encode_samples(RAIN_SAMPLES))
    flat = interleave_coords_with_z(cloud, 15000.0)
    assert flat.shape == (6,)
    assert flat[2] == flat[5] == 15000.0
    assert flat[3] == cloud.lons[1]
    assert interleave_coords_with_z(decode_point_cloud(encode_samples([])), 1.0).size == 0
