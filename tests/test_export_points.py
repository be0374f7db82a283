"""Tests for the backend/export_points.py CLI."""

from __future__ import annotations

import export_points
from point_cloud import decode_point_cloud


def test_encode_then_inspect(grid_dir, tmp_path, capsys):
    out = tmp_path / "cloud.bin"
    rc = export_points.main([
        "encode", str(grid_dir / "grid.npz"), "-o", str(out),
        "--bbox", "-1", "0", "2", "40", "--threshold", "0.5",
    ])
    assert rc == 0
    cloud = decode_point_cloud(out.read_bytes())
    assert cloud.count == 3

    rc = export_points.main(["inspect", str(out), "--head", "1"])
    captured = capsys.readouterr().out
    assert rc == 0
    assert "count:     3" in captured
    assert "bytes:     44 (expected 44, trailing 0)" in captured
    assert "[0] lat=0.0000 lon=20.0000 value=1.000" in captured
    assert "[1]" not in captured


def test_inspect_reports_failing_stage(tmp_path, capsys):
    bad = tmp_path / "bad.bin"
    bad.write_bytes(b"\x0a\x00\x00\x00\x00\x00\x80\x3f" + b"\x00" * 12)
    assert export_points.main(["inspect", str(bad)]) == 1
    assert "Invalid point cloud (body)" in capsys.readouterr().err


def test_inspect_strict_rejects_trailing_bytes(tmp_path, capsys):
    path = tmp_path / "trail.bin"
    path.write_bytes(b"\x00" * 8 + b"\x01")
    assert export_points.main(["inspect", str(path)]) == 0
    assert export_points.main(["inspect", str(path), "--strict"]) == 1


def test_encode_accepts_negative_bbox_edges(grid_dir, tmp_path):
    out = tmp_path / "crop.bin"
    rc = export_points.main([
        "encode", str(grid_dir / "grid.npz"), "-o", str(out),
        "--bbox", "-0.5", "15", "0.5", "35", "--threshold", "0.5",
    ])
    assert rc == 0
    cloud = decode_point_cloud(out.read_bytes(), strict=True)
    assert cloud.lats.tolist() == [0.0, 0.0]
    assert cloud.lons.tolist() == [20.0, 30.0]


def test_encode_rejects_inverted_bbox(grid_dir, tmp_path, capsys):
    out = tmp_path / "never.bin"
    rc = export_points.main([
        "encode", str(grid_dir / "grid.npz"), "-o", str(out), "--bbox", "5", "0", "-5", "10",
    ])
    assert rc == 2
    assert "inverted" in capsys.readouterr().err
    assert not out.exists()
