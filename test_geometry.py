"""
Test Geometry, Analytics and Rendering Layers
=============================================

Pure computations only: distances, self-intersection, area, noise filter,
speed guard and the display-frame converter.

Usage:
    pytest test_geometry.py
"""

import math

import numpy as np
import pytest

from territory_geo import (
    AreaCalculator,
    CoordinateConverter,
    Fix,
    GeoPoint,
    NoiseFilter,
    PathStore,
    SelfIntersectionDetector,
    SpeedGuard,
    SpeedLevel,
    haversine_m,
    path_length_m,
)
from territory_geo.geometry import segments_intersect

ORIGIN = GeoPoint(latitude=31.2304, longitude=121.4737)


def square(side_m: float, origin: GeoPoint = ORIGIN):
    return [
        origin,
        origin.offset(side_m, 0),
        origin.offset(side_m, side_m),
        origin.offset(0, side_m),
    ]


def figure_eight(scale_deg: float = 0.0005, origin: GeoPoint = ORIGIN):
    """Lemniscate x = sin t, y = sin t cos t sampled 16 times, closed."""
    points = []
    for k in range(17):
        t = math.pi / 2 + math.pi / 16 + 2 * math.pi * k / 16
        x = math.sin(t)
        y = math.sin(t) * math.cos(t)
        points.append(GeoPoint(
            latitude=origin.latitude + y * scale_deg,
            longitude=origin.longitude + x * scale_deg
        ))
    return points


# ─────────────────────────────────────────────────────────────────────────────
# Shapes
# ─────────────────────────────────────────────────────────────────────────────

def test_haversine_known_distances():
    """One degree of latitude is about 111.2 km on the mean sphere."""
    print("\n" + "=" * 60)
    print("TEST: Haversine distance")
    print("=" * 60)

    d = haversine_m(0.0, 0.0, 1.0, 0.0)
    print(f"✓ 1° latitude = {d:.1f} m")
    assert abs(d - 111_195) < 10

    assert haversine_m(31.0, 121.0, 31.0, 121.0) == 0.0
    assert ORIGIN.distance_to(ORIGIN.offset(100, 0)) == pytest.approx(100, rel=1e-3)
    assert ORIGIN.distance_to(ORIGIN.offset(0, 100)) == pytest.approx(100, rel=1e-3)


def test_geopoint_validation():
    with pytest.raises(ValueError):
        GeoPoint(latitude=91.0, longitude=0.0)
    with pytest.raises(ValueError):
        GeoPoint(latitude=0.0, longitude=-180.5)
    with pytest.raises(ValueError):
        GeoPoint.from_dict({'lat': 10.0})

    p = GeoPoint.from_dict({'lat': '31.5', 'lon': 121})
    assert p == GeoPoint(31.5, 121.0)
    print("✓ Out-of-range and malformed points rejected")


def test_fix_rejects_non_finite_and_non_object_input():
    for bad_time in (math.nan, math.inf, -math.inf):
        with pytest.raises(ValueError):
            Fix(point=ORIGIN, timestamp=bad_time)
    with pytest.raises(ValueError):
        Fix(point=ORIGIN, timestamp=0.0, accuracy_m=math.nan)

    with pytest.raises(ValueError):
        Fix.from_dict({'lat': 31.2, 'lon': 121.4, 'timestamp': "NaN"})
    for not_an_object in ([31.2, 121.4, 0.0], "31.2,121.4", 42, None):
        with pytest.raises(ValueError):
            Fix.from_dict(not_an_object)
        with pytest.raises(ValueError):
            GeoPoint.from_dict(not_an_object)

    fix = Fix.from_dict({'lat': 31.2, 'lon': 121.4, 'timestamp': 5, 'accuracy_m': "4.5"})
    assert fix.timestamp == 5.0 and fix.accuracy_m == 4.5
    print("✓ Non-finite timestamps and non-object fixes rejected")


def test_path_length_is_open():
    """Walked distance does not include the closing leg."""
    points = square(50)
    assert path_length_m(points) == pytest.approx(150, rel=1e-3)
    assert path_length_m(points[:1]) == 0.0
    assert path_length_m([]) == 0.0


# ─────────────────────────────────────────────────────────────────────────────
# Self-intersection
# ─────────────────────────────────────────────────────────────────────────────

def test_segments_intersect():
    assert segments_intersect((0, 0), (1, 1), (0, 1), (1, 0))
    assert not segments_intersect((0, 0), (1, 0), (0, 1), (1, 1))
    assert not segments_intersect((0, 0), (1, 1), (2, 2), (3, 0))


def test_fewer_than_four_points_never_intersect():
    print("\n" + "=" * 60)
    print("TEST: Short paths never self-intersect")
    print("=" * 60)

    detector = SelfIntersectionDetector()
    assert detector.has_self_intersection([]) is False
    assert detector.has_self_intersection([ORIGIN]) is False
    assert detector.has_self_intersection(square(20)[:3]) is False

    # Even a zig-zag that would cross needs 4 points
    zigzag = [ORIGIN, ORIGIN.offset(20, 20), ORIGIN.offset(20, 0)]
    assert detector.has_self_intersection(zigzag) is False
    print("✓ 0..3 points -> False")


def test_figure_eight_is_detected():
    print("\n" + "=" * 60)
    print("TEST: Figure-eight crossing")
    print("=" * 60)

    detector = SelfIntersectionDetector(skip_head=2, skip_tail=2)
    path = figure_eight()

    crossing = detector.find_intersection(path)
    print(f"✓ First crossing between segments {crossing}")
    assert crossing == (3, 11)
    assert detector.has_self_intersection(path)


def test_simple_loop_does_not_intersect():
    detector = SelfIntersectionDetector()
    loop = [
        ORIGIN.offset(x, y)
        for x, y in [(0, 0), (15, 0), (30, 0), (45, 0), (45, 20), (45, 40),
                     (30, 40), (15, 40), (0, 40), (0, 20), (0, 5)]
    ]
    assert detector.has_self_intersection(loop) is False


def test_exclusion_window_hides_start_contact():
    """
    A closing approach that grazes the first segment is ignored, while the
    same crossing in the middle of the walk is reported.
    """
    detector = SelfIntersectionDetector(skip_head=2, skip_tail=2)

    # Last segment dips back across the first segment near the start
    path = [ORIGIN.offset(x, y) for x, y in [
        (0, 0), (40, 0), (40, 40), (20, 40), (0, 40), (0, 20), (10, 5), (10, -5)
    ]]
    assert detector.find_intersection(path) is None

    strict = SelfIntersectionDetector(skip_head=0, skip_tail=0)
    assert strict.find_intersection(path) == (0, 6)
    print("✓ Head/tail exclusion window applied")


def test_detector_rejects_negative_window():
    with pytest.raises(ValueError):
        SelfIntersectionDetector(skip_head=-1)


# ─────────────────────────────────────────────────────────────────────────────
# Area
# ─────────────────────────────────────────────────────────────────────────────

def test_area_of_degenerate_paths_is_zero():
    assert AreaCalculator.area([]) == 0.0
    assert AreaCalculator.area([ORIGIN]) == 0.0
    assert AreaCalculator.area([ORIGIN, ORIGIN.offset(50, 0)]) == 0.0


def test_area_of_50m_square():
    print("\n" + "=" * 60)
    print("TEST: 50 m square area")
    print("=" * 60)

    area = AreaCalculator.area(square(50))
    print(f"✓ area = {area:.1f} m² (expected 2500)")
    assert abs(area - 2500) / 2500 <= 0.02


def test_area_is_orientation_independent():
    points = square(30)
    assert AreaCalculator.area(points) == pytest.approx(AreaCalculator.area(points[::-1]))


def test_area_with_explicit_closing_point():
    points = square(50)
    assert AreaCalculator.area(points + [points[0]]) == pytest.approx(AreaCalculator.area(points))


# ─────────────────────────────────────────────────────────────────────────────
# Noise filter, speed guard, path store
# ─────────────────────────────────────────────────────────────────────────────

def test_noise_filter_first_point_always_accepted():
    noise_filter = NoiseFilter(min_distance_m=10.0)
    assert noise_filter.accept(ORIGIN, None)
    assert not noise_filter.accept(ORIGIN.offset(3, 0), ORIGIN)
    assert noise_filter.accept(ORIGIN.offset(12, 0), ORIGIN)


def test_noise_filter_never_accepts_close_consecutive_points():
    """Jittery random walk: consecutive accepted points are >= 10 m apart."""
    print("\n" + "=" * 60)
    print("TEST: Noise filter on a jittery walk")
    print("=" * 60)

    rng = np.random.default_rng(seed=7)
    noise_filter = NoiseFilter(min_distance_m=10.0)

    accepted = []
    x = y = 0.0
    for _ in range(300):
        x += rng.normal(1.5, 4.0)
        y += rng.normal(0.5, 4.0)
        candidate = ORIGIN.offset(x, y)
        if noise_filter.accept(candidate, accepted[-1] if accepted else None):
            accepted.append(candidate)

    gaps = [a.distance_to(b) for a, b in zip(accepted, accepted[1:])]
    print(f"✓ {len(accepted)} of 300 samples accepted, min gap {min(gaps):.2f} m")
    assert all(g >= 10.0 for g in gaps)


def test_speed_guard_levels():
    print("\n" + "=" * 60)
    print("TEST: Speed guard classification")
    print("=" * 60)

    guard = SpeedGuard(advisory_kmh=15.0, fatal_kmh=30.0)
    start = ORIGIN
    moved = ORIGIN.offset(20, 0)

    assert guard.classify(moved, 10.0, None, None).level == SpeedLevel.NONE

    walking = guard.classify(moved, 20.0 / (5 / 3.6), start, 0.0)
    assert walking.level == SpeedLevel.NONE
    assert walking.speed_kmh == pytest.approx(5.0, rel=1e-2)

    jogging = guard.classify(moved, 20.0 / (20 / 3.6), start, 0.0)
    assert jogging.level == SpeedLevel.ADVISORY
    assert jogging.is_advisory

    driving = guard.classify(moved, 20.0 / (40 / 3.6), start, 0.0)
    assert driving.level == SpeedLevel.FATAL
    assert driving.is_fatal
    print(f"✓ 5 / 20 / 40 km/h -> none / advisory / fatal ({driving.speed_kmh:.1f} km/h)")


def test_speed_guard_non_positive_elapsed_time():
    guard = SpeedGuard()
    moved = ORIGIN.offset(20, 0)

    same_time = guard.classify(moved, 100.0, ORIGIN, 100.0)
    assert same_time.is_fatal
    assert math.isinf(same_time.speed_kmh)

    backwards = guard.classify(moved, 90.0, ORIGIN, 100.0)
    assert backwards.is_fatal

    standing = guard.classify(ORIGIN, 100.0, ORIGIN, 100.0)
    assert standing.level == SpeedLevel.NONE


def test_speed_guard_undefined_speed_is_fatal():
    """A NaN speed must not slip under both thresholds."""
    guard = SpeedGuard()
    far = ORIGIN.offset(1100, 0)

    after_nan = guard.classify(far, 200.0, ORIGIN, math.nan)
    assert after_nan.is_fatal
    assert math.isnan(after_nan.speed_kmh)

    assert guard.classify(far, math.nan, ORIGIN, 100.0).is_fatal


def test_speed_guard_threshold_validation():
    with pytest.raises(ValueError):
        SpeedGuard(advisory_kmh=30.0, fatal_kmh=15.0)
    with pytest.raises(ValueError):
        SpeedGuard(advisory_kmh=0.0)


def test_path_store_snapshot_is_immutable():
    store = PathStore()
    assert store.first() is None and store.last() is None

    store.append(ORIGIN)
    snapshot = store.snapshot()
    store.append(ORIGIN.offset(15, 0))

    assert isinstance(snapshot, tuple)
    assert len(snapshot) == 1
    assert store.count() == 2 and len(store) == 2
    assert store.first() == ORIGIN

    store.clear()
    assert store.count() == 0


# ─────────────────────────────────────────────────────────────────────────────
# Coordinate converter
# ─────────────────────────────────────────────────────────────────────────────

def test_converter_identity_outside_region():
    print("\n" + "=" * 60)
    print("TEST: Converter outside the correction region")
    print("=" * 60)

    for point in [
        GeoPoint(48.8566, 2.3522),      # Paris
        GeoPoint(-33.8688, 151.2093),   # Sydney
        GeoPoint(40.7128, -74.0060),    # New York
        GeoPoint(60.0, 100.0),          # North of the box
        GeoPoint(90.0, 180.0),
    ]:
        assert not CoordinateConverter.is_in_region(point)
        assert CoordinateConverter.convert(point) == point
    print("✓ convert(p) == p outside the box")


def test_converter_shifts_points_inside_region():
    shanghai = GeoPoint(31.2304, 121.4737)
    converted = CoordinateConverter.convert(shanghai)

    assert CoordinateConverter.is_in_region(shanghai)
    assert converted != shanghai
    shift_m = shanghai.distance_to(converted)
    print(f"✓ Shanghai shifted by {shift_m:.1f} m")
    assert 100 < shift_m < 1000


def test_converter_finite_over_whole_region():
    lats = np.linspace(0.8293, 55.8271, 25)
    lons = np.linspace(72.004, 137.8347, 25)
    for lat in lats:
        for lon in lons:
            converted = CoordinateConverter.convert(GeoPoint(float(lat), float(lon)))
            assert math.isfinite(converted.latitude)
            assert math.isfinite(converted.longitude)


def test_convert_path_preserves_order_and_source():
    path = square(40)
    converted = CoordinateConverter.convert_path(path)

    assert len(converted) == len(path)
    assert path[0] == ORIGIN
    for original, shown in zip(path, converted):
        assert shown == CoordinateConverter.convert(original)


def main():
    """Run all tests."""
    for name, func in sorted(globals().items()):
        if name.startswith("test_") and callable(func) and func.__code__.co_argcount == 0:
            func()
    print("\n✅ ALL GEOMETRY TESTS PASSED")


if __name__ == "__main__":
    main()
