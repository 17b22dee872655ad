"""Tests for the expansion of tracks too short for the engine."""

from __future__ import annotations

import unittest

from tests.helpers import make_track
from xc_optimizer.errors import EngineContractViolation, InvalidTrackError
from xc_optimizer.models import TrackPoint
from xc_optimizer.track_expansion import (
    DISTRIBUTION_FACTOR,
    MIN_POINTS,
    IndexMapping,
    create_segments,
    expand_track,
)


class TestCreateSegments(unittest.TestCase):
    def test_added_points_stay_next_to_the_segment_start(self) -> None:
        start = TrackPoint(lat=45.0, lon=6.0, alt=1000, time_sec=0)
        end = TrackPoint(lat=46.0, lon=7.0, alt=2000, time_sec=600)
        points = create_segments(start, end, 4)
        self.assertEqual(len(points), 5)
        self.assertIs(points[0], start)
        self.assertIs(points[-1], end)
        for j, point in enumerate(points[1:-1], start=1):
            self.assertAlmostEqual(point.lat, 45.0 + j * DISTRIBUTION_FACTOR, places=9)
            self.assertAlmostEqual(point.lon, 6.0 + j * DISTRIBUTION_FACTOR, places=9)
            self.assertAlmostEqual(point.alt, 1000 + 1000 * j * DISTRIBUTION_FACTOR, places=6)
            self.assertAlmostEqual(point.time_sec, 600 * j * DISTRIBUTION_FACTOR, places=6)

    def test_single_segment_is_the_two_end_points(self) -> None:
        start = TrackPoint(lat=45.0, lon=6.0)
        end = TrackPoint(lat=45.1, lon=6.1)
        self.assertEqual(create_segments(start, end, 1), [start, end])

    def test_zero_segments_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            create_segments(TrackPoint(lat=0, lon=0), TrackPoint(lat=1, lon=1), 0)


class TestExpandTrack(unittest.TestCase):
    def test_short_tracks_get_exactly_five_points(self) -> None:
        expected_mappings = {
            2: (0, 0, 0, 0, 1),
            3: (0, 0, 1, 1, 2),
            4: (0, 0, 1, 2, 3),
        }
        for num_points, targets in expected_mappings.items():
            with self.subTest(num_points=num_points):
                track = make_track(num_points)
                expanded = expand_track(track)
                self.assertEqual(len(expanded.track.points), MIN_POINTS)
                self.assertEqual(expanded.mapping.targets, targets)
                self.assertFalse(expanded.mapping.is_identity)
                for index in range(MIN_POINTS):
                    original = expanded.mapping.to_original(index)
                    self.assertTrue(0 <= original < num_points)

    def test_real_points_keep_their_position(self) -> None:
        track = make_track(3)
        expanded = expand_track(track)
        self.assertEqual(expanded.track.points[0], track.points[0])
        self.assertEqual(expanded.track.points[2], track.points[1])
        self.assertEqual(expanded.track.points[4], track.points[2])
        self.assertEqual(expanded.track.start_time_sec, track.start_time_sec)

    def test_every_point_is_close_to_the_point_it_maps_to(self) -> None:
        for num_points in (2, 3, 4):
            track = make_track(num_points)
            expanded = expand_track(track)
            for index, point in enumerate(expanded.track.points):
                original = track.points[expanded.mapping.to_original(index)]
                self.assertAlmostEqual(point.lat, original.lat, places=5)
                self.assertAlmostEqual(point.lon, original.lon, places=5)

    def test_time_never_decreases_after_expansion(self) -> None:
        expanded = expand_track(make_track(2))
        times = [p.time_sec for p in expanded.track.points]
        self.assertEqual(times, sorted(times))
        expanded.track.validate()

    def test_long_tracks_are_returned_unchanged(self) -> None:
        for num_points in (5, 12):
            track = make_track(num_points)
            expanded = expand_track(track)
            self.assertIs(expanded.track, track)
            self.assertTrue(expanded.mapping.is_identity)

    def test_input_track_is_not_modified(self) -> None:
        track = make_track(2)
        before = track.points
        expand_track(track)
        self.assertEqual(track.points, before)
        self.assertEqual(len(track.points), 2)

    def test_tracks_without_segments_are_rejected(self) -> None:
        for num_points in (0, 1):
            with self.assertRaises(InvalidTrackError):
                expand_track(make_track(num_points))


class TestIndexMapping(unittest.TestCase):
    def test_identity_translates_every_index_including_zero(self) -> None:
        mapping = IndexMapping.identity()
        self.assertEqual(mapping.to_original(0), 0)
        self.assertEqual(mapping.to_original(42), 42)

    def test_built_mapping_translates_index_zero(self) -> None:
        mapping = IndexMapping([0, 0, 1, 1, 2])
        self.assertEqual(mapping.to_original(0), 0)
        self.assertEqual(mapping.to_original(3), 1)
        self.assertEqual(mapping.to_original(4), 2)

    def test_absent_index_stays_absent(self) -> None:
        self.assertIsNone(IndexMapping([0, 0, 0, 0, 1]).to_original(None))
        self.assertIsNone(IndexMapping.identity().to_original(None))

    def test_identity_of_a_long_track_rejects_indices_past_its_end(self) -> None:
        track = make_track(10)
        mapping = expand_track(track).mapping
        self.assertTrue(mapping.is_identity)
        self.assertEqual(mapping.size, 10)
        self.assertEqual(mapping.to_original(9), 9)
        for index in (10, 50):
            with self.subTest(index=index):
                with self.assertRaises(EngineContractViolation):
                    mapping.to_original(index)

    def test_invalid_indices_are_contract_violations(self) -> None:
        mapping = IndexMapping([0, 0, 0, 0, 1])
        for index in (5, -1, 1.5, "2", True):
            with self.subTest(index=index):
                with self.assertRaises(EngineContractViolation):
                    mapping.to_original(index)


if __name__ == "__main__":
    unittest.main()
