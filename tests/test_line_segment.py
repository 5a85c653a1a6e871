"""
Tests for per-segment dilation.
"""

from __future__ import annotations

import numpy as np
import pytest

from pysfc.line_segment import MIN_SEMI_AXIS, LineSegment


def max_signed_dist(polyhedron, pt):
    return max(hp.signed_dist(pt) for hp in polyhedron.hyperplanes())


class TestLineSegment:
    """Tests for LineSegment dilation."""

    def test_no_obstacles(self):
        """Without obstacles the ellipsoid is the circumscribed circle."""
        line = LineSegment(np.array([0.0, 0.0]), np.array([4.0, 0.0]))
        line.set_obs([])
        line.dilate()
        np.testing.assert_allclose(line.get_ellipsoid().d(), [2.0, 0.0])
        np.testing.assert_allclose(line.get_ellipsoid().C(), 2.0 * np.eye(2), atol=1e-12)
        assert len(line.get_polyhedron()) == 0

    def test_offset_grows_long_axis(self):
        """Offset should be added to the semi-axis along the segment."""
        line = LineSegment(np.array([0.0, 0.0]), np.array([4.0, 0.0]))
        line.set_obs([])
        line.dilate(1.0)
        np.testing.assert_allclose(line.get_ellipsoid().C(), np.diag([3.0, 2.0]), atol=1e-12)

    def test_obstacles_outside_ellipsoid(self, corridor_obstacles):
        """No obstacle should be strictly inside the ellipsoid or polyhedron."""
        line = LineSegment(np.array([0.0, 0.0]), np.array([4.0, 0.0]))
        line.set_local_bbox(np.array([1.0, 3.0]))
        line.set_obs(corridor_obstacles)
        line.dilate()

        ellipsoid = line.get_ellipsoid()
        polyhedron = line.get_polyhedron()
        for pt in corridor_obstacles:
            assert ellipsoid.dist(pt) >= 1.0 - 1e-9
            assert max_signed_dist(polyhedron, pt) >= -1e-9
        assert polyhedron.inside(np.array([2.0, 0.0]))

    def test_two_obstacle_faces_and_local_box(self, corridor_obstacles):
        """One face per side of the corridor plus four local box faces."""
        line = LineSegment(np.array([0.0, 0.0]), np.array([4.0, 0.0]))
        line.set_local_bbox(np.array([1.0, 3.0]))
        line.set_obs(corridor_obstacles)
        line.dilate()

        normals = [hp.n for hp in line.get_polyhedron().hyperplanes()]
        assert len(normals) == 6
        np.testing.assert_allclose(normals[0], [0.0, 1.0], atol=1e-12)
        np.testing.assert_allclose(normals[1], [0.0, -1.0], atol=1e-12)

    def test_local_bbox_filters_obstacles(self):
        """Obstacles outside the local box should be ignored."""
        line = LineSegment(np.array([0.0, 0.0]), np.array([4.0, 0.0]))
        line.set_local_bbox(np.array([1.0, 1.0]))
        far = np.array([2.0, 5.0])
        near = np.array([2.0, 0.5])
        obstacles = [far, near]
        line.set_obs(obstacles)
        assert len(line.get_obs()) == 1
        np.testing.assert_allclose(line.get_obs()[0], near)
        assert len(obstacles) == 2

    def test_degenerate_segment(self):
        """A zero-length segment should give a flat ellipsoid and an axis box."""
        p = np.array([1.0, 2.0])
        line = LineSegment(p, p.copy())
        line.set_local_bbox(np.array([0.5, 1.0]))
        line.set_obs([])
        line.dilate()
        assert np.count_nonzero(line.get_ellipsoid().C()) == 0
        polyhedron = line.get_polyhedron()
        assert len(polyhedron) == 4
        assert polyhedron.inside(np.array([1.4, 2.9]))
        assert not polyhedron.inside(np.array([1.6, 2.0]))

    def test_degenerate_segment_without_box(self):
        """Without a local box a point segment has no faces."""
        p = np.array([1.0, 2.0])
        line = LineSegment(p, p + 1e-6)
        line.set_obs([])
        line.dilate()
        assert len(line.get_polyhedron()) == 0


class TestLineSegment3D:
    """Tests for 3D dilation."""

    def test_local_box_has_six_faces(self):
        """A 3D local box should add six faces around the segment."""
        line = LineSegment(np.array([0.0, 0.0, 1.0]), np.array([3.0, 0.0, 1.0]))
        line.set_local_bbox(np.array([1.0, 2.0, 2.0]))
        line.set_obs([])
        line.dilate()
        polyhedron = line.get_polyhedron()
        assert len(polyhedron) == 6
        assert polyhedron.inside(np.array([1.5, 1.9, 2.9]))
        assert not polyhedron.inside(np.array([1.5, 0.0, 3.5]))

    def test_obstacle_outside_ellipsoid(self):
        """An obstacle near the segment should shrink the cross section."""
        obstacle = np.array([1.5, 0.5, 1.2])
        line = LineSegment(np.array([0.0, 0.0, 1.0]), np.array([3.0, 0.0, 1.0]))
        line.set_obs([obstacle])
        line.dilate()
        assert line.get_ellipsoid().dist(obstacle) == pytest.approx(1.0)
        assert len(line.get_polyhedron()) == 1
        assert line.get_polyhedron().inside(np.array([1.5, 0.0, 1.0]))


class TestObstaclesOnSegment:
    """Tests for obstacles on, next to or at the ends of the segment."""

    P1_2D = np.array([0.0, 0.0])
    P2_2D = np.array([4.0, 0.0])
    P1_3D = np.array([0.0, 0.0, 1.0])
    P2_3D = np.array([3.0, 0.0, 1.0])

    @staticmethod
    def dilate_around(p1, p2, obstacles):
        line = LineSegment(p1, p2)
        line.set_obs(obstacles)
        line.dilate()
        return line

    @pytest.mark.parametrize("obstacle", [
        [2.0, 0.0],
        [1.0, 0.0],
        [3.5, 0.0],
        [0.0, 0.0],
        [4.0, 0.0],
        [2.0, 1e-9],
        [1.0, -1e-7],
    ])
    def test_2d(self, obstacle):
        """Dilation should keep the obstacle outside or on the boundary."""
        obstacle = np.array(obstacle)
        line = self.dilate_around(self.P1_2D, self.P2_2D, [obstacle])

        polyhedron = line.get_polyhedron()
        assert len(polyhedron) == 1
        assert max_signed_dist(polyhedron, obstacle) >= -1e-9
        assert polyhedron.inside(self.P1_2D) or polyhedron.inside(self.P2_2D)
        assert np.linalg.matrix_rank(line.get_ellipsoid().C()) == 2

    @pytest.mark.parametrize("obstacle", [
        [1.5, 0.0, 1.0],
        [0.5, 0.0, 1.0],
        [3.0, 0.0, 1.0],
        [1.0, 1e-8, 1.0],
    ])
    def test_3d(self, obstacle):
        """Dilation should keep the obstacle outside or on the boundary in 3D."""
        obstacle = np.array(obstacle)
        line = self.dilate_around(self.P1_3D, self.P2_3D, [obstacle])

        polyhedron = line.get_polyhedron()
        assert len(polyhedron) == 1
        assert max_signed_dist(polyhedron, obstacle) >= -1e-9
        assert polyhedron.inside(self.P1_3D) or polyhedron.inside(self.P2_3D)
        assert np.linalg.matrix_rank(line.get_ellipsoid().C()) == 3

    def test_center_obstacle_cuts_across_segment(self):
        """An obstacle at the midpoint should get a plane across the segment."""
        line = self.dilate_around(self.P1_2D, self.P2_2D, [np.array([2.0, 0.0])])
        hp = line.get_polyhedron().hyperplanes()[0]
        np.testing.assert_allclose(hp.p, [2.0, 0.0])
        np.testing.assert_allclose(np.abs(hp.n), [1.0, 0.0], atol=1e-12)

    def test_short_axes_do_not_collapse(self):
        """An obstacle on the axis should leave a thin but invertible ellipsoid."""
        line = self.dilate_around(self.P1_2D, self.P2_2D, [np.array([1.0, 0.0])])
        axes = np.linalg.eigvalsh(line.get_ellipsoid().C())
        assert axes[0] == pytest.approx(MIN_SEMI_AXIS)
        assert axes[1] == pytest.approx(2.0)

    def test_mixed_obstacles(self, corridor_obstacles):
        """Obstacles on the segment and beside it should all end up outside."""
        obstacles = corridor_obstacles + [np.array([1.0, 0.0]), np.array([2.0, 0.0]),
                                          np.array([3.0, 1e-9])]
        line = LineSegment(self.P1_2D, self.P2_2D)
        line.set_local_bbox(np.array([1.0, 3.0]))
        line.set_obs(obstacles)
        line.dilate()

        polyhedron = line.get_polyhedron()
        for pt in obstacles:
            assert max_signed_dist(polyhedron, pt) >= -1e-9
