"""
Per-segment dilation.

A ``LineSegment`` grows an ellipsoid around the segment between two path
points until it is blocked by obstacle points, then derives a separating
polyhedron from the obstacles closest to that ellipsoid.
"""

import math
from abc import ABC, abstractmethod
from typing import List

import numpy as np

from pysfc.geometry import EPSILON, Ellipsoid, GeometricUtils, Hyperplane, Polyhedron

# Segments shorter than this are treated as a single point
DEGENERATE_LENGTH = 1e-4

# Short semi-axes never shrink below this, so the shape matrix stays invertible
MIN_SEMI_AXIS = 1e-6


class DecompBase(ABC):
    """Base class for decomposition around a seed geometry"""

    def __init__(self, dim: int = 2):
        self.obs_: List[np.ndarray] = []
        self.ellipsoid_ = Ellipsoid(np.zeros((dim, dim)), np.zeros(dim))
        self.polyhedron_ = Polyhedron()
        self.local_bbox_ = np.zeros(dim)

    def set_local_bbox(self, bbox: np.ndarray):
        self.local_bbox_ = np.asarray(bbox, dtype=float).copy()

    def set_obs(self, obs: List[np.ndarray]):
        """Keep the obstacle points that fall inside the local bounding box.

        ``obs`` is only read; the filtered points are stored in a new list.
        """
        poly = Polyhedron()
        self.add_local_bbox(poly)
        self.obs_ = poly.points_inside(obs)

    def get_obs(self) -> List[np.ndarray]:
        return self.obs_

    def get_ellipsoid(self) -> Ellipsoid:
        return self.ellipsoid_

    def get_polyhedron(self) -> Polyhedron:
        return self.polyhedron_

    @abstractmethod
    def dilate(self, offset_x: float = 0):
        """Inflate the shape"""

    @abstractmethod
    def add_local_bbox(self, polyhedron: Polyhedron):
        """Add local bounding box constraints"""

    def find_polyhedron(self):
        """Cut the space with one hyperplane per blocking obstacle.

        Each hyperplane is tangent to the scaled ellipsoid at the closest
        remaining obstacle; obstacles behind it are discarded.
        """
        poly = Polyhedron()
        obs_remain = list(self.obs_)

        while obs_remain:
            hyperplane = self.ellipsoid_.closest_hyperplane(obs_remain)
            poly.add(hyperplane)
            obs_remain = [pt for pt in obs_remain if hyperplane.signed_dist(pt) < 0]

        self.polyhedron_ = poly


class LineSegment(DecompBase):
    """Ellipsoid and polyhedron around the segment ``p1``-``p2``"""

    def __init__(self, p1: np.ndarray, p2: np.ndarray):
        self.p1_ = np.asarray(p1, dtype=float)
        self.p2_ = np.asarray(p2, dtype=float)
        super().__init__(len(self.p1_))

    def dilate(self, offset_x: float = 0):
        """Dilate the line segment.

        Args:
            offset_x: Extra length added to the long semi-axis.
        """
        if np.linalg.norm(self.p1_ - self.p2_) < DEGENERATE_LENGTH:
            dim = len(self.p1_)
            self.ellipsoid_ = Ellipsoid(np.zeros((dim, dim)), self.p1_.copy())
            self.polyhedron_ = Polyhedron()
            self._add_axis_aligned_bbox(self.polyhedron_)
            return

        self._find_ellipsoid(offset_x)
        self.find_polyhedron()
        self.add_local_bbox(self.polyhedron_)

    def add_local_bbox(self, polyhedron: Polyhedron):
        """Add a box aligned with the segment direction"""
        if np.linalg.norm(self.local_bbox_) == 0:
            return

        direction = self.p2_ - self.p1_
        if np.linalg.norm(direction) < DEGENERATE_LENGTH:
            return
        direction = direction / np.linalg.norm(direction)

        if len(self.p1_) == 2:
            dir_h = np.array([-direction[1], direction[0]])
        else:
            if abs(direction[2]) < 0.9:
                dir_h = np.cross(direction, np.array([0.0, 0.0, 1.0]))
            else:
                dir_h = np.cross(direction, np.array([1.0, 0.0, 0.0]))
            dir_h = dir_h / np.linalg.norm(dir_h)

        # Width
        if len(self.local_bbox_) > 1:
            polyhedron.add(Hyperplane(self.p1_ + dir_h * self.local_bbox_[1], dir_h))
            polyhedron.add(Hyperplane(self.p1_ - dir_h * self.local_bbox_[1], -dir_h))

        # Length
        polyhedron.add(Hyperplane(self.p2_ + direction * self.local_bbox_[0], direction))
        polyhedron.add(Hyperplane(self.p1_ - direction * self.local_bbox_[0], -direction))

        # Height (3D only)
        if len(self.p1_) == 3 and len(self.local_bbox_) > 2:
            dir_v = np.cross(direction, dir_h)
            polyhedron.add(Hyperplane(self.p1_ + dir_v * self.local_bbox_[2], dir_v))
            polyhedron.add(Hyperplane(self.p1_ - dir_v * self.local_bbox_[2], -dir_v))

    def _add_axis_aligned_bbox(self, polyhedron: Polyhedron):
        """Box around ``p1`` along the world axes, used for point segments"""
        if np.linalg.norm(self.local_bbox_) == 0:
            return

        dim = len(self.p1_)
        for axis in range(min(dim, len(self.local_bbox_))):
            unit = np.zeros(dim)
            unit[axis] = 1.0
            polyhedron.add(Hyperplane(self.p1_ + unit * self.local_bbox_[axis], unit))
            polyhedron.add(Hyperplane(self.p1_ - unit * self.local_bbox_[axis], -unit))

    def _find_ellipsoid(self, offset_x: float):
        """Shrink the short axes until no obstacle is strictly inside"""
        f = np.linalg.norm(self.p1_ - self.p2_) / 2
        dim = len(self.p1_)

        axes = np.full(dim, f)
        axes[0] += offset_x

        R = GeometricUtils.rotation(self.p2_ - self.p1_)
        center = (self.p1_ + self.p2_) / 2

        ellipsoid = Ellipsoid(R @ np.diag(axes) @ R.T, center)
        obs_inside = ellipsoid.points_inside(self.obs_)

        while obs_inside:
            pw = ellipsoid.closest_point(obs_inside)
            p = R.T @ (pw - ellipsoid.d())  # ellipsoid frame

            if abs(p[0]) < axes[0]:
                scale = 1 - (p[0] / axes[0]) ** 2
                radius = np.linalg.norm(p[1:]) / math.sqrt(scale) if scale > 0 else 0.0
                axes[1:] = min(max(radius, MIN_SEMI_AXIS), axes[1])

            ellipsoid.C_ = R @ np.diag(axes) @ R.T

            # An obstacle on the segment axis stays inside the floored shape
            obs_inside = [pt for pt in obs_inside
                          if pt is not pw and 1 - ellipsoid.dist(pt) > EPSILON]

        self.ellipsoid_ = ellipsoid
