"""
Geometric primitives for corridor decomposition.

Hyperplanes, polyhedra, ellipsoids and the ``Ax <= b`` representation of a
polyhedron, using NumPy for the linear algebra.
"""

import math
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from pysfc.exceptions import ConstraintError

EPSILON = 1e-10


@dataclass
class Hyperplane:
    """Hyperplane defined by a point and a normal vector"""
    p: np.ndarray  # Point on the plane
    n: np.ndarray  # Normal vector, not necessarily unit length

    def __post_init__(self):
        self.p = np.asarray(self.p, dtype=float)
        self.n = np.asarray(self.n, dtype=float)

    def signed_dist(self, pt: np.ndarray) -> float:
        """Signed distance from point to hyperplane (scaled by |n|)"""
        return float(np.dot(self.n, pt - self.p))

    def dist(self, pt: np.ndarray) -> float:
        return abs(self.signed_dist(pt))

    def outward_normal(self, pt_inside: np.ndarray) -> np.ndarray:
        """Unit normal pointing away from ``pt_inside``.

        The stored normal is flipped when the point lies on its positive side.
        """
        n = self.n.copy()
        if np.dot(n, pt_inside) - np.dot(self.p, n) > 0:
            n = -n
        norm = np.linalg.norm(n)
        if norm < EPSILON:
            raise ConstraintError(f"face through {self.p.tolist()} has a zero-length normal")
        return n / norm


class Polyhedron:
    """Convex polyhedron as an ordered list of hyperplanes"""

    def __init__(self, hyperplanes: Optional[List[Hyperplane]] = None):
        self.hyperplanes_ = hyperplanes or []

    def add(self, hyperplane: Hyperplane):
        self.hyperplanes_.append(hyperplane)

    def inside(self, pt: np.ndarray) -> bool:
        """Check if point is inside polyhedron (non-exclusive)"""
        for hp in self.hyperplanes_:
            if hp.signed_dist(pt) > EPSILON:
                return False
        return True

    def points_inside(self, points: List[np.ndarray]) -> List[np.ndarray]:
        return [pt for pt in points if self.inside(pt)]

    def hyperplanes(self) -> List[Hyperplane]:
        return self.hyperplanes_

    def __len__(self):
        return len(self.hyperplanes_)

    def __str__(self):
        return f"Polyhedron with {len(self.hyperplanes_)} hyperplanes"

    def __repr__(self):
        return self.__str__()


class LinearConstraint:
    """Linear constraint representation as Ax <= b.

    Built either from explicit ``A`` and ``b`` or from an interior point
    ``p0`` and a list of hyperplanes. In the latter case every row is
    oriented so that ``p0`` lies on its feasible side.
    """

    def __init__(self, A: Optional[np.ndarray] = None, b: Optional[np.ndarray] = None,
                 p0: Optional[np.ndarray] = None, hyperplanes: Optional[List[Hyperplane]] = None):
        self.p0_ = None if p0 is None else np.asarray(p0, dtype=float)
        if A is not None and b is not None:
            self.A_ = np.asarray(A, dtype=float)
            self.b_ = np.asarray(b, dtype=float)
        elif p0 is not None and hyperplanes is not None:
            self._construct_from_hyperplanes(self.p0_, hyperplanes)
        else:
            self.A_ = np.array([])
            self.b_ = np.array([])

    def _construct_from_hyperplanes(self, p0: np.ndarray, hyperplanes: List[Hyperplane]):
        """Construct from inside point and hyperplanes"""
        size = len(hyperplanes)
        dim = len(p0)
        A = np.zeros((size, dim))
        b = np.zeros(size)

        for i, hp in enumerate(hyperplanes):
            n = hp.n.copy()
            c = np.dot(hp.p, n)
            if np.dot(n, p0) - c > 0:
                n = -n
                c = -c
            A[i] = n
            b[i] = c

        self.A_ = A
        self.b_ = b

    def inside(self, pt: np.ndarray) -> bool:
        """Check if point satisfies constraints"""
        if self.A_.size == 0:
            return True
        d = self.A_ @ pt - self.b_
        return bool(np.all(d <= 0))

    def A(self) -> np.ndarray:
        return self.A_

    def b(self) -> np.ndarray:
        return self.b_

    def p0(self) -> Optional[np.ndarray]:
        """Interior point the rows were oriented with"""
        return self.p0_

    def __str__(self):
        return f"LinearConstraint with A: {self.A_}, b: {self.b_}"

    def __repr__(self):
        return self.__str__()


class Ellipsoid:
    """Ellipsoid {C x + d : |x| <= 1} defined by matrix C and center d"""

    def __init__(self, C: Optional[np.ndarray] = None, d: Optional[np.ndarray] = None):
        dim = len(d) if d is not None else 2
        self.C_ = np.asarray(C, dtype=float) if C is not None else np.eye(dim)
        self.d_ = np.asarray(d, dtype=float) if d is not None else np.zeros(dim)

    def dist(self, pt: np.ndarray) -> float:
        """Distance to center, normalized by the ellipsoid shape"""
        try:
            return float(np.linalg.norm(np.linalg.solve(self.C_, pt - self.d_)))
        except np.linalg.LinAlgError:
            # Flat ellipsoid contains nothing
            return math.inf

    def inside(self, pt: np.ndarray) -> bool:
        """Check if point is inside ellipsoid (non-exclusive)"""
        return self.dist(pt) <= 1.0

    def points_inside(self, points: List[np.ndarray]) -> List[np.ndarray]:
        return [pt for pt in points if self.inside(pt)]

    def closest_point(self, points: List[np.ndarray]) -> np.ndarray:
        """Point with the smallest normalized distance"""
        if not points:
            return np.zeros_like(self.d_)

        min_dist = float('inf')
        closest_pt = points[0]

        for pt in points:
            d = self.dist(pt)
            if d < min_dist:
                min_dist = d
                closest_pt = pt

        return closest_pt

    def closest_hyperplane(self, points: List[np.ndarray]) -> Hyperplane:
        """Hyperplane tangent to the scaled ellipsoid at the closest point.

        A point at the center has no tangent direction, the plane across the
        long axis is used instead.
        """
        closest_pt = self.closest_point(points)
        C_inv = np.linalg.inv(self.C_)
        n = C_inv @ C_inv.T @ (closest_pt - self.d_)
        norm = np.linalg.norm(n)
        if norm < EPSILON:
            return Hyperplane(closest_pt, self.long_axis())
        return Hyperplane(closest_pt, n / norm)

    def long_axis(self) -> np.ndarray:
        """Unit direction of the largest semi-axis"""
        _, vecs = np.linalg.eigh(self.C_)
        return vecs[:, -1]

    def C(self) -> np.ndarray:
        return self.C_

    def d(self) -> np.ndarray:
        return self.d_

    def __str__(self):
        return f"Ellipsoid with C: {self.C_}, d: {self.d_}"

    def __repr__(self):
        return self.__str__()


class GeometricUtils:
    """Geometric utility functions"""

    @staticmethod
    def vec2_to_rotation(v: np.ndarray) -> np.ndarray:
        """2D rotation matrix aligning the x axis with ``v``"""
        yaw = math.atan2(v[1], v[0])
        return np.array([[math.cos(yaw), -math.sin(yaw)],
                         [math.sin(yaw), math.cos(yaw)]])

    @staticmethod
    def vec3_to_rotation(v: np.ndarray) -> np.ndarray:
        """3D rotation matrix aligning the x axis with ``v`` (zero roll)"""
        pitch = math.atan2(-v[2], np.linalg.norm(v[:2]))
        yaw = math.atan2(v[1], v[0])

        Ry = np.array([[math.cos(pitch), 0, math.sin(pitch)],
                       [0, 1, 0],
                       [-math.sin(pitch), 0, math.cos(pitch)]])

        Rz = np.array([[math.cos(yaw), -math.sin(yaw), 0],
                       [math.sin(yaw), math.cos(yaw), 0],
                       [0, 0, 1]])

        return Rz @ Ry

    @staticmethod
    def rotation(v: np.ndarray) -> np.ndarray:
        if len(v) == 2:
            return GeometricUtils.vec2_to_rotation(v)
        return GeometricUtils.vec3_to_rotation(v)
