"""
Safe Flight Corridor decomposition along a path.

``EllipsoidDecomp`` splits a path into line segments, dilates every segment
in parallel on a small thread pool and turns the resulting polyhedra into
``Ax <= b`` constraints for a trajectory optimizer.
"""

import copy
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from pysfc.config import SFCConfig
from pysfc.exceptions import (
    ConstraintError,
    DecompositionTimeoutError,
    InvalidPathError,
    MissingObstaclesError,
    PolyhedronIndexError,
    WorkerError,
)
from pysfc.geometry import Ellipsoid, Hyperplane, LinearConstraint, Polyhedron
from pysfc.line_segment import LineSegment
from pysfc.logging import LOG_DEBUG, LOG_INFO, block_context, profile_scope, timed

DEFAULT_NUM_WORKERS = 4


class Segment(NamedTuple):
    start: np.ndarray
    end: np.ndarray
    index: int


# =============================================================================
# Segmenter
# =============================================================================


def segment_stride(paired: bool) -> int:
    """Path points consumed per segment"""
    return 2 if paired else 1


def validate_path(path: Sequence[np.ndarray]) -> List[np.ndarray]:
    """Copy ``path`` into float arrays and check its shape.

    Raises:
        InvalidPathError: Fewer than two points, points that are not 2D or
            3D, or points of different dimensions.
    """
    if path is None or len(path) < 2:
        raise InvalidPathError("at least two points are required", 0 if path is None else len(path))

    points = [np.array(pt, dtype=float) for pt in path]
    dim = points[0].shape
    if len(dim) != 1 or dim[0] not in (2, 3):
        raise InvalidPathError(f"points must be 2D or 3D vectors, got shape {dim}", len(points))
    for i, pt in enumerate(points):
        if pt.shape != dim:
            raise InvalidPathError(f"point {i} has shape {pt.shape}, expected {dim}", len(points))
    return points


def make_segments(path: Sequence[np.ndarray], paired: bool = False) -> List[Segment]:
    """Split a path into segments.

    Sequential mode connects every pair of consecutive points. Paired mode
    reads the path as independent point pairs ``(path[2i], path[2i+1])``;
    a trailing unpaired point is dropped on purpose.
    """
    return _pair_points(validate_path(path), paired)


def _pair_points(points: List[np.ndarray], paired: bool) -> List[Segment]:
    stride = segment_stride(paired)
    n_segments = len(points) // 2 if paired else len(points) - 1

    if paired and len(points) % 2 == 1:
        LOG_DEBUG(f"Paired path has odd length {len(points)}, ignoring the last point")

    return [
        Segment(points[i * stride], points[i * stride + 1], i)
        for i in range(n_segments)
    ]


# =============================================================================
# Partitioning
# =============================================================================


def partition_indices(n_segments: int, n_workers: int = DEFAULT_NUM_WORKERS) -> List[range]:
    """Split ``[0, n_segments)`` into ``n_workers`` contiguous blocks.

    Blocks have ``ceil(n_segments / n_workers)`` indices, clamped to the
    range, and the last block ends at ``n_segments``. Trailing blocks are
    empty when there are fewer segments than workers.
    """
    if n_workers < 1:
        raise ValueError(f"n_workers must be >= 1, got {n_workers}")
    if n_segments < 0:
        raise ValueError(f"n_segments must be >= 0, got {n_segments}")

    size = -(-n_segments // n_workers)
    blocks = []
    for j in range(n_workers):
        start = min(j * size, n_segments)
        end = n_segments if j == n_workers - 1 else min(start + size, n_segments)
        blocks.append(range(start, end))
    return blocks


# =============================================================================
# Tightening
# =============================================================================


def tightened_polyhedron(polyhedron: Polyhedron, pt_inside: np.ndarray, distance: float) -> Polyhedron:
    """Return a copy of ``polyhedron`` with every face moved ``distance`` towards ``pt_inside``"""
    pt_inside = np.asarray(pt_inside, dtype=float)
    return Polyhedron([
        Hyperplane(hp.p - distance * hp.outward_normal(pt_inside), hp.n.copy())
        for hp in polyhedron.hyperplanes()
    ])


def _check_distance(distance: float):
    if distance < 0:
        raise ConstraintError(f"tightening distance must be >= 0, got {distance}")


# =============================================================================
# Decomposition
# =============================================================================


class EllipsoidDecomp:
    """Safe Flight Corridor along a path using ellipsoids.

    Args:
        origin: Origin of the global bounding box.
        dim: Size of the global bounding box; the box spans
            ``origin`` to ``origin + dim``.
        num_workers: Threads used to dilate the segments.
        join_timeout: Seconds to wait for the workers, None waits forever.
        require_obstacles: Refuse to decompose without obstacle points.
        offset_x: Default extra length of each ellipsoid's long semi-axis.
        paired: Default path mode, see ``make_segments``.
        clearance: Default tightening distance of ``get_constraints``.
    """

    def __init__(self, origin: Optional[np.ndarray] = None, dim: Optional[np.ndarray] = None,
                 num_workers: int = DEFAULT_NUM_WORKERS, join_timeout: Optional[float] = None,
                 require_obstacles: bool = False, offset_x: float = 0.0, paired: bool = False,
                 clearance: float = 0.0):
        if origin is not None and dim is not None:
            self.global_bbox_min_ = np.array(origin, dtype=float)
            self.global_bbox_max_ = self.global_bbox_min_ + np.asarray(dim, dtype=float)
        else:
            self.global_bbox_min_ = np.zeros(2)
            self.global_bbox_max_ = np.zeros(2)

        if num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {num_workers}")
        self.num_workers = num_workers
        self.join_timeout = join_timeout
        self.require_obstacles = require_obstacles
        self.offset_x_ = offset_x
        self.paired_default_ = paired
        self.clearance_ = clearance

        self.obs_: List[np.ndarray] = []
        self.local_bbox_ = np.zeros(2)
        self.path_: List[np.ndarray] = []
        self.is_path_paired_ = False
        self.ellipsoids_: List[Ellipsoid] = []
        self.polyhedrons_: List[Polyhedron] = []
        self.lines_: List[LineSegment] = []

    @classmethod
    def from_config(cls, config: SFCConfig) -> "EllipsoidDecomp":
        """Build a decomposer from a validated configuration"""
        bbox = config.bounding_box
        decomp = cls(
            origin=bbox.global_origin,
            dim=bbox.global_dim,
            num_workers=config.decomposition.num_workers,
            join_timeout=config.decomposition.join_timeout,
            require_obstacles=config.decomposition.require_obstacles,
            offset_x=config.decomposition.offset_x,
            paired=config.decomposition.paired_path,
            clearance=config.constraints.clearance,
        )
        if bbox.local_bbox is not None:
            decomp.set_local_bbox(np.asarray(bbox.local_bbox, dtype=float))
        return decomp

    def set_obs(self, obs: Sequence[np.ndarray]):
        """Set obstacle points"""
        self.obs_ = [np.array(pt, dtype=float) for pt in obs]

    def set_local_bbox(self, bbox: np.ndarray):
        """Set the per-segment local bounding box"""
        self.local_bbox_ = np.array(bbox, dtype=float)

    def has_global_bbox(self) -> bool:
        # Zero corners mean the box is unset
        return bool(np.linalg.norm(self.global_bbox_min_) != 0 or
                    np.linalg.norm(self.global_bbox_max_) != 0)

    def get_path(self) -> List[np.ndarray]:
        return [pt.copy() for pt in self.path_]

    def get_polyhedrons(self) -> List[Polyhedron]:
        return copy.deepcopy(self.polyhedrons_)

    def get_ellipsoids(self) -> List[Ellipsoid]:
        return copy.deepcopy(self.ellipsoids_)

    def get_interior_points(self) -> List[np.ndarray]:
        """Midpoint of the segment each polyhedron was grown around"""
        stride = segment_stride(self.is_path_paired_)
        return [
            (self.path_[i * stride] + self.path_[i * stride + 1]) / 2
            for i in range(len(self.polyhedrons_))
        ]

    # -------------------------------------------------------------------------
    # Dilation
    # -------------------------------------------------------------------------

    @timed
    def decompose(self, path: Sequence[np.ndarray], offset_x: Optional[float] = None,
                  paired: Optional[bool] = None):
        """Decompose the free space along ``path``.

        Replaces the results of any previous call. On failure no results
        are kept.

        Args:
            path: Waypoints, at least two.
            offset_x: Offset added to the long semi-axis of every ellipsoid.
            paired: Read the path as independent point pairs instead of a
                connected polyline.

        Raises:
            InvalidPathError: Malformed path or bounding box dimension.
            MissingObstaclesError: ``require_obstacles`` is set and no
                obstacle points were given.
            WorkerError: A segment failed to dilate.
            DecompositionTimeoutError: Workers exceeded ``join_timeout``.
        """
        offset_x = self.offset_x_ if offset_x is None else offset_x
        paired = self.paired_default_ if paired is None else paired

        self.path_ = []
        self.ellipsoids_ = []
        self.polyhedrons_ = []
        self.lines_ = []

        points = validate_path(path)
        segments = _pair_points(points, paired)
        dim = len(segments[0].start)
        self._check_preconditions(dim)

        lines = []
        for segment in segments:
            line = LineSegment(segment.start, segment.end)
            line.set_local_bbox(self.local_bbox_)
            lines.append(line)

        with profile_scope("threading"):
            self._run_workers(lines, offset_x)

        self.lines_ = lines
        self.ellipsoids_ = [line.get_ellipsoid() for line in lines]
        self.polyhedrons_ = [line.get_polyhedron() for line in lines]
        self.path_ = points
        self.is_path_paired_ = paired

        if self.has_global_bbox():
            for polyhedron in self.polyhedrons_:
                self._add_global_bbox(polyhedron)

        LOG_DEBUG(f"Decomposed {len(segments)} segments with {len(self.obs_)} obstacles")

    dilate = decompose

    def _check_preconditions(self, dim: int):
        if self.require_obstacles and not self.obs_:
            raise MissingObstaclesError()
        for pt in self.obs_:
            if pt.shape != (dim,):
                raise InvalidPathError(f"obstacle of shape {pt.shape} does not match {dim}D path")
        if self.has_global_bbox() and len(self.global_bbox_min_) != dim:
            raise InvalidPathError(
                f"global bounding box is {len(self.global_bbox_min_)}D but the path is {dim}D"
            )

    def _run_workers(self, lines: List[LineSegment], offset_x: float):
        """Dilate every line, one contiguous index block per worker.

        Each worker only touches the lines in its own block. Failures are
        collected per block and raised once every worker has finished.
        """
        blocks = partition_indices(len(lines), self.num_workers)
        start_time = time.perf_counter()

        executor = ThreadPoolExecutor(max_workers=self.num_workers, thread_name_prefix="pysfc-dilate")
        timed_out = False
        try:
            futures = [
                executor.submit(self._dilate_block, j, block, lines, self.obs_, offset_x)
                for j, block in enumerate(blocks)
            ]
            _, not_done = wait(futures, timeout=self.join_timeout)
            timed_out = bool(not_done)
        finally:
            executor.shutdown(wait=not timed_out, cancel_futures=timed_out)

        if timed_out:
            raise DecompositionTimeoutError(self.join_timeout, time.perf_counter() - start_time)

        failures = [outcome for outcome in (f.result() for f in futures) if outcome is not None]
        if failures:
            raise WorkerError(failures) from failures[0][2]

    @staticmethod
    def _dilate_block(block_id: int, block: range, lines: List[LineSegment],
                      obs: List[np.ndarray], offset_x: float) -> Optional[Tuple[int, int, Exception]]:
        """Dilate ``lines[block]``, returning the first failure instead of raising"""
        with block_context(block_id), profile_scope(f"dilating {len(block)} segments"):
            for i in block:
                try:
                    lines[i].set_obs(obs)
                    lines[i].dilate(offset_x)
                except Exception as exc:
                    return block_id, i, exc
        return None

    def _add_global_bbox(self, polyhedron: Polyhedron):
        """Add the faces of the global bounding box, normals pointing out"""
        dim = len(self.global_bbox_min_)
        for axis in range(dim):
            unit = np.zeros(dim)
            unit[axis] = 1.0
            polyhedron.add(Hyperplane(unit * self.global_bbox_max_[axis], unit))
            polyhedron.add(Hyperplane(unit * self.global_bbox_min_[axis], -unit))

    # -------------------------------------------------------------------------
    # Constraints
    # -------------------------------------------------------------------------

    def tighten_polyhedron(self, i: int, pt_inside: np.ndarray, distance: float):
        """Move every face of polyhedron ``i`` by ``distance`` towards ``pt_inside``.

        The outward direction of each face is resolved with ``pt_inside``,
        so the stored normal may point either way.
        """
        if not 0 <= i < len(self.polyhedrons_):
            raise PolyhedronIndexError(i, len(self.polyhedrons_))
        _check_distance(distance)

        pt_inside = np.asarray(pt_inside, dtype=float)
        for hp in self.polyhedrons_[i].hyperplanes():
            hp.p = hp.p - distance * hp.outward_normal(pt_inside)

    def get_constraints(self, clearance: Optional[float] = None,
                        in_place: bool = True) -> List[LinearConstraint]:
        """Linear constraints ``Ax <= b`` of the corridor, one per polyhedron.

        With a positive ``clearance`` every face is tightened first. When
        ``in_place`` is true the stored polyhedra are tightened as well, so
        repeated calls keep shrinking them.
        """
        clearance = self.clearance_ if clearance is None else clearance
        _check_distance(clearance)

        constraints = []
        for i, pt_inside in enumerate(self.get_interior_points()):
            polyhedron = self.polyhedrons_[i]
            if clearance > 0:
                if in_place:
                    self.tighten_polyhedron(i, pt_inside, clearance)
                else:
                    polyhedron = tightened_polyhedron(polyhedron, pt_inside, clearance)
            constraints.append(LinearConstraint(p0=pt_inside, hyperplanes=polyhedron.hyperplanes()))
        return constraints


class IterativeDecomp(EllipsoidDecomp):
    """Decomposition that drops waypoints already covered by the corridor"""

    def dilate_iter(self, path_raw: Sequence[np.ndarray], iter_num: int = 5,
                    res: float = 0, offset_x: float = 0):
        """Decompose, simplify the path and repeat until it stops changing.

        Args:
            path_raw: Waypoints of a connected path.
            iter_num: Maximum number of extra iterations.
            res: Downsampling resolution, 0 keeps the input points.
            offset_x: Offset added to the long semi-axis.
        """
        path = validate_path(path_raw)
        if res > 0:
            path = self._downsample(path, res)

        self.decompose(path, offset_x, paired=False)
        new_path = self._simplify(path)

        for _ in range(iter_num):
            if len(new_path) == len(path):
                break
            path = new_path
            self.decompose(path, offset_x, paired=False)
            new_path = self._simplify(path)

        LOG_INFO(f"Iterative decomposition kept {len(self.path_)} of {len(path_raw)} waypoints")

    @staticmethod
    def _downsample(path: List[np.ndarray], d: float) -> List[np.ndarray]:
        """Uniformly sample path into segments of length at most d"""
        new_path = []
        for i in range(1, len(path)):
            dist = np.linalg.norm(path[i] - path[i - 1])
            cnt = max(int(np.ceil(dist / d)), 1)
            for j in range(cnt):
                new_path.append(path[i - 1] + j * (path[i] - path[i - 1]) / cnt)

        new_path.append(path[-1])
        return new_path

    @staticmethod
    def _cal_closest_dist(pt: np.ndarray, polyhedron: Polyhedron) -> float:
        """Distance from pt to the nearest face"""
        min_dist = float('inf')
        for hp in polyhedron.hyperplanes():
            d = abs(np.dot(hp.n, pt - hp.p)) / np.linalg.norm(hp.n)
            if d < min_dist:
                min_dist = d
        return min_dist

    def _simplify(self, path: List[np.ndarray]) -> List[np.ndarray]:
        """Remove waypoints whose predecessor is well inside the next polyhedron"""
        if len(path) <= 2:
            return path

        ref_pt = path[0]
        new_path = [ref_pt]

        for i in range(2, len(path)):
            if (self.polyhedrons_[i - 1].inside(ref_pt) and
                    self._cal_closest_dist(ref_pt, self.polyhedrons_[i - 1]) > 0.1):
                continue
            ref_pt = path[i - 1]
            new_path.append(ref_pt)

        new_path.append(path[-1])
        return new_path
