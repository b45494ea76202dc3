"""
Drude-style transport of free electrons through a fixed ion lattice.

This module defines a ``TransportEngine`` class that models many free
electrons drifting across a rectangular sample under a uniform
horizontal field.  Ions sit on a regular grid and never move.  Every
tick each electron is accelerated along ``x``, moved by one Euler step,
wrapped onto the periodic domain and then subjected to one Bernoulli
scattering trial.  A successful trial resets the electron's velocity to
zero, which is the relaxation-time approximation of the Drude model:
the per-tick scattering probability is the instantaneous scattering
rate and the mean number of ticks between collisions estimates the
mean free time.

Leaving the sample through the left or right edge re-enters the
electron from the opposite side and increments a directional crossing
counter.  The display layer turns those counters and the mean collision
interval into current, drift velocity and mobility readouts (see
``readouts.py``); nothing in this module knows about physical units.
"""

from __future__ import annotations

import itertools
import logging
import math
import numbers
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from numpy import ndarray

logger = logging.getLogger(__name__)

# Default ion radius in simulation units; sites keep a whole ion inside the sample.
ION_RADIUS = 10.0


class InvalidParameter(ValueError):
    """Raised when an engine is constructed or reset with unusable inputs."""

    def __init__(self, name: str, value, reason: str):
        self.name = name
        self.value = value
        super().__init__(f"Invalid {name}={value!r}: {reason}")


################################################################################
# Parameter validation
################################################################################

def _reject(name: str, value, reason: str) -> InvalidParameter:
    logger.warning(f"Rejected {name}={value!r}: {reason}")
    return InvalidParameter(name, value, reason)


def _as_float(name: str, value) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise _reject(name, value, "must be a number") from None
    if not math.isfinite(result):
        raise _reject(name, value, "must be finite")
    return result


def _require_positive(name: str, value) -> float:
    result = _as_float(name, value)
    if result <= 0.0:
        raise _reject(name, value, "must be positive")
    return result


def _require_non_negative(name: str, value) -> float:
    result = _as_float(name, value)
    if result < 0.0:
        raise _reject(name, value, "must not be negative")
    return result


def _require_count(name: str, value) -> int:
    """Accept integers and integral floats (slider values arrive as floats)."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise _reject(name, value, "must be an integer")
    if isinstance(value, numbers.Integral):
        result = int(value)
    else:
        as_float = float(value)
        if not math.isfinite(as_float) or not as_float.is_integer():
            raise _reject(name, value, "must be an integer")
        result = int(as_float)
    if result < 0:
        raise _reject(name, value, "must not be negative")
    return result


def _wrap_periodic(coord: ndarray, extent: float) -> ndarray:
    """Map coordinates onto ``[0, extent)``.

    ``np.mod`` of a tiny negative value rounds to ``extent`` itself, so the
    upper edge is folded back to zero explicitly.
    """
    wrapped = np.mod(coord, extent)
    wrapped[wrapped >= extent] = 0.0
    return wrapped


################################################################################
# Value types
################################################################################

@dataclass(frozen=True)
class Ion:
    """Fixed lattice site."""

    x: float
    y: float


@dataclass(frozen=True)
class Electron:
    """Read-only view of a single electron taken between two ticks."""

    x: float
    y: float
    vx: float
    vy: float
    ticks_since_collision: int


@dataclass(frozen=True)
class TransportSnapshot:
    """Counters the display layer needs to derive physical readouts."""

    left_count: int
    right_count: int
    mean_collision_interval: float
    collision_count: int
    tick_count: int
    electron_count: int

    @property
    def net_crossings(self) -> int:
        return self.right_count - self.left_count


################################################################################
# Lattice
################################################################################

def _axis_centres(extent: float, spacing: float, ion_radius: float) -> ndarray:
    """Site coordinates along one axis, centred inside ``[0, extent)``.

    Sites are placed every ``spacing`` while a whole ion of radius
    ``ion_radius`` still fits; the leftover room is split evenly between
    both ends.  At least one site is always produced; when not even one
    ion fits, that single site sits in the middle.
    """
    usable = extent - 2.0 * ion_radius
    if usable < 0.0:
        return np.array([extent / 2.0])
    n_sites = int(usable // spacing) + 1
    # With a zero radius the last site could land on the far edge itself
    if n_sites > 1 and (n_sites - 1) * spacing >= extent:
        n_sites -= 1
    margin = (usable - (n_sites - 1) * spacing) / 2.0 + ion_radius
    return margin + spacing * np.arange(n_sites, dtype=float)


def _build_lattice(width: float, height: float, spacing: float, ion_radius: float) -> Tuple[Ion, ...]:
    xs = _axis_centres(width, spacing, ion_radius)
    ys = _axis_centres(height, spacing, ion_radius)
    return tuple(Ion(float(x), float(y)) for x, y in itertools.product(xs, ys))


def generate_lattice(
    width: float,
    height: float,
    spacing: float,
    ion_radius: float = ION_RADIUS,
) -> Tuple[Ion, ...]:
    """Return the ion grid covering a ``width`` x ``height`` sample.

    Sites are ordered column by column (all ``y`` for the first ``x``,
    then the next column), which is also the rendering order.

    Raises
    ------
    InvalidParameter
        If any dimension or the spacing is not a positive finite number,
        or the ion radius is negative.
    """
    width = _require_positive('width', width)
    height = _require_positive('height', height)
    spacing = _require_positive('ion_spacing', spacing)
    ion_radius = _require_non_negative('ion_radius', ion_radius)
    return _build_lattice(width, height, spacing, ion_radius)


################################################################################
# Electron storage and kinematics
################################################################################

def _isotropic_vectors_from_speeds(speeds: ndarray, rng: np.random.Generator) -> ndarray:
    """Create 2D velocity vectors with random directions and fixed speeds."""
    count = speeds.shape[0]
    if count == 0:
        return np.zeros((2, 0))
    angles = rng.uniform(0.0, 2.0 * math.pi, size=count)
    return np.vstack((speeds * np.cos(angles), speeds * np.sin(angles)))


class ElectronPool:
    """Index-addressed electron state.

    Positions and velocities are stored as ``2 x N`` arrays (row 0 is
    ``x``, row 1 is ``y``) and the per-electron collision timers as an
    ``N`` integer array.  Electron ``i`` keeps index ``i`` for the whole
    lifetime of the pool.
    """

    def __init__(self, r: ndarray, v: ndarray, ticks: Optional[ndarray] = None):
        r = np.array(r, dtype=float)
        v = np.array(v, dtype=float)
        if r.ndim != 2 or r.shape[0] != 2 or r.shape != v.shape:
            raise ValueError("Positions and velocities must both have shape (2, N)")
        if ticks is None:
            ticks = np.zeros(r.shape[1], dtype=np.int64)
        else:
            ticks = np.array(ticks, dtype=np.int64)
            if ticks.shape != (r.shape[1],):
                raise ValueError("Collision timers must have shape (N,)")
        self.r: ndarray = r
        self.v: ndarray = v
        self.ticks: ndarray = ticks

    @classmethod
    def initialize(
        cls,
        width: float,
        height: float,
        count: int,
        initial_speed: float,
        rng: np.random.Generator,
    ) -> 'ElectronPool':
        """Scatter ``count`` electrons uniformly over the sample.

        Every electron starts with speed ``initial_speed`` in a uniformly
        random direction.  Overlapping electrons are allowed.  Draw order
        from ``rng`` is fixed (all ``x``, all ``y``, then all angles) so a
        seeded generator reproduces the same pool.
        """
        width = _require_positive('width', width)
        height = _require_positive('height', height)
        count = _require_count('electron_count', count)
        initial_speed = _require_non_negative('initial_speed', initial_speed)
        return cls._populate(width, height, count, initial_speed, rng)

    @classmethod
    def _populate(
        cls,
        width: float,
        height: float,
        count: int,
        initial_speed: float,
        rng: np.random.Generator,
    ) -> 'ElectronPool':
        x_positions = rng.uniform(low=0.0, high=width, size=count)
        y_positions = rng.uniform(low=0.0, high=height, size=count)
        r = np.vstack((_wrap_periodic(x_positions, width), _wrap_periodic(y_positions, height)))
        v = _isotropic_vectors_from_speeds(np.full(count, initial_speed), rng)
        return cls(r, v)

    def __len__(self) -> int:
        return int(self.r.shape[1])


def integrate(pool: ElectronPool, acceleration: float) -> None:
    """Advance every electron by one tick of uniform horizontal acceleration.

    Velocity is updated before position, so the displacement of a tick
    already includes that tick's acceleration.  An electron whose
    velocity overflows to infinity is brought to rest instead, which keeps
    every position finite and wrappable.
    """
    with np.errstate(over='ignore', invalid='ignore'):
        pool.v[0] += acceleration
    runaway = ~np.isfinite(pool.v[0])
    if np.any(runaway):
        logger.debug(f"Stopping {int(np.count_nonzero(runaway))} electrons with overflowing velocity")
        pool.v[0, runaway] = 0.0
    pool.r += pool.v


class BoundaryTracker:
    """Periodic wraparound with directional crossing counters.

    Only horizontal crossings are counted; the vertical axis is wrapped
    the same way but silently.
    """

    def __init__(self, width: float, height: float):
        self.width: float = float(width)
        self.height: float = float(height)
        self.left_count: int = 0
        self.right_count: int = 0

    def apply(self, pool: ElectronPool) -> Tuple[int, int]:
        """Wrap post-integration positions and return ``(left, right)`` crossings.

        An electron that left through either edge is counted once for the
        tick, however far past the edge it travelled.
        """
        x = pool.r[0]
        left = int(np.count_nonzero(x < 0.0))
        right = int(np.count_nonzero(x >= self.width))
        self.left_count += left
        self.right_count += right
        pool.r[0] = _wrap_periodic(x, self.width)
        pool.r[1] = _wrap_periodic(pool.r[1], self.height)
        return left, right


################################################################################
# Collisions
################################################################################

class StatisticsAggregator:
    """Running sum and count of ticks between consecutive collisions."""

    def __init__(self):
        self._total: int = 0
        self._count: int = 0

    @property
    def total(self) -> int:
        return self._total

    @property
    def count(self) -> int:
        return self._count

    def record_interval(self, ticks: int) -> None:
        ticks = int(ticks)
        if ticks < 0:
            raise ValueError("Collision interval must not be negative")
        self._total += ticks
        self._count += 1

    def record_intervals(self, ticks: ndarray) -> None:
        """Record a batch of intervals at once."""
        ticks = np.asarray(ticks, dtype=np.int64)
        if ticks.size == 0:
            return
        if np.any(ticks < 0):
            raise ValueError("Collision interval must not be negative")
        self._total += int(ticks.sum())
        self._count += int(ticks.size)

    def mean_interval(self) -> float:
        """Mean ticks between collisions, or ``0.0`` before the first one."""
        if self._count == 0:
            return 0.0
        return self._total / self._count


def clamp_probability(value: float) -> float:
    """Clamp a scattering probability into ``[0, 1]``; NaN counts as 0."""
    try:
        p = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(p):
        return 0.0
    return min(max(p, 0.0), 1.0)


class ScatteringModel:
    """Per-tick Bernoulli scattering with velocity reset to rest."""

    def __init__(self, rng: np.random.Generator, statistics: StatisticsAggregator):
        self._rng = rng
        self._statistics = statistics

    def apply(self, pool: ElectronPool, suppression: float) -> int:
        """Run one trial per electron and return the number of collisions.

        Every timer first counts the current tick.  Electrons that scatter
        hand that value to the statistics (so it is always at least 1),
        lose their velocity and restart their timer at 0.  One uniform
        sample is drawn per electron on every call, whatever the
        probability, so the random stream does not depend on slider
        positions.
        """
        p = clamp_probability(suppression)
        pool.ticks += 1
        hits = self._rng.random(len(pool)) < p
        n_hits = int(np.count_nonzero(hits))
        if n_hits:
            self._statistics.record_intervals(pool.ticks[hits])
            pool.v[:, hits] = 0.0
            pool.ticks[hits] = 0
        return n_hits


################################################################################
# TransportEngine class
################################################################################

class TransportEngine:
    """Electron gas drifting through a fixed ion lattice.

    The engine owns its random generator, the ion grid, the electron pool
    and all counters.  Callers drive it with :meth:`step` once per
    animation tick and read the accessors afterwards.  :meth:`reset`
    replaces everything at once; a rejected reset leaves the previous
    state untouched.
    """

    def __init__(
        self,
        width: float,
        height: float,
        ion_spacing: float,
        initial_speed: float,
        electron_count: int,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        ion_radius: float = ION_RADIUS,
    ):
        """Create an engine for a ``width`` x ``height`` sample.

        Parameters
        ----------
        width, height: float
            Sample size in simulation units (pixels in the demo).
        ion_spacing: float
            Distance between neighbouring lattice sites; must be positive.
        initial_speed: float
            Speed every electron starts with; must not be negative.
        electron_count: int
            Number of electrons.  Zero yields an empty but working engine.
        seed: int, optional
            Seed for a fresh ``numpy`` generator.  Ignored when ``rng`` is
            supplied.
        rng: numpy.random.Generator, optional
            Generator to own instead of creating one.
        ion_radius: float, optional
            Radius that every lattice site must keep clear of the edges.

        Raises
        ------
        InvalidParameter
            If any parameter is out of range.
        """
        generator = rng if rng is not None else np.random.default_rng(seed)
        self._install(width, height, ion_spacing, initial_speed, electron_count, generator, ion_radius)

    def _install(
        self,
        width: float,
        height: float,
        ion_spacing: float,
        initial_speed: float,
        electron_count: int,
        rng: np.random.Generator,
        ion_radius: float,
    ) -> None:
        # Build every part first so that a validation error leaves ``self`` untouched.
        width = _require_positive('width', width)
        height = _require_positive('height', height)
        ion_spacing = _require_positive('ion_spacing', ion_spacing)
        initial_speed = _require_non_negative('initial_speed', initial_speed)
        electron_count = _require_count('electron_count', electron_count)
        ion_radius = _require_non_negative('ion_radius', ion_radius)

        ions = _build_lattice(width, height, ion_spacing, ion_radius)
        pool = ElectronPool._populate(width, height, electron_count, initial_speed, rng)
        boundary = BoundaryTracker(width, height)
        statistics = StatisticsAggregator()
        scattering = ScatteringModel(rng, statistics)

        self._width: float = width
        self._height: float = height
        self._ion_spacing: float = ion_spacing
        self._initial_speed: float = initial_speed
        self._ion_radius: float = ion_radius
        self._rng: np.random.Generator = rng
        self._ions: Tuple[Ion, ...] = ions
        self._ion_positions: ndarray = np.array([[ion.x for ion in ions], [ion.y for ion in ions]], dtype=float)
        self._pool: ElectronPool = pool
        self._boundary: BoundaryTracker = boundary
        self._statistics: StatisticsAggregator = statistics
        self._scattering: ScatteringModel = scattering
        self._tick_count: int = 0
        logger.info(
            f"Transport engine ready: {width:g}x{height:g}, spacing {ion_spacing:g}, "
            f"{len(ions)} ions, {electron_count} electrons at speed {initial_speed:g}"
        )

    def reset(
        self,
        width: float,
        height: float,
        ion_spacing: float,
        initial_speed: float,
        electron_count: int,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        ion_radius: Optional[float] = None,
    ) -> None:
        """Discard all state and rebuild from fresh parameters.

        Without ``seed`` or ``rng`` the engine keeps drawing from its
        current generator, so a seeded run stays reproducible across
        resets.  The ion radius carries over unless a new one is given.
        """
        if rng is None:
            rng = np.random.default_rng(seed) if seed is not None else self._rng
        if ion_radius is None:
            ion_radius = self._ion_radius
        self._install(width, height, ion_spacing, initial_speed, electron_count, rng, ion_radius)

    # -------------------------------------------------------------------------
    def step(self, acceleration: float, suppression: float) -> None:
        """Advance the whole population by one tick.

        Order per tick: acceleration and Euler move, boundary wrap with
        crossing count, then scattering.  A collision therefore changes
        the velocity used from the next tick on.  ``suppression`` is
        clamped into ``[0, 1]``; a non-finite ``acceleration`` is treated
        as zero.
        """
        try:
            a = float(acceleration)
        except (TypeError, ValueError):
            a = 0.0
        if not math.isfinite(a):
            a = 0.0
        integrate(self._pool, a)
        self._boundary.apply(self._pool)
        self._scattering.apply(self._pool, suppression)
        self._tick_count += 1

    # -------------------------------------------------------------------------
    # Read accessors (copies; valid until the next step)
    def ions(self) -> Tuple[Ion, ...]:
        """Return the lattice sites in generation order."""
        return self._ions

    def electrons(self) -> list[Electron]:
        """Return per-electron views in pool order."""
        r, v, ticks = self._pool.r, self._pool.v, self._pool.ticks
        return [
            Electron(float(r[0, i]), float(r[1, i]), float(v[0, i]), float(v[1, i]), int(ticks[i]))
            for i in range(len(self._pool))
        ]

    @property
    def r(self) -> ndarray:
        """Return electron positions as a 2×N array."""
        return self._pool.r.copy()

    @property
    def v(self) -> ndarray:
        """Return electron velocities as a 2×N array."""
        return self._pool.v.copy()

    @property
    def ion_positions(self) -> ndarray:
        """Return ion positions as a 2×M array."""
        return self._ion_positions.copy()

    def ticks_since_collision(self) -> ndarray:
        return self._pool.ticks.copy()

    def left_count(self) -> int:
        return self._boundary.left_count

    def right_count(self) -> int:
        return self._boundary.right_count

    def net_crossings(self) -> int:
        """Right-going minus left-going crossings since construction."""
        return self._boundary.right_count - self._boundary.left_count

    def mean_collision_interval(self) -> float:
        return self._statistics.mean_interval()

    def snapshot(self) -> TransportSnapshot:
        return TransportSnapshot(
            left_count=self._boundary.left_count,
            right_count=self._boundary.right_count,
            mean_collision_interval=self._statistics.mean_interval(),
            collision_count=self._statistics.count,
            tick_count=self._tick_count,
            electron_count=len(self._pool),
        )

    # -------------------------------------------------------------------------
    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    @property
    def ion_spacing(self) -> float:
        return self._ion_spacing

    @property
    def initial_speed(self) -> float:
        return self._initial_speed

    @property
    def ion_radius(self) -> float:
        return self._ion_radius

    @property
    def electron_count(self) -> int:
        return len(self._pool)

    @property
    def tick_count(self) -> int:
        """Number of completed :meth:`step` calls since the last reset."""
        return self._tick_count

    @property
    def collision_count(self) -> int:
        return self._statistics.count
