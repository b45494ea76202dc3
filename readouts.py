"""
Physical readouts derived from transport engine counters.

All functions here are stateless: they take plain numbers or a
``TransportSnapshot`` and return SI-ish values scaled for display.  The
only stateful helper is ``ReadoutTracker``, which remembers the counters
seen at the previous refresh so that a current can be computed from the
crossings that happened inside one refresh window.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from simulation import TransportSnapshot


@dataclass(frozen=True)
class UnitScales:
    """Conversion constants between simulation ticks and physical units."""

    electron_q: float = 1.602e-19
    electron_m: float = 9.109e-31
    volume_scale: float = 1.0e-25
    time_scale: float = 1.0e-14
    to_cm_pow_2: float = 1.0e4
    to_um: float = 1.0e6
    to_mm_pow_2: float = 1.0e6

    @classmethod
    def from_dict(cls, raw: Optional[dict]) -> 'UnitScales':
        if not isinstance(raw, dict):
            return cls()
        defaults = cls()
        values = {}
        for name in cls.__dataclass_fields__:
            try:
                values[name] = float(raw.get(name, getattr(defaults, name)))
            except (TypeError, ValueError):
                values[name] = getattr(defaults, name)
        return cls(**values)


@dataclass(frozen=True)
class Readouts:
    left: int
    right: int
    difference: int
    current: float
    mean_free_time: float
    drift_velocity: float
    mobility: float
    current_density: float


def current(delta_right: int, delta_left: int, frames: int, fps: float, electron_q: float) -> float:
    """Net charge per second carried across the sample edges during a window.

    Returns ``0.0`` for an empty window.
    """
    if frames <= 0 or fps <= 0:
        return 0.0
    window_seconds = frames / fps
    return (delta_right - delta_left) * electron_q / window_seconds


def mean_free_time(mean_ticks: float, fps: float, time_scale: float) -> float:
    """Convert the mean collision interval in ticks into seconds."""
    if fps <= 0:
        return 0.0
    return mean_ticks * time_scale / fps


def drift_velocity(field: float, tau: float, electron_q: float, electron_m: float, to_um: float) -> float:
    """Drude drift velocity ``qE tau / m`` in micrometres per second."""
    return electron_q * field * tau * to_um / electron_m


def electron_mobility(tau: float, electron_q: float, electron_m: float, to_cm_pow_2: float) -> float:
    """Drude mobility ``q tau / m`` in cm^2/(V s)."""
    return electron_q * tau * to_cm_pow_2 / electron_m


def current_density(
    electron_count: int,
    volume: float,
    mobility: float,
    field: float,
    electron_q: float,
    volume_scale: float,
    to_mm_pow_2: float,
) -> float:
    """Current density ``n q mu E`` in A/mm^2; ``0.0`` for a non-positive volume."""
    if volume <= 0:
        return 0.0
    carrier_density = electron_count / (volume * volume_scale)
    return electron_q * carrier_density * mobility * field / to_mm_pow_2


def compute_readouts(
    snapshot: TransportSnapshot,
    previous: Optional[TransportSnapshot],
    frames: int,
    fps: float,
    field: float,
    volume: float,
    units: UnitScales,
) -> Readouts:
    """Derive every displayed quantity from two counter snapshots.

    ``previous`` is the snapshot from the last refresh (``None`` on the
    first one, which then counts from zero).  Only the current uses the
    window deltas; the crossing counts shown are cumulative.
    """
    prev_left = previous.left_count if previous is not None else 0
    prev_right = previous.right_count if previous is not None else 0
    delta_left = snapshot.left_count - prev_left
    delta_right = snapshot.right_count - prev_right
    tau = mean_free_time(snapshot.mean_collision_interval, fps, units.time_scale)
    mobility = electron_mobility(tau, units.electron_q, units.electron_m, units.to_cm_pow_2)
    return Readouts(
        left=snapshot.left_count,
        right=snapshot.right_count,
        difference=snapshot.net_crossings,
        current=current(delta_right, delta_left, frames, fps, units.electron_q),
        mean_free_time=tau,
        drift_velocity=drift_velocity(field, tau, units.electron_q, units.electron_m, units.to_um),
        mobility=mobility,
        current_density=current_density(
            snapshot.electron_count,
            volume,
            mobility,
            field,
            units.electron_q,
            units.volume_scale,
            units.to_mm_pow_2,
        ),
    )


class ReadoutTracker:
    """Refresh readouts every ``update_every_n`` frames."""

    def __init__(self, update_every_n: int, fps: float, units: UnitScales):
        self.update_every_n: int = max(1, int(update_every_n))
        self.fps: float = float(fps)
        self.units: UnitScales = units
        self._frames_since_update: int = 0
        self._previous: Optional[TransportSnapshot] = None
        self.latest: Optional[Readouts] = None

    def reset(self) -> None:
        """Forget the previous window (call after the engine is rebuilt)."""
        self._frames_since_update = 0
        self._previous = None
        self.latest = None

    def tick(self, snapshot: TransportSnapshot, field: float, volume: float) -> Optional[Readouts]:
        """Count one frame; return fresh readouts when a window completes."""
        self._frames_since_update += 1
        if self._frames_since_update < self.update_every_n:
            return None
        self.latest = compute_readouts(
            snapshot,
            self._previous,
            self._frames_since_update,
            self.fps,
            field,
            volume,
            self.units,
        )
        self._previous = snapshot
        self._frames_since_update = 0
        return self.latest
