"""
Tests for the electron transport engine.

Covers the lattice layout, electron pool initialisation, the per-tick
integrate / wrap / scatter pipeline, collision statistics and the
engine's construction, reset and accessor contracts.
"""

import math
import warnings

import numpy as np
import pytest

import simulation
from simulation import (
    BoundaryTracker,
    ElectronPool,
    Ion,
    InvalidParameter,
    ScatteringModel,
    StatisticsAggregator,
    TransportEngine,
    clamp_probability,
    generate_lattice,
    integrate,
)

WIDTH = 800.0
HEIGHT = 600.0


@pytest.fixture
def engine() -> TransportEngine:
    return TransportEngine(WIDTH, HEIGHT, 50.0, 2.0, 100, seed=1234)


def assert_in_bounds(engine: TransportEngine) -> None:
    r = engine.r
    assert np.all(r[0] >= 0.0) and np.all(r[0] < engine.width)
    assert np.all(r[1] >= 0.0) and np.all(r[1] < engine.height)


# =============================================================================
# Lattice
# =============================================================================

class TestLattice:

    def test_regular_grid_is_centred(self):
        ions = generate_lattice(WIDTH, HEIGHT, 50.0)
        assert len(ions) == 16 * 12
        assert ions[0] == Ion(25.0, 25.0)
        assert ions[-1] == Ion(775.0, 575.0)

    def test_column_major_order(self):
        ions = generate_lattice(WIDTH, HEIGHT, 50.0)
        assert ions[1] == Ion(25.0, 75.0)
        assert ions[12] == Ion(75.0, 25.0)

    def test_all_sites_inside_area(self):
        ions = generate_lattice(333.0, 127.0, 17.0)
        assert ions
        for ion in ions:
            assert 0.0 <= ion.x < 333.0
            assert 0.0 <= ion.y < 127.0

    def test_spacing_larger_than_area_gives_single_central_ion(self):
        ions = generate_lattice(100.0, 80.0, 500.0)
        assert ions == (Ion(50.0, 40.0),)

    def test_deterministic(self):
        assert generate_lattice(WIDTH, HEIGHT, 37.0) == generate_lattice(WIDTH, HEIGHT, 37.0)

    @pytest.mark.parametrize("spacing", [0.0, -5.0, float('nan'), float('inf')])
    def test_invalid_spacing(self, spacing):
        with pytest.raises(InvalidParameter) as exc_info:
            generate_lattice(WIDTH, HEIGHT, spacing)
        assert exc_info.value.name == 'ion_spacing'

    def test_partial_fit_adds_edge_rows(self):
        ions = generate_lattice(WIDTH, HEIGHT, 80.0)
        xs = sorted({ion.x for ion in ions})
        ys = sorted({ion.y for ion in ions})
        assert len(xs) == 10
        assert len(ys) == 8
        assert ions[0] == Ion(40.0, 20.0)
        assert ions[-1] == Ion(760.0, 580.0)

    def test_spacing_that_does_not_divide_the_sample(self):
        ions = generate_lattice(WIDTH, HEIGHT, 30.0)
        xs = sorted({ion.x for ion in ions})
        ys = sorted({ion.y for ion in ions})
        assert len(xs) == 27
        assert len(ys) == 20
        assert xs[0] == pytest.approx(10.0)
        assert xs[-1] == pytest.approx(790.0)

    @pytest.mark.parametrize("spacing", [23.0, 47.5, 80.0, 133.0])
    def test_whole_ions_fit_inside_the_sample(self, spacing):
        for ion in generate_lattice(WIDTH, HEIGHT, spacing, ion_radius=12.0):
            assert 12.0 <= ion.x <= WIDTH - 12.0
            assert 12.0 <= ion.y <= HEIGHT - 12.0

    def test_zero_radius_never_places_a_site_on_the_far_edge(self):
        ions = generate_lattice(WIDTH, HEIGHT, 50.0, ion_radius=0.0)
        assert len({ion.x for ion in ions}) == 16
        assert ions[0] == Ion(25.0, 25.0)
        assert all(ion.x < WIDTH and ion.y < HEIGHT for ion in ions)

    def test_sample_smaller_than_one_ion(self):
        assert generate_lattice(15.0, 12.0, 50.0) == (Ion(7.5, 6.0),)

    def test_negative_radius_rejected(self):
        with pytest.raises(InvalidParameter) as exc_info:
            generate_lattice(WIDTH, HEIGHT, 50.0, ion_radius=-1.0)
        assert exc_info.value.name == 'ion_radius'


# =============================================================================
# Electron pool and kinematics
# =============================================================================

class TestElectronPool:

    def test_initial_speed_and_placement(self):
        rng = np.random.default_rng(7)
        pool = ElectronPool.initialize(WIDTH, HEIGHT, 500, 3.0, rng)
        assert len(pool) == 500
        speeds = np.hypot(pool.v[0], pool.v[1])
        np.testing.assert_allclose(speeds, 3.0)
        assert np.all((pool.r[0] >= 0.0) & (pool.r[0] < WIDTH))
        assert np.all((pool.r[1] >= 0.0) & (pool.r[1] < HEIGHT))
        assert np.all(pool.ticks == 0)

    def test_directions_are_not_all_aligned(self):
        pool = ElectronPool.initialize(WIDTH, HEIGHT, 200, 1.0, np.random.default_rng(3))
        assert np.any(pool.v[0] < 0.0) and np.any(pool.v[0] > 0.0)
        assert np.any(pool.v[1] < 0.0) and np.any(pool.v[1] > 0.0)

    def test_same_seed_same_pool(self):
        a = ElectronPool.initialize(WIDTH, HEIGHT, 50, 2.0, np.random.default_rng(99))
        b = ElectronPool.initialize(WIDTH, HEIGHT, 50, 2.0, np.random.default_rng(99))
        assert np.array_equal(a.r, b.r)
        assert np.array_equal(a.v, b.v)

    def test_empty_pool(self):
        pool = ElectronPool.initialize(WIDTH, HEIGHT, 0, 2.0, np.random.default_rng(0))
        assert len(pool) == 0
        assert pool.r.shape == (2, 0)
        assert pool.v.shape == (2, 0)

    def test_negative_speed_rejected(self):
        with pytest.raises(InvalidParameter):
            ElectronPool.initialize(WIDTH, HEIGHT, 10, -1.0, np.random.default_rng(0))

    def test_mismatched_shapes_rejected(self):
        with pytest.raises(ValueError):
            ElectronPool(np.zeros((2, 3)), np.zeros((2, 4)))

    def test_velocity_updated_before_position(self):
        pool = ElectronPool([[10.0], [20.0]], [[1.0], [0.5]])
        integrate(pool, 2.0)
        assert pool.v[0, 0] == 3.0
        assert pool.r[0, 0] == 13.0
        assert pool.r[1, 0] == 20.5

    def test_overflowing_velocity_is_stopped(self):
        pool = ElectronPool([[10.0], [20.0]], [[1.7e308], [0.0]])
        integrate(pool, 1.7e308)
        assert pool.v[0, 0] == 0.0
        assert np.all(np.isfinite(pool.r))


class TestBoundaryTracker:

    def test_right_edge_crossing_wraps_and_counts(self):
        pool = ElectronPool([[WIDTH - 1.0], [300.0]], [[5.0], [0.0]])
        tracker = BoundaryTracker(WIDTH, HEIGHT)
        integrate(pool, 0.0)
        assert pool.r[0, 0] == WIDTH + 4.0
        assert tracker.apply(pool) == (0, 1)
        assert pool.r[0, 0] == 4.0
        assert tracker.right_count == 1
        assert tracker.left_count == 0

    def test_left_edge_crossing_wraps_and_counts(self):
        pool = ElectronPool([[1.0], [300.0]], [[-3.0], [0.0]])
        tracker = BoundaryTracker(WIDTH, HEIGHT)
        integrate(pool, 0.0)
        tracker.apply(pool)
        assert pool.r[0, 0] == WIDTH - 2.0
        assert tracker.left_count == 1
        assert tracker.right_count == 0

    def test_vertical_wrap_is_not_counted(self):
        pool = ElectronPool([[100.0, 200.0], [HEIGHT - 1.0, 2.0]], [[0.0, 0.0], [3.0, -5.0]])
        tracker = BoundaryTracker(WIDTH, HEIGHT)
        integrate(pool, 0.0)
        tracker.apply(pool)
        np.testing.assert_allclose(pool.r[1], [2.0, HEIGHT - 3.0])
        assert tracker.left_count == 0
        assert tracker.right_count == 0

    def test_far_overshoot_counted_once_and_kept_in_bounds(self):
        pool = ElectronPool([[10.0], [10.0]], [[3.5 * WIDTH], [0.0]])
        tracker = BoundaryTracker(WIDTH, HEIGHT)
        integrate(pool, 0.0)
        tracker.apply(pool)
        assert tracker.right_count == 1
        assert 0.0 <= pool.r[0, 0] < WIDTH
        assert pool.r[0, 0] == pytest.approx(410.0)

    def test_tiny_negative_position_never_lands_on_upper_edge(self):
        pool = ElectronPool([[1e-17], [5.0]], [[-2e-17], [0.0]])
        tracker = BoundaryTracker(WIDTH, HEIGHT)
        integrate(pool, 0.0)
        tracker.apply(pool)
        assert 0.0 <= pool.r[0, 0] < WIDTH
        assert tracker.left_count == 1


# =============================================================================
# Collisions
# =============================================================================

class TestStatisticsAggregator:

    def test_mean_is_zero_before_any_collision(self):
        assert StatisticsAggregator().mean_interval() == 0.0

    def test_running_mean(self):
        stats = StatisticsAggregator()
        stats.record_interval(2)
        stats.record_interval(4)
        stats.record_intervals(np.array([3, 3]))
        assert stats.count == 4
        assert stats.total == 12
        assert stats.mean_interval() == 3.0

    def test_negative_interval_rejected(self):
        stats = StatisticsAggregator()
        with pytest.raises(ValueError):
            stats.record_interval(-1)
        with pytest.raises(ValueError):
            stats.record_intervals(np.array([1, -2]))


class TestScatteringModel:

    @pytest.mark.parametrize("value, expected", [
        (0.3, 0.3),
        (-0.5, 0.0),
        (7.0, 1.0),
        (float('nan'), 0.0),
        (float('inf'), 1.0),
    ])
    def test_probability_clamped(self, value, expected):
        assert clamp_probability(value) == expected

    def test_certain_collision_resets_velocity_and_timer(self):
        pool = ElectronPool(np.ones((2, 5)), np.full((2, 5), 4.0), ticks=[0, 1, 2, 3, 4])
        stats = StatisticsAggregator()
        model = ScatteringModel(np.random.default_rng(0), stats)
        assert model.apply(pool, 1.0) == 5
        assert np.all(pool.v == 0.0)
        assert np.all(pool.ticks == 0)
        assert stats.total == 1 + 2 + 3 + 4 + 5

    def test_no_collision_only_advances_timers(self):
        pool = ElectronPool(np.ones((2, 3)), np.full((2, 3), 4.0))
        stats = StatisticsAggregator()
        model = ScatteringModel(np.random.default_rng(0), stats)
        for _ in range(4):
            assert model.apply(pool, 0.0) == 0
        assert np.all(pool.ticks == 4)
        assert np.all(pool.v == 4.0)
        assert stats.count == 0


# =============================================================================
# Engine
# =============================================================================

class TestEngineConstruction:

    @pytest.mark.parametrize("count", [0, 1, 57, 300])
    def test_population_and_timers_after_reset(self, engine, count):
        engine.reset(WIDTH, HEIGHT, 40.0, 1.5, count)
        assert engine.electron_count == count
        assert len(engine.electrons()) == count
        assert np.all(engine.ticks_since_collision() == 0)
        assert engine.left_count() == 0
        assert engine.right_count() == 0
        assert engine.mean_collision_interval() == 0.0
        assert engine.tick_count == 0

    def test_float_count_from_slider_accepted(self):
        engine = TransportEngine(WIDTH, HEIGHT, 50.0, 0.0, 12.0, seed=0)
        assert engine.electron_count == 12

    @pytest.mark.parametrize("kwargs, name", [
        ({'ion_spacing': 0.0}, 'ion_spacing'),
        ({'ion_spacing': -10.0}, 'ion_spacing'),
        ({'initial_speed': -1.0}, 'initial_speed'),
        ({'electron_count': -3}, 'electron_count'),
        ({'electron_count': 2.5}, 'electron_count'),
        ({'width': 0.0}, 'width'),
        ({'height': float('nan')}, 'height'),
    ])
    def test_invalid_parameters(self, kwargs, name):
        params = {'width': WIDTH, 'height': HEIGHT, 'ion_spacing': 50.0, 'initial_speed': 1.0, 'electron_count': 10}
        params.update(kwargs)
        with pytest.raises(InvalidParameter) as exc_info:
            TransportEngine(**params, seed=0)
        assert exc_info.value.name == name
        assert isinstance(exc_info.value, ValueError)

    def test_rejected_reset_keeps_previous_state(self, engine):
        for _ in range(5):
            engine.step(0.5, 0.1)
        ions_before = engine.ions()
        r_before = engine.r
        left, right = engine.left_count(), engine.right_count()
        with pytest.raises(InvalidParameter):
            engine.reset(WIDTH, HEIGHT, 0.0, 1.0, 10)
        assert engine.ions() == ions_before
        assert np.array_equal(engine.r, r_before)
        assert (engine.left_count(), engine.right_count()) == (left, right)
        assert engine.tick_count == 5

    def test_reset_with_seed_matches_fresh_engine(self, engine):
        for _ in range(10):
            engine.step(1.0, 0.2)
        engine.reset(WIDTH, HEIGHT, 60.0, 3.0, 40, seed=77)
        fresh = TransportEngine(WIDTH, HEIGHT, 60.0, 3.0, 40, seed=77)
        assert np.array_equal(engine.r, fresh.r)
        assert np.array_equal(engine.v, fresh.v)
        assert engine.ions() == fresh.ions()

    def test_each_parameter_is_validated_once(self, monkeypatch):
        seen = []
        original = simulation._require_positive

        def counting(name, value):
            seen.append(name)
            return original(name, value)

        monkeypatch.setattr(simulation, '_require_positive', counting)
        TransportEngine(WIDTH, HEIGHT, 50.0, 1.0, 10, seed=0)
        assert sorted(seen) == ['height', 'ion_spacing', 'width']

    def test_reset_keeps_ion_radius(self):
        engine = TransportEngine(WIDTH, HEIGHT, 80.0, 1.0, 5, seed=0, ion_radius=0.0)
        engine.reset(WIDTH, HEIGHT, 50.0, 1.0, 5)
        assert engine.ion_radius == 0.0
        assert engine.ions() == generate_lattice(WIDTH, HEIGHT, 50.0, ion_radius=0.0)

    def test_accessors_return_copies(self, engine):
        r = engine.r
        r[:] = -1.0
        assert_in_bounds(engine)
        ticks = engine.ticks_since_collision()
        ticks[:] = 99
        assert np.all(engine.ticks_since_collision() == 0)


class TestEngineStepping:

    def test_positions_stay_in_bounds(self, engine):
        accelerations = [0.0, 3.0, -7.5, 40.0, -120.0, 0.25]
        for tick in range(300):
            engine.step(accelerations[tick % len(accelerations)], 0.05)
            assert_in_bounds(engine)

    def test_same_seed_same_trajectory(self):
        a = TransportEngine(WIDTH, HEIGHT, 50.0, 2.0, 80, seed=2024)
        b = TransportEngine(WIDTH, HEIGHT, 50.0, 2.0, 80, seed=2024)
        drive = [(0.3, 0.1), (1.0, 0.0), (-0.4, 0.5), (2.0, 0.05)]
        for tick in range(200):
            acceleration, suppression = drive[tick % len(drive)]
            a.step(acceleration, suppression)
            b.step(acceleration, suppression)
            assert a.r.tobytes() == b.r.tobytes()
            assert a.v.tobytes() == b.v.tobytes()
            assert (a.left_count(), a.right_count()) == (b.left_count(), b.right_count())
        assert a.mean_collision_interval() == b.mean_collision_interval()

    def test_crossing_counters_are_monotonic(self, engine):
        left, right = 0, 0
        for tick in range(300):
            engine.step(1.5 if tick % 50 < 25 else -1.5, 0.1)
            assert engine.left_count() >= left
            assert engine.right_count() >= right
            left, right = engine.left_count(), engine.right_count()
        assert left + right > 0

    def test_strong_positive_field_only_crosses_right(self):
        engine = TransportEngine(WIDTH, HEIGHT, 50.0, 2.0, 60, seed=5)
        for _ in range(100):
            engine.step(5.0, 0.0)
        assert engine.left_count() == 0
        assert engine.right_count() > 0
        assert engine.net_crossings() == engine.right_count()

    def test_no_scattering_means_pure_acceleration(self, engine):
        previous_vx = engine.v[0]
        for tick in range(1, 51):
            engine.step(0.5, 0.0)
            vx = engine.v[0]
            assert np.all(vx > previous_vx)
            previous_vx = vx
            assert np.all(engine.ticks_since_collision() == tick)
        assert engine.mean_collision_interval() == 0.0
        assert engine.collision_count == 0

    def test_certain_scattering_resets_every_tick(self, engine):
        for _ in range(25):
            engine.step(3.0, 1.0)
            assert np.all(engine.ticks_since_collision() == 0)
            assert np.all(engine.v == 0.0)
        assert engine.mean_collision_interval() == 1.0
        assert engine.collision_count == 25 * engine.electron_count

    def test_out_of_range_suppression_is_clamped(self):
        high = TransportEngine(WIDTH, HEIGHT, 50.0, 2.0, 30, seed=8)
        low = TransportEngine(WIDTH, HEIGHT, 50.0, 2.0, 30, seed=8)
        for _ in range(10):
            high.step(1.0, 12.0)
            low.step(1.0, -3.0)
        assert high.mean_collision_interval() == 1.0
        assert low.collision_count == 0

    def test_mean_interval_tracks_scattering_rate(self):
        engine = TransportEngine(WIDTH, HEIGHT, 50.0, 1.0, 200, seed=11)
        for _ in range(400):
            engine.step(0.2, 0.25)
        assert engine.mean_collision_interval() == pytest.approx(4.0, abs=0.2)

    def test_non_finite_acceleration_is_ignored(self, engine):
        v_before = engine.v
        engine.step(float('nan'), 0.0)
        assert np.array_equal(engine.v, v_before)
        assert_in_bounds(engine)

    def test_huge_acceleration_keeps_positions_in_bounds(self):
        engine = TransportEngine(WIDTH, HEIGHT, 50.0, 0.0, 3, seed=6)
        with warnings.catch_warnings():
            warnings.simplefilter('error', RuntimeWarning)
            for _ in range(3):
                engine.step(1e308, 0.0)
        assert np.all(np.isfinite(engine.v))
        assert_in_bounds(engine)

    def test_empty_engine_steps(self):
        engine = TransportEngine(WIDTH, HEIGHT, 50.0, 2.0, 0, seed=0)
        for _ in range(10):
            engine.step(2.0, 0.5)
        assert engine.electrons() == []
        assert engine.mean_collision_interval() == 0.0
        assert engine.tick_count == 10
        snapshot = engine.snapshot()
        assert snapshot.electron_count == 0
        assert snapshot.net_crossings == 0

    def test_uniform_acceleration_scenario(self):
        engine = TransportEngine(WIDTH, HEIGHT, 50.0, 0.0, 1, seed=42)
        x0 = engine.electrons()[0].x
        for _ in range(3):
            engine.step(2.0, 0.0)
        electron = engine.electrons()[0]
        assert electron.vx == 6.0
        expected = x0 + 12.0
        crossed = expected >= WIDTH
        if crossed:
            expected -= WIDTH
        assert electron.x == pytest.approx(expected)
        assert engine.right_count() == int(crossed)
        assert engine.collision_count == 0
        assert electron.ticks_since_collision == 3

    def test_snapshot_matches_accessors(self, engine):
        for _ in range(30):
            engine.step(2.0, 0.3)
        snapshot = engine.snapshot()
        assert snapshot.left_count == engine.left_count()
        assert snapshot.right_count == engine.right_count()
        assert snapshot.mean_collision_interval == engine.mean_collision_interval()
        assert snapshot.tick_count == 30
        assert snapshot.electron_count == 100
        assert math.isfinite(snapshot.mean_collision_interval)
