"""
Demo module: renders the transport engine inside a pygame rectangle.

``Demo`` owns one ``TransportEngine``.  Each frame it pulls the latest
slider values, converts field strength and suppression into the
engine's per-tick acceleration and scattering probability, advances the
engine by one tick and draws ions and electrons.  Lattice spacing,
initial speed and electron count only take effect when the engine is
rebuilt via ``reset_simulation``.
"""

import logging
from typing import Optional

import numpy as np
import pygame

import config
from readouts import ReadoutTracker, Readouts, UnitScales
from simulation import InvalidParameter, TransportEngine

logger = logging.getLogger(__name__)

# Slider keys that are applied on every frame; everything else waits for a reset.
LIVE_PARAM_KEYS = frozenset({'field_strength', 'suppression', 'volume'})
RESET_PARAM_KEYS = frozenset({'ion_distance', 'init_velocity', 'electrons'})


class Demo:
    def __init__(
        self,
        app,
        position,
        demo_size,
        bg_color,
        border_color,
        params,
        loader: Optional[config.ConfigLoader] = None,
    ):
        """
        Initialize a new demonstration instance.

        Parameters
        ----------
        app : App
            Reference to the parent application containing the pygame screen.
        position : tuple
            (x, y) coordinates of the top-left corner of the simulation box.
        demo_size : tuple
            (width, height) of the simulation area in pixels.
        bg_color : tuple
            RGB background colour of the simulation area.
        border_color : tuple
            RGB colour of the border around the simulation area.
        params : dict
            Initial slider values keyed by slider name.
        loader : ConfigLoader, optional
            Configuration to use; a fresh loader is created when omitted.
        """
        self.app = app
        self.screen = app.screen
        self.bg_color = bg_color
        self.bd_color = border_color
        self.position = position
        self.main = pygame.Rect(*position, *demo_size)
        self.width, self.height = demo_size

        loader = loader if loader is not None else config.ConfigLoader()
        canvas = loader['canvas']
        self.sim_width = float(canvas['width'])
        self.sim_height = float(canvas['height'])
        scales = loader['slider_scale']
        self.field_scale = float(scales.get('field_strength', 0.1))
        self.suppression_scale = float(scales.get('suppression', 0.1))
        self.ion_radius = float(loader['ion_radius'])
        self.electron_radius = float(loader['electron_radius'])
        self.ion_color = tuple(loader['ion_color'])
        self.electron_color = tuple(loader['electron_color'])
        self.seed = loader.get('seed')

        self.params = dict(params)
        self.tracker = ReadoutTracker(
            loader['update_every_n'],
            loader['fps'],
            UnitScales.from_dict(loader['units']),
        )
        # Parameters the running engine was built from (used to flag pending changes)
        self._built_params: dict = {}
        self.simulation = TransportEngine(
            self.sim_width,
            self.sim_height,
            self.params['ion_distance'],
            self.params['init_velocity'],
            self.params['electrons'],
            seed=self.seed,
            ion_radius=self.ion_radius,
        )
        self._remember_built_params()
        self._ion_screen_positions = self._project_positions(self.simulation.ion_positions)

    # -------------------------------------------------------------------------
    def acceleration(self) -> float:
        """Per-tick acceleration from the field strength slider."""
        return float(self.params.get('field_strength', 0.0)) * self.field_scale

    def suppression(self) -> float:
        """Per-tick scattering probability from the suppression slider."""
        return float(self.params.get('suppression', 0.0)) * self.suppression_scale

    def _remember_built_params(self) -> None:
        self._built_params = {key: self.params.get(key) for key in RESET_PARAM_KEYS}

    def has_pending_changes(self) -> bool:
        """True when lattice, speed or count sliders differ from the running engine."""
        return any(self.params.get(key) != self._built_params.get(key) for key in RESET_PARAM_KEYS)

    def reset_simulation(self) -> bool:
        """Rebuild the engine from the current slider values.

        Returns ``False`` and keeps the running engine when the values are
        rejected.
        """
        try:
            self.simulation.reset(
                self.sim_width,
                self.sim_height,
                self.params['ion_distance'],
                self.params['init_velocity'],
                self.params['electrons'],
            )
        except InvalidParameter as e:
            logger.error(f"Reset rejected, keeping previous simulation: {e}")
            return False
        self.tracker.reset()
        self._remember_built_params()
        self._ion_screen_positions = self._project_positions(self.simulation.ion_positions)
        logger.info("Simulation reset from slider values.")
        return True

    def set_params(self, params: dict) -> None:
        """Store slider values; live ones act on the next frame."""
        for key, value in params.items():
            if key in LIVE_PARAM_KEYS or key in RESET_PARAM_KEYS:
                self.params[key] = value

    def resize_viewport(self, position: tuple[int, int], demo_size: tuple[int, int]) -> None:
        """Adjust the rendering viewport to a new rectangle."""
        self.position = position
        self.main = pygame.Rect(*position, *demo_size)
        self.width, self.height = demo_size
        self.screen = self.app.screen
        self._ion_screen_positions = self._project_positions(self.simulation.ion_positions)

    def get_readouts(self) -> Optional[Readouts]:
        return self.tracker.latest

    # -------------------------------------------------------------------------
    def _scales(self) -> tuple[float, float]:
        return self.width / self.sim_width, self.height / self.sim_height

    def _project_positions(self, positions: np.ndarray) -> np.ndarray:
        """Convert simulation-space positions (y pointing down) to screen pixels."""
        x_scale, y_scale = self._scales()
        projected = np.empty_like(positions)
        projected[0] = self.position[0] + positions[0] * x_scale
        projected[1] = self.position[1] + positions[1] * y_scale
        return np.round(projected).astype(int)

    def _draw_radius(self, radius: float) -> int:
        return max(1, int(round(radius * min(self._scales()))))

    def draw_check(self, params: dict) -> None:
        """Apply slider values, advance one tick and render the frame."""
        self.set_params(params.get('params', {}))

        self.simulation.step(self.acceleration(), self.suppression())
        self.tracker.tick(
            self.simulation.snapshot(),
            float(self.params.get('field_strength', 0.0)),
            float(self.params.get('volume', 0.0)),
        )

        pygame.draw.rect(self.screen, self.bg_color, self.main)
        previous_clip = self.screen.get_clip()
        self.screen.set_clip(self.main)

        ion_radius = self._draw_radius(self.ion_radius)
        for idx in range(self._ion_screen_positions.shape[1]):
            point = (int(self._ion_screen_positions[0, idx]), int(self._ion_screen_positions[1, idx]))
            pygame.draw.circle(self.screen, self.ion_color, point, ion_radius)
            pygame.draw.circle(self.screen, (0, 0, 0), point, ion_radius, width=1)

        electrons = self._project_positions(self.simulation.r)
        electron_radius = self._draw_radius(self.electron_radius)
        for idx in range(electrons.shape[1]):
            pygame.draw.circle(self.screen, self.electron_color, (int(electrons[0, idx]), int(electrons[1, idx])), electron_radius)

        self.screen.set_clip(previous_clip)
        pygame.draw.rect(self.screen, self.bd_color, self.main, width=2)
