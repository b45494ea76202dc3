from __future__ import annotations

import logging
from collections import OrderedDict
from typing import List

import pygame

import config
from button import Button
from demo import Demo
from readouts import Readouts
from slider import ParamSlider
from ui_base import build_vertical_gradient, get_font

logger = logging.getLogger(__name__)


class DemoScreen:
    """Main screen: simulation canvas, slider panel and readout panel."""

    def __init__(self, app, loader: config.ConfigLoader | None = None):
        self.app = app
        self.screen = app.screen
        self.loader = loader if loader is not None else config.ConfigLoader()
        self.bg_color = (234, 236, 246)
        self.panel_color = (248, 249, 253)
        self.border_color = (214, 220, 235)
        self.shadow_color = (18, 24, 60, 60)
        self.text_color = (38, 44, 60)
        self.accent_color = (72, 104, 255)

        self.panel_title_font = get_font(22, bold=True)
        self.readout_label_font = get_font(15, bold=True)
        self.readout_value_font = get_font(17)
        self.hint_font = get_font(14)

        self.sim_rect: pygame.Rect | None = None
        self.slider_panel_rect: pygame.Rect | None = None
        self.readout_panel_rect: pygame.Rect | None = None
        self.background: pygame.Surface | None = None

        self.sliders: List[ParamSlider] = []
        self.buttons: List[Button] = []
        self.reset_button: Button | None = None
        self.slider_grabbed = False

        self.slider_definitions, self.initial_params = self._build_slider_definitions()
        self.demo_config = {'params': self.initial_params.copy()}
        self.demo: Demo | None = None

        self._relayout(self.app.window_size)

    # ------------------------------------------------------------------ Layout
    def _relayout(self, size: tuple[int, int]) -> None:
        width, height = size
        margin = max(16, width // 60)
        canvas = self.loader['canvas']
        aspect = float(canvas['width']) / float(canvas['height'])
        panel_width = max(280, int(width * 0.28))
        sim_width_max = width - panel_width - 3 * margin
        sim_height_max = height - 2 * margin
        sim_width = min(sim_width_max, int(sim_height_max * aspect))
        sim_height = int(sim_width / aspect)
        self.sim_rect = pygame.Rect(margin, margin + (sim_height_max - sim_height) // 2, sim_width, sim_height)

        panel_left = self.sim_rect.right + margin
        panel_width = width - panel_left - margin
        slider_height = int((height - 3 * margin) * 0.55)
        self.slider_panel_rect = pygame.Rect(panel_left, margin, panel_width, slider_height)
        self.readout_panel_rect = pygame.Rect(
            panel_left,
            self.slider_panel_rect.bottom + margin,
            panel_width,
            height - self.slider_panel_rect.bottom - 2 * margin,
        )
        self.screen = self.app.screen
        self.background = build_vertical_gradient(size, (230, 236, 255), (246, 248, 254))
        self._build_sliders()
        self._build_buttons()
        self._ensure_demo()

    def handle_resize(self, size: tuple[int, int]) -> None:
        self._relayout(size)

    # ------------------------------------------------------------------ Slider data
    def _round_value(self, value: float, decimals: int) -> float:
        return int(round(value, 0)) if decimals == 0 else round(value, decimals)

    def _build_slider_definitions(self):
        slider_defs: list[dict] = []
        initial_params: OrderedDict[str, float] = OrderedDict()
        for key in self.loader['slider_order']:
            entry = self.loader.slider(key)
            min_val, max_val = (float(b) for b in entry['bounds'])
            decimals = int(entry.get('decimals', 0))
            initial_value = float(entry.get('initial', min_val))
            if max_val <= min_val:
                clamped_value = min_val
                ratio = 0.0
            else:
                clamped_value = max(min_val, min(max_val, initial_value))
                ratio = (clamped_value - min_val) / (max_val - min_val)
            slider_defs.append(
                {
                    'label': entry.get('label', key),
                    'bounds': (min_val, max_val),
                    'initial_pos': ratio,
                    'step': float(entry.get('step', (max_val - min_val) / 100.0)),
                    'key': key,
                    'decimals': decimals,
                }
            )
            initial_params[key] = self._round_value(clamped_value, decimals)
        return slider_defs, initial_params

    def _build_sliders(self) -> None:
        assert self.slider_panel_rect is not None
        panel = self.slider_panel_rect
        padding = max(12, panel.width // 24)
        title_height = self.panel_title_font.get_height()
        button_height = 40
        top = panel.top + padding + title_height + padding // 2
        bottom = panel.bottom - 2 * padding - button_height
        count = max(1, len(self.slider_definitions))
        row_height = max(40, (bottom - top) // count)

        # Keep current values when rebuilding after a resize
        current = dict(self.demo_config['params'])
        self.sliders = []
        for row, definition in enumerate(self.slider_definitions):
            rect = pygame.Rect(panel.left + padding, top + row * row_height, panel.width - 2 * padding, row_height)
            min_val, max_val = definition['bounds']
            value = current.get(definition['key'])
            if value is not None and max_val > min_val:
                initial_pos = (float(value) - min_val) / (max_val - min_val)
            else:
                initial_pos = definition['initial_pos']
            self.sliders.append(
                ParamSlider(
                    self.screen,
                    rect,
                    definition['label'],
                    definition['key'],
                    definition['bounds'],
                    initial_pos,
                    definition['step'],
                    definition['decimals'],
                )
            )

    def _build_buttons(self) -> None:
        assert self.slider_panel_rect is not None
        panel = self.slider_panel_rect
        padding = max(12, panel.width // 24)
        rect = pygame.Rect(panel.left + padding, panel.bottom - padding - 40, panel.width - 2 * padding, 40)
        self.reset_button = Button(self.screen, rect, 'Reset', self.reset_simulation)
        self.buttons = [self.reset_button]

    def _ensure_demo(self) -> None:
        assert self.sim_rect is not None
        if self.demo is None:
            self.demo = Demo(
                self.app,
                (self.sim_rect.left, self.sim_rect.top),
                (self.sim_rect.width, self.sim_rect.height),
                (255, 255, 255),
                self.border_color,
                self.demo_config['params'].copy(),
                loader=self.loader,
            )
        else:
            self.demo.resize_viewport((self.sim_rect.left, self.sim_rect.top), (self.sim_rect.width, self.sim_rect.height))

    # ------------------------------------------------------------------ Buttons actions
    def reset_simulation(self) -> None:
        if not self.demo:
            return
        self.demo.set_params(self.demo_config['params'])
        self.demo.reset_simulation()

    # ------------------------------------------------------------------ Drawing
    def run(self) -> None:
        self._check_events()
        self._update_screen()

    def _update_screen(self) -> None:
        assert self.sim_rect is not None
        self.screen.blit(self.background, (0, 0))

        self._draw_panel(self.slider_panel_rect, 'Parameters')
        for slider in self.sliders:
            slider.draw_check(self.demo_config['params'])
        for button in self.buttons:
            button.draw_button()
        if self.demo and self.demo.has_pending_changes():
            hint = self.hint_font.render('Press Reset to apply lattice, speed and count', True, (150, 90, 60))
            rect = self.reset_button.rect
            self.screen.blit(hint, (rect.left, rect.top - hint.get_height() - 4))

        self._draw_shadow(self.sim_rect)
        self.demo.draw_check(self.demo_config)

        self._draw_panel(self.readout_panel_rect, 'Readouts')
        self._draw_readouts(self.demo.get_readouts())

    def _draw_shadow(self, rect: pygame.Rect) -> None:
        shadow_rect = rect.copy()
        shadow_rect.x += 12
        shadow_rect.y += 16
        shadow_surface = pygame.Surface(rect.size, pygame.SRCALPHA)
        pygame.draw.rect(shadow_surface, self.shadow_color, shadow_surface.get_rect(), border_radius=20)
        self.screen.blit(shadow_surface, shadow_rect.topleft)

    def _draw_panel(self, rect: pygame.Rect, title: str) -> None:
        self._draw_shadow(rect)
        pygame.draw.rect(self.screen, self.panel_color, rect, border_radius=20)
        pygame.draw.rect(self.screen, self.border_color, rect, width=2, border_radius=20)
        padding = max(12, rect.width // 24)
        title_surface = self.panel_title_font.render(title, True, self.text_color)
        self.screen.blit(title_surface, (rect.left + padding, rect.top + padding // 2))

    @staticmethod
    def _readout_rows(readouts: Readouts | None) -> list[tuple[str, str]]:
        if readouts is None:
            return [('Collecting data...', '')]
        return [
            ('Electrons left', f"{readouts.left}"),
            ('Electrons right', f"{readouts.right}"),
            ('Difference', f"{readouts.difference}"),
            ('Current [A]', f"{readouts.current:.3e}"),
            ('Avg. free time [s]', f"{readouts.mean_free_time:.3e}"),
            ('Drift velocity [um/s]', f"{readouts.drift_velocity:.2f}"),
            ('Mobility [cm2/Vs]', f"{readouts.mobility:.2f}"),
            ('Current density [A/mm2]', f"{readouts.current_density:.2f}"),
        ]

    def _draw_readouts(self, readouts: Readouts | None) -> None:
        rect = self.readout_panel_rect
        padding = max(12, rect.width // 24)
        y = rect.top + padding + self.panel_title_font.get_height()
        line_height = max(self.readout_label_font.get_height(), self.readout_value_font.get_height()) + 6
        for label, value in self._readout_rows(readouts):
            if y + line_height > rect.bottom - padding // 2:
                break
            label_surface = self.readout_label_font.render(label, True, self.text_color)
            value_surface = self.readout_value_font.render(value, True, self.accent_color)
            self.screen.blit(label_surface, (rect.left + padding, y))
            self.screen.blit(value_surface, (rect.right - padding - value_surface.get_width(), y))
            y += line_height

    # ------------------------------------------------------------------ Events
    def _check_events(self) -> None:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.app.stop()
            elif event.type == pygame.VIDEORESIZE:
                self.app.handle_resize(event.size)
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_r:
                self.reset_simulation()
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                self._check_buttons(pygame.mouse.get_pos())
        self._check_sliders(pygame.mouse.get_pos(), pygame.mouse.get_pressed())

    def _check_buttons(self, mouse_position) -> None:
        for button in self.buttons:
            if button.rect.collidepoint(mouse_position):
                button.command()

    def _check_sliders(self, mouse_position, mouse_pressed) -> None:
        for slider in self.sliders:
            slider.slider.hovered = False
            if slider.slider.button_rect.collidepoint(mouse_position):
                if mouse_pressed[0] and not self.slider_grabbed:
                    slider.slider.grabbed = True
                    self.slider_grabbed = True
            if not mouse_pressed[0]:
                slider.slider.grabbed = False
                self.slider_grabbed = False
            if slider.slider.button_rect.collidepoint(mouse_position):
                slider.slider.hovered = True
            if slider.slider.grabbed:
                slider.slider.move_slider(mouse_position)
                slider.slider.hovered = True
