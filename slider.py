"""Horizontal parameter sliders drawn with pygame."""

from __future__ import annotations

import pygame

from ui_base import get_font


class Slider:
    """Track with a draggable knob mapping the knob position onto ``bounds``."""

    def __init__(self, rect: pygame.Rect, bounds: tuple[float, float], initial_pos: float, step: float):
        self.rect = pygame.Rect(rect)
        self.min_val, self.max_val = float(bounds[0]), float(bounds[1])
        self.step = float(step)
        self.knob_radius = max(7, self.rect.height // 2)
        self.ratio = min(1.0, max(0.0, float(initial_pos)))
        self.grabbed = False
        self.hovered = False

    @property
    def button_rect(self) -> pygame.Rect:
        cx, cy = self.knob_center
        r = self.knob_radius
        return pygame.Rect(cx - r, cy - r, 2 * r, 2 * r)

    @property
    def knob_center(self) -> tuple[int, int]:
        return int(self.rect.left + self.ratio * self.rect.width), self.rect.centery

    def move_slider(self, mouse_position: tuple[int, int]) -> None:
        if self.rect.width <= 0:
            return
        ratio = (mouse_position[0] - self.rect.left) / self.rect.width
        self.ratio = min(1.0, max(0.0, ratio))

    def set_value(self, value: float) -> None:
        span = self.max_val - self.min_val
        self.ratio = 0.0 if span <= 0 else min(1.0, max(0.0, (float(value) - self.min_val) / span))

    def get_value(self) -> float:
        raw = self.min_val + self.ratio * (self.max_val - self.min_val)
        if self.step > 0:
            raw = self.min_val + round((raw - self.min_val) / self.step) * self.step
        return min(self.max_val, max(self.min_val, raw))

    def draw(self, screen: pygame.Surface, track_color, fill_color, knob_color) -> None:
        track = self.rect.inflate(0, -max(0, self.rect.height - 6))
        pygame.draw.rect(screen, track_color, track, border_radius=3)
        filled = track.copy()
        filled.width = int(self.ratio * track.width)
        pygame.draw.rect(screen, fill_color, filled, border_radius=3)
        radius = self.knob_radius + (2 if self.hovered or self.grabbed else 0)
        pygame.draw.circle(screen, knob_color, self.knob_center, radius)


class ParamSlider:
    """Labelled slider bound to one key of a parameter dictionary."""

    def __init__(
        self,
        screen: pygame.Surface,
        rect: pygame.Rect,
        label: str,
        key: str,
        bounds: tuple[float, float],
        initial_pos: float,
        step: float,
        decimals: int,
    ):
        self.screen = screen
        self.rect = pygame.Rect(rect)
        self.label = label
        self.key = key
        self.decimals = int(decimals)
        self.label_font = get_font(15, bold=True)
        self.value_font = get_font(17, bold=True)
        track_top = self.rect.top + self.label_font.get_height() + 10
        track_rect = pygame.Rect(self.rect.left + 8, track_top, self.rect.width - 16, 14)
        self.slider = Slider(track_rect, bounds, initial_pos, step)

    def getValue(self) -> float:
        value = self.slider.get_value()
        return int(round(value)) if self.decimals == 0 else round(value, self.decimals)

    def draw_check(self, params: dict) -> None:
        """Draw the slider and publish its value into ``params``."""
        value = self.getValue()
        params[self.key] = value
        label_surface = self.label_font.render(self.label, True, (60, 66, 86))
        value_text = f"{value:.{self.decimals}f}" if self.decimals else f"{value}"
        value_surface = self.value_font.render(value_text, True, (72, 104, 255))
        self.screen.blit(label_surface, (self.rect.left + 8, self.rect.top))
        self.screen.blit(value_surface, (self.rect.right - value_surface.get_width() - 8, self.rect.top))
        self.slider.draw(self.screen, (214, 220, 235), (150, 170, 255), (72, 104, 255))
