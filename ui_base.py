"""Shared pygame helpers: cached fonts and background gradients."""

from __future__ import annotations

from functools import lru_cache

import pygame


@lru_cache(maxsize=64)
def get_font(size: int, bold: bool = False) -> pygame.font.Font:
    """Return a cached system font of the given pixel size."""
    if not pygame.font.get_init():
        pygame.font.init()
    return pygame.font.SysFont('arial', max(6, int(size)), bold=bold)


def build_vertical_gradient(
    size: tuple[int, int],
    top_color: tuple[int, int, int],
    bottom_color: tuple[int, int, int],
) -> pygame.Surface:
    """Create a surface filled with a top-to-bottom colour blend."""
    width, height = max(1, int(size[0])), max(1, int(size[1]))
    surface = pygame.Surface((width, height))
    for y in range(height):
        t = y / max(1, height - 1)
        color = tuple(int(round(a + (b - a) * t)) for a, b in zip(top_color, bottom_color))
        pygame.draw.line(surface, color, (0, y), (width, y))
    return surface
