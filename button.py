"""Clickable rectangular buttons."""

from __future__ import annotations

from typing import Callable

import pygame

from ui_base import get_font


class Button:
    def __init__(
        self,
        screen: pygame.Surface,
        rect: pygame.Rect,
        text: str,
        command: Callable[[], None],
        color: tuple[int, int, int] = (72, 104, 255),
        text_color: tuple[int, int, int] = (255, 255, 255),
        font_size: int = 18,
    ):
        self.screen = screen
        self.rect = pygame.Rect(rect)
        self.text = text
        self.command = command
        self.color = color
        self.text_color = text_color
        self.font = get_font(font_size, bold=True)

    def draw_button(self) -> None:
        hovered = self.rect.collidepoint(pygame.mouse.get_pos())
        color = tuple(min(255, c + 24) for c in self.color) if hovered else self.color
        pygame.draw.rect(self.screen, color, self.rect, border_radius=10)
        text_surface = self.font.render(self.text, True, self.text_color)
        self.screen.blit(text_surface, text_surface.get_rect(center=self.rect.center))
