"""Entry point for the free-electron transport demo."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

import pygame

import config
from demo_screen import DemoScreen
from logging_config import setup_logging

logger = logging.getLogger(__name__)


class App:
    """Owns the pygame window and drives the screen at a fixed frame rate."""

    def __init__(self, loader: config.ConfigLoader):
        pygame.init()
        pygame.display.set_caption('Drude conduction')
        self.loader = loader
        window = loader['window']
        self.window_size: tuple[int, int] = (int(window['width']), int(window['height']))
        self.screen = pygame.display.set_mode(self.window_size, pygame.RESIZABLE)
        self.clock = pygame.time.Clock()
        self.fps = int(loader['fps'])
        self.running = False
        self.active_screen = DemoScreen(self, loader)

    def handle_resize(self, size: tuple[int, int]) -> None:
        self.window_size = (max(640, int(size[0])), max(400, int(size[1])))
        self.screen = pygame.display.set_mode(self.window_size, pygame.RESIZABLE)
        self.active_screen.handle_resize(self.window_size)

    def stop(self) -> None:
        self.running = False

    def run(self) -> None:
        self.running = True
        logger.info(f"Starting main loop at {self.fps} FPS")
        try:
            while self.running:
                self.active_screen.run()
                pygame.display.flip()
                self.clock.tick(self.fps)
        finally:
            pygame.quit()
            logger.info("Window closed.")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description='Free-electron transport (Drude model) demo.')
    parser.add_argument('--config', type=Path, default=None, help='Path to a config.json file.')
    parser.add_argument('--log-file', default=None, help='Also write logs to this file.')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging.')
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.debug else logging.INFO, args.log_file)
    loader = config.ConfigLoader(args.config)
    if loader.source is not None:
        logger.info(f"Using configuration from {loader.source}")
    App(loader).run()


if __name__ == '__main__':
    main()
