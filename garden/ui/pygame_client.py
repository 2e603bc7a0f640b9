"""Pygame 2D viewer for the garden.

Renders tile soil colours, resident entities, and a stats panel.  The
engine's own ticker advances the garden in the background; the viewer
only reads query results and forwards placement clicks back to the
engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

import pygame

if TYPE_CHECKING:
    from garden.simulation.engine import SimulationEngine

from garden.elements.types import ELEMENT_TYPES, Layer, layer_for

_BG = (30, 30, 24)
_PANEL_TEXT = (220, 220, 210)
_ERROR_TEXT = (255, 120, 100)
_GRID_LINE = (40, 40, 32)


class PygameViewer:
    """Displays a SimulationEngine in a Pygame window.

    Attributes:
        engine: The simulation engine to visualise.
        cell_size: Pixel size of each grid tile.
        screen: The Pygame display surface.
        selected: Element type id placed on left click.
        inspected: Status lines for the last right-clicked tile.
    """

    # Number keys 1-7 select an element type, in catalogue order.
    _HOTKEYS: ClassVar[list[str]] = list(ELEMENT_TYPES)

    def __init__(self, engine: SimulationEngine, cell_size: int = 14) -> None:
        """Initialise the viewer.

        Args:
            engine: The simulation engine to render.
            cell_size: Pixel width/height per grid tile.
        """
        self.engine = engine
        self.cell_size = cell_size
        self.selected = self._HOTKEYS[0]
        self.message = ""
        self.inspected: list[str] = []

        size = engine.grid.size * cell_size
        self._panel_width = 260
        pygame.init()
        self.screen = pygame.display.set_mode((size + self._panel_width, max(size, 420)))
        pygame.display.set_caption("The Garden")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("monospace", 14)
        self.running = True

    def run(self, fps: int = 30) -> None:
        """Main loop: handle events and render until the window closes.

        Args:
            fps: Target frames per second.
        """
        while self.running:
            self.clock.tick(fps)
            self._handle_events()
            self._draw()
        pygame.quit()

    def _handle_events(self) -> None:
        """Process Pygame input events."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                self._handle_key(event)
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                self._place_at(event.pos)
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 3:
                self._inspect_at(event.pos)

    def _handle_key(self, event: pygame.event.Event) -> None:
        if event.key == pygame.K_ESCAPE:
            self.running = False
        elif event.key == pygame.K_SPACE:
            if self.engine.is_running:
                self.engine.stop()
            else:
                self.engine.start()
        elif event.key == pygame.K_c:
            self.engine.run_cycle()
        elif pygame.K_1 <= event.key < pygame.K_1 + len(self._HOTKEYS):
            self.selected = self._HOTKEYS[event.key - pygame.K_1]
            self.message = ""

    def _place_at(self, pos: tuple[int, int]) -> None:
        x, y = pos[0] // self.cell_size, pos[1] // self.cell_size
        if x >= self.engine.grid.size:
            return
        result = self.engine.place_element(self.selected, x, y)
        self.message = "" if result.success else result.reason or ""

    def _inspect_at(self, pos: tuple[int, int]) -> None:
        x, y = pos[0] // self.cell_size, pos[1] // self.cell_size
        self.inspected = [
            line for text in self.engine.describe_at(x, y) for line in text.splitlines()
        ]

    def _draw(self) -> None:
        """Render one frame."""
        self.screen.fill(_BG)
        with self.engine.lock:
            self._draw_tiles()
            self._draw_info_panel()
        pygame.display.flip()

    def _draw_tiles(self) -> None:
        """Draw soil colour per tile, then a marker per resident entity."""
        cs = self.cell_size
        radius = max(2, cs // 3)
        for tile in self.engine.grid.iter_tiles():
            rect = (tile.x * cs, tile.y * cs, cs, cs)
            pygame.draw.rect(self.screen, pygame.Color(tile.color_key()), rect)
            pygame.draw.rect(self.screen, _GRID_LINE, rect, 1)
            centre = (tile.x * cs + cs // 2, tile.y * cs + cs // 2)
            for entity in tile.entities():
                colour = pygame.Color(entity.color_key())
                if layer_for(entity.element_type) is Layer.ATMOSPHERIC:
                    pygame.draw.circle(self.screen, colour, centre, radius + 2, 2)
                else:
                    pygame.draw.circle(self.screen, colour, centre, radius)

    def _draw_info_panel(self) -> None:
        """Draw a stats panel on the right side of the window."""
        panel_x = self.engine.grid.size * self.cell_size + 10
        y = 10
        stats = self.engine.get_stats()

        lines = [
            f"Cycle: {stats.cycle_count}",
            f"Season: {stats.season}",
            f"{'RUNNING' if self.engine.is_running else 'PAUSED'}",
            "",
            f"Elements: {stats.total_elements}",
            f"Plants: {stats.living_plants}",
            f"Moisture: {stats.avg_moisture}%",
            f"Health: {stats.ecosystem_health}",
            "",
            "--- Place ---",
        ]
        for i, type_id in enumerate(self._HOTKEYS, start=1):
            marker = ">" if type_id == self.selected else " "
            lines.append(f"{marker}{i}: {ELEMENT_TYPES[type_id].name}")
        lines += [
            "",
            "--- Controls ---",
            "click: place",
            "right-click: inspect",
            "SPACE: pause/resume",
            "C: run one cycle",
            "ESC: quit",
        ]

        for line in lines:
            surf = self.font.render(line, True, _PANEL_TEXT)
            self.screen.blit(surf, (panel_x, y))
            y += 18
        if self.message:
            surf = self.font.render(self.message, True, _ERROR_TEXT)
            self.screen.blit(surf, (panel_x, y + 8))
        for line in self.inspected:
            y += 18
            surf = self.font.render(line, True, _PANEL_TEXT)
            self.screen.blit(surf, (panel_x, y + 8))
