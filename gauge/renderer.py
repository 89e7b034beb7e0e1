"""
Desenho do card do gauge sobre uma `GaugeSurface`.

A ordem das camadas é fixa: fundo (ou cor neutra) -> avatar -> handle -> trilho ->
arco de valor -> ponteiro. Só o arco de valor depende do backend: com gradiente cônico
nativo é um único traço; sem ele, fatias de cor sólida amostradas da mesma rampa.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .assets import GaugeImage
from .config import RenderConfig
from .geometry import GaugeGeometry, compute_geometry
from .surfaces import CanvasCommandSurface, ColorStop, GaugeSurface, MatplotlibSurface
from .utils import clamp, rgb_hex

logger = logging.getLogger(__name__)

DEFAULT_FRAME_SIZE = (1200, 628)

TRACK_COLOR = "#090f00"
NEEDLE_COLOR = "#e6e6e8"
NEUTRAL_FILL = "#101010"

RAMP_STOPS: Tuple[Tuple[float, Tuple[int, int, int]], ...] = (
    (0.0, (217, 83, 79)),
    (0.5, (240, 173, 78)),
    (1.0, (92, 184, 92)),
)
RAMP_START_HEX = rgb_hex(RAMP_STOPS[0][1])

DEFAULT_ARC_SLICES = 24
MIN_ARC_SLICES = 20

SurfaceFactory = Callable[[int, int], GaugeSurface]


def ramp_color(t: float) -> Tuple[float, float, float]:
    """Cor da rampa vermelho -> laranja -> verde na posição t (presa em [0, 1])."""
    t = clamp(t, 0.0, 1.0)
    for (t0, c0), (t1, c1) in zip(RAMP_STOPS, RAMP_STOPS[1:]):
        if t <= t1:
            u = (t - t0) / (t1 - t0)
            return tuple(a + (b - a) * u for a, b in zip(c0, c1))
    return tuple(float(c) for c in RAMP_STOPS[-1][1])


def ramp_hex(t: float) -> str:
    return rgb_hex(ramp_color(t))


@dataclass(frozen=True)
class ArcSlice:
    start: float
    end: float
    color: str


def value_arc_slices(
    usable_start: float,
    usable_end: float,
    theta_end: float,
    count: int = DEFAULT_ARC_SLICES,
) -> List[ArcSlice]:
    """
    Divide o trilho útil [usable_start, usable_end] em `count` fatias iguais.

    Cada fatia usa a cor da rampa no seu ponto médio, com os pontos médios esticados
    para que a primeira fatia caia em t=0 e a última em t=1 (as mesmas cores das
    paradas do gradiente cônico). Para na primeira fatia que começa depois de
    theta_end e corta a última em theta_end.
    """
    count = max(MIN_ARC_SLICES, int(count))
    span = usable_end - usable_start
    slices: List[ArcSlice] = []
    for i in range(count):
        a0 = usable_start + (i / count) * span
        a1 = usable_start + ((i + 1) / count) * span
        if a0 >= theta_end:
            break
        slices.append(ArcSlice(start=a0, end=min(a1, theta_end), color=ramp_hex(slice_ramp_position(i, count))))
    return slices


def slice_ramp_position(index: int, count: int) -> float:
    """Posição na rampa do ponto médio da fatia `index`, reescalada de [0.5/n, 1 - 0.5/n] para [0, 1]."""
    midpoint = (index + 0.5) / count
    first, last = 0.5 / count, 1 - 0.5 / count
    return (midpoint - first) / (last - first)


def conic_stops(usable_start: float, usable_end: float) -> List[ColorStop]:
    """
    Paradas do gradiente cônico, em fração da volta completa.

    O trilho útil cobre só parte da volta, então os offsets são escalados para que a
    posição na rampa coincida com a do backend de fatias.
    """
    fraction = clamp((usable_end - usable_start) / (2 * math.pi), 0.0, 1.0)
    return [(offset * fraction, rgb_hex(color)) for offset, color in RAMP_STOPS]


@dataclass(frozen=True)
class GaugeScene:
    """Entradas de um render: score já normalizado, handle, configuração e imagens carregadas."""

    score: int
    username: str = ""
    config: RenderConfig = field(default_factory=RenderConfig)
    background: Optional[GaugeImage] = None
    avatar: Optional[GaugeImage] = None

    @property
    def frame_size(self) -> Tuple[int, int]:
        bg = self.background
        if bg is not None and bg.width > 0 and bg.height > 0:
            return bg.width, bg.height
        return DEFAULT_FRAME_SIZE


class GaugeRenderer:
    def __init__(self, surface_factory: SurfaceFactory, arc_slices: int = DEFAULT_ARC_SLICES) -> None:
        self.surface_factory = surface_factory
        self.arc_slices = max(MIN_ARC_SLICES, int(arc_slices))

    def render(self, scene: GaugeScene) -> Any:
        width, height = scene.frame_size
        config = scene.config
        geometry = compute_geometry(width, height, config, scene.score)
        surface = self.surface_factory(width, height)

        self._draw_background(surface, scene, width, height)
        self._draw_avatar(surface, scene)
        if scene.username:
            handle = config.handle
            surface.draw_text(f"@{scene.username}", handle.x, handle.y, handle.font_px, handle.color)

        surface.stroke_arc(
            geometry.cx,
            geometry.cy,
            geometry.radius,
            geometry.start_angle,
            geometry.end_angle,
            geometry.track_width,
            TRACK_COLOR,
            cap="round",
        )
        self._draw_value_arc(surface, geometry)
        surface.stroke_line(
            geometry.needle_x1,
            geometry.needle_y1,
            geometry.needle_x2,
            geometry.needle_y2,
            geometry.needle_width,
            NEEDLE_COLOR,
            cap="round",
        )
        return surface.finish()

    def _draw_background(self, surface: GaugeSurface, scene: GaugeScene, width: int, height: int) -> None:
        if scene.background is None:
            logger.warning("[gauge] Sem arte de fundo; usando preenchimento neutro %dx%d.", width, height)
            surface.fill(NEUTRAL_FILL)
            return
        surface.draw_image(scene.background, 0, 0, width, height, fallback_color=NEUTRAL_FILL)

    def _draw_avatar(self, surface: GaugeSurface, scene: GaugeScene) -> None:
        if scene.avatar is None:
            return
        avatar = scene.config.avatar
        surface.draw_image(scene.avatar, avatar.x, avatar.y, avatar.size, avatar.size)

    def _draw_value_arc(self, surface: GaugeSurface, geometry: GaugeGeometry) -> None:
        start, end = geometry.start_angle, geometry.end_angle
        theta_end = geometry.needle_angle
        cap_end = start + geometry.cap_angle
        cx, cy, radius, width = geometry.cx, geometry.cy, geometry.radius, geometry.value_width

        if theta_end <= cap_end:
            surface.stroke_arc(cx, cy, radius, start, theta_end, width, RAMP_START_HEX, cap="round")
            return

        surface.stroke_arc(cx, cy, radius, start, cap_end, width, RAMP_START_HEX, cap="round")

        if surface.has_native_conic_gradient:
            surface.stroke_conic_arc(
                cx,
                cy,
                radius,
                cap_end,
                theta_end,
                width,
                gradient_start=cap_end,
                stops=conic_stops(cap_end, end),
            )
            return

        for arc in value_arc_slices(cap_end, end, theta_end, self.arc_slices):
            surface.stroke_arc(cx, cy, radius, arc.start, arc.end, width, arc.color, cap="butt")


def render_png(
    scene: GaugeScene,
    *,
    arc_slices: int = DEFAULT_ARC_SLICES,
    font_family: Optional[str] = None,
) -> bytes:
    """Render headless do card em PNG."""

    def factory(width: int, height: int) -> GaugeSurface:
        return MatplotlibSurface(width, height, font_family=font_family, background_color=NEUTRAL_FILL)

    return GaugeRenderer(factory, arc_slices=arc_slices).render(scene)


def render_canvas_commands(scene: GaugeScene) -> Sequence[dict]:
    """Lista de comandos para o player de canvas do navegador."""
    return GaugeRenderer(CanvasCommandSurface).render(scene)
