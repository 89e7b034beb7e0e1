# Calcula as coordenadas do gauge semicircular a partir do tamanho da imagem e da configuração
import math
from dataclasses import dataclass

from .config import RenderConfig
from .utils import clamp, round_half_up

START_ANGLE = math.pi
END_ANGLE = 2 * math.pi


@dataclass(frozen=True)
class DrawableBox:
    x: float
    y: float
    w: float
    h: float


@dataclass(frozen=True)
class GaugeGeometry:
    """Coordenadas derivadas para uma única chamada de render (nunca reaproveitadas)."""

    box: DrawableBox
    cx: int
    cy: int
    radius: float
    track_width: int
    value_width: int
    needle_inner: float
    needle_outer: float
    needle_width: int
    needle_angle: float
    needle_x1: float
    needle_y1: float
    needle_x2: float
    needle_y2: float
    start_angle: float = START_ANGLE
    end_angle: float = END_ANGLE

    def angle_for(self, score: float) -> float:
        """Ângulo do semicírculo correspondente ao score (0 -> 9h, 100 -> 3h)."""
        s = clamp(score, 0, 100)
        return self.start_angle + (s / 100) * (self.end_angle - self.start_angle)

    @property
    def cap_angle(self) -> float:
        """Ângulo ocupado por uma ponta arredondada do arco de valor."""
        return (self.value_width / 2) / self.radius


def drawable_box(width: int, height: int, config: RenderConfig) -> DrawableBox:
    box = config.box
    return DrawableBox(
        x=box.left,
        y=box.top,
        w=max(0, width - box.left - box.right),
        h=max(0, height - box.top - box.bottom),
    )


def default_needle_radii(radius: float):
    """Raios interno/externo padrão do ponteiro, antes da escala de comprimento."""
    inner = radius - max(10, round_half_up(radius * 0.30))
    outer = radius + max(8, round_half_up(radius * 0.05))
    return inner, outer


def scale_about_midpoint(inner: float, outer: float, scale: float):
    """Reescala o segmento em torno do próprio ponto médio (o centro não se desloca)."""
    mid = (inner + outer) / 2
    half = (outer - inner) / 2 * scale
    return mid - half, mid + half


def compute_geometry(width: int, height: int, config: RenderConfig, score: float) -> GaugeGeometry:
    """
    Semicírculo apoiado na base da caixa desenhável, abrindo para baixo.

    O raio é limitado pela menor entre meia largura e altura total, então o arco
    cabe na caixa qualquer que seja a proporção.
    """
    box = drawable_box(width, height, config)
    radius = max(1.0, min(box.w / 2, box.h))
    cx = round_half_up(box.x + box.w / 2)
    cy = round_half_up(box.y + box.h)

    track_width = max(6, round_half_up(radius * 0.11))
    value_width = max(4, round_half_up(radius * 0.08))

    inner, outer = scale_about_midpoint(*default_needle_radii(radius), config.needle.length_scale)
    needle_width = max(2, round_half_up(radius * config.needle.width_fraction))

    s = clamp(score, 0, 100)
    angle = START_ANGLE + (s / 100) * (END_ANGLE - START_ANGLE)
    cos_a, sin_a = math.cos(angle), math.sin(angle)

    return GaugeGeometry(
        box=box,
        cx=cx,
        cy=cy,
        radius=radius,
        track_width=track_width,
        value_width=value_width,
        needle_inner=inner,
        needle_outer=outer,
        needle_width=needle_width,
        needle_angle=angle,
        needle_x1=cx + cos_a * inner,
        needle_y1=cy + sin_a * inner,
        needle_x2=cx + cos_a * outer,
        needle_y2=cy + sin_a * outer,
    )
