"""
Superfícies de desenho do gauge.

Duas implementações da mesma interface:

* `CanvasCommandSurface`: grava comandos para o canvas 2D do navegador, que tem
  gradiente cônico nativo (`createConicGradient`).
* `MatplotlibSurface`: rasteriza no servidor (Agg) e devolve PNG; sem gradiente
  cônico, então o arco de valor é aproximado por fatias de cor sólida.

Todas as coordenadas estão em pixels com origem no canto superior esquerdo e y para
baixo, e os ângulos seguem a convenção do canvas (0 = 3h, crescendo no sentido horário).
"""

from __future__ import annotations

import io
import math
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from matplotlib import font_manager
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.ft2font import FT2Font
from matplotlib.patches import Rectangle

from .assets import GaugeImage

ColorStop = Tuple[float, str]

# Topo do em-box acima da baseline, em fração do tamanho da fonte (quando a fonte não informa)
DEFAULT_EM_ASCENT = 0.8


@lru_cache(maxsize=32)
def em_ascent_ratio(family: str) -> float:
    """
    Distância entre o topo do em-box e a baseline, em fração do tamanho da fonte.

    É a referência do `textBaseline = "top"` do canvas: o em-box é dividido entre
    ascender e descender na proporção das métricas da fonte.
    """
    path = font_manager.findfont(font_manager.FontProperties(family=family, weight="bold"))
    try:
        font = FT2Font(path)
    except (OSError, RuntimeError):
        return DEFAULT_EM_ASCENT
    span = font.ascender - font.descender
    if span <= 0:
        return DEFAULT_EM_ASCENT
    return font.ascender / span


class GaugeSurface(ABC):
    """Superfície exclusiva de uma chamada de render; nunca compartilhada entre requests."""

    has_native_conic_gradient: bool = False

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    @abstractmethod
    def fill(self, color: str) -> None:
        """Preenche o quadro inteiro com uma cor sólida."""

    @abstractmethod
    def draw_image(
        self,
        image: GaugeImage,
        x: float,
        y: float,
        w: float,
        h: float,
        *,
        fallback_color: Optional[str] = None,
    ) -> None:
        """Desenha a imagem esticada no retângulo (a proporção pode distorcer)."""

    @abstractmethod
    def draw_text(self, text: str, x: float, y: float, font_px: int, color: str) -> None:
        """Texto em negrito; (x, y) é o topo do em-box (textBaseline = "top" do canvas)."""

    @abstractmethod
    def stroke_arc(
        self,
        cx: float,
        cy: float,
        radius: float,
        start: float,
        end: float,
        width: float,
        color: str,
        cap: str = "round",
    ) -> None:
        """Traço de arco com cor sólida."""

    def stroke_conic_arc(
        self,
        cx: float,
        cy: float,
        radius: float,
        start: float,
        end: float,
        width: float,
        gradient_start: float,
        stops: Sequence[ColorStop],
    ) -> None:
        """Traço de arco pintado por gradiente cônico centrado em (cx, cy)."""
        raise NotImplementedError(f"{type(self).__name__} não suporta gradiente cônico")

    @abstractmethod
    def stroke_line(
        self,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        width: float,
        color: str,
        cap: str = "round",
    ) -> None:
        """Segmento de reta."""

    @abstractmethod
    def finish(self) -> Any:
        """Encerra o desenho e devolve o resultado do backend."""


class CanvasCommandSurface(GaugeSurface):
    """Grava a sequência de chamadas para o canvas do navegador (reproduzida por gauge_canvas.js)."""

    has_native_conic_gradient = True

    def __init__(self, width: int, height: int) -> None:
        super().__init__(width, height)
        self.commands: List[Dict[str, Any]] = [{"op": "size", "width": width, "height": height}]

    def fill(self, color: str) -> None:
        self.commands.append({"op": "fill", "color": color})

    def draw_image(self, image, x, y, w, h, *, fallback_color=None) -> None:
        if not image.url:
            if fallback_color:
                self.fill(fallback_color)
            return
        command = {"op": "image", "src": image.url, "x": x, "y": y, "w": w, "h": h}
        if fallback_color:
            command["fallback"] = fallback_color
        self.commands.append(command)

    def draw_text(self, text, x, y, font_px, color) -> None:
        self.commands.append({"op": "text", "text": text, "x": x, "y": y, "font_px": font_px, "color": color})

    def stroke_arc(self, cx, cy, radius, start, end, width, color, cap="round") -> None:
        self.commands.append(
            {
                "op": "arc",
                "cx": cx,
                "cy": cy,
                "r": radius,
                "start": start,
                "end": end,
                "width": width,
                "color": color,
                "cap": cap,
            }
        )

    def stroke_conic_arc(self, cx, cy, radius, start, end, width, gradient_start, stops) -> None:
        self.commands.append(
            {
                "op": "conic_arc",
                "cx": cx,
                "cy": cy,
                "r": radius,
                "start": start,
                "end": end,
                "width": width,
                "gradient_start": gradient_start,
                "stops": [[offset, color] for offset, color in stops],
            }
        )

    def stroke_line(self, x1, y1, x2, y2, width, color, cap="round") -> None:
        self.commands.append(
            {"op": "line", "x1": x1, "y1": y1, "x2": x2, "y2": y2, "width": width, "color": color, "cap": cap}
        )

    def finish(self) -> List[Dict[str, Any]]:
        return list(self.commands)


class MatplotlibSurface(GaugeSurface):
    """
    Rasterizador headless (Figure + Agg, sem pyplot).

    Cada instância tem a própria Figure, então renders concorrentes não compartilham estado.
    """

    # Pontos de amostragem do arco: um a cada ARC_STEP_PX pixels de comprimento
    ARC_STEP_PX = 2.0

    def __init__(
        self,
        width: int,
        height: int,
        *,
        dpi: int = 100,
        font_family: Optional[str] = None,
        background_color: str = "#101010",
    ) -> None:
        super().__init__(width, height)
        self.dpi = dpi
        self.font_family = font_family or "DejaVu Sans"
        self._pt_per_px = 72.0 / dpi
        self._zorder = 0

        self.figure = Figure(figsize=(width / dpi, height / dpi), dpi=dpi, facecolor=background_color)
        FigureCanvasAgg(self.figure)
        self.ax = self.figure.add_axes((0, 0, 1, 1))
        self.ax.set_xlim(0, width)
        self.ax.set_ylim(height, 0)
        self.ax.axis("off")

    def _next_z(self) -> int:
        """Ordem de desenho explícita: cada camada fica por cima da anterior."""
        self._zorder += 1
        return self._zorder

    def fill(self, color: str) -> None:
        self.ax.add_patch(
            Rectangle((0, 0), self.width, self.height, facecolor=color, edgecolor="none", zorder=self._next_z())
        )

    def draw_image(self, image, x, y, w, h, *, fallback_color=None) -> None:
        if image.pixels is None:
            if fallback_color:
                self.fill(fallback_color)
            return
        self.ax.imshow(
            image.pixels,
            extent=(x, x + w, y + h, y),
            aspect="auto",
            interpolation="bilinear",
            zorder=self._next_z(),
        )

    def draw_text(self, text, x, y, font_px, color) -> None:
        # va="top" alinharia pelo bbox do texto; o canvas alinha pelo topo do em-box
        baseline = y + font_px * em_ascent_ratio(self.font_family)
        self.ax.text(
            x,
            baseline,
            text,
            color=color,
            fontsize=font_px * self._pt_per_px,
            fontweight="bold",
            family=self.font_family,
            ha="left",
            va="baseline",
            zorder=self._next_z(),
        )

    def stroke_arc(self, cx, cy, radius, start, end, width, color, cap="round") -> None:
        length = abs(end - start) * radius
        points = max(2, int(math.ceil(length / self.ARC_STEP_PX)) + 1)
        angles = np.linspace(start, end, points)
        self.ax.plot(
            cx + radius * np.cos(angles),
            cy + radius * np.sin(angles),
            color=color,
            linewidth=width * self._pt_per_px,
            solid_capstyle=cap,
            solid_joinstyle="round",
            zorder=self._next_z(),
        )

    def stroke_line(self, x1, y1, x2, y2, width, color, cap="round") -> None:
        self.ax.plot(
            [x1, x2],
            [y1, y2],
            color=color,
            linewidth=width * self._pt_per_px,
            solid_capstyle=cap,
            zorder=self._next_z(),
        )

    def finish(self) -> bytes:
        """Codifica o quadro em PNG (sem metadados variáveis, então o resultado é determinístico)."""
        buffer = io.BytesIO()
        self.figure.savefig(
            buffer,
            format="png",
            dpi=self.dpi,
            facecolor=self.figure.get_facecolor(),
            metadata={"Software": None},
        )
        return buffer.getvalue()
