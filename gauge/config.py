"""
Configuração imutável do render do gauge.

`RenderConfig.from_raw` recebe as strings cruas (variáveis de ambiente / settings),
aplica o parse tolerante e os limites, e devolve um snapshot congelado que é passado
explicitamente para a geometria e para o renderer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping

from .utils import clamp, normalize_color, parse_lenient_float, parse_lenient_int

logger = logging.getLogger(__name__)

DEFAULT_HANDLE_COLOR = "#ffffff"


@dataclass(frozen=True)
class GaugeBox:
    """Recuos (em pixels) a partir das bordas da imagem; não é um retângulo absoluto."""

    left: int = 0
    right: int = 0
    top: int = 0
    bottom: int = 0


@dataclass(frozen=True)
class Thresholds:
    """Limites das faixas de sentimento, sempre em [0, 100] e não decrescentes."""

    strongly_bearish: int = 20
    bearish: int = 40
    neutral: int = 60
    bullish: int = 80

    @classmethod
    def build(cls, strongly_bearish: int, bearish: int, neutral: int, bullish: int) -> "Thresholds":
        """Cada limite é preso em [limite anterior, 100]."""
        t_sb = int(clamp(strongly_bearish, 0, 100))
        t_b = int(max(t_sb, min(100, bearish)))
        t_n = int(max(t_b, min(100, neutral)))
        t_bu = int(max(t_n, min(100, bullish)))
        return cls(t_sb, t_b, t_n, t_bu)

    def as_tuple(self):
        return (self.strongly_bearish, self.bearish, self.neutral, self.bullish)


@dataclass(frozen=True)
class NeedleConfig:
    length_scale: float = 1.0
    width_fraction: float = 0.025


@dataclass(frozen=True)
class AvatarOverlay:
    x: int = 32
    y: int = 32
    size: int = 96


@dataclass(frozen=True)
class HandleOverlay:
    x: int = 144
    y: int = 48
    font_px: int = 36
    color: str = DEFAULT_HANDLE_COLOR


@dataclass(frozen=True)
class RenderConfig:
    """Snapshot validado de layout e ajustes; construído uma vez por request."""

    box: GaugeBox = field(default_factory=GaugeBox)
    thresholds: Thresholds = field(default_factory=Thresholds)
    needle: NeedleConfig = field(default_factory=NeedleConfig)
    avatar: AvatarOverlay = field(default_factory=AvatarOverlay)
    handle: HandleOverlay = field(default_factory=HandleOverlay)

    @classmethod
    def from_raw(cls, raw: Mapping[str, object]) -> "RenderConfig":
        """
        Monta a configuração a partir das chaves legadas (GAUGE_LEFT, THRESH_SB, PFP_X...).

        Nunca levanta exceção: valores ausentes ou malformados caem no default e
        valores fora da faixa são presos aos limites.
        """
        get = raw.get

        box = GaugeBox(
            left=parse_lenient_int(get("GAUGE_LEFT"), 0),
            right=parse_lenient_int(get("GAUGE_RIGHT"), 0),
            top=parse_lenient_int(get("GAUGE_TOP"), 0),
            bottom=parse_lenient_int(get("GAUGE_BOTTOM"), 0),
        )
        thresholds = Thresholds.build(
            parse_lenient_int(get("THRESH_SB"), 20),
            parse_lenient_int(get("THRESH_B"), 40),
            parse_lenient_int(get("THRESH_N"), 60),
            parse_lenient_int(get("THRESH_BU"), 80),
        )
        needle = NeedleConfig(
            length_scale=max(0.1, parse_lenient_float(get("NEEDLE_LEN_SCALE"), 1.0)),
            width_fraction=max(0.003, parse_lenient_float(get("NEEDLE_WIDTH_FRAC"), 0.025)),
        )
        avatar = AvatarOverlay(
            x=parse_lenient_int(get("PFP_X"), 32),
            y=parse_lenient_int(get("PFP_Y"), 32),
            size=max(1, parse_lenient_int(get("PFP_SIZE"), 96)),
        )

        raw_color = get("HANDLE_COLOR")
        color = normalize_color(str(raw_color) if raw_color is not None else None)
        if color is None:
            if raw_color:
                logger.warning("[gauge] HANDLE_COLOR inválida (%r); usando %s", raw_color, DEFAULT_HANDLE_COLOR)
            color = DEFAULT_HANDLE_COLOR
        handle = HandleOverlay(
            x=parse_lenient_int(get("HANDLE_X"), 144),
            y=parse_lenient_int(get("HANDLE_Y"), 48),
            font_px=max(8, parse_lenient_int(get("HANDLE_FONT_PX"), 36)),
            color=color,
        )

        return cls(box=box, thresholds=thresholds, needle=needle, avatar=avatar, handle=handle)
