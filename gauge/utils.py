# Utilitários genéricos para parsing tolerante e arredondamento
import math
import re
from typing import Any, Optional, Tuple

_INT_PATTERN = re.compile(r"-?[0-9]+")
_HEX_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_RGB_PATTERN = re.compile(r"^rgb\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*\)$", re.IGNORECASE)

# Nomes CSS aceitos tanto pelo canvas quanto pelo matplotlib
_NAMED_COLORS = {
    "white": "#ffffff",
    "black": "#000000",
    "red": "#ff0000",
    "green": "#008000",
    "blue": "#0000ff",
    "yellow": "#ffff00",
    "orange": "#ffa500",
    "gray": "#808080",
    "grey": "#808080",
    "gold": "#ffd700",
}


def parse_lenient_int(value: Any, default: int = 0) -> int:
    """
    Extrai o primeiro inteiro embutido na string (ex.: '150x' -> 150, 'abc' -> default).

    Comportamento legado das variáveis de ambiente; preservado exatamente.
    """
    match = _INT_PATTERN.search("" if value is None else str(value))
    if not match:
        return default
    return int(match.group(0))


def parse_lenient_float(value: Any, default: float) -> float:
    """
    Converte a string inteira para float; vazio, zero, NaN ou inválido -> default.

    Zero cai no default do mesmo jeito que `Number(x) || default`.
    """
    if value is None:
        return default
    text = str(value).strip()
    if not text:
        return default
    try:
        number = float(text)
    except ValueError:
        return default
    if not math.isfinite(number) or number == 0:
        return default
    return number


def round_half_up(value: float) -> int:
    """Arredonda .5 para cima (Math.round), evitando o arredondamento bancário do round()."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_color(value: Optional[str]) -> Optional[str]:
    """Normaliza cor para '#rrggbb' (ou '#rrggbbaa'); entradas desconhecidas -> None."""
    text = (value or "").strip()
    if not text:
        return None
    if _HEX_PATTERN.match(text):
        if len(text) == 4:
            text = "#" + "".join(ch * 2 for ch in text[1:])
        return text.lower()
    rgb = _RGB_PATTERN.match(text)
    if rgb:
        channels = [min(255, int(part)) for part in rgb.groups()]
        return "#{:02x}{:02x}{:02x}".format(*channels)
    return _NAMED_COLORS.get(text.lower())


def rgb_hex(color: Tuple[float, float, float]) -> str:
    """Formata tupla RGB (0-255) como '#rrggbb', arredondando cada canal."""
    return "#{:02x}{:02x}{:02x}".format(*(int(clamp(round_half_up(c), 0, 255)) for c in color))
