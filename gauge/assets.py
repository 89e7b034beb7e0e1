"""
Carregamento das imagens usadas no card (arte de fundo e avatar) e da fonte do handle.

Falhas de leitura/decodificação nunca interrompem o render: são logadas e a camada
correspondente é omitida (o renderer preenche o fundo com cor neutra).
"""

from __future__ import annotations

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import requests
from matplotlib import font_manager
from PIL import Image

logger = logging.getLogger(__name__)

AVATAR_TIMEOUT = 15
HANDLE_FONT_FILE = Path("fonts") / "Manrope-Bold.ttf"


@dataclass(frozen=True, eq=False)
class GaugeImage:
    """
    Imagem pronta para desenho.

    `pixels` (RGBA uint8) alimenta o rasterizador; `url` alimenta o canvas do navegador.
    Qualquer um dos dois pode faltar conforme o backend.
    """

    width: int
    height: int
    pixels: Optional[np.ndarray] = None
    url: str = ""


def decode_image(data: bytes, *, label: str = "imagem") -> Optional[np.ndarray]:
    """Decodifica bytes (PNG/JPEG/WebP) em array RGBA; devolve None se estiver corrompido."""
    if not data:
        logger.warning("[gauge] %s vazia; camada omitida.", label)
        return None
    try:
        with Image.open(io.BytesIO(data)) as img:
            return np.asarray(img.convert("RGBA"))
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        logger.warning("[gauge] Falha ao decodificar %s: %s", label, exc)
        return None


def load_background(path: Path, *, url: str = "", with_pixels: bool = True) -> Optional[GaugeImage]:
    """Lê a arte de fundo do disco; arquivo ausente ou inválido -> None."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.warning("[gauge] Arte de fundo indisponível (%s): %s", path, exc)
        return None

    pixels = decode_image(data, label=f"arte de fundo {path.name}")
    if pixels is None:
        return None
    height, width = pixels.shape[:2]
    return GaugeImage(width=width, height=height, pixels=pixels if with_pixels else None, url=url)


def fetch_avatar(url: str, *, user_agent: str, timeout: int = AVATAR_TIMEOUT) -> Optional[GaugeImage]:
    """Baixa e decodifica o avatar do usuário; qualquer falha -> None (avatar omitido)."""
    if not url:
        return None
    try:
        resp = requests.get(url, headers={"User-Agent": user_agent}, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        logger.warning("[gauge] Falha ao baixar avatar %s: %s", url, exc)
        return None
    if not resp.ok:
        logger.warning("[gauge] Avatar respondeu %s: %s", resp.status_code, url)
        return None

    pixels = decode_image(resp.content, label="avatar")
    if pixels is None:
        return None
    height, width = pixels.shape[:2]
    return GaugeImage(width=width, height=height, pixels=pixels)


def load_card_images(
    background_path: Path,
    avatar_url: str,
    *,
    user_agent: str,
) -> Tuple[Optional[GaugeImage], Optional[GaugeImage]]:
    """
    Carrega fundo e avatar em paralelo.

    As duas buscas não dependem uma da outra, mas ambas terminam (ou falham)
    antes do início do desenho.
    """
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="gauge-assets") as pool:
        background_future = pool.submit(load_background, background_path)
        avatar_future = pool.submit(fetch_avatar, avatar_url, user_agent=user_agent)
        return background_future.result(), avatar_future.result()


@lru_cache(maxsize=None)
def register_handle_font(assets_dir: str) -> Optional[str]:
    """Registra a fonte do handle no matplotlib (uma vez por processo) e devolve a família."""
    font_path = Path(assets_dir) / HANDLE_FONT_FILE
    if not font_path.exists():
        return None
    try:
        font_manager.fontManager.addfont(str(font_path))
        return font_manager.FontProperties(fname=str(font_path)).get_name()
    except (OSError, RuntimeError, ValueError) as exc:
        logger.warning("[gauge] Não foi possível registrar a fonte %s: %s", font_path, exc)
        return None
