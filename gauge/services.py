from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from django.conf import settings
from django.templatetags.static import static
from django.urls import reverse

from .assets import GaugeImage, load_background, load_card_images, register_handle_font
from .config import RenderConfig
from .renderer import GaugeScene, render_canvas_commands, render_png
from .scoring import ScoreResult, aggregate_score
from .states import SentimentState, classify

logger = logging.getLogger(__name__)

RENDER_CONTEXT_KEY = "gauge_render"
RENDER_CONTEXT_TTL = 60 * 30

RENDER_MODE_RASTER = "raster"
RENDER_MODE_CANVAS = "canvas"


@dataclass(frozen=True)
class RenderContext:
    """O que o card precisa para ser redesenhado depois do /fetch (guardado na sessão)."""

    score: int
    username: str
    avatar_url: str = ""
    created_at: float = 0.0

    def as_session(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "username": self.username,
            "pfp": self.avatar_url,
            "ts": self.created_at,
        }

    @classmethod
    def from_session(cls, data: Any) -> Optional["RenderContext"]:
        if not isinstance(data, dict):
            return None
        score = data.get("score")
        if isinstance(score, bool) or not isinstance(score, int):
            return None
        return cls(
            score=score,
            username=str(data.get("username") or ""),
            avatar_url=str(data.get("pfp") or ""),
            created_at=float(data.get("ts") or 0.0),
        )

    def expired(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now - self.created_at > RENDER_CONTEXT_TTL


def get_render_config() -> RenderConfig:
    return RenderConfig.from_raw(settings.GAUGE_RAW_CONFIG)


def get_render_mode() -> str:
    mode = str(settings.GAUGE_RENDER_MODE or "").strip().lower()
    if mode not in (RENDER_MODE_RASTER, RENDER_MODE_CANVAS):
        logger.warning("[gauge] GAUGE_RENDER_MODE desconhecido (%r); usando raster.", mode)
        return RENDER_MODE_RASTER
    return mode


def score_from_webhook(payload: Any, submitted_count: int, *, parsed: bool = True) -> ScoreResult:
    """Resposta não-JSON nunca vira score; o restante segue a agregação normal."""
    if not parsed:
        return ScoreResult.unavailable()
    return aggregate_score(
        payload,
        submitted_count,
        allow_count_fallback=settings.SCORE_COUNT_FALLBACK,
    )


def save_render_context(session, score: int, username: str, avatar_url: str) -> RenderContext:
    context = RenderContext(score=score, username=username, avatar_url=avatar_url, created_at=time.time())
    session[RENDER_CONTEXT_KEY] = context.as_session()
    return context


def load_render_context(session) -> Optional[RenderContext]:
    context = RenderContext.from_session(session.get(RENDER_CONTEXT_KEY))
    if context is None:
        return None
    if context.expired():
        logger.info("[gauge] Contexto de render expirado para @%s.", context.username)
        return None
    return context


def background_path(state: SentimentState) -> Path:
    return Path(settings.ASSETS_DIR) / state.background_filename


def static_relative_path(path: Path) -> Optional[str]:
    """Caminho de `path` relativo a STATICFILES_DIRS ou STATIC_ROOT (None se estiver fora deles)."""
    roots = []
    for entry in settings.STATICFILES_DIRS:
        prefix, root = entry if isinstance(entry, (tuple, list)) else ("", entry)
        roots.append((prefix, root))
    if settings.STATIC_ROOT:
        roots.append(("", settings.STATIC_ROOT))

    resolved = Path(path).resolve()
    for prefix, root in roots:
        try:
            relative = resolved.relative_to(Path(root).resolve()).as_posix()
        except ValueError:
            continue
        return f"{prefix}/{relative}" if prefix else relative
    return None


def background_url(state: SentimentState) -> str:
    """URL de estáticos da arte, derivada de onde ASSETS_DIR está; "" se o navegador não alcança o arquivo."""
    relative = static_relative_path(background_path(state))
    if relative is None:
        logger.warning(
            "[gauge] ASSETS_DIR (%s) fora de STATICFILES_DIRS/STATIC_ROOT; canvas sem arte de fundo.",
            settings.ASSETS_DIR,
        )
        return ""
    # Com o storage de manifest, arte ausente do collectstatic levanta ValueError
    try:
        return static(relative)
    except ValueError as exc:
        logger.warning("[gauge] Arte %s fora do manifest de estáticos: %s", state.background_filename, exc)
        return ""


def build_raster_scene(context: RenderContext, config: RenderConfig) -> GaugeScene:
    """Carrega fundo e avatar (em paralelo) com pixels para o rasterizador."""
    state = classify(context.score, config.thresholds)
    background, avatar = load_card_images(
        background_path(state),
        context.avatar_url,
        user_agent=settings.X_USER_AGENT,
    )
    return GaugeScene(
        score=context.score,
        username=context.username,
        config=config,
        background=background,
        avatar=avatar,
    )


def build_canvas_scene(context: RenderContext, config: RenderConfig) -> GaugeScene:
    """
    No canvas o navegador baixa as imagens; o servidor só precisa das dimensões do fundo.

    O avatar passa pelo proxy /pfp para não contaminar o canvas com origem externa.
    """
    state = classify(context.score, config.thresholds)
    background = load_background(background_path(state), url=background_url(state), with_pixels=False)
    avatar = None
    if context.avatar_url:
        size = config.avatar.size
        avatar = GaugeImage(width=size, height=size, url=reverse("gauge:pfp"))
    return GaugeScene(
        score=context.score,
        username=context.username,
        config=config,
        background=background,
        avatar=avatar,
    )


def render_card_png(context: RenderContext, config: Optional[RenderConfig] = None) -> bytes:
    config = config or get_render_config()
    scene = build_raster_scene(context, config)
    return render_png(
        scene,
        arc_slices=settings.GAUGE_ARC_SLICES,
        font_family=register_handle_font(str(settings.ASSETS_DIR)),
    )


def render_card_commands(context: RenderContext, config: Optional[RenderConfig] = None) -> list[dict]:
    config = config or get_render_config()
    return list(render_canvas_commands(build_canvas_scene(context, config)))
