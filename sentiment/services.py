"""
Cliente do webhook externo que pontua o sentimento dos posts.

O scorer responde com tallies `{Positive, Neutral, Negative}` (objeto único ou lista);
a agregação em score fica em gauge.scoring.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

WEBHOOK_SOURCE = "twitterapi.io"


class ScoringWebhookError(RuntimeError):
    pass


@dataclass(frozen=True)
class WebhookResult:
    raw_text: str
    payload: Optional[Any]
    status_code: int = 200
    # False quando o corpo não é JSON; um JSON `null` é válido e chega com payload None
    parsed: bool = True


def build_webhook_body(user: dict[str, Any], posts: Sequence[dict[str, Any]]) -> dict[str, Any]:
    return {
        "user": {"id": user.get("user_id"), "username": user.get("username")},
        "count": len(posts),
        "tweets": list(posts),
        "source": WEBHOOK_SOURCE,
    }


def submit_posts_for_scoring(user: dict[str, Any], posts: Sequence[dict[str, Any]]) -> WebhookResult:
    """
    Envia os posts ao WEBHOOK_URL e devolve o corpo cru e o JSON (None se não for JSON).

    Falha de rede levanta ScoringWebhookError; status HTTP de erro não levanta, o corpo
    é devolvido para diagnóstico.
    """
    url = settings.WEBHOOK_URL
    if not url:
        raise ScoringWebhookError("WEBHOOK_URL não configurada")

    body = build_webhook_body(user, posts)
    try:
        resp = requests.post(url, json=body, timeout=settings.WEBHOOK_TIMEOUT)
    except requests.RequestException as exc:
        raise ScoringWebhookError(f"Falha ao chamar o webhook de sentimento: {exc}") from exc

    raw_text = resp.text
    if not resp.ok:
        logger.warning("[sentiment] Webhook respondeu %s: %s", resp.status_code, raw_text[:500])

    parsed = True
    try:
        payload = json.loads(raw_text)
    except ValueError:
        logger.info("[sentiment] Resposta do webhook (raw): %s", raw_text[:2000])
        payload = None
        parsed = False

    logger.info(
        "[sentiment] %s posts de @%s enviados ao webhook (status=%s).",
        body["count"],
        user.get("username"),
        resp.status_code,
    )
    return WebhookResult(raw_text=raw_text, payload=payload, status_code=resp.status_code, parsed=parsed)
