from __future__ import annotations

import logging

import requests
from django.conf import settings
from django.http import HttpResponse, HttpResponseBadRequest
from django.shortcuts import redirect, render
from django.urls import reverse
from django.views import View
from django.views.decorators.http import require_GET
from django.views.generic import TemplateView

from sentiment.services import ScoringWebhookError, submit_posts_for_scoring
from x_integration.services import (
    desired_post_count,
    fetch_recent_posts,
    get_session_user,
    include_replies,
)

from .services import (
    RENDER_MODE_CANVAS,
    get_render_config,
    get_render_mode,
    load_render_context,
    render_card_commands,
    render_card_png,
    save_render_context,
    score_from_webhook,
)

logger = logging.getLogger(__name__)

CARD_CACHE_CONTROL = "private, max-age=120"
AVATAR_CACHE_CONTROL = "private, max-age=300"


class LandingView(TemplateView):
    template_name = "gauge/landing.html"

    def get(self, request, *args, **kwargs):
        if get_session_user(request.session):
            return redirect(reverse("gauge:fetch"))
        return super().get(request, *args, **kwargs)


class FetchView(View):
    """Busca os posts, pede o score ao webhook e mostra o card (ou o diagnóstico)."""

    fallback_template = "gauge/fetch_fallback.html"
    card_template = "gauge/gauge_card.html"
    canvas_template = "gauge/gauge_canvas.html"

    def get(self, request):
        user = get_session_user(request.session)
        if not user:
            return redirect(reverse("x:login"))

        username = user["username"]
        posts = fetch_recent_posts(username, desired_post_count(), include_replies())
        try:
            result = submit_posts_for_scoring(user, posts)
        except ScoringWebhookError as exc:
            logger.exception("[gauge] Erro ao enviar posts de @%s ao webhook: %s", username, exc)
            return HttpResponse("Failed to fetch tweets or send to webhook.", status=500)

        score = score_from_webhook(result.payload, len(posts), parsed=result.parsed)
        if not score.available:
            logger.info("[gauge] Sem score para @%s; exibindo diagnóstico.", username)
            return render(
                request,
                self.fallback_template,
                {"username": username, "count": len(posts), "raw_body": result.raw_text},
            )

        if score.from_fallback:
            logger.warning("[gauge] Tallies zerados para @%s; score pela contagem de posts.", username)

        context = save_render_context(
            request.session,
            score.value,
            username,
            user.get("profile_image_url", ""),
        )
        page = {"username": username, "score": score.value, "from_fallback": score.from_fallback}

        if get_render_mode() == RENDER_MODE_CANVAS:
            page["commands"] = render_card_commands(context, get_render_config())
            return render(request, self.canvas_template, page)
        return render(request, self.card_template, page)


@require_GET
def card_png(request):
    context = load_render_context(request.session)
    if context is None:
        return HttpResponseBadRequest("Nenhum gauge para renderizar. Faça o /fetch primeiro.")

    try:
        png = render_card_png(context)
    except Exception as exc:
        logger.exception("[gauge] Falha ao renderizar card de @%s: %s", context.username, exc)
        return HttpResponse("Render failed", status=500)

    response = HttpResponse(png, content_type="image/png")
    response["Cache-Control"] = CARD_CACHE_CONTROL
    if request.GET.get("dl") == "1":
        filename = f"sentiment-gauge-{context.username or 'card'}.png"
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


@require_GET
def avatar_proxy(request):
    """Proxy same-origin do avatar (o canvas não pode desenhar imagem de outra origem)."""
    user = get_session_user(request.session) or {}
    url = user.get("profile_image_url")
    if not url:
        context = load_render_context(request.session)
        url = context.avatar_url if context else ""
    if not url:
        return HttpResponse("No profile image URL", status=404)

    try:
        upstream = requests.get(
            url,
            headers={"User-Agent": settings.X_USER_AGENT},
            timeout=15,
            allow_redirects=True,
        )
    except requests.RequestException as exc:
        logger.warning("[gauge] Falha no proxy do avatar %s: %s", url, exc)
        return HttpResponse("Failed to fetch avatar", status=502)
    if not upstream.ok:
        logger.warning("[gauge] Avatar respondeu %s: %s", upstream.status_code, url)
        return HttpResponse("Failed to fetch avatar", status=502)

    content_type = upstream.headers.get("content-type") or "image/jpeg"
    response = HttpResponse(upstream.content, content_type=content_type)
    response["Cache-Control"] = AVATAR_CACHE_CONTROL
    return response


@require_GET
def healthz(request):
    return HttpResponse("ok", content_type="text/plain")
