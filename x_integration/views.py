from __future__ import annotations

import logging
import secrets

from django.contrib import messages
from django.http import HttpResponse, HttpResponseBadRequest
from django.shortcuts import redirect
from django.urls import reverse
from django.views import View

from .services import (
    SESSION_STATE_KEY,
    SESSION_USER_KEY,
    SESSION_VERIFIER_KEY,
    XRateLimitError,
    build_oauth_url,
    exchange_code_for_token,
    fetch_profile_info,
    fetch_x_user,
    generate_pkce_pair,
    is_configured,
)

logger = logging.getLogger(__name__)


class XLoginView(View):
    def get(self, request):
        if not is_configured():
            logger.error("[x] OAuth do X sem configuração (X_CLIENT_ID/X_CLIENT_SECRET/X_CALLBACK_URL).")
            messages.error(request, "Login com X indisponível no momento. Tente novamente mais tarde.")
            return redirect(reverse("gauge:landing"))

        state = secrets.token_urlsafe(16)
        verifier, challenge = generate_pkce_pair()
        request.session[SESSION_STATE_KEY] = state
        request.session[SESSION_VERIFIER_KEY] = verifier
        return redirect(build_oauth_url(state, challenge))


class XCallbackView(View):
    def get(self, request):
        state = request.GET.get("state")
        code = request.GET.get("code")
        expected_state = request.session.get(SESSION_STATE_KEY)
        verifier = request.session.get(SESSION_VERIFIER_KEY, "")
        if not state or not code or state != expected_state:
            return HttpResponseBadRequest("Invalid OAuth2 callback")

        try:
            token_data = exchange_code_for_token(code, verifier)
        except Exception as exc:
            logger.exception("[x] Erro ao trocar o code por token: %s", exc)
            return HttpResponse("Callback failed", status=500)

        access_token = token_data.get("access_token", "")
        try:
            me = fetch_x_user(access_token)
        except XRateLimitError:
            logger.warning("[x] Rate limit ao buscar o usuário no callback.")
            return HttpResponse("Rate limited while fetching your username. Please retry later.", status=429)
        except Exception as exc:
            logger.exception("[x] Erro ao buscar o usuário no callback: %s", exc)
            return HttpResponse("Callback failed", status=500)

        username = me.get("username", "")
        if not username:
            logger.error("[x] Resposta de users/me sem username: %s", me)
            return HttpResponse("Callback failed", status=500)

        profile = fetch_profile_info(username)

        request.session.pop(SESSION_STATE_KEY, None)
        request.session.pop(SESSION_VERIFIER_KEY, None)
        request.session[SESSION_USER_KEY] = {
            # id do twitterapi.io prevalece para alinhar com os posts
            "user_id": profile.get("id") or str(me.get("id", "")),
            "username": username,
            "profile_image_url": profile.get("profile_image_url", ""),
            "access_token": access_token,
            "refresh_token": token_data.get("refresh_token", ""),
            "expires_in": token_data.get("expires_in"),
            "scope": token_data.get("scope", ""),
        }
        logger.info("[x] @%s conectado.", username)
        return redirect(reverse("gauge:fetch"))


class XLogoutView(View):
    def get(self, request):
        request.session.flush()
        return redirect(reverse("gauge:landing"))
