from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import requests
from django.conf import settings

from gauge.utils import parse_lenient_float

logger = logging.getLogger(__name__)


X_AUTHORIZE_URL = "https://twitter.com/i/oauth2/authorize"
X_API_BASE = "https://api.twitter.com/2"
TWITTERAPI_IO_BASE = "https://api.twitterapi.io/twitter"

OAUTH_SCOPES = ("tweet.read", "users.read", "offline.access")
SESSION_USER_KEY = "x_user"
SESSION_STATE_KEY = "x_oauth_state"
SESSION_VERIFIER_KEY = "x_oauth_verifier"

DEFAULT_POST_COUNT = 50
MAX_POST_PAGES = 5


class XIntegrationError(RuntimeError):
    pass


class XRateLimitError(XIntegrationError):
    pass


@dataclass
class XConfig:
    client_id: str
    client_secret: str
    callback_url: str
    twitterapi_key: str
    user_agent: str


def get_config() -> XConfig:
    return XConfig(
        client_id=settings.X_CLIENT_ID,
        client_secret=settings.X_CLIENT_SECRET,
        callback_url=settings.X_CALLBACK_URL,
        twitterapi_key=settings.TWITTERAPI_IO_KEY,
        user_agent=settings.X_USER_AGENT,
    )


def is_configured() -> bool:
    config = get_config()
    return bool(config.client_id and config.client_secret and config.callback_url and config.twitterapi_key)


def generate_pkce_pair() -> tuple[str, str]:
    """Par (verifier, challenge) do PKCE com método S256."""
    verifier = secrets.token_urlsafe(64)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


def build_oauth_url(state: str, code_challenge: str) -> str:
    config = get_config()
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.callback_url,
        "scope": " ".join(OAUTH_SCOPES),
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    return f"{X_AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code_for_token(code: str, code_verifier: str) -> dict[str, Any]:
    config = get_config()
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": config.callback_url,
        "code_verifier": code_verifier,
        "client_id": config.client_id,
    }
    headers = {"Content-Type": "application/x-www-form-urlencoded"}
    resp = requests.post(
        f"{X_API_BASE}/oauth2/token",
        data=data,
        headers=headers,
        auth=(config.client_id, config.client_secret),
        timeout=20,
    )
    if not resp.ok:
        raise XIntegrationError(f"Erro X (token): {resp.status_code} {resp.text}")
    return resp.json()


def fetch_x_user(access_token: str) -> dict[str, Any]:
    headers = {"Authorization": f"Bearer {access_token}"}
    resp = requests.get(f"{X_API_BASE}/users/me", headers=headers, timeout=20)
    if resp.status_code == 429:
        raise XRateLimitError("Rate limit do X ao buscar o usuário")
    if not resp.ok:
        raise XIntegrationError(f"Erro X (user): {resp.status_code} {resp.text}")
    return resp.json().get("data") or {}


def _twitterapi_headers() -> dict[str, str]:
    config = get_config()
    return {"x-api-key": config.twitterapi_key, "accept": "application/json"}


def upgrade_avatar_url(url: str) -> str:
    """Troca a miniatura `_normal` (48px) pela versão 400x400."""
    if "_normal" in url:
        return url.replace("_normal", "_400x400", 1)
    return url


def fetch_profile_info(username: str) -> dict[str, Any]:
    """
    Busca id e avatar do perfil no twitterapi.io.

    Melhor esforço: qualquer falha é logada e devolve {}.
    """
    try:
        resp = requests.get(
            f"{TWITTERAPI_IO_BASE}/user/info",
            params={"userName": username},
            headers=_twitterapi_headers(),
            timeout=20,
        )
        if not resp.ok:
            logger.warning("[x] twitterapi.io user/info respondeu %s para @%s", resp.status_code, username)
            return {}
        data = resp.json().get("data") or {}
    except (requests.RequestException, ValueError, AttributeError) as exc:
        logger.warning("[x] Falha no twitterapi.io user/info (@%s): %s", username, exc)
        return {}

    info: dict[str, Any] = {}
    picture = data.get("profilePicture")
    if isinstance(picture, str) and picture:
        info["profile_image_url"] = upgrade_avatar_url(picture)
    if data.get("id"):
        info["id"] = str(data["id"])
    return info


def desired_post_count() -> int:
    return max(1, int(parse_lenient_float(settings.TWEET_COUNT, DEFAULT_POST_COUNT)))


def include_replies() -> bool:
    return str(settings.INCLUDE_REPLIES).strip().lower() == "true"


def fetch_recent_posts(
    username: str,
    desired: int,
    include_replies: bool = False,
    max_pages: int = MAX_POST_PAGES,
) -> list[dict[str, Any]]:
    """
    Pagina o user/last_tweets até juntar `desired` posts.

    Para na página vazia, quando não há próxima página/cursor ou no limite de páginas.
    Erros são logados e o que já foi coletado é devolvido.
    """
    collected: list[dict[str, Any]] = []
    cursor = ""
    pages = 0
    while len(collected) < desired and pages < max_pages:
        params = {"userName": username, "includeReplies": "true" if include_replies else "false"}
        if cursor:
            params["cursor"] = cursor
        pages += 1
        try:
            resp = requests.get(
                f"{TWITTERAPI_IO_BASE}/user/last_tweets",
                params=params,
                headers=_twitterapi_headers(),
                timeout=20,
            )
            if not resp.ok:
                logger.warning(
                    "[x] twitterapi.io last_tweets respondeu %s (@%s): %s",
                    resp.status_code,
                    username,
                    resp.text[:300],
                )
                break
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("[x] Falha ao paginar posts de @%s: %s", username, exc)
            break

        if not isinstance(payload, dict):
            break
        data = payload.get("data")
        page = data.get("tweets") if isinstance(data, dict) else None
        if not isinstance(page, list) or not page:
            break
        collected.extend(page)

        cursor = payload.get("next_cursor") or ""
        if not payload.get("has_next_page") or not cursor:
            break

    logger.info("[x] %s posts coletados de @%s em %s página(s)", len(collected), username, pages)
    return collected[:desired]


def get_session_user(session) -> dict[str, Any] | None:
    """Usuário logado na sessão; exige token e username."""
    user = session.get(SESSION_USER_KEY)
    if not isinstance(user, dict):
        return None
    if not user.get("access_token") or not user.get("username"):
        return None
    return user
