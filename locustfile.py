"""
Teste de carga com Locust.

Uso:
  1. Instale: pip install -e ".[dev]"
  2. Inicie o servidor (ex: python manage.py runserver ou gunicorn)
  3. Rode: locust -f locustfile.py --host=http://localhost:8000
  4. Abra http://localhost:8089 e configure usuários/ramp-up
  5. Inicie o teste e observe métricas (RPS, latência, falhas)

Para linha de comando sem UI:
  locust -f locustfile.py --host=http://localhost:8000 --users 10 --spawn-rate 2 --run-time 60s --headless

O /fetch depende de login no X e do webhook externo, então não entra aqui.
"""

import os

from locust import HttpUser, between, task


class WebsiteUser(HttpUser):
    """Simula visitantes chegando na landing."""

    wait_time = between(2, 5)

    @task(10)
    def landing(self):
        self.client.get("/")

    @task(2)
    def healthz(self):
        self.client.get("/healthz")


class CardRenderUser(HttpUser):
    """
    Simula o download repetido do card rasterizado.

    Defina LOCUST_SESSION_COOKIE com o valor do cookie de sessão (fs_sess) de um
    navegador que já passou pelo /fetch.
    """

    wait_time = between(1, 3)

    def on_start(self):
        cookie = os.environ.get("LOCUST_SESSION_COOKIE", "")
        if cookie:
            self.client.cookies.set("fs_sess", cookie)

    @task(5)
    def card(self):
        self.client.get("/card.png", name="/card.png")

    @task(1)
    def card_download(self):
        self.client.get("/card.png?dl=1", name="/card.png?dl=1")
