from django.urls import path

from . import views

app_name = "gauge"

urlpatterns = [
    path("", views.LandingView.as_view(), name="landing"),
    path("fetch", views.FetchView.as_view(), name="fetch"),
    path("card.png", views.card_png, name="card_png"),
    path("pfp", views.avatar_proxy, name="pfp"),
    path("healthz", views.healthz, name="healthz"),
]
