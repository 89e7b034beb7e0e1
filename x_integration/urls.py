from django.urls import path

from . import views

app_name = "x"

urlpatterns = [
    path("login", views.XLoginView.as_view(), name="login"),
    path("callback", views.XCallbackView.as_view(), name="callback"),
    path("logout", views.XLogoutView.as_view(), name="logout"),
]
