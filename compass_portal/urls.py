from django.conf import settings
from django.urls import include, path

urlpatterns = [
    path("", include("gauge.urls")),
    path("", include("x_integration.urls")),
]

if settings.DEBUG and "debug_toolbar" in settings.INSTALLED_APPS:
    urlpatterns += [path("__debug__/", include("debug_toolbar.urls"))]
