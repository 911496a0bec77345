# core/urls/__init__.py
from django.urls import path, include

urlpatterns = [
    path("", include("core.urls.api_urls")),
]
