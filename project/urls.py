# project/urls.py
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Freight approvals back office"
admin.site.site_title = "Freight approvals"
admin.site.index_title = "Approval administration"

urlpatterns = [
    # Django admin (requests, history, system configs)
    path("admin/", admin.site.urls),

    # JSON API consumed by the front-end
    path("api/", include("core.urls")),
]
