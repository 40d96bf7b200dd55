from django.contrib import admin
from django.urls import path, include

from banco_horas.views import healthz

urlpatterns = [
    path("banco-horas/", include("banco_horas.urls")),
    path("site-admin/", admin.site.urls),
    path("healthz", healthz, name="healthz"),
]
