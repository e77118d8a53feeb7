from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("intakeguard.api.urls")),
    # Prometheus scrape endpoint at /metrics
    path("", include("django_prometheus.urls")),
]
