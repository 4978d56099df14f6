# backend/core/urls.py
from django.conf import settings
from django.contrib import admin
from django.http import HttpResponse
from django.urls import include, path


def health(_request):
    return HttpResponse("ok", content_type="text/plain")


urlpatterns = [
    # Admin & health
    path("admin/", admin.site.urls),
    path("healthz", health, name="healthz"),

    # JWT (SimpleJWT) + current user
    path("api/auth/", include("accounts.auth_urls")),

    # Escrow ledger (read-only)
    path("api/payments/", include("payments.urls")),

    # Contracts, tickets, uploads, disputes
    path("api/", include("contracts.urls")),
]

# Serve /media/ in DEBUG
if settings.DEBUG:
    from django.conf.urls.static import static

    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
