# accounts/urls.py
"""
URL configuration for auth endpoints.

Endpoints:
- /auth/token/ - obtain JWT pair (email + password)
- /auth/token/refresh/ - refresh access token
- /auth/me/ - current user and active company
- /auth/switch-company/ - select the active company
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .views import MeView, SwitchCompanyView

urlpatterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("auth/me/", MeView.as_view(), name="auth-me"),
    path("auth/switch-company/", SwitchCompanyView.as_view(), name="auth-switch-company"),
]
