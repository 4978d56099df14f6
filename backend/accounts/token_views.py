# backend/accounts/token_views.py
from django.conf import settings
from rest_framework import generics, permissions, serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.views import TokenObtainPairView

from .serializers import MeSerializer


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    username_field = "email"

    def validate(self, attrs):
        # Accept fallback "username" key too
        if "email" not in attrs and "username" in attrs:
            attrs["email"] = attrs["username"]

        data = super().validate(attrs)

        if getattr(settings, "ACCOUNTS_REQUIRE_EMAIL_VERIFICATION", False) and not self.user.is_verified:
            raise serializers.ValidationError(
                "Account not verified. Please check your email for a verification link."
            )

        data["user_id"] = self.user.id
        data["email"] = self.user.email
        data["is_admin"] = bool(self.user.is_staff or self.user.is_superuser)
        return data


class EmailTokenObtainPairView(TokenObtainPairView):
    serializer_class = EmailTokenObtainPairSerializer


class MeView(generics.RetrieveUpdateAPIView):
    serializer_class = MeSerializer
    permission_classes = [permissions.IsAuthenticated]
    http_method_names = ["get", "patch"]

    def get_object(self):
        return self.request.user
