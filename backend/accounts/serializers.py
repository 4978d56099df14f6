# backend/accounts/serializers.py
from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()


class PublicUserSerializer(serializers.ModelSerializer):
    """What the other party of a contract sees about a user."""
    class Meta:
        model = User
        fields = ["id", "email", "display_name", "first_name", "last_name"]
        read_only_fields = fields


class MeSerializer(serializers.ModelSerializer):
    is_admin = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "email", "display_name", "first_name", "last_name", "phone_number",
                  "is_verified", "is_admin", "date_joined"]
        read_only_fields = ["id", "email", "is_verified", "is_admin", "date_joined"]

    def get_is_admin(self, obj):
        return bool(obj.is_staff or obj.is_superuser)
