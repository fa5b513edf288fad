import logging

from django.contrib.auth import authenticate
from django.contrib.auth.models import update_last_login
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from .authz import build_actor
from .models import Department, Notification, User

security_logger = logging.getLogger("security")


class DepartmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Department
        fields = ("id", "name", "code")


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user reference nested in other resources."""

    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ("id", "email", "full_name")


class UserSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    role = serializers.SlugRelatedField(slug_field="slug", read_only=True)
    department = DepartmentSerializer(read_only=True)
    permissions = serializers.SerializerMethodField()
    is_admin = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = (
            "id", "email", "first_name", "last_name", "full_name",
            "role", "department", "permissions", "is_admin",
        )

    def get_permissions(self, obj):
        return sorted(build_actor(obj).perms)

    def get_is_admin(self, obj):
        return build_actor(obj).is_admin


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    username_field = User.EMAIL_FIELD

    def validate(self, attrs):
        authenticate_kwargs = {
            self.username_field: attrs.get("email"),
            "password": attrs.get("password"),
        }
        user = authenticate(request=self.context.get("request"), **authenticate_kwargs)
        if not user:
            security_logger.warning("Failed staff login", extra={"email": attrs.get("email")})
            raise AuthenticationFailed("Invalid credentials")
        update_last_login(None, user)
        refresh = RefreshToken.for_user(user)
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
            "user": UserSerializer(user).data,
        }


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = (
            "id", "title", "message", "severity", "action_url",
            "is_read", "read_at", "content_type", "object_id", "created_at",
        )
        read_only_fields = fields
