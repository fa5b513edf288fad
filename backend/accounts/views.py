import logging

from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from core.exceptions import error_response
from core.pagination import paginate
from .models import Notification
from .serializers import EmailTokenObtainPairSerializer, NotificationSerializer, UserSerializer
from .throttles import LoginThrottle

logger = logging.getLogger(__name__)


class LoginView(generics.GenericAPIView):
    serializer_class = EmailTokenObtainPairSerializer
    permission_classes = [permissions.AllowAny]
    authentication_classes = []
    throttle_classes = [LoginThrottle]
    www_authenticate_realm = "api"

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        logger.info("Staff login", extra={"user_id": serializer.validated_data["user"]["id"]})
        return Response(serializer.validated_data, status=status.HTTP_200_OK)

    def get_authenticate_header(self, request):
        # Without a header DRF turns AuthenticationFailed into a 403.
        return f'Bearer realm="{self.www_authenticate_realm}"'


class TaxDeskTokenRefreshView(TokenRefreshView):
    authentication_classes = []


class LogoutView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        refresh_token = request.data.get("refresh")
        if not refresh_token:
            return error_response("Refresh token required")
        try:
            token = RefreshToken(refresh_token)
            token.blacklist()
        except TokenError:
            return error_response("Invalid token")
        return Response(status=status.HTTP_204_NO_CONTENT)


class MeView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response(UserSerializer(request.user).data)


class NotificationListView(APIView):
    """
    GET /api/v1/notifications/ -> the caller's notifications (?unread=true)
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        qs = Notification.objects.filter(recipient=request.user)
        if request.query_params.get("unread") in ("1", "true", "True"):
            qs = qs.filter(is_read=False)
        response = paginate(request, qs, NotificationSerializer, view=self)
        response.data["unread_count"] = Notification.objects.filter(
            recipient=request.user, is_read=False
        ).count()
        return response


class NotificationReadView(APIView):
    """
    POST /api/v1/notifications/<id>/read/ -> mark one notification read
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        notification = get_object_or_404(Notification, pk=pk, recipient=request.user)
        notification.mark_read()
        return Response(NotificationSerializer(notification).data)


class NotificationReadAllView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        updated = Notification.objects.filter(recipient=request.user, is_read=False).update(
            is_read=True, read_at=timezone.now()
        )
        return Response({"updated": updated})
