import logging
from datetime import datetime, timedelta
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.utils import timezone
from .exceptions import validation_error_response
from .models import AuditLog
from .permissions import IsVendorAdmin, get_request_vendor
from .serializers import UserSerializer, VendorRegistrationSerializer, AuditLogSerializer
from .utils import create_audit_log

User = get_user_model()
logger = logging.getLogger('greenleaf.core')


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        vendor = self.user.vendor
        if vendor is not None and vendor.status == 'suspended' and not self.user.is_platform_admin:
            raise AuthenticationFailed('Vendor account is suspended.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        token['vendor_id'] = user.vendor_id
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


def _token_pair(user):
    refresh = CustomTokenObtainPairSerializer.get_token(user)
    return {'refresh': str(refresh), 'access': str(refresh.access_token)}


@api_view(['POST'])
@permission_classes([AllowAny])
def register_vendor(request):
    """Vendor sign-up: creates the tenant, its primary location and the owner user"""
    try:
        serializer = VendorRegistrationSerializer(data=request.data)
        if not serializer.is_valid():
            logger.warning(f"Vendor registration validation failed: {serializer.errors}")
            return validation_error_response(serializer.errors)

        user = serializer.save()
        logger.info(f"Vendor '{user.vendor.name}' registered by {user.username}")
        create_audit_log(
            request=request,
            user=user,
            vendor=user.vendor,
            action='vendor_register',
            model_name='Vendor',
            object_id=user.vendor_id,
            object_name=user.vendor.name,
            object_reference=user.vendor.slug,
        )
        return Response({
            'user': UserSerializer(user).data,
            'vendor': {'id': user.vendor.id, 'name': user.vendor.name, 'slug': user.vendor.slug},
            'tokens': _token_pair(user),
        }, status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Unexpected error in register_vendor: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with vendor info and capability flags"""
    user = request.user
    user_data = UserSerializer(user).data

    vendor = user.vendor
    user_data['vendor'] = None
    if vendor is not None:
        user_data['vendor'] = {
            'id': vendor.id,
            'name': vendor.name,
            'slug': vendor.slug,
            'status': vendor.status,
        }

    is_staff_member = vendor is not None and user.role in ('vendor', 'employee')
    is_admin = user.is_vendor_admin and vendor is not None

    user_data['is_platform_admin'] = user.is_platform_admin
    user_data['can_access_pos'] = is_staff_member
    user_data['can_manage_inventory'] = is_staff_member
    user_data['can_manage_storefront'] = is_admin
    user_data['can_view_analytics'] = is_admin
    user_data['can_manage_employees'] = is_admin

    return Response(user_data)


@api_view(['GET'])
@permission_classes([IsVendorAdmin])
def audit_log_list(request):
    """List the vendor's audit logs with filtering"""
    try:
        vendor = get_request_vendor(request)
        queryset = AuditLog.objects.filter(vendor=vendor).select_related('user')

        action_filter = request.query_params.get('action')
        if action_filter:
            queryset = queryset.filter(action=action_filter)

        model_filter = request.query_params.get('model')
        if model_filter:
            queryset = queryset.filter(model_name=model_filter)

        date_from = request.query_params.get('date_from')
        date_to = request.query_params.get('date_to')
        try:
            if date_from:
                start = timezone.make_aware(datetime.strptime(date_from, '%Y-%m-%d'))
                queryset = queryset.filter(created_at__gte=start)
            if date_to:
                end = timezone.make_aware(datetime.strptime(date_to, '%Y-%m-%d')) + timedelta(days=1)
                queryset = queryset.filter(created_at__lt=end)
        except ValueError:
            return Response({'error': 'Invalid date format. Use YYYY-MM-DD'}, status=status.HTTP_400_BAD_REQUEST)

        limit = min(int(request.query_params.get('limit', 200) or 200), 1000)
        serializer = AuditLogSerializer(queryset.order_by('-created_at')[:limit], many=True)
        return Response(serializer.data)
    except ValueError:
        return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Unexpected error in audit_log_list: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
