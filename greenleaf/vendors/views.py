import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from django.db import IntegrityError
from greenleaf.core.exceptions import validation_error_response
from greenleaf.core.permissions import IsPlatformAdmin, IsVendorMember, IsVendorAdmin, get_request_vendor
from greenleaf.core.utils import create_audit_log, unique_slug
from .models import Vendor
from .serializers import VendorSerializer, EmployeeSerializer

User = get_user_model()
logger = logging.getLogger('greenleaf.vendors')

# Fields a vendor admin may not change on their own tenant
PROTECTED_VENDOR_FIELDS = ('status', 'slug')


@api_view(['GET', 'POST'])
@permission_classes([IsPlatformAdmin])
def vendor_list_create(request):
    """List all vendors or onboard a new one (platform admins only)"""
    try:
        if request.method == 'GET':
            vendors = Vendor.objects.all()
            status_filter = request.query_params.get('status')
            if status_filter:
                vendors = vendors.filter(status=status_filter)
            return Response(VendorSerializer(vendors, many=True).data)

        logger.info(f"User {request.user.username} creating vendor with data: {request.data}")
        serializer = VendorSerializer(data=request.data)
        if not serializer.is_valid():
            logger.warning(f"Vendor creation validation failed: {serializer.errors}")
            return validation_error_response(serializer.errors)
        try:
            slug = serializer.validated_data.get('slug') or unique_slug(Vendor.objects.all(), serializer.validated_data['name'])
            vendor = serializer.save(slug=slug)
        except IntegrityError as e:
            logger.error(f"IntegrityError creating vendor: {str(e)}", exc_info=True)
            return Response({'error': 'A vendor with this slug already exists'}, status=status.HTTP_400_BAD_REQUEST)
        logger.info(f"Vendor '{vendor.name}' created by {request.user.username}")
        create_audit_log(request=request, vendor=vendor, action='create', model_name='Vendor',
                         object_id=vendor.id, object_name=vendor.name, object_reference=vendor.slug)
        return Response(VendorSerializer(vendor).data, status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Unexpected error in vendor_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PATCH'])
def vendor_detail(request, pk):
    """Retrieve a vendor (members or platform admins) or update it (platform admins)"""
    vendor = get_object_or_404(Vendor, pk=pk)
    user = request.user
    if not user.is_platform_admin and user.vendor_id != vendor.id:
        return Response({'error': 'Vendor not found'}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        return Response(VendorSerializer(vendor).data)

    if not user.is_platform_admin:
        return Response({'error': 'Only platform administrators can update vendors directly'}, status=status.HTTP_403_FORBIDDEN)

    serializer = VendorSerializer(vendor, data=request.data, partial=True)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    old_status = vendor.status
    vendor = serializer.save()
    if old_status != vendor.status:
        logger.info(f"Vendor {vendor.slug} status changed {old_status} -> {vendor.status} by {user.username}")
        create_audit_log(request=request, vendor=vendor, action='update', model_name='Vendor',
                         object_id=vendor.id, object_name=vendor.name,
                         changes={'status': {'old': old_status, 'new': vendor.status}})
    return Response(VendorSerializer(vendor).data)


@api_view(['GET', 'PATCH'])
@permission_classes([IsVendorMember])
def vendor_me(request):
    """The caller's own vendor. Updates require vendor admin and cannot touch status or slug."""
    vendor = get_request_vendor(request)
    if request.method == 'GET':
        return Response(VendorSerializer(vendor).data)

    if not request.user.is_vendor_admin:
        return Response({'error': 'Only vendor administrators can update vendor settings'}, status=status.HTTP_403_FORBIDDEN)

    data = {k: v for k, v in request.data.items() if k not in PROTECTED_VENDOR_FIELDS}
    if 'settings' in data and isinstance(data['settings'], dict):
        # Settings are merged so one key can be changed without resending the rest
        data['settings'] = {**vendor.settings, **data['settings']}
    serializer = VendorSerializer(vendor, data=data, partial=True)
    if not serializer.is_valid():
        logger.warning(f"Vendor settings validation failed for {vendor.slug}: {serializer.errors}")
        return validation_error_response(serializer.errors)
    old_settings = dict(vendor.settings)
    vendor = serializer.save()
    create_audit_log(request=request, action='update', model_name='Vendor', object_id=vendor.id,
                     object_name=vendor.name, changes={'settings': {'old': old_settings, 'new': vendor.settings}})
    return Response(VendorSerializer(vendor).data)


@api_view(['GET', 'POST'])
@permission_classes([IsVendorMember])
def employee_list_create(request):
    """List staff accounts of the caller's vendor or add one (vendor admin)"""
    try:
        vendor = get_request_vendor(request)
        if request.method == 'GET':
            employees = User.objects.filter(vendor=vendor).exclude(role='customer').order_by('username')
            return Response(EmployeeSerializer(employees, many=True).data)

        if not request.user.is_vendor_admin:
            logger.warning(f"User {request.user.username} attempted to create employee without admin privileges")
            return Response({'error': 'Only vendor administrators can add employees'}, status=status.HTTP_403_FORBIDDEN)

        serializer = EmployeeSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        try:
            employee = serializer.save(vendor=vendor)
        except IntegrityError:
            return Response({'error': 'A user with that username already exists'}, status=status.HTTP_400_BAD_REQUEST)
        logger.info(f"Employee {employee.username} ({employee.role}) added to {vendor.slug} by {request.user.username}")
        create_audit_log(request=request, action='employee_create', model_name='User', object_id=employee.id,
                         object_name=employee.username, changes={'role': employee.role})
        return Response(EmployeeSerializer(employee).data, status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Unexpected error in employee_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsVendorAdmin])
def employee_detail(request, pk):
    """Retrieve, update or deactivate a staff account"""
    vendor = get_request_vendor(request)
    employee = get_object_or_404(User, pk=pk, vendor=vendor)

    if request.method == 'GET':
        return Response(EmployeeSerializer(employee).data)

    if employee.pk == request.user.pk:
        return Response({'error': 'You cannot modify your own account here'}, status=status.HTTP_400_BAD_REQUEST)

    if request.method == 'PATCH':
        serializer = EmployeeSerializer(employee, data=request.data, partial=True)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        serializer.save()
        create_audit_log(request=request, action='update', model_name='User', object_id=employee.id,
                         object_name=employee.username, changes={k: v for k, v in request.data.items() if k != 'password'})
        return Response(serializer.data)

    # Staff rows are referenced by orders and sessions, so they are deactivated rather than deleted
    employee.is_active = False
    employee.save(update_fields=['is_active', 'updated_at'])
    logger.info(f"Employee {employee.username} deactivated by {request.user.username}")
    create_audit_log(request=request, action='delete', model_name='User', object_id=employee.id,
                     object_name=employee.username)
    return Response(status=status.HTTP_204_NO_CONTENT)
