import logging
from decimal import Decimal
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.shortcuts import get_object_or_404
from django.db import IntegrityError
from django.db.models.deletion import ProtectedError
from django.db.models import Sum
from greenleaf.core.exceptions import validation_error_response
from greenleaf.core.permissions import IsVendorMember, get_request_vendor
from greenleaf.core.utils import create_audit_log
from .models import Location
from .serializers import LocationSerializer

logger = logging.getLogger('greenleaf.locations')


@api_view(['GET', 'POST'])
@permission_classes([IsVendorMember])
def location_list_create(request):
    """List the vendor's locations or create one (create requires vendor admin)"""
    try:
        vendor = get_request_vendor(request)
        if request.method == 'GET':
            logger.info(f"User {request.user.username} requested location list")
            locations = Location.objects.filter(vendor=vendor)
            if request.query_params.get('active') == 'true':
                locations = locations.filter(is_active=True)
            location_type = request.query_params.get('type')
            if location_type:
                locations = locations.filter(location_type=location_type)
            return Response(LocationSerializer(locations, many=True).data)

        if not request.user.is_vendor_admin:
            logger.warning(f"User {request.user.username} attempted to create location without admin privileges")
            return Response({'error': 'Only vendor administrators can create locations'}, status=status.HTTP_403_FORBIDDEN)

        logger.info(f"User {request.user.username} creating location with data: {request.data}")
        serializer = LocationSerializer(data=request.data, context={'vendor': vendor})
        if not serializer.is_valid():
            logger.warning(f"Location creation validation failed: {serializer.errors}")
            return validation_error_response(serializer.errors)
        try:
            is_first = not Location.objects.filter(vendor=vendor).exists()
            location = serializer.save(vendor=vendor, is_primary=serializer.validated_data.get('is_primary', False) or is_first)
        except IntegrityError as e:
            logger.error(f"IntegrityError creating location: {str(e)}", exc_info=True)
            return Response({'error': 'A location with this code already exists'}, status=status.HTTP_400_BAD_REQUEST)
        logger.info(f"Location '{location.name}' created successfully by {request.user.username}")
        create_audit_log(request=request, action='create', model_name='Location', object_id=location.id,
                         object_name=location.name, object_reference=location.code)
        return Response(LocationSerializer(location).data, status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Unexpected error in location_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsVendorMember])
def location_detail(request, pk):
    """Retrieve, update or delete a location (update/delete requires vendor admin)"""
    vendor = get_request_vendor(request)
    location = get_object_or_404(Location, pk=pk, vendor=vendor)
    try:
        if request.method == 'GET':
            return Response(LocationSerializer(location).data)

        if not request.user.is_vendor_admin:
            logger.warning(f"User {request.user.username} attempted to modify location {pk} without admin privileges")
            return Response({'error': 'Only vendor administrators can modify locations'}, status=status.HTTP_403_FORBIDDEN)

        if request.method in ('PUT', 'PATCH'):
            serializer = LocationSerializer(location, data=request.data, partial=request.method == 'PATCH',
                                            context={'vendor': vendor})
            if not serializer.is_valid():
                return validation_error_response(serializer.errors)
            if location.is_primary and serializer.validated_data.get('is_primary') is False:
                return Response({'error': 'Mark another location as primary instead'}, status=status.HTTP_400_BAD_REQUEST)
            location = serializer.save()
            logger.info(f"Location '{location.name}' updated by {request.user.username}")
            return Response(LocationSerializer(location).data)

        # DELETE
        if location.is_primary:
            return Response({'error': 'Cannot delete the primary location'}, status=status.HTTP_400_BAD_REQUEST)
        on_hand = location.inventory_items.aggregate(total=Sum('quantity'))['total'] or Decimal('0')
        if on_hand > 0:
            return Response({'error': 'Cannot delete a location that still holds inventory. Transfer or zero it out first.'},
                            status=status.HTTP_400_BAD_REQUEST)
        location_name = location.name
        try:
            location.delete()
        except ProtectedError:
            return Response({'error': 'Location has registers or sales history. Deactivate it instead.'},
                            status=status.HTTP_400_BAD_REQUEST)
        logger.info(f"Location '{location_name}' deleted by {request.user.username}")
        create_audit_log(request=request, action='delete', model_name='Location', object_id=pk, object_name=location_name)
        return Response(status=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        logger.error(f"Unexpected error in location_detail: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
