import logging
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from greenleaf.core.exceptions import validation_error_response
from greenleaf.core.permissions import IsVendorMember, get_request_vendor
from greenleaf.core.utils import create_audit_log
from .models import Customer
from .serializers import CustomerSerializer

logger = logging.getLogger('greenleaf.customers')


@api_view(['GET', 'POST'])
@permission_classes([IsVendorMember])
def customer_list_create(request):
    """List the vendor's customers (searchable) or create one"""
    try:
        vendor = get_request_vendor(request)
        if request.method == 'GET':
            queryset = Customer.objects.filter(vendor=vendor).select_related('loyalty')
            search = request.query_params.get('search', '').strip()
            if search:
                query = Q(email__icontains=search) | Q(phone__icontains=search)
                for word in search.split():
                    query |= Q(first_name__icontains=word) | Q(last_name__icontains=word)
                queryset = queryset.filter(query)
            if request.query_params.get('active') == 'true':
                queryset = queryset.filter(is_active=True)
            return Response(CustomerSerializer(queryset[:500], many=True).data)

        serializer = CustomerSerializer(data=request.data, context={'vendor': vendor})
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        customer = serializer.save(vendor=vendor)
        logger.info(f"Customer {customer.id} created by {request.user.username}")
        return Response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Unexpected error in customer_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsVendorMember])
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    vendor = get_request_vendor(request)
    customer = get_object_or_404(Customer, pk=pk, vendor=vendor)

    if request.method == 'GET':
        return Response(CustomerSerializer(customer).data)

    if request.method in ('PUT', 'PATCH'):
        serializer = CustomerSerializer(customer, data=request.data, partial=request.method == 'PATCH',
                                        context={'vendor': vendor})
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        serializer.save()
        return Response(serializer.data)

    if not request.user.is_vendor_admin:
        return Response({'error': 'Only vendor administrators can delete customers'}, status=status.HTTP_403_FORBIDDEN)
    customer_name = customer.full_name
    customer.delete()
    logger.info(f"Customer {pk} deleted by {request.user.username}")
    create_audit_log(request=request, action='delete', model_name='Customer', object_id=pk, object_name=customer_name)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsVendorMember])
def customer_orders(request, pk):
    """Order history for one customer"""
    from greenleaf.orders.serializers import OrderListSerializer

    vendor = get_request_vendor(request)
    customer = get_object_or_404(Customer, pk=pk, vendor=vendor)
    orders = customer.orders.select_related('location').order_by('-created_at')
    return Response(OrderListSerializer(orders, many=True).data)
