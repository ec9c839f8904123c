import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Filter for vendor product lists"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')
    status = django_filters.ChoiceFilter(choices=Product.STATUS_CHOICES)
    stock_status = django_filters.ChoiceFilter(choices=Product.STOCK_STATUS_CHOICES)
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')
    strain_type = django_filters.CharFilter(method='filter_strain_type', label='Strain Type')

    class Meta:
        model = Product
        fields = ['search', 'category', 'status', 'stock_status', 'min_price', 'max_price', 'strain_type']

    def filter_search(self, queryset, name, value):
        """Every word must appear in the name, SKU, description or category name"""
        if not value or not value.strip():
            return queryset
        for word in value.split():
            queryset = queryset.filter(
                Q(name__icontains=word) |
                Q(sku__icontains=word) |
                Q(description__icontains=word) |
                Q(category__name__icontains=word)
            )
        return queryset

    def filter_strain_type(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(custom_fields__strain_type__iexact=value)
