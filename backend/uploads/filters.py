"""
Stored file filtering.

Filter Types:
- search: Case-insensitive substring match on filename
- mime_type: Exact MIME type match
- type_category: MIME prefix match (e.g., 'image/')
- field: Upload field machine name
- directory: Storage directory prefix
- size_min/size_max: File size range
- date_from/date_to: Creation date range

All filters use AND logic when combined.
"""

from django_filters import rest_framework as filters
from contracts.models import StoredFile


class StoredFileFilter(filters.FilterSet):
    """
    FilterSet for StoredFile records.

    Query Parameters:
        search: Substring match on filename (case-insensitive)
        mime_type: Exact MIME type (e.g., 'application/pdf')
        type_category: MIME prefix (e.g., 'image' matches 'image/*')
        field: Machine name of the upload field
        directory: Records stored in or below this directory
        size_min: Minimum file size in bytes
        size_max: Maximum file size in bytes
        date_from: Files created on or after this date (ISO 8601)
        date_to: Files created on or before this date (ISO 8601)
    """

    search = filters.CharFilter(
        field_name='filename',
        lookup_expr='icontains',
        max_length=255,
        help_text='Case-insensitive substring match on filename'
    )

    mime_type = filters.CharFilter(
        field_name='mime_type',
        lookup_expr='exact',
        help_text='Exact MIME type match (e.g., application/pdf)'
    )

    type_category = filters.CharFilter(
        method='filter_type_category',
        help_text='MIME type prefix (e.g., image, application)'
    )

    field = filters.CharFilter(
        field_name='field__name',
        lookup_expr='exact',
        help_text='Upload field machine name'
    )

    directory = filters.CharFilter(
        method='filter_directory',
        help_text='Storage directory prefix (e.g., uploads/2024)'
    )

    size_min = filters.NumberFilter(
        field_name='size',
        lookup_expr='gte',
        help_text='Minimum file size in bytes'
    )
    size_max = filters.NumberFilter(
        field_name='size',
        lookup_expr='lte',
        help_text='Maximum file size in bytes'
    )

    date_from = filters.DateFilter(
        field_name='created_at',
        lookup_expr='date__gte',
        help_text='Files created on or after this date (ISO 8601)'
    )
    date_to = filters.DateFilter(
        field_name='created_at',
        lookup_expr='date__lte',
        help_text='Files created on or before this date (ISO 8601)'
    )

    class Meta:
        model = StoredFile
        fields = [
            'search',
            'mime_type',
            'type_category',
            'field',
            'directory',
            'size_min',
            'size_max',
            'date_from',
            'date_to',
        ]

    def filter_type_category(self, queryset, name, value):
        """
        Filter by MIME type category prefix.

        Example: 'image' matches 'image/png', 'image/jpeg', etc.
        """
        if not value:
            return queryset
        return queryset.filter(mime_type__istartswith=f'{value}/')

    def filter_directory(self, queryset, name, value):
        directory = value.strip('/')
        if not directory:
            return queryset
        return queryset.filter(path__startswith=f'{directory}/')
