import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from contracts.models import StoredFile
from .exceptions import DirectoryUnavailable
from .filters import StoredFileFilter
from .models import UploadField
from .serializers import StoredFileSerializer, UploadBatchSerializer, UploadFieldSerializer
from .services import StorageAdapter, UploadService

logger = logging.getLogger(__name__)


UPLOAD_FILES_KEY = 'files'


class RecordPagination(LimitOffsetPagination):
    """
    Pagination for record listings.

    - Default limit: 20
    - Maximum limit: 100
    """
    default_limit = 20
    max_limit = 100


class UploadFieldViewSet(viewsets.ModelViewSet):
    """
    ViewSet for upload field configuration.

    Provides:
    - CRUD on field settings, looked up by machine name
    - upload: store files through the field's collision policy
    """
    queryset = UploadField.objects.all()
    serializer_class = UploadFieldSerializer
    lookup_field = 'name'

    @action(
        detail=True,
        methods=['post'],
        parser_classes=[MultiPartParser, FormParser],
    )
    def upload(self, request, name=None):
        """
        Upload one or more files under the ``files`` key.

        Returns:
            201 with records/errors/replaced when at least one file was stored
            200 with an empty record mapping when nothing was stored
            500 when the upload directory is unavailable
        """
        field = self.get_object()
        uploads = request.FILES.getlist(UPLOAD_FILES_KEY)

        service = UploadService()
        try:
            batch = service.save_uploads(uploads, field, owner=request.user)
        except DirectoryUnavailable as e:
            return Response(
                {'error': str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        serializer = UploadBatchSerializer(batch, context=self.get_serializer_context())
        return Response(
            serializer.data,
            status=status.HTTP_201_CREATED if batch else status.HTTP_200_OK
        )


class StoredFileViewSet(mixins.ListModelMixin,
                        mixins.RetrieveModelMixin,
                        mixins.DestroyModelMixin,
                        viewsets.GenericViewSet):
    """
    ViewSet for stored file records.

    Filtering (all use AND logic):
    - search, mime_type, type_category, field, directory
    - size_min/size_max, date_from/date_to

    Sorting:
    - Default: -created_at (newest first)
    - Allowed: created_at, updated_at, filename, size, mime_type
    """
    serializer_class = StoredFileSerializer
    filterset_class = StoredFileFilter
    pagination_class = RecordPagination
    ordering_fields = ['created_at', 'updated_at', 'filename', 'size', 'mime_type']
    ordering = ['-created_at']

    def get_queryset(self):
        """Optimize queries with select_related to avoid N+1."""
        return StoredFile.objects.select_related('owner', 'field').all()

    def destroy(self, request, *args, **kwargs):
        """Delete the record together with its stored bytes."""
        record = self.get_object()
        StorageAdapter().delete_file(record)
        logger.info(f"Deleted record {record.path}")
        return Response(status=status.HTTP_204_NO_CONTENT)
