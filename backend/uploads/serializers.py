from rest_framework import serializers
from contracts.models import StoredFile
from .models import UploadField
from .validators import normalize_extensions, normalize_upload_directory


class UploadFieldSerializer(serializers.ModelSerializer):
    """Serializer for upload field configuration."""

    extension_list = serializers.ListField(child=serializers.CharField(), read_only=True)
    size_limit = serializers.IntegerField(read_only=True)

    class Meta:
        model = UploadField
        fields = [
            'name',
            'label',
            'field_type',
            'upload_directory',
            'policy',
            'allowed_extensions',
            'extension_list',
            'max_filesize',
            'size_limit',
            'multiple',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate_upload_directory(self, value):
        return normalize_upload_directory(value)

    def validate_allowed_extensions(self, value):
        return normalize_extensions(value)


class StoredFileSerializer(serializers.ModelSerializer):
    """Serializer for StoredFile records."""

    url = serializers.CharField(read_only=True)
    directory = serializers.CharField(read_only=True)
    owner = serializers.CharField(source='owner.get_username', read_only=True, default=None)
    field = serializers.SlugRelatedField(slug_field='name', read_only=True)

    class Meta:
        model = StoredFile
        fields = [
            'id',
            'filename',
            'path',
            'directory',
            'url',
            'size',
            'mime_type',
            'owner',
            'field',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class UploadBatchSerializer(serializers.BaseSerializer):
    """Read-only representation of an upload submission result."""

    def to_representation(self, batch):
        return {
            'records': {
                record_id: StoredFileSerializer(record, context=self.context).data
                for record_id, record in batch.records.items()
            },
            'errors': list(batch.errors),
            'replaced': list(batch.replaced),
        }
