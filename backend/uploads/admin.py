from django.contrib import admin

from contracts.models import StoredFile
from .forms import UploadFieldSettingsForm
from .models import UploadField


@admin.register(UploadField)
class UploadFieldAdmin(admin.ModelAdmin):
    form = UploadFieldSettingsForm
    list_display = ('name', 'label', 'field_type', 'upload_directory', 'policy', 'multiple')
    list_filter = ('field_type', 'policy')
    search_fields = ('name', 'label')
    readonly_fields = ('created_at', 'updated_at')


@admin.register(StoredFile)
class StoredFileAdmin(admin.ModelAdmin):
    list_display = ('filename', 'path', 'field', 'owner', 'size', 'mime_type', 'updated_at')
    list_filter = ('field', 'mime_type')
    search_fields = ('filename', 'path', 'owner__username')
    raw_id_fields = ('owner',)
    readonly_fields = ('id', 'created_at', 'updated_at')
