from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import StoredFileViewSet, UploadFieldViewSet

router = DefaultRouter()
router.register(r'fields', UploadFieldViewSet)
router.register(r'records', StoredFileViewSet, basename='storedfile')

urlpatterns = [
    path('', include(router.urls)),
]
