from rest_framework import generics

from accounts.permissions import IsAdmin

from .models import AppSettings
from .serializers import AppSettingsSerializer


class AppSettingsListsView(generics.ListCreateAPIView):
    permission_classes = [IsAdmin]
    serializer_class = AppSettingsSerializer

    def get_queryset(self):
        # Return all AppSettings ordered by setting_key
        return AppSettings.objects.all().order_by('setting_key')

    def perform_create(self, serializer):
        serializer.save(updated_by=self.request.user)


class AppSettingsDetailView(generics.RetrieveUpdateDestroyAPIView):
    """View to retrieve, update or delete a specific app setting"""
    queryset = AppSettings.objects.all()
    permission_classes = [IsAdmin]
    serializer_class = AppSettingsSerializer
    lookup_field = 'id'

    def perform_update(self, serializer):
        serializer.save(updated_by=self.request.user)
