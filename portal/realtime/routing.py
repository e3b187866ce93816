from django.urls import path

from .consumers import PatientReportsConsumer

websocket_urlpatterns = [
    path("ws/reports/<int:patient_id>/", PatientReportsConsumer.as_asgi()),
]
