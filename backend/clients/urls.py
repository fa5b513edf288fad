from django.urls import path

from .views import (
    ContactCorporationsView,
    ContactDetailView,
    ContactExportView,
    ContactListCreateView,
    CorporationDetailView,
    CorporationListCreateView,
    CorporationRelatedView,
)

app_name = "clients"

urlpatterns = [
    path("corporations/", CorporationListCreateView.as_view(), name="corporation-list"),
    path("corporations/<int:pk>/", CorporationDetailView.as_view(), name="corporation-detail"),
    path("corporations/<int:pk>/related/", CorporationRelatedView.as_view(), name="corporation-related"),
    path("contacts/", ContactListCreateView.as_view(), name="contact-list"),
    path("contacts/export/", ContactExportView.as_view(), name="contact-export"),
    path("contacts/<int:pk>/", ContactDetailView.as_view(), name="contact-detail"),
    path("contacts/<int:pk>/corporations/", ContactCorporationsView.as_view(), name="contact-corporations"),
]
