"""donationledger URL Configuration

JSON endpoints for the donation records view and the hospital inventory view.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('records/', include('donations.urls')),
    path('hospitals/', include('inventory.urls')),
]
