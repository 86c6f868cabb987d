from django.contrib import admin
from .models import Booking, DonorProfile, Event, Unit


@admin.register(DonorProfile)
class DonorProfileAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'donor_id', 'blood_group']
    list_filter = ['blood_group']
    search_fields = ['full_name', 'donor_id', 'email']


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ['title', 'event_date', 'assigned_hospital']
    search_fields = ['title', 'location']


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['id', 'donor_name', 'donor_id', 'scheduled_date', 'raw_status', 'entry_type', 'unit']
    list_filter = ['raw_status', 'entry_type', 'scheduled_date']
    search_fields = ['donor_name', 'donor_id', 'confirmation_code']
    raw_id_fields = ['unit', 'event', 'hospital']


@admin.register(Unit)
class UnitAdmin(admin.ModelAdmin):
    list_display = ['serial_number', 'donor_id', 'blood_type', 'amount_ml', 'donation_date', 'expiry_date', 'storage_status']
    list_filter = ['storage_status', 'blood_type']
    search_fields = ['serial_number', 'donor_id', 'donor_name']
    # Storage status changes only through the lifecycle service.
    readonly_fields = ['storage_status', 'used_at', 'used_hospital']

    def has_delete_permission(self, request, obj=None):
        return False
