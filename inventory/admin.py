from django.contrib import admin
from .models import Hospital, StockEntry


class StockEntryInline(admin.TabularInline):
    model = StockEntry
    extra = 0
    readonly_fields = ['quantity', 'last_updated']


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ['name', 'external_id', 'is_tracked']
    list_filter = ['is_tracked']
    search_fields = ['name', 'external_id']
    inlines = [StockEntryInline]


@admin.register(StockEntry)
class StockEntryAdmin(admin.ModelAdmin):
    list_display = ['hospital', 'blood_type', 'quantity', 'level', 'last_updated']
    list_filter = ['blood_type', 'hospital']
    # Quantities only move through the ledger service.
    readonly_fields = ['quantity', 'last_updated']
