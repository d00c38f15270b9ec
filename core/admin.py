"""
Django admin registration for all core models.
"""
import logging

from django.contrib import admin, messages

from core.scheduling.lifecycle import COMPLETED, UPCOMING

audit_logger = logging.getLogger('portal.audit')

# Customize Django admin site labels
admin.site.site_header = "Exam Portal Administration"
admin.site.site_title = "Exam Portal Administration"
admin.site.index_title = "Exam Portal Administration"

from .models import (  # noqa: E402
    ExamDate, ExamDateLocation, ExamType, Location, Organization, OrganizationAdmin,
)


# ── Organization / Location ──────────────────────────────────────
class LocationInline(admin.TabularInline):
    model = Location
    extra = 0
    fields = ('location_name', 'capacity')


class OrganizationAdminInline(admin.TabularInline):
    model = OrganizationAdmin
    extra = 0
    fields = ('user',)
    autocomplete_fields = ('user',)


@admin.register(Organization)
class OrganizationModelAdmin(admin.ModelAdmin):
    list_display = ('name', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name',)
    inlines = [LocationInline, OrganizationAdminInline]


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ('location_name', 'organization', 'capacity')
    list_filter = ('organization',)
    search_fields = ('location_name',)


# ── Exam types / dates ───────────────────────────────────────────
class ExamDateInline(admin.TabularInline):
    model = ExamDate
    extra = 0
    fields = ('scheduled_at', 'status', 'current_registrations')
    readonly_fields = ('current_registrations',)


@admin.register(ExamType)
class ExamTypeAdmin(admin.ModelAdmin):
    list_display = ('code_name', 'name', 'organization', 'price', 'registration_deadline')
    list_filter = ('organization',)
    search_fields = ('name', 'code_name')
    inlines = [ExamDateInline]


class ExamDateLocationInline(admin.TabularInline):
    model = ExamDateLocation
    extra = 0
    fields = ('location', 'priority')


@admin.action(description='Mark selected upcoming dates as completed')
def mark_completed(modeladmin, request, queryset):
    """Only upcoming dates move; completed and cancelled are terminal."""
    updated = queryset.filter(status=UPCOMING).update(status=COMPLETED)
    skipped = queryset.count() - updated
    audit_logger.info(
        'ADMIN_EXAM_DATE_COMPLETE | admin=%s | updated=%d', request.user.username, updated,
    )
    modeladmin.message_user(request, f'{updated} exam date(s) marked as completed.')
    if skipped:
        modeladmin.message_user(
            request, f'{skipped} date(s) were already final and left unchanged.', messages.WARNING,
        )


@admin.register(ExamDate)
class ExamDateAdmin(admin.ModelAdmin):
    list_display = ('exam_type', 'scheduled_at', 'status', 'current_registrations')
    list_filter = ('status', 'exam_type__organization')
    search_fields = ('exam_type__name', 'exam_type__code_name')
    ordering = ('scheduled_at',)
    inlines = [ExamDateLocationInline]
    actions = [mark_completed]
