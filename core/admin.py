from django.contrib import admin, messages

from .models import Profile
from .services.dashboard import get_dashboard_service

admin.site.site_header = "Codyssey Administration"
admin.site.site_title = "Codyssey Admin"
admin.site.index_title = "Dashboard administration"


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'leetcode_username', 'codeforces_handle', 'updated_at')
    search_fields = ('user__username', 'leetcode_username', 'codeforces_handle')
    readonly_fields = ('created_at', 'updated_at')
    actions = ['refresh_dashboard_cache']

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        if change and {'leetcode_username', 'codeforces_handle'} & set(form.changed_data):
            get_dashboard_service().cache.invalidate_identity(str(obj.user_id))

    @admin.action(description="Refresh dashboard cache")
    def refresh_dashboard_cache(self, request, queryset):
        cache = get_dashboard_service().cache
        failed = 0
        total = 0
        for profile in queryset:
            if cache.invalidate_identity(str(profile.user_id)):
                failed += 1
            total += 1
        if failed:
            self.message_user(request, f"{failed} of {total} profile(s) could not be fully invalidated.", level=messages.WARNING)
            return
        self.message_user(request, f"Dashboard cache refreshed for {total} profile(s).", level=messages.SUCCESS)
