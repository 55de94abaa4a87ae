"""
Django Admin configuration for user models.
"""
from django.contrib import admin
from .models import User, Preference


class PreferenceInline(admin.StackedInline):
    model = Preference
    can_delete = False


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['id', 'email', 'first_name', 'last_name', 'receives_email', 'created_at']
    list_filter = ['preference__receive_email', 'created_at']
    search_fields = ['email', 'first_name', 'last_name']
    ordering = ['-created_at']
    filter_horizontal = ['saved_products']
    inlines = [PreferenceInline]

    def receives_email(self, obj):
        return getattr(getattr(obj, 'preference', None), 'receive_email', False)
    receives_email.boolean = True
    receives_email.short_description = 'Email'
