from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "first_name", "last_name",
                    "is_active", "role")
    search_fields = ("username", "email")
    list_filter = ("is_active", "is_staff", "role")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Workflow", {"fields": ("role",)}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Workflow", {"fields": ("email", "first_name", "last_name", "role")}),
    )
