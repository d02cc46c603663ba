from django.contrib import admin

from .models import Case, CaseLog


class CaseLogInline(admin.TabularInline):
    model = CaseLog
    extra = 0
    can_delete = False
    readonly_fields = ("user", "action", "details", "from_status",
                       "to_status", "created_at")


@admin.register(Case)
class CaseAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "status", "priority", "assigned_to",
                    "due_date", "created_at")
    list_filter = ("status", "priority")
    search_fields = ("title", "description")
    # Status and assignee change only through the workflow engine.
    readonly_fields = ("status", "assigned_to", "version")
    inlines = [CaseLogInline]


@admin.register(CaseLog)
class CaseLogAdmin(admin.ModelAdmin):
    list_display = ("case", "user", "action", "from_status", "to_status",
                    "created_at")
    list_filter = ("action",)
    readonly_fields = ("case", "user", "action", "details", "from_status",
                       "to_status", "created_at")
