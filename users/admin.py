from __future__ import annotations

from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin

from .forms import UserChangeForm, UserCreationForm
from .models import UserProfile


@admin.action(description="Activate selected users")
def activate_users(modeladmin, request, queryset):
    updated = queryset.update(is_active=True)
    messages.success(request, f"{updated} users activated.")


@admin.action(description="Deactivate selected users")
def deactivate_users(modeladmin, request, queryset):
    updated = queryset.update(is_active=False)
    messages.success(request, f"{updated} users deactivated.")


@admin.register(UserProfile)
class UserProfileAdmin(UserAdmin):
    add_form = UserCreationForm
    form = UserChangeForm
    model = UserProfile

    list_display = ("user_id", "name", "role", "is_active", "is_staff")
    list_filter = ("role", "is_active", "is_staff")
    search_fields = ("user_id", "name")
    ordering = ("name", "user_id")

    fieldsets = (
        ("Credentials", {"fields": ("user_id", "password")}),
        ("Profile", {"fields": ("name", "role")}),
        ("Permissions", {"fields": ("groups", "is_active", "is_staff", "is_superuser")}),
        ("Dates", {"fields": ("last_login", "date_joined")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("user_id", "name", "role", "is_active", "is_staff", "password1", "password2"),
            },
        ),
    )

    filter_horizontal = ("groups", "user_permissions")
    readonly_fields = ("last_login", "date_joined")
    actions = (activate_users, deactivate_users)

    def get_fieldsets(self, request, obj=None):
        fieldsets = super().get_fieldsets(request, obj)
        if not request.user.is_superuser:
            sanitized = []
            restricted_fields = {"is_superuser", "groups", "user_permissions"}
            for title, opts in fieldsets:
                fields = opts.get("fields")
                if isinstance(fields, (list, tuple)):
                    filtered = tuple(f for f in fields if f not in restricted_fields)
                else:
                    filtered = fields
                sanitized.append((title, {**opts, "fields": filtered}))
            return tuple(sanitized)
        return fieldsets
