from django.contrib import admin

from .models import CenterCompletion, CollectionCenter, Draft, SapCan, TreacleCan


@admin.register(CollectionCenter)
class CollectionCenterAdmin(admin.ModelAdmin):
    list_display = ("center_id", "name", "location", "agent_name", "contact_phone", "is_active")
    list_filter = ("is_active",)
    search_fields = ("center_id", "name", "location", "agent_name")
    ordering = ("name",)


class CenterCompletionInline(admin.TabularInline):
    model = CenterCompletion
    extra = 0
    fields = ("center", "completed_at")


class SapCanInline(admin.TabularInline):
    model = SapCan
    extra = 0
    fields = ("can_id", "collection_center", "brix_value", "ph_value", "quantity")


class TreacleCanInline(admin.TabularInline):
    model = TreacleCan
    extra = 0
    fields = ("can_id", "collection_center", "brix_value", "ph_value", "quantity")


@admin.register(Draft)
class DraftAdmin(admin.ModelAdmin):
    list_display = ("draft_id", "date", "status", "created_by", "updated_at")
    list_filter = ("status", "date")
    search_fields = ("draft_id", "created_by__user_id", "created_by__name")
    date_hierarchy = "date"
    inlines = [CenterCompletionInline, SapCanInline, TreacleCanInline]


class BaseCanAdmin(admin.ModelAdmin):
    list_display = ("can_id", "draft", "collection_center", "brix_value", "ph_value", "quantity")
    list_filter = ("collection_center",)
    search_fields = ("can_id", "draft__draft_id")
    list_select_related = ("draft", "collection_center")


@admin.register(SapCan)
class SapCanAdmin(BaseCanAdmin):
    pass


@admin.register(TreacleCan)
class TreacleCanAdmin(BaseCanAdmin):
    pass
