from django.contrib import admin

from .models import (
    BatchNumberSequence,
    JaggeryBatchCan,
    JaggeryLabelingBatch,
    JaggeryPackagingBatch,
    JaggeryProcessingBatch,
    TreacleBatchCan,
    TreacleLabelingBatch,
    TreaclePackagingBatch,
    TreacleProcessingBatch,
)


class TreacleBatchCanInline(admin.TabularInline):
    model = TreacleBatchCan
    extra = 0
    raw_id_fields = ("can",)


class JaggeryBatchCanInline(admin.TabularInline):
    model = JaggeryBatchCan
    extra = 0
    raw_id_fields = ("can",)


class BaseProcessingBatchAdmin(admin.ModelAdmin):
    list_display = (
        "batch_number",
        "batch_id",
        "scheduled_date",
        "status",
        "output_quantity",
        "gas_used_kg",
        "created_by",
    )
    list_filter = ("status", "scheduled_date")
    search_fields = ("batch_id", "batch_number")
    date_hierarchy = "scheduled_date"
    readonly_fields = ("batch_id", "batch_number", "created_at", "updated_at")


@admin.register(TreacleProcessingBatch)
class TreacleProcessingBatchAdmin(BaseProcessingBatchAdmin):
    inlines = [TreacleBatchCanInline]


@admin.register(JaggeryProcessingBatch)
class JaggeryProcessingBatchAdmin(BaseProcessingBatchAdmin):
    inlines = [JaggeryBatchCanInline]


class BasePackagingBatchAdmin(admin.ModelAdmin):
    list_display = ("packaging_id", "processing_batch", "status", "finished_quantity", "started_at")
    list_filter = ("status",)
    search_fields = ("packaging_id", "processing_batch__batch_id", "processing_batch__batch_number")
    list_select_related = ("processing_batch",)


@admin.register(TreaclePackagingBatch)
class TreaclePackagingBatchAdmin(BasePackagingBatchAdmin):
    fields = ("packaging_id", "processing_batch", "status", "notes", "finished_quantity", "bottle_quantity", "lid_quantity", "started_at")


@admin.register(JaggeryPackagingBatch)
class JaggeryPackagingBatchAdmin(BasePackagingBatchAdmin):
    fields = (
        "packaging_id",
        "processing_batch",
        "status",
        "notes",
        "finished_quantity",
        "alufoil_quantity",
        "vacuum_bag_quantity",
        "parchment_paper_quantity",
        "started_at",
    )


class BaseLabelingBatchAdmin(admin.ModelAdmin):
    list_display = ("labeling_id", "packaging_batch", "status", "sticker_quantity", "corrugated_carton_quantity", "created_at")
    list_filter = ("status",)
    search_fields = ("labeling_id", "packaging_batch__packaging_id")
    list_select_related = ("packaging_batch",)


@admin.register(TreacleLabelingBatch)
class TreacleLabelingBatchAdmin(BaseLabelingBatchAdmin):
    fields = (
        "labeling_id",
        "packaging_batch",
        "status",
        "notes",
        "sticker_quantity",
        "shrink_sleeve_quantity",
        "neck_tag_quantity",
        "corrugated_carton_quantity",
    )


@admin.register(JaggeryLabelingBatch)
class JaggeryLabelingBatchAdmin(BaseLabelingBatchAdmin):
    fields = ("labeling_id", "packaging_batch", "status", "notes", "sticker_quantity", "corrugated_carton_quantity")


@admin.register(BatchNumberSequence)
class BatchNumberSequenceAdmin(admin.ModelAdmin):
    list_display = ("product_line", "last_value")
