from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from field_collection.models import CollectionCenter, Draft, SapCan, TreacleCan
from field_collection.services.summaries import CanSummary
from production.models import (
    JaggeryPackagingBatch,
    JaggeryProcessingBatch,
    StageStatus,
    TreacleBatchCan,
    TreacleLabelingBatch,
    TreaclePackagingBatch,
    TreacleProcessingBatch,
)
from production.services import Stage, available_cans, find_eligible
from production.services.summaries import PackagingBatchSummary, ProcessingBatchSummary
from users.models import Role, UserProfile


class EligibilityTests(TestCase):
    def setUp(self) -> None:
        user = UserProfile.objects.create_user("field-1", name="Nimal", role=Role.FIELD_COLLECTION)
        center = CollectionCenter.objects.create(center_id="C-01", name="Ambalangoda")
        draft = Draft.objects.create(draft_id="d-elig", date=date(2024, 5, 1), created_by=user)
        self.free_sap = SapCan.objects.create(
            can_id="SAP-00000001", draft=draft, collection_center=center, quantity=Decimal("10")
        )
        self.taken_sap = SapCan.objects.create(
            can_id="SAP-00000002", draft=draft, collection_center=center, quantity=Decimal("11")
        )
        self.released_sap = SapCan.objects.create(
            can_id="SAP-00000003", draft=draft, collection_center=center, quantity=Decimal("12")
        )
        self.free_treacle = TreacleCan.objects.create(
            can_id="TCL-00000001", draft=draft, collection_center=center, quantity=Decimal("9")
        )

        self.live = TreacleProcessingBatch.objects.create(
            batch_id="pb-live", batch_number="01", scheduled_date=date(2024, 5, 2)
        )
        cancelled = TreacleProcessingBatch.objects.create(
            batch_id="pb-cancelled",
            batch_number="02",
            scheduled_date=date(2024, 5, 2),
            status=TreacleProcessingBatch.Status.CANCELLED,
        )
        TreacleBatchCan.objects.create(batch=self.live, can=self.taken_sap)
        TreacleBatchCan.objects.create(batch=cancelled, can=self.released_sap)

    def test_processing_stage_lists_unassigned_cans_of_both_lines(self) -> None:
        records = find_eligible(Stage.PROCESSING)

        self.assertTrue(all(isinstance(record, CanSummary) for record in records))
        self.assertEqual(
            [record.can_id for record in records],
            ["SAP-00000001", "SAP-00000003", "TCL-00000001"],
        )
        self.assertEqual([record.can_id for record in find_eligible("processing", "jaggery")], ["TCL-00000001"])

    def test_available_cans_can_include_a_batch_selection(self) -> None:
        records = available_cans("treacle", for_batch=self.live)

        self.assertEqual(
            [record.can_id for record in records],
            ["SAP-00000001", "SAP-00000002", "SAP-00000003"],
        )

    def test_packaging_stage_lists_completed_batches_without_packaging(self) -> None:
        packed = TreacleProcessingBatch.objects.create(
            batch_id="pb-packed",
            batch_number="03",
            scheduled_date=date(2024, 5, 3),
            status=TreacleProcessingBatch.Status.COMPLETED,
        )
        TreaclePackagingBatch.objects.create(packaging_id="pkg-packed", processing_batch=packed)
        older = TreacleProcessingBatch.objects.create(
            batch_id="pb-older",
            batch_number="04",
            scheduled_date=date(2024, 5, 1),
            status=TreacleProcessingBatch.Status.COMPLETED,
        )
        newer = JaggeryProcessingBatch.objects.create(
            batch_id="pb-newer",
            batch_number="01",
            scheduled_date=date(2024, 5, 4),
            status=JaggeryProcessingBatch.Status.COMPLETED,
        )

        records = find_eligible(Stage.PACKAGING)

        self.assertTrue(all(isinstance(record, ProcessingBatchSummary) for record in records))
        self.assertEqual([record.batch_id for record in records], [newer.batch_id, older.batch_id])
        self.assertEqual([record.batch_id for record in find_eligible(Stage.PACKAGING, "treacle")], [older.batch_id])

    def test_labeling_stage_lists_completed_packaging_without_labeling(self) -> None:
        source = TreacleProcessingBatch.objects.create(
            batch_id="pb-a", batch_number="05", status=TreacleProcessingBatch.Status.COMPLETED
        )
        labeled_source = TreacleProcessingBatch.objects.create(
            batch_id="pb-b", batch_number="06", status=TreacleProcessingBatch.Status.COMPLETED
        )
        pending_source = JaggeryProcessingBatch.objects.create(
            batch_id="pb-c", batch_number="02", status=JaggeryProcessingBatch.Status.COMPLETED
        )
        ready = TreaclePackagingBatch.objects.create(
            packaging_id="pkg-ready", processing_batch=source, status=StageStatus.COMPLETED
        )
        labeled = TreaclePackagingBatch.objects.create(
            packaging_id="pkg-labeled", processing_batch=labeled_source, status=StageStatus.COMPLETED
        )
        TreacleLabelingBatch.objects.create(labeling_id="lab-1", packaging_batch=labeled)
        JaggeryPackagingBatch.objects.create(
            packaging_id="pkg-pending", processing_batch=pending_source, status=StageStatus.IN_PROGRESS
        )

        records = find_eligible(Stage.LABELING)

        self.assertTrue(all(isinstance(record, PackagingBatchSummary) for record in records))
        self.assertEqual([record.packaging_id for record in records], [ready.packaging_id])

    def test_unknown_stage_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            find_eligible("shipping")

    def test_product_filter_is_case_insensitive_and_validated(self) -> None:
        self.assertEqual([record.can_id for record in find_eligible("processing", "Jaggery")], ["TCL-00000001"])

        with self.assertRaises(ValidationError) as ctx:
            find_eligible(Stage.PACKAGING, "bogus")
        self.assertIn("product_line", ctx.exception.message_dict)
