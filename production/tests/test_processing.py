from datetime import date
from decimal import Decimal

from django.core.exceptions import PermissionDenied, ValidationError
from django.test import TestCase
from django.utils import timezone

from field_collection.models import CollectionCenter, Draft, SapCan, TreacleCan
from kithulflow.exceptions import BusinessRuleError, ConflictError, NotFoundError
from production.models import (
    MAX_CANS_PER_BATCH,
    BatchNumberSequence,
    JaggeryProcessingBatch,
    TreacleBatchCan,
    TreacleLabelingBatch,
    TreaclePackagingBatch,
    TreacleProcessingBatch,
)
from production.services import ProcessingBatchService
from users.models import Role, UserProfile


class ProcessingBatchServiceTests(TestCase):
    def setUp(self) -> None:
        self.operator = UserProfile.objects.create_user("proc-1", name="Kamal", role=Role.PROCESSING)
        self.collector = UserProfile.objects.create_user("field-1", name="Nimal", role=Role.FIELD_COLLECTION)
        self.center = CollectionCenter.objects.create(center_id="C-01", name="Ambalangoda")
        self.draft = Draft.objects.create(
            draft_id="d-proc",
            date=date(2024, 5, 1),
            status=Draft.Status.SUBMITTED,
            created_by=self.collector,
        )
        self.service = ProcessingBatchService(actor=self.operator)

    def _sap_can(self, serial: int, quantity: str = "10") -> SapCan:
        return SapCan.objects.create(
            can_id=f"SAP-{serial:08d}",
            draft=self.draft,
            collection_center=self.center,
            quantity=Decimal(quantity),
        )

    def test_create_defaults_to_today_and_first_number(self) -> None:
        summary = self.service.create()

        self.assertEqual(summary.scheduled_date, timezone.localdate())
        self.assertEqual(summary.batch_number, "01")
        self.assertEqual(summary.product_line, "treacle")
        self.assertEqual(summary.status, TreacleProcessingBatch.Status.IN_PROGRESS)
        self.assertTrue(summary.batch_id.startswith("pb"))
        self.assertEqual(summary.can_count, 0)

    def test_batch_numbers_increase_per_product_line(self) -> None:
        first = self.service.create({"product_line": "treacle"})
        second = self.service.create({"product_line": "treacle", "scheduled_date": "2024-06-01"})
        jaggery = self.service.create({"product_line": "jaggery"})

        self.assertEqual([first.batch_number, second.batch_number], ["01", "02"])
        self.assertEqual(jaggery.batch_number, "01")
        self.assertEqual(second.scheduled_date, date(2024, 6, 1))
        self.assertTrue(JaggeryProcessingBatch.objects.filter(batch_id=jaggery.batch_id).exists())

    def test_numbering_continues_after_existing_and_deleted_batches(self) -> None:
        TreacleProcessingBatch.objects.create(batch_id="pb-legacy", batch_number="07", scheduled_date=date(2024, 1, 1))
        TreacleProcessingBatch.objects.create(batch_id="pb-odd", batch_number="A1", scheduled_date=date(2024, 1, 1))

        created = self.service.create()
        self.assertEqual(created.batch_number, "08")

        self.service.delete(created.batch_id)
        self.assertEqual(self.service.create().batch_number, "09")
        self.assertEqual(BatchNumberSequence.objects.get(product_line="treacle").last_value, 9)

    def test_role_is_required(self) -> None:
        with self.assertRaises(PermissionDenied):
            ProcessingBatchService(actor=self.collector).create()

    def test_set_cans_replaces_assignment(self) -> None:
        batch = self.service.create()
        self._sap_can(1, "10")
        self._sap_can(2, "12.5")
        self._sap_can(3, "4")

        self.service.set_cans(batch.batch_id, ["SAP-00000001", "SAP-00000002"])
        summary = self.service.set_cans(batch.batch_id, ["sap-00000002", "SAP-00000003", "SAP-00000003"])

        self.assertEqual(summary.can_ids, ["SAP-00000002", "SAP-00000003"])
        self.assertEqual(summary.can_count, 2)
        self.assertEqual(summary.total_input_quantity, Decimal("16.5"))

        cleared = self.service.set_cans(batch.batch_id, [])
        self.assertEqual(cleared.can_ids, [])

    def test_can_cannot_join_two_live_batches(self) -> None:
        first = self.service.create()
        second = self.service.create()
        for serial in (1, 2, 3):
            self._sap_can(serial)
        self.service.set_cans(first.batch_id, ["SAP-00000001", "SAP-00000002"])

        with self.assertRaises(ConflictError) as ctx:
            self.service.set_cans(second.batch_id, ["SAP-00000002", "SAP-00000003"])

        self.assertEqual(ctx.exception.identifiers, ("SAP-00000002",))
        self.assertEqual(self.service.get(first.batch_id).can_ids, ["SAP-00000001", "SAP-00000002"])
        self.assertEqual(self.service.get(second.batch_id).can_ids, [])

    def test_failed_assignment_keeps_previous_selection(self) -> None:
        batch = self.service.create()
        self._sap_can(1)
        self.service.set_cans(batch.batch_id, ["SAP-00000001"])

        with self.assertRaises(NotFoundError) as ctx:
            self.service.set_cans(batch.batch_id, ["SAP-00000001", "SAP-00000404"])

        self.assertEqual(ctx.exception.identifiers, ("SAP-00000404",))
        self.assertEqual(self.service.get(batch.batch_id).can_ids, ["SAP-00000001"])

    def test_cans_from_the_other_line_are_not_found(self) -> None:
        batch = self.service.create({"product_line": "treacle"})
        TreacleCan.objects.create(
            can_id="TCL-00000001",
            draft=self.draft,
            collection_center=self.center,
            quantity=Decimal("5"),
        )

        with self.assertRaises(NotFoundError):
            self.service.set_cans(batch.batch_id, ["TCL-00000001"])

    def test_capacity_is_capped(self) -> None:
        batch = self.service.create()
        can_ids = [self._sap_can(serial).can_id for serial in range(1, MAX_CANS_PER_BATCH + 2)]

        with self.assertRaises(ValidationError):
            self.service.set_cans(batch.batch_id, can_ids)

        summary = self.service.set_cans(batch.batch_id, can_ids[:MAX_CANS_PER_BATCH])
        self.assertEqual(summary.can_count, MAX_CANS_PER_BATCH)

    def test_cancelled_batch_releases_its_cans(self) -> None:
        first = self.service.create()
        second = self.service.create()
        self._sap_can(1)
        self.service.set_cans(first.batch_id, ["SAP-00000001"])

        cancelled = self.service.cancel(first.batch_id)
        self.assertEqual(cancelled.status, TreacleProcessingBatch.Status.CANCELLED)
        self.assertEqual([can.can_id for can in self.service.available_cans("treacle")], ["SAP-00000001"])

        summary = self.service.set_cans(second.batch_id, ["SAP-00000001"])
        self.assertEqual(summary.can_ids, ["SAP-00000001"])

        with self.assertRaises(BusinessRuleError):
            self.service.submit(first.batch_id)
        with self.assertRaises(BusinessRuleError):
            self.service.reopen(first.batch_id)
        with self.assertRaises(BusinessRuleError):
            self.service.set_cans(first.batch_id, [])

    def test_submit_is_idempotent(self) -> None:
        batch = self.service.create()
        first = self.service.submit(batch.batch_id)
        second = self.service.submit(batch.batch_id)

        self.assertEqual(first.status, TreacleProcessingBatch.Status.COMPLETED)
        self.assertEqual(second.status, first.status)
        self.assertEqual(second.updated_at, first.updated_at)

    def test_completed_batch_rejects_assignment_changes_and_cancel(self) -> None:
        batch = self.service.create()
        self.service.submit(batch.batch_id)

        with self.assertRaises(BusinessRuleError):
            self.service.set_cans(batch.batch_id, [])
        with self.assertRaises(BusinessRuleError):
            self.service.cancel(batch.batch_id)

    def test_reopen_requires_completed_and_drops_packaging(self) -> None:
        batch = self.service.create()
        with self.assertRaises(BusinessRuleError):
            self.service.reopen(batch.batch_id)

        self.service.submit(batch.batch_id)
        processing = TreacleProcessingBatch.objects.get(batch_id=batch.batch_id)
        packaging = TreaclePackagingBatch.objects.create(packaging_id="pkg-1", processing_batch=processing)
        TreacleLabelingBatch.objects.create(labeling_id="lab-1", packaging_batch=packaging)

        reopened = self.service.reopen(batch.batch_id)

        self.assertEqual(reopened.status, TreacleProcessingBatch.Status.IN_PROGRESS)
        self.assertIsNone(reopened.packaging_id)
        self.assertFalse(TreaclePackagingBatch.objects.exists())
        self.assertFalse(TreacleLabelingBatch.objects.exists())

    def test_update_fields_and_guards(self) -> None:
        batch = self.service.create()

        updated = self.service.update(
            batch.batch_id,
            {"output_quantity": "42.5", "gas_used_kg": "3.25", "notes": "Evening boil", "scheduled_date": "2024-07-01"},
        )
        self.assertEqual(updated.output_quantity, Decimal("42.5"))
        self.assertEqual(updated.gas_used_kg, Decimal("3.25"))
        self.assertEqual(updated.notes, "Evening boil")
        self.assertEqual(updated.scheduled_date, date(2024, 7, 1))

        with self.assertRaises(ValidationError):
            self.service.update(batch.batch_id, {})
        with self.assertRaises(ValidationError):
            self.service.update(batch.batch_id, {"output_quantity": "-1"})
        with self.assertRaises(BusinessRuleError):
            self.service.update(batch.batch_id, {"product_line": "jaggery"})

        same_line = self.service.update(batch.batch_id, {"product_line": "treacle", "notes": ""})
        self.assertEqual(same_line.notes, "")

        self.service.cancel(batch.batch_id)
        with self.assertRaises(BusinessRuleError):
            self.service.update(batch.batch_id, {"notes": "late"})

    def test_delete_removes_assignments_and_packaging(self) -> None:
        batch = self.service.create()
        can = self._sap_can(1)
        self.service.set_cans(batch.batch_id, [can.can_id])
        self.service.submit(batch.batch_id)
        processing = TreacleProcessingBatch.objects.get(batch_id=batch.batch_id)
        TreaclePackagingBatch.objects.create(packaging_id="pkg-2", processing_batch=processing)

        self.service.delete(batch.batch_id)

        self.assertFalse(TreacleProcessingBatch.objects.exists())
        self.assertFalse(TreacleBatchCan.objects.exists())
        self.assertFalse(TreaclePackagingBatch.objects.exists())
        self.assertTrue(SapCan.objects.filter(pk=can.pk).exists())
        with self.assertRaises(NotFoundError):
            self.service.get(batch.batch_id)

    def test_list_orders_by_scheduled_date(self) -> None:
        older = self.service.create({"scheduled_date": "2024-05-01"})
        newer = self.service.create({"scheduled_date": "2024-05-03", "product_line": "jaggery"})

        self.assertEqual([item.batch_id for item in self.service.list()], [newer.batch_id, older.batch_id])
        self.assertEqual([item.batch_id for item in self.service.list("treacle")], [older.batch_id])
        self.assertEqual(self.service.list(status="completed"), [])

    def test_list_product_filter_is_normalized_or_rejected(self) -> None:
        jaggery = self.service.create({"product_line": "jaggery"})
        self.service.create()

        self.assertEqual([item.batch_id for item in self.service.list("Jaggery")], [jaggery.batch_id])
        with self.assertRaises(ValidationError) as ctx:
            self.service.list("bogus")
        self.assertIn("product_line", ctx.exception.message_dict)

    def test_available_cans_for_batch_include_its_own_selection(self) -> None:
        batch = self.service.create()
        self._sap_can(1)
        self._sap_can(2)
        self.service.set_cans(batch.batch_id, ["SAP-00000001"])

        self.assertEqual([can.can_id for can in self.service.available_cans()], ["SAP-00000002"])
        self.assertEqual(
            [can.can_id for can in self.service.available_cans(batch_id=batch.batch_id)],
            ["SAP-00000001", "SAP-00000002"],
        )
