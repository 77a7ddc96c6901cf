from datetime import date, datetime, timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone

from field_collection.models import CollectionCenter, Draft, SapCan, TreacleCan
from production.models import (
    JaggeryLabelingBatch,
    JaggeryPackagingBatch,
    JaggeryProcessingBatch,
    StageStatus,
    TreacleBatchCan,
    TreacleLabelingBatch,
    TreaclePackagingBatch,
    TreacleProcessingBatch,
)
from reports.services import build_daily_report, parse_report_date
from users.models import Role, UserProfile


REPORT_DATE = date(2024, 5, 10)


def _at(day: date, hour: int) -> datetime:
    return timezone.make_aware(datetime.combine(day, datetime.min.time()) + timedelta(hours=hour))


class ParseReportDateTests(TestCase):
    def test_defaults_to_today(self) -> None:
        self.assertEqual(parse_report_date(None), timezone.localdate())
        self.assertEqual(parse_report_date(""), timezone.localdate())

    def test_accepts_iso_dates(self) -> None:
        self.assertEqual(parse_report_date("2024-05-10"), REPORT_DATE)
        self.assertEqual(parse_report_date(REPORT_DATE), REPORT_DATE)

    def test_rejects_malformed_or_impossible_dates(self) -> None:
        for raw in ("10/05/2024", "2024-5-10", "2024-02-30", "yesterday"):
            with self.subTest(raw=raw):
                with self.assertRaises(ValidationError):
                    parse_report_date(raw)


class DailyReportTests(TestCase):
    def setUp(self) -> None:
        self.nimal = UserProfile.objects.create_user("field-1", name="Nimal", role=Role.FIELD_COLLECTION)
        self.sunil = UserProfile.objects.create_user("field-2", name="Sunil", role=Role.FIELD_COLLECTION)
        center = CollectionCenter.objects.create(center_id="C-01", name="Ambalangoda")

        # Draft touching both lines, submitted on the report day.
        self.mixed = Draft.objects.create(
            draft_id="d-mixed", date=REPORT_DATE, status=Draft.Status.SUBMITTED, created_by=self.nimal
        )
        self.sap_a = SapCan.objects.create(
            can_id="SAP-00000001", draft=self.mixed, collection_center=center, quantity=Decimal("10")
        )
        self.sap_b = SapCan.objects.create(
            can_id="SAP-00000002", draft=self.mixed, collection_center=center, quantity=Decimal("15.5")
        )
        TreacleCan.objects.create(can_id="TCL-00000001", draft=self.mixed, collection_center=center, quantity=Decimal("8"))

        sap_only = Draft.objects.create(
            draft_id="d-sap", date=REPORT_DATE, status=Draft.Status.SUBMITTED, created_by=self.sunil
        )
        SapCan.objects.create(can_id="SAP-00000003", draft=sap_only, collection_center=center, quantity=Decimal("4.5"))

        # Open drafts and drafts from other days stay out of the report.
        open_draft = Draft.objects.create(draft_id="d-open", date=REPORT_DATE - timedelta(days=1), created_by=self.nimal)
        SapCan.objects.create(can_id="SAP-00000004", draft=open_draft, collection_center=center, quantity=Decimal("99"))
        kamal = UserProfile.objects.create_user("field-3", name="Kamal", role=Role.FIELD_COLLECTION)
        unsubmitted = Draft.objects.create(draft_id="d-unsubmitted", date=REPORT_DATE, created_by=kamal)
        SapCan.objects.create(can_id="SAP-00000005", draft=unsubmitted, collection_center=center, quantity=Decimal("7"))
        TreacleCan.objects.create(
            can_id="TCL-00000002", draft=unsubmitted, collection_center=center, quantity=Decimal("6")
        )

        completed = TreacleProcessingBatch.objects.create(
            batch_id="pb-1",
            batch_number="01",
            scheduled_date=REPORT_DATE,
            status=TreacleProcessingBatch.Status.COMPLETED,
            output_quantity=Decimal("20"),
            gas_used_kg=Decimal("2.5"),
        )
        TreacleBatchCan.objects.create(batch=completed, can=self.sap_a)
        TreacleBatchCan.objects.create(batch=completed, can=self.sap_b)
        TreacleProcessingBatch.objects.create(
            batch_id="pb-2", batch_number="02", scheduled_date=REPORT_DATE, gas_used_kg=Decimal("1")
        )
        TreacleProcessingBatch.objects.create(
            batch_id="pb-3",
            batch_number="03",
            scheduled_date=REPORT_DATE,
            status=TreacleProcessingBatch.Status.CANCELLED,
            output_quantity=Decimal("100"),
        )
        jaggery_batch = JaggeryProcessingBatch.objects.create(
            batch_id="pb-4",
            batch_number="01",
            scheduled_date=REPORT_DATE,
            status=JaggeryProcessingBatch.Status.COMPLETED,
            output_quantity=Decimal("6"),
        )

        treacle_packaging = TreaclePackagingBatch.objects.create(
            packaging_id="pkg-1",
            processing_batch=completed,
            status=StageStatus.COMPLETED,
            finished_quantity=Decimal("40"),
            bottle_quantity=Decimal("40"),
            lid_quantity=Decimal("40"),
            started_at=_at(REPORT_DATE, 9),
        )
        jaggery_packaging = JaggeryPackagingBatch.objects.create(
            packaging_id="pkg-2",
            processing_batch=jaggery_batch,
            status=StageStatus.IN_PROGRESS,
            finished_quantity=Decimal("12"),
            alufoil_quantity=Decimal("12"),
            started_at=_at(REPORT_DATE, 23),
        )
        TreacleLabelingBatch.objects.create(
            labeling_id="lab-1",
            packaging_batch=treacle_packaging,
            status=StageStatus.COMPLETED,
            sticker_quantity=Decimal("40"),
            shrink_sleeve_quantity=Decimal("40"),
            neck_tag_quantity=Decimal("40"),
            corrugated_carton_quantity=Decimal("4"),
            created_at=_at(REPORT_DATE, 15),
        )
        JaggeryLabelingBatch.objects.create(
            labeling_id="lab-2",
            packaging_batch=jaggery_packaging,
            sticker_quantity=Decimal("12"),
            created_at=_at(REPORT_DATE + timedelta(days=1), 1),
        )

    def test_per_product_metrics(self) -> None:
        report = build_daily_report("2024-05-10")
        treacle = report.per_product["treacle"].metrics
        jaggery = report.per_product["jaggery"].metrics

        self.assertEqual(report.date, REPORT_DATE)
        self.assertEqual(treacle.field_collection.drafts, 2)
        self.assertEqual(treacle.field_collection.cans, 3)
        self.assertEqual(treacle.field_collection.quantity, Decimal("30"))
        self.assertEqual(treacle.field_collection.draft_ids, frozenset({"d-mixed", "d-sap"}))
        self.assertEqual(jaggery.field_collection.drafts, 1)
        self.assertEqual(jaggery.field_collection.draft_ids, frozenset({"d-mixed"}))

        self.assertEqual(treacle.processing.total_batches, 2)
        self.assertEqual(treacle.processing.completed_batches, 1)
        self.assertEqual(treacle.processing.total_output, Decimal("20"))
        self.assertEqual(treacle.processing.total_input, Decimal("25.5"))
        self.assertEqual(treacle.processing.total_gas_used_kg, Decimal("3.5"))
        self.assertEqual(jaggery.processing.total_batches, 1)

        self.assertEqual(treacle.packaging.total_batches, 1)
        self.assertEqual(treacle.packaging.bottle_quantity, Decimal("40"))
        self.assertEqual(jaggery.packaging.completed_batches, 0)
        self.assertEqual(jaggery.packaging.alufoil_quantity, Decimal("12"))
        self.assertEqual(jaggery.packaging.vacuum_bag_quantity, Decimal("0"))

        self.assertEqual(treacle.labeling.total_batches, 1)
        self.assertEqual(treacle.labeling.neck_tag_quantity, Decimal("40"))
        self.assertEqual(jaggery.labeling.total_batches, 0)

    def test_totals_sum_lines_and_union_draft_ids(self) -> None:
        report = build_daily_report(REPORT_DATE)
        totals = report.totals
        treacle = report.per_product["treacle"].metrics
        jaggery = report.per_product["jaggery"].metrics

        self.assertEqual(totals.field_collection.drafts, treacle.field_collection.drafts + jaggery.field_collection.drafts)
        self.assertEqual(totals.field_collection.cans, 4)
        self.assertEqual(totals.field_collection.quantity, Decimal("38"))
        self.assertEqual(totals.field_collection.draft_ids, frozenset({"d-mixed", "d-sap"}))
        self.assertEqual(totals.processing.total_batches, 3)
        self.assertEqual(totals.processing.total_output, Decimal("26"))
        self.assertEqual(totals.packaging.finished_quantity, Decimal("52"))
        self.assertEqual(totals.packaging.total_batches, 2)
        self.assertEqual(totals.labeling.sticker_quantity, Decimal("40"))

    def test_empty_day_reports_zeroes(self) -> None:
        report = build_daily_report("2023-01-01")

        self.assertEqual(report.totals.field_collection.drafts, 0)
        self.assertEqual(report.totals.field_collection.draft_ids, frozenset())
        self.assertEqual(report.totals.processing.total_output, Decimal("0"))
        self.assertEqual(report.totals.labeling.total_batches, 0)
        self.assertEqual(set(report.per_product), {"treacle", "jaggery"})

    def test_invalid_date_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            build_daily_report("2024-13-01")

    def test_drafts_still_open_on_the_day_are_left_out(self) -> None:
        report = build_daily_report(REPORT_DATE)

        for product_line in ("treacle", "jaggery"):
            with self.subTest(product_line=product_line):
                field_collection = report.per_product[product_line].metrics.field_collection
                self.assertNotIn("d-unsubmitted", field_collection.draft_ids)
        self.assertNotIn("d-unsubmitted", report.totals.field_collection.draft_ids)
        self.assertEqual(report.per_product["treacle"].metrics.field_collection.drafts, 2)
        self.assertEqual(report.per_product["treacle"].metrics.field_collection.cans, 3)
        self.assertEqual(report.per_product["treacle"].metrics.field_collection.quantity, Decimal("30"))
        self.assertEqual(report.per_product["jaggery"].metrics.field_collection.cans, 1)
        self.assertEqual(report.per_product["jaggery"].metrics.field_collection.quantity, Decimal("8"))
