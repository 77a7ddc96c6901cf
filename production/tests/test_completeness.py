from decimal import Decimal

from django.test import SimpleTestCase

from production.models import (
    BasePackagingBatch,
    JaggeryLabelingBatch,
    JaggeryPackagingBatch,
    TreacleLabelingBatch,
    TreaclePackagingBatch,
)
from production.services.completeness import foreign_branch_fields, is_complete, missing_required_fields


class CompletenessTests(SimpleTestCase):
    def test_treacle_packaging_requires_bottles_and_lids(self) -> None:
        batch = TreaclePackagingBatch(finished_quantity=Decimal("10"), bottle_quantity=Decimal("10"))

        self.assertFalse(is_complete(batch))
        self.assertEqual(missing_required_fields(batch), ["lid_quantity"])

        batch.lid_quantity = Decimal("0")
        self.assertTrue(is_complete(batch))

    def test_jaggery_packaging_ignores_bottle_fields(self) -> None:
        batch = JaggeryPackagingBatch(
            finished_quantity=Decimal("5"),
            alufoil_quantity=Decimal("5"),
            vacuum_bag_quantity=Decimal("5"),
            parchment_paper_quantity=Decimal("5"),
        )

        self.assertTrue(is_complete(batch))

    def test_supplied_values_override_stored_ones(self) -> None:
        batch = JaggeryLabelingBatch(sticker_quantity=Decimal("1"))

        self.assertEqual(
            missing_required_fields(batch, {"corrugated_carton_quantity": Decimal("2")}),
            [],
        )
        self.assertEqual(
            missing_required_fields(batch, {"sticker_quantity": None}),
            ["sticker_quantity", "corrugated_carton_quantity"],
        )

    def test_treacle_labeling_requires_all_accessories(self) -> None:
        self.assertEqual(
            missing_required_fields(TreacleLabelingBatch()),
            ["sticker_quantity", "shrink_sleeve_quantity", "neck_tag_quantity", "corrugated_carton_quantity"],
        )

    def test_foreign_branch_fields(self) -> None:
        self.assertEqual(
            foreign_branch_fields(
                ["finished_quantity", "lid_quantity", "alufoil_quantity", "notes"],
                own=TreaclePackagingBatch.material_fields,
                universe=BasePackagingBatch.ALL_MATERIAL_FIELDS,
            ),
            ["alufoil_quantity"],
        )
