"""
Tests for volumetric / chargeable weight.
"""
import pytest

from storefront_backend.modules.shipping.weights import (
    BoxDimension,
    calculate_volumetric_weight,
    get_chargeable_grams,
    get_chargeable_weight,
    total_volumetric_weight,
)


class TestVolumetricWeight:

    def test_default_box(self):
        assert calculate_volumetric_weight(20, 15, 10) == pytest.approx(0.6)

    @pytest.mark.parametrize("dims", [(0, 15, 10), (20, -1, 10), (20, 15, 0)])
    def test_missing_side_is_zero(self, dims):
        assert calculate_volumetric_weight(*dims) == 0.0

    def test_custom_divisor(self):
        assert calculate_volumetric_weight(50, 40, 30, divisor=6000) == pytest.approx(10.0)

    def test_box_count_multiplies(self):
        boxes = [BoxDimension(20, 15, 10, box_count=2), BoxDimension(50, 40, 30)]

        assert total_volumetric_weight(boxes) == pytest.approx(13.2)

    def test_no_boxes(self):
        assert total_volumetric_weight(None) == 0.0
        assert total_volumetric_weight([]) == 0.0


class TestChargeableWeight:

    def test_larger_of_the_two(self):
        assert get_chargeable_weight(2.0, 0.6) == 2.0
        assert get_chargeable_weight(0.5, 0.6) == 0.6

    def test_grams_without_boxes(self):
        assert get_chargeable_grams(500) == 500

    def test_grams_round_up(self):
        assert get_chargeable_grams(1234.2) == 1235

    def test_grams_use_volumetric_when_heavier(self):
        assert get_chargeable_grams(500, [BoxDimension(20, 15, 10)]) == 600

    def test_partner_format(self):
        assert BoxDimension(20, 15, 10, 3).to_partner_format() == {
            "length_cm": 20,
            "width_cm": 15,
            "height_cm": 10,
            "box_count": 3,
        }
