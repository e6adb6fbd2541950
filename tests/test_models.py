"""
Unit Tests for the shared data models

Covers ViewState normalization and serialization (including the legacy
storefront keys), filter parsing, SourceImage orientation and the
PrintFormat / CropRect helpers.
"""

import math

import pytest

from print_crop.models import (
    ColorFilter, CropRect, InvalidImageDimensions, PrintFormat, SourceImage,
    ViewState, normalize_rotation,
)


class TestViewStateNormalization:

    def test_view_state_when_defaults_then_centered_unzoomed(self):
        view = ViewState()
        assert (view.pan_x, view.pan_y, view.zoom) == (0.0, 0.0, 1.0)
        assert view.rotation == 0
        assert view.flip is False
        assert view.filter is ColorFilter.NONE
        assert view.has_border is False

    def test_view_state_when_out_of_range_then_clamped(self):
        view = ViewState(pan_x=3, pan_y=-7, zoom=10)
        assert (view.pan_x, view.pan_y, view.zoom) == (1.0, -1.0, 4.0)

    def test_view_state_when_zoom_below_one_then_one(self):
        assert ViewState(zoom=0.2).zoom == 1.0

    def test_view_state_when_nan_then_falls_back(self):
        view = ViewState(pan_x=math.nan, pan_y=math.nan, zoom=math.nan)
        assert (view.pan_x, view.pan_y, view.zoom) == (0.0, 0.0, 1.0)

    @pytest.mark.parametrize("raw, expected", [
        (0, 0), (90, 90), (180, 180), (270, 270), (360, 0), (-90, 270), (450, 90), (100, 90),
    ])
    def test_normalize_rotation_when_any_angle_then_quarter_turn(self, raw, expected):
        assert normalize_rotation(raw) == expected
        assert ViewState(rotation=raw).rotation == expected

    def test_with_zoom_when_called_then_new_instance_clamped(self):
        view = ViewState()
        zoomed = view.with_zoom(9)
        assert zoomed.zoom == 4.0
        assert view.zoom == 1.0

    def test_rotated_when_called_then_clockwise_and_pan_reset(self):
        view = ViewState(pan_x=0.5, pan_y=-0.5, zoom=2, rotation=270)
        turned = view.rotated()
        assert turned.rotation == 0
        assert (turned.pan_x, turned.pan_y) == (0.0, 0.0)
        assert turned.zoom == 2.0

    def test_view_state_when_frozen_then_assignment_fails(self):
        with pytest.raises(AttributeError):
            ViewState().zoom = 2


class TestColorFilter:

    @pytest.mark.parametrize("raw, expected", [
        ("none", ColorFilter.NONE),
        ("grayscale", ColorFilter.GRAYSCALE),
        ("SEPIA", ColorFilter.SEPIA),
        ("ninguno", ColorFilter.NONE),
        ("bn", ColorFilter.GRAYSCALE),
        ("", ColorFilter.NONE),
        (None, ColorFilter.NONE),
        (ColorFilter.SEPIA, ColorFilter.SEPIA),
    ])
    def test_parse_when_known_or_legacy_name_then_mapped(self, raw, expected):
        assert ColorFilter.parse(raw) is expected

    def test_parse_when_unknown_then_none_with_warning(self, caplog):
        assert ColorFilter.parse("vintage") is ColorFilter.NONE
        assert "vintage" in caplog.text


class TestViewStateSerialization:

    def test_to_dict_when_called_then_plain_structure(self):
        view = ViewState(pan_x=0.25, pan_y=-1, zoom=2.5, rotation=90, flip=True,
                         filter="sepia", has_border=True)
        assert view.to_dict() == {
            "pan": {"x": 0.25, "y": -1.0},
            "zoom": 2.5,
            "rotation": 90,
            "flip": True,
            "filter": "sepia",
            "hasBorder": True,
        }

    def test_from_dict_when_round_trip_then_equal(self):
        view = ViewState(pan_x=0.1, pan_y=0.9, zoom=1.7, rotation=180, filter="grayscale")
        assert ViewState.from_dict(view.to_dict()) == view

    @pytest.mark.parametrize("data", [None, {}])
    def test_from_dict_when_empty_then_defaults(self, data):
        assert ViewState.from_dict(data) == ViewState()

    def test_from_dict_when_legacy_keys_then_accepted(self):
        data = {"imagePosition": {"x": -0.5, "y": 0.5}, "zoom": 2, "isFlipped": True, "filter": "bn"}
        view = ViewState.from_dict(data)
        assert (view.pan_x, view.pan_y) == (-0.5, 0.5)
        assert view.flip is True
        assert view.filter is ColorFilter.GRAYSCALE

    def test_from_dict_when_null_values_then_defaults(self):
        view = ViewState.from_dict({"pan": {"x": None, "y": None}, "zoom": None, "rotation": None})
        assert view == ViewState()

    def test_from_dict_when_stored_out_of_range_then_clamped(self):
        view = ViewState.from_dict({"pan": {"x": 4, "y": -4}, "zoom": 99})
        assert (view.pan_x, view.pan_y, view.zoom) == (1.0, -1.0, 4.0)


class TestSourceImage:

    @pytest.mark.parametrize("w, h", [(0, 10), (10, 0), (None, 10), (-1, 10)])
    def test_validate_when_not_positive_then_raises(self, w, h):
        with pytest.raises(InvalidImageDimensions) as info:
            SourceImage(w, h).validate()
        assert isinstance(info.value, ValueError)
        assert (info.value.width, info.value.height) == (w, h)

    def test_oriented_when_quarter_turn_then_swapped(self):
        source = SourceImage(4000, 3000)
        assert source.oriented(90) == SourceImage(3000, 4000)
        assert source.oriented(270) == SourceImage(3000, 4000)
        assert source.oriented(180) is source


class TestPrintFormat:

    FMT = PrintFormat("10x15", 10, 15, 1000, 1500)

    def test_nominal_aspect_when_portrait_catalog_entry_then_below_one(self):
        assert self.FMT.nominal_aspect == pytest.approx(2 / 3)

    @pytest.mark.parametrize("aspect, expected", [
        (1.5, (1500, 1000)),
        (2 / 3, (1000, 1500)),
        (1.0, (1000, 1500)),
    ])
    def test_output_size_when_aspect_given_then_oriented(self, aspect, expected):
        assert self.FMT.output_size(aspect) == expected


class TestCropRect:

    def test_as_box_when_called_then_pillow_box(self):
        assert CropRect(10, 20, 30, 40).as_box() == (10, 20, 40, 60)

    def test_scaled_when_proxy_then_rounded_half_up(self):
        assert CropRect(1000, 833, 2000, 1334).scaled(0.5, 0.5) == CropRect(500, 417, 1000, 667)

    def test_scaled_when_tiny_then_at_least_one_pixel(self):
        assert CropRect(0, 0, 1, 1).scaled(0.1, 0.1) == CropRect(0, 0, 1, 1)

    def test_clamped_when_overshooting_then_pulled_inside(self):
        assert CropRect(90, 90, 20, 20).clamped(100, 100) == CropRect(80, 80, 20, 20)
        assert CropRect(0, 0, 200, 50).clamped(100, 100) == CropRect(0, 0, 100, 50)

    def test_to_dict_when_called_then_all_fields(self):
        assert CropRect(1, 2, 3, 4).to_dict() == {"x": 1, "y": 2, "width": 3, "height": 4}
