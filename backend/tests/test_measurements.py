"""
Garment measurement template tests.

Verifies:
- A tailor adds measurement heads to their own garments (defaults: optional, sort_order 0)
- field_type is number | text | dropdown; unit is inch | cm and only for number heads
- Labels are unique per garment, option values unique per head
- Options only attach to dropdown heads
- Listing is ordered by sort_order and carries each head's options
- Other tailors see neither the garment nor its heads
"""

import pytest

from marketplace.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from marketplace.models import MeasurementHead, MeasurementOption
from marketplace.services import tailoring_service


def _head(tailor, garment, label="Chest", field_type="number", **extra):
    payload = {"garment_id": garment.id, "label": label, "field_type": field_type}
    payload.update(extra)
    return tailoring_service.add_measurement_head(tailor, payload)


# =============================================================================
# MEASUREMENT HEADS
# =============================================================================


def test_add_head_defaults(tailor, garment):
    head = _head(tailor, garment, label="  Chest ", unit="INCH")

    assert head.label == "Chest"
    assert head.field_type == "number"
    assert head.unit == "inch"
    assert head.is_required is False
    assert head.sort_order == 0
    assert head.created_by == tailor.id
    assert head.to_dict()["options"] == []


def test_add_head_explicit_values(tailor, garment):
    head = _head(tailor, garment, label="Neck Style", field_type="text", is_required=True, sort_order="3")
    assert head.is_required is True
    assert head.sort_order == 3
    assert head.unit is None


def test_null_defaults_fall_back(tailor, garment):
    head = _head(tailor, garment, is_required=None, sort_order=None, unit=None)
    assert head.is_required is False
    assert head.sort_order == 0


@pytest.mark.parametrize("missing", ["garment_id", "label", "field_type"])
def test_required_fields(tailor, garment, missing):
    payload = {"garment_id": garment.id, "label": "Chest", "field_type": "number"}
    del payload[missing]
    with pytest.raises(ValidationError) as exc_info:
        tailoring_service.add_measurement_head(tailor, payload)
    assert missing in str(exc_info.value)


@pytest.mark.parametrize(
    "extra",
    [
        {"field_type": "checkbox"},
        {"label": "   "},
        {"unit": "mm"},
        {"field_type": "text", "unit": "cm"},
        {"is_required": "yes"},
        {"sort_order": -1},
        {"sort_order": 1.5},
        {"created_by": 1},
    ],
)
def test_invalid_head_rejected(db_session, tailor, garment, extra):
    with pytest.raises(ValidationError):
        _head(tailor, garment, **extra)
    assert db_session.query(MeasurementHead).count() == 0


def test_duplicate_label_conflicts(db_session, tailor, garment):
    _head(tailor, garment, label="Waist")
    with pytest.raises(ConflictError):
        _head(tailor, garment, label="Waist", field_type="text")
    assert db_session.query(MeasurementHead).count() == 1


def test_same_label_on_another_garment(tailor, garment):
    other = tailoring_service.create_garment(tailor, "Kurta")
    _head(tailor, garment, label="Waist")
    assert _head(tailor, other, label="Waist").garment_id == other.id


def test_foreign_garment_not_found(other_tailor, garment):
    with pytest.raises(NotFoundError):
        _head(other_tailor, garment)
    with pytest.raises(NotFoundError):
        tailoring_service.list_measurement_heads(other_tailor, garment.id)


def test_missing_garment_not_found(tailor):
    with pytest.raises(NotFoundError):
        tailoring_service.add_measurement_head(
            tailor, {"garment_id": 31337, "label": "Chest", "field_type": "number"},
        )


def test_only_tailors_define_heads(customer, garment):
    with pytest.raises(ForbiddenError):
        _head(customer, garment)


# =============================================================================
# DROPDOWN OPTIONS
# =============================================================================


def test_add_options(tailor, garment):
    collar = _head(tailor, garment, label="Collar Type", field_type="dropdown")

    round_ = tailoring_service.add_measurement_option(tailor, collar.id, " Round ")
    tailoring_service.add_measurement_option(tailor, str(collar.id), "Square")

    assert round_.value == "Round"
    assert [o.value for o in collar.options] == ["Round", "Square"]


def test_duplicate_option_conflicts(db_session, tailor, garment):
    collar = _head(tailor, garment, label="Collar Type", field_type="dropdown")
    tailoring_service.add_measurement_option(tailor, collar.id, "V")
    with pytest.raises(ConflictError):
        tailoring_service.add_measurement_option(tailor, collar.id, "V")
    assert db_session.query(MeasurementOption).count() == 1


@pytest.mark.parametrize("field_type", ["number", "text"])
def test_options_need_dropdown_head(tailor, garment, field_type):
    head = _head(tailor, garment, field_type=field_type)
    with pytest.raises(ValidationError):
        tailoring_service.add_measurement_option(tailor, head.id, "Round")


@pytest.mark.parametrize("value", [None, "", "   ", "x" * 121])
def test_invalid_option_value(tailor, garment, value):
    collar = _head(tailor, garment, label="Collar Type", field_type="dropdown")
    with pytest.raises(ValidationError):
        tailoring_service.add_measurement_option(tailor, collar.id, value)


def test_option_on_foreign_head_not_found(tailor, other_tailor, garment):
    collar = _head(tailor, garment, label="Collar Type", field_type="dropdown")
    with pytest.raises(NotFoundError):
        tailoring_service.add_measurement_option(other_tailor, collar.id, "Round")
    with pytest.raises(NotFoundError):
        tailoring_service.add_measurement_option(tailor, 31337, "Round")


# =============================================================================
# LISTING
# =============================================================================


def test_list_ordered_by_sort_order(tailor, garment):
    _head(tailor, garment, label="Sleeve", sort_order=2)
    _head(tailor, garment, label="Chest", sort_order=0)
    _head(tailor, garment, label="Waist", sort_order=2)
    collar = _head(tailor, garment, label="Collar Type", field_type="dropdown", sort_order=1)
    tailoring_service.add_measurement_option(tailor, collar.id, "Round")

    heads = tailoring_service.list_measurement_heads(tailor, garment.id)

    assert [h.label for h in heads] == ["Chest", "Collar Type", "Sleeve", "Waist"]
    assert heads[1].to_dict()["options"][0]["value"] == "Round"


def test_list_empty_garment(tailor, garment):
    assert tailoring_service.list_measurement_heads(tailor, garment.id) == []
