import pytest

from instock.errors import ConfigurationError
from instock.ingest import reference


def _positional_row(**cells):
    row = [""] * 18
    positions = {"colorway": 3, "size": 4, "class": 12, "safety": 14, "sku": 17}
    for name, value in cells.items():
        row[positions[name]] = value
    return row


def test_normalize_header():
    assert reference.normalize_header("  Safety   Stock ") == "safety_stock"
    assert reference.normalize_header("Class (A/B/C)") == "class_abc"
    assert reference.normalize_header(None) == ""


def test_header_lookup_survives_reordered_columns():
    values = [
        ["SKU", "Safety Stock", "Size", "Colorway", "Class"],
        ["ABC", "20", "yth-md", "Black/Gold", "a"],
    ]
    defs = reference.load_tracked_skus(values)
    abc = defs["ABC"]
    assert abc.colorway == "Black/Gold"
    assert abc.size == "yth-md"
    assert abc.product_class == "A"
    assert abc.safety_stock == 20


def test_synonyms_resolve_fields():
    values = [
        ["sku", "product class", "safety"],
        ["LE-1", "le", "4"],
    ]
    defs = reference.load_tracked_skus(values)
    assert defs["LE-1"].product_class == "LE"
    assert defs["LE-1"].safety_stock == 4


def test_positional_fallback_when_headers_are_missing():
    header = [f"col {i}" for i in range(18)]
    values = [header, _positional_row(sku="XYZ", colorway="Red", size="SR-LG", **{"class": "b", "safety": "7"})]
    defs = reference.load_tracked_skus(values)
    xyz = defs["XYZ"]
    assert (xyz.colorway, xyz.size, xyz.product_class, xyz.safety_stock) == ("Red", "SR-LG", "B", 7)


def test_short_rows_leave_fields_blank():
    values = [["sku", "size"], ["ABC"]]
    defs = reference.load_tracked_skus(values)
    assert defs["ABC"].size == ""
    assert defs["ABC"].colorway == ""
    assert defs["ABC"].safety_stock == 0


def test_blank_skus_are_skipped_and_last_duplicate_wins():
    values = [
        ["sku", "safety_stock"],
        ["  ", "5"],
        [None, "5"],
        ["ABC", "1"],
        [" ABC ", "9"],
    ]
    defs = reference.load_tracked_skus(values)
    assert list(defs) == ["ABC"]
    assert defs["ABC"].safety_stock == 9


@pytest.mark.parametrize(
    "raw, expected",
    [("12", 12), ("12.0", 12), (8, 8), ("", 0), (None, 0), ("n/a", 0), ("-3", 0), ("NaN", 0)],
)
def test_parse_safety_stock(raw, expected):
    assert reference.parse_safety_stock(raw) == expected


def test_table_without_data_rows_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        reference.load_tracked_skus([["sku", "size"]])
    with pytest.raises(ConfigurationError):
        reference.load_tracked_skus([])
