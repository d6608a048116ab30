from datetime import datetime, timezone

from case_reconciliation.normalize import (
    EPOCH,
    coerce_price,
    coerce_status_code,
    coerce_timestamp,
    is_phone_like,
    normalize_phone,
    normalize_plate,
    normalize_text,
)


def test_normalize_plate_strips_separators_and_uppercases():
    assert normalize_plate("aa-123 bb.") == "AA123BB"
    assert normalize_plate(" tb_456*xy ") == "TB456XY"
    assert normalize_plate("") == ""
    assert normalize_plate(None) == ""


def test_normalize_plate_is_idempotent():
    for raw in ["AA-123-BB", "  ab 12.3 ", "ქართ-12", "--", "x"]:
        once = normalize_plate(raw)
        assert normalize_plate(once) == once


def test_normalize_text_collapses_whitespace():
    assert normalize_text("  Giorgi \t  Beridze ") == "giorgi beridze"
    assert normalize_text("") == ""


def test_normalize_phone_keeps_digits_only():
    assert normalize_phone("+995 (579) 19-19-29") == "995579191929"
    assert normalize_phone(None) == ""
    assert is_phone_like("579 19")
    assert not is_phone_like("aa12")
    assert not is_phone_like("+ -")


def test_coerce_price_clamps_malformed_values():
    assert coerce_price("12.5") == 12.5
    assert coerce_price(40) == 40.0
    assert coerce_price("n/a") == 0.0
    assert coerce_price(None) == 0.0
    assert coerce_price(-3) == 0.0
    assert coerce_price(float("nan")) == 0.0


def test_coerce_status_code_accepts_numeric_strings():
    assert coerce_status_code("7") == 7
    assert coerce_status_code(7.0) == 7
    assert coerce_status_code("seven") is None
    assert coerce_status_code(7.5) is None
    assert coerce_status_code("") is None
    assert coerce_status_code(None) is None


def test_coerce_timestamp_handles_store_formats():
    expected = datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc)

    assert coerce_timestamp("2024-01-05T10:00:00Z") == expected
    assert coerce_timestamp("2024-01-05T10:00:00+00:00") == expected
    assert coerce_timestamp(1704448800) == expected
    assert coerce_timestamp(1704448800000) == expected
    assert coerce_timestamp("1704448800000") == expected
    assert coerce_timestamp(datetime(2024, 1, 5, 10, 0)) == expected


def test_coerce_timestamp_reads_document_store_timestamps():
    class StoreTimestamp:
        def to_datetime(self):
            return datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc)

    assert coerce_timestamp(StoreTimestamp()).year == 2024


def test_coerce_timestamp_falls_back_to_epoch():
    assert coerce_timestamp("not a date") == EPOCH
    assert coerce_timestamp(None) == EPOCH
    assert coerce_timestamp({"seconds": 1}) == EPOCH
