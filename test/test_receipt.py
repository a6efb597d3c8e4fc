"""Tests for the receipt command model, coercion helpers and decoder."""

import json

import pytest

from print_jobs import PrintJob, decode_job
from receipt import (
    Alignment,
    Barcode,
    BarcodeType,
    DitherMode,
    Feed,
    Font,
    Image,
    MultiLineText,
    QRCode,
    ReceiptDecodeError,
    TextLine,
    coerce_bool,
    coerce_int,
    decode_item,
    decode_receipt,
    encode_receipt,
)


def _line(**overrides):
    item = {
        "type": "line",
        "content": "Hello, World!",
        "font-size": 1,
        "font": "A",
        "alignment": "center",
        "underline": False,
    }
    item.update(overrides)
    return item


FULL_RECEIPT = [
    _line(),
    {"type": "feed", "lines": 2},
    {"type": "barcode", "code": "123456789012", "barcode-type": "CODE128"},
    {"type": "qr", "code": "https://example.com", "size": 8},
    {"type": "image", "data": "iVBORw0KGgo=", "alignment": "left", "dither-mode": "floydsteinberg"},
    {
        "type": "text",
        "content": "Multi-line text\nwith newlines",
        "font-size": "2",
        "font": "B",
        "alignment": "right",
        "underline": "true",
    },
]


class TestCoerceInt:
    @pytest.mark.parametrize(
        "value, expected",
        [(3, 3), ("3", 3), ("-2", -2), ("007", 7), (2.9, 2), (-2.9, -2), (0.0, 0)],
    )
    def test_accepts(self, value, expected):
        assert coerce_int(value) == expected

    @pytest.mark.parametrize("value", ["3.5", " 3", "three", "", "+3", True, None, [3], float("inf")])
    def test_rejects(self, value):
        with pytest.raises(ValueError):
            coerce_int(value)


class TestCoerceBool:
    @pytest.mark.parametrize(
        "value, expected",
        [(True, True), (False, False), ("true", True), ("false", False), ("True", False), ("banana", False), ("", False)],
    )
    def test_coerces(self, value, expected):
        assert coerce_bool(value) is expected

    @pytest.mark.parametrize("value", [1, 0, None, {}])
    def test_rejects_other_types(self, value):
        with pytest.raises(ValueError):
            coerce_bool(value)


class TestDecodeItems:
    def test_line(self):
        cmd = decode_item(0, _line())
        assert cmd == TextLine(
            content="Hello, World!",
            font_size=1,
            font=Font.A,
            alignment=Alignment.CENTER,
            underline=False,
        )

    def test_text_is_distinct_from_line(self):
        cmd = decode_item(0, _line(type="text", content="a\nb"))
        assert isinstance(cmd, MultiLineText)
        assert not isinstance(cmd, TextLine)
        assert cmd.content == "a\nb"

    def test_font_size_string_equals_int(self):
        assert decode_item(0, _line(**{"font-size": "3"})) == decode_item(0, _line(**{"font-size": 3}))

    def test_font_size_float_truncates(self):
        assert decode_item(0, _line(**{"font-size": 2.7})).font_size == 2

    def test_underline_string_true(self):
        assert decode_item(0, _line(underline="true")).underline is True

    def test_underline_unknown_string_is_false(self):
        # Documented quirk: any string other than "true" means False.
        assert decode_item(0, _line(underline="banana")).underline is False

    def test_unparseable_font_size_is_error(self):
        with pytest.raises(ReceiptDecodeError) as exc_info:
            decode_item(4, _line(**{"font-size": "big"}))
        err = exc_info.value
        assert err.index == 4
        assert err.item_type == "line"
        assert err.field == "font-size"

    def test_feed(self):
        assert decode_item(0, {"type": "feed", "lines": 0}) == Feed(lines=0)
        assert decode_item(0, {"type": "feed", "lines": "4"}) == Feed(lines=4)

    def test_negative_feed_is_error(self):
        with pytest.raises(ReceiptDecodeError) as exc_info:
            decode_item(0, {"type": "feed", "lines": -1})
        assert exc_info.value.field == "lines"

    def test_barcode_ignores_alignment(self):
        cmd = decode_item(
            0,
            {"type": "barcode", "code": "4006381333931", "barcode-type": "EAN13", "alignment": "left"},
        )
        assert cmd == Barcode(code="4006381333931", barcode_type=BarcodeType.EAN13)

    def test_qr_size_is_not_range_checked(self):
        assert decode_item(0, {"type": "qr", "code": "x", "size": 40}) == QRCode(code="x", size=40)

    def test_image(self):
        cmd = decode_item(
            0,
            {"type": "image", "data": "abc", "alignment": "right", "dither-mode": "none"},
        )
        assert cmd == Image(data="abc", alignment=Alignment.RIGHT, dither_mode=DitherMode.NONE)

    def test_underscore_field_names_are_accepted(self):
        cmd = decode_item(0, {"type": "barcode", "code": "1", "barcode_type": "CODE39"})
        assert cmd.barcode_type is BarcodeType.CODE39
        item = _line(font_size=2)
        del item["font-size"]
        assert decode_item(0, item).font_size == 2

    def test_extra_fields_are_ignored(self):
        assert decode_item(0, _line(color="red")) == decode_item(0, _line())

    @pytest.mark.parametrize(
        "item, field",
        [
            (_line(font="a"), "font"),
            (_line(font="D"), "font"),
            (_line(alignment="Center"), "alignment"),
            ({"type": "barcode", "code": "1", "barcode-type": "code128"}, "barcode-type"),
            ({"type": "barcode", "code": "1", "barcode-type": "ITF"}, "barcode-type"),
            ({"type": "image", "data": "", "alignment": "left", "dither-mode": "atkinson"}, "dither-mode"),
        ],
    )
    def test_enum_values_are_case_sensitive_and_closed(self, item, field):
        with pytest.raises(ReceiptDecodeError) as exc_info:
            decode_item(0, item)
        assert exc_info.value.field == field

    def test_missing_field_is_error(self):
        item = _line()
        del item["content"]
        with pytest.raises(ReceiptDecodeError) as exc_info:
            decode_item(0, item)
        assert exc_info.value.field == "content"
        assert "missing" in exc_info.value.reason

    def test_non_string_content_is_error(self):
        with pytest.raises(ReceiptDecodeError) as exc_info:
            decode_item(0, _line(content=42))
        assert exc_info.value.field == "content"

    @pytest.mark.parametrize("item", [{"type": "cut"}, {"content": "no type"}, {"type": 7}, "line"])
    def test_bad_discriminator(self, item):
        with pytest.raises(ReceiptDecodeError) as exc_info:
            decode_item(2, item)
        assert exc_info.value.index == 2
        assert exc_info.value.field == "type"


class TestDecodeReceipt:
    def test_decodes_in_order(self):
        commands = decode_receipt(FULL_RECEIPT)
        assert isinstance(commands, tuple)
        assert [type(c) for c in commands] == [TextLine, Feed, Barcode, QRCode, Image, MultiLineText]
        assert commands[5].font_size == 2
        assert commands[5].underline is True

    def test_unknown_type_fails_whole_receipt(self):
        items = [_line(), {"type": "hologram"}, _line()]
        with pytest.raises(ReceiptDecodeError) as exc_info:
            decode_receipt(items)
        assert exc_info.value.index == 1
        assert exc_info.value.item_type == "hologram"
        assert "item 1 (hologram)" in str(exc_info.value)

    def test_empty_receipt(self):
        assert decode_receipt([]) == ()

    def test_decode_job(self):
        job = decode_job({"receipt": FULL_RECEIPT})
        assert isinstance(job, PrintJob)
        assert len(job) == 6

    @pytest.mark.parametrize("payload", [{}, {"receipt": "line"}, [], None])
    def test_decode_job_requires_receipt_list(self, payload):
        with pytest.raises(ReceiptDecodeError) as exc_info:
            decode_job(payload)
        assert exc_info.value.index is None
        assert exc_info.value.field == "receipt"

    def test_reencoding_is_idempotent(self):
        commands = decode_receipt(FULL_RECEIPT)
        wire = json.loads(json.dumps(encode_receipt(commands)))
        assert decode_receipt(wire["receipt"]) == commands

    def test_encoding_uses_canonical_spellings(self):
        wire = encode_receipt(decode_receipt(FULL_RECEIPT))["receipt"]
        assert wire[5]["font-size"] == 2
        assert wire[5]["underline"] is True
        assert wire[2]["barcode-type"] == "CODE128"
        assert wire[4]["dither-mode"] == "floydsteinberg"
