"""Receipt command model and the decoder for ``{"receipt": [...]}`` payloads.

A receipt is an ordered list of loosely typed JSON objects, each tagged by a
``type`` field:

- ``line``    → :class:`TextLine` (printed with a trailing line feed)
- ``text``    → :class:`MultiLineText` (printed as-is, no implicit line feed)
- ``feed``    → :class:`Feed`
- ``barcode`` → :class:`Barcode`
- ``qr``      → :class:`QRCode`
- ``image``   → :class:`Image`

Decoding is all-or-nothing: the first bad item raises :class:`ReceiptDecodeError`
and no command of the job is returned. Unused fields are ignored.

Two fields are coerced permissively (see :func:`coerce_int` and
:func:`coerce_bool`): ``font-size`` may be sent as a string, and ``underline``
may be sent as the strings ``"true"`` / ``"false"``. Any other underline string,
``"True"`` and ``"banana"`` included, decodes to ``False``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Sequence, Tuple, Union


class Font(str, Enum):
    A = "A"
    B = "B"
    C = "C"


class Alignment(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


class BarcodeType(str, Enum):
    UPCA = "UPCA"
    UPCE = "UPCE"
    EAN13 = "EAN13"
    EAN8 = "EAN8"
    CODE39 = "CODE39"
    CODE128 = "CODE128"


class DitherMode(str, Enum):
    NONE = "none"
    FLOYDSTEINBERG = "floydsteinberg"


@dataclass(frozen=True)
class _TextCommand:
    content: str
    font_size: int
    font: Font
    alignment: Alignment
    underline: bool


@dataclass(frozen=True)
class TextLine(_TextCommand):
    """Single line; the printer appends a line feed."""


@dataclass(frozen=True)
class MultiLineText(_TextCommand):
    """Free text; only the line breaks inside ``content`` are printed."""


@dataclass(frozen=True)
class Feed:
    lines: int


@dataclass(frozen=True)
class Barcode:
    code: str
    barcode_type: BarcodeType


@dataclass(frozen=True)
class QRCode:
    code: str
    size: int


@dataclass(frozen=True)
class Image:
    data: str
    alignment: Alignment
    dither_mode: DitherMode


Command = Union[TextLine, MultiLineText, Feed, Barcode, QRCode, Image]


class ReceiptDecodeError(ValueError):
    """Raised when a receipt payload cannot be turned into commands.

    ``index`` is the position of the offending item (``None`` when the payload
    itself is malformed), ``item_type`` the discriminator seen there (if any) and
    ``field`` the name of the field that failed.
    """

    def __init__(
        self,
        index: int | None,
        item_type: str | None,
        field: str,
        reason: str,
    ) -> None:
        self.index = index
        self.item_type = item_type
        self.field = field
        self.reason = reason
        if index is None:
            where = "receipt"
        elif item_type is None:
            where = f"item {index}"
        else:
            where = f"item {index} ({item_type})"
        super().__init__(f"{where}: field '{field}': {reason}")


_INT_STRING = re.compile(r"-?[0-9]+")


def coerce_int(value: Any) -> int:
    """Coerce an integer field sent as int, float or digit string.

    - ``int``   → returned unchanged
    - ``float`` → truncated toward zero (``2.9`` → 2, ``-2.9`` → -2)
    - ``str``   → optional ``-`` followed by ASCII digits only (``"3"`` → 3);
      ``"3.5"``, ``" 3"`` or ``"three"`` raise

    Booleans and every other type raise ``ValueError``.
    """

    if isinstance(value, bool):
        raise ValueError(f"expected an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (OverflowError, ValueError):
            raise ValueError(f"expected an integer, got {value!r}") from None
    if isinstance(value, str):
        if not _INT_STRING.fullmatch(value):
            raise ValueError(f"invalid integer string: {value!r}")
        return int(value)
    raise ValueError(f"expected an integer, got {type(value).__name__}")


def coerce_bool(value: Any) -> bool:
    """Coerce a boolean field sent as bool or string.

    Only the exact string ``"true"`` is truthy; any other string (``"false"``,
    ``"True"``, ``"banana"``) is ``False``. Non-string, non-bool values raise
    ``ValueError``.
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value == "true"
    raise ValueError(f"expected a boolean, got {type(value).__name__}")


class _Item:
    """Field accessor for one raw receipt item that raises decode errors."""

    def __init__(self, index: int, item_type: str, raw: Mapping[str, Any]) -> None:
        self.index = index
        self.item_type = item_type
        self.raw = raw

    def error(self, field: str, reason: str) -> ReceiptDecodeError:
        return ReceiptDecodeError(self.index, self.item_type, field, reason)

    def get(self, field: str) -> Any:
        # Hyphenated names are canonical; an earlier revision used underscores.
        if field in self.raw:
            return self.raw[field]
        alias = field.replace("-", "_")
        if alias in self.raw:
            return self.raw[alias]
        raise self.error(field, "missing required field")

    def string(self, field: str) -> str:
        value = self.get(field)
        if not isinstance(value, str):
            raise self.error(field, f"expected a string, got {type(value).__name__}")
        return value

    def integer(self, field: str) -> int:
        try:
            return coerce_int(self.get(field))
        except ValueError as e:
            raise self.error(field, str(e)) from None

    def boolean(self, field: str) -> bool:
        try:
            return coerce_bool(self.get(field))
        except ValueError as e:
            raise self.error(field, str(e)) from None

    def enum(self, field: str, enum_cls: type[Enum]) -> Any:
        value = self.get(field)
        allowed = ", ".join(str(member.value) for member in enum_cls)
        if not isinstance(value, str):
            raise self.error(field, f"expected one of: {allowed}")
        try:
            return enum_cls(value)
        except ValueError:
            raise self.error(field, f"invalid value {value!r}, expected one of: {allowed}") from None


def _text_fields(item: _Item) -> Dict[str, Any]:
    return {
        "content": item.string("content"),
        "font_size": item.integer("font-size"),
        "font": item.enum("font", Font),
        "alignment": item.enum("alignment", Alignment),
        "underline": item.boolean("underline"),
    }


def _decode_line(item: _Item) -> TextLine:
    return TextLine(**_text_fields(item))


def _decode_text(item: _Item) -> MultiLineText:
    return MultiLineText(**_text_fields(item))


def _decode_feed(item: _Item) -> Feed:
    lines = item.integer("lines")
    if lines < 0:
        raise item.error("lines", f"must be >= 0, got {lines}")
    return Feed(lines=lines)


def _decode_barcode(item: _Item) -> Barcode:
    # Barcodes are always centered; an "alignment" field is ignored.
    return Barcode(
        code=item.string("code"),
        barcode_type=item.enum("barcode-type", BarcodeType),
    )


def _decode_qr(item: _Item) -> QRCode:
    return QRCode(code=item.string("code"), size=item.integer("size"))


def _decode_image(item: _Item) -> Image:
    return Image(
        data=item.string("data"),
        alignment=item.enum("alignment", Alignment),
        dither_mode=item.enum("dither-mode", DitherMode),
    )


_DECODERS: Dict[str, Callable[[_Item], Command]] = {
    "line": _decode_line,
    "text": _decode_text,
    "feed": _decode_feed,
    "barcode": _decode_barcode,
    "qr": _decode_qr,
    "image": _decode_image,
}


def decode_item(index: int, raw: Any) -> Command:
    """Decode one raw receipt item at position ``index``."""

    if not isinstance(raw, Mapping):
        raise ReceiptDecodeError(index, None, "type", "item is not an object")
    item_type = raw.get("type")
    if item_type is None:
        raise ReceiptDecodeError(index, None, "type", "missing required field")
    if not isinstance(item_type, str) or item_type not in _DECODERS:
        raise ReceiptDecodeError(
            index, str(item_type), "type", f"unknown receipt item type: {item_type!r}"
        )
    return _DECODERS[item_type](_Item(index, item_type, raw))


def decode_receipt(items: Any) -> Tuple[Command, ...]:
    """Decode the receipt item list into an immutable command sequence."""

    if not isinstance(items, (list, tuple)):
        raise ReceiptDecodeError(None, None, "receipt", "expected a list of items")
    return tuple(decode_item(index, raw) for index, raw in enumerate(items))


def _encode_text(item_type: str, command: _TextCommand) -> Dict[str, Any]:
    return {
        "type": item_type,
        "content": command.content,
        "font-size": command.font_size,
        "font": command.font.value,
        "alignment": command.alignment.value,
        "underline": command.underline,
    }


def encode_command(command: Command) -> Dict[str, Any]:
    """Serialize a command back to its canonical JSON object."""

    if isinstance(command, TextLine):
        return _encode_text("line", command)
    if isinstance(command, MultiLineText):
        return _encode_text("text", command)
    if isinstance(command, Feed):
        return {"type": "feed", "lines": command.lines}
    if isinstance(command, Barcode):
        return {
            "type": "barcode",
            "code": command.code,
            "barcode-type": command.barcode_type.value,
        }
    if isinstance(command, QRCode):
        return {"type": "qr", "code": command.code, "size": command.size}
    if isinstance(command, Image):
        return {
            "type": "image",
            "data": command.data,
            "alignment": command.alignment.value,
            "dither-mode": command.dither_mode.value,
        }
    raise ValueError(f"Unknown command type: {type(command)}")


def encode_receipt(commands: Sequence[Command]) -> Dict[str, List[Dict[str, Any]]]:
    """Serialize a command sequence to a ``{"receipt": [...]}`` payload."""

    return {"receipt": [encode_command(command) for command in commands]}
