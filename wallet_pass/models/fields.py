# wallet_pass/models/fields.py

"""
Pass Fields

A Field is one key/label/value entry shown on the front or back of a pass.
Each field has a value kind (text, number, currency, date, boolean) that fixes
its JSON value type and decides which formatting annotations it accepts.
"""

import logging
import math
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from wallet_pass.exceptions import InvalidFieldConfiguration
from wallet_pass.models.semantics import Semantics

logger = logging.getLogger(__name__)


class FieldKind(Enum):
    """Value kind of a pass field"""
    TEXT = 'text'
    NUMBER = 'number'
    CURRENCY = 'currency'
    DATE = 'date'
    BOOLEAN = 'boolean'


class DateStyle(Enum):
    """Date and time display styles"""
    NONE = 'PKDateStyleNone'
    SHORT = 'PKDateStyleShort'
    MEDIUM = 'PKDateStyleMedium'
    LONG = 'PKDateStyleLong'
    FULL = 'PKDateStyleFull'


class NumberStyle(Enum):
    """Number display styles"""
    DECIMAL = 'PKNumberStyleDecimal'
    PERCENT = 'PKNumberStylePercent'
    SCIENTIFIC = 'PKNumberStyleScientific'
    SPELLOUT = 'PKNumberStyleSpellOut'


class TextAlignment(Enum):
    """Alignment for a field's contents"""
    LEFT = 'PKTextAlignmentLeft'
    CENTER = 'PKTextAlignmentCenter'
    RIGHT = 'PKTextAlignmentRight'
    NATURAL = 'PKTextAlignmentNatural'


class DataDetector(Enum):
    """Data detectors applied to back field values"""
    PHONE_NUMBER = 'PKDataDetectorTypePhoneNumber'
    LINK = 'PKDataDetectorTypeLink'
    ADDRESS = 'PKDataDetectorTypeAddress'
    CALENDAR_EVENT = 'PKDataDetectorTypeCalendarEvent'


NUMERIC_KINDS = (FieldKind.NUMBER, FieldKind.CURRENCY)

DATE_KEYS = frozenset({'dateStyle', 'timeStyle', 'isRelative', 'ignoresTimeZone'})

FIELD_KEYS = frozenset({
    'key', 'label', 'value', 'attributedValue', 'changeMessage', 'currencyCode',
    'numberStyle', 'dateStyle', 'timeStyle', 'isRelative', 'ignoresTimeZone',
    'textAlignment', 'dataDetectorTypes', 'semantics',
})

FieldValue = Union[str, int, float, bool]


def _coerce_enum(enum_cls, value, attribute: str):
    """Accept an enum member or its raw string value."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidFieldConfiguration(
            f"{value!r} is not a valid {attribute}; expected one of "
            f"{', '.join(member.value for member in enum_cls)}"
        )


def _coerce_number(key: str, value) -> Union[int, float]:
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidFieldConfiguration(
            f"Field '{key}' expects a numeric value, got {type(value).__name__}"
        )
    # NaN and Infinity have no JSON representation
    finite = value.is_finite() if isinstance(value, Decimal) else math.isfinite(value)
    if not finite:
        raise InvalidFieldConfiguration(f"Field '{key}' expects a finite number, got {value!r}")
    if isinstance(value, Decimal):
        return float(value)
    return value


def _coerce_date(key: str, value) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str) and value:
        return value
    raise InvalidFieldConfiguration(
        f"Field '{key}' expects a date, datetime or ISO 8601 string"
    )


class Field:
    """
    A single pass field.

    Create fields through the per-kind constructors (Field.text,
    Field.number, Field.currency, Field.date, Field.boolean) so the value
    type and the allowed formatting annotations are fixed up front. All
    setters return the field so calls can be chained.
    """

    def __init__(self, key: str, value: FieldValue, label: Optional[str] = None,
                 kind: FieldKind = FieldKind.TEXT):
        if not key or not isinstance(key, str):
            raise InvalidFieldConfiguration("Field key must be a non-empty string")

        self.key = key
        self.kind = kind
        self.value = value
        self.label = label

        self.change_message: Optional[str] = None
        self.text_alignment: Optional[TextAlignment] = None
        self.attributed_value: Optional[str] = None
        self.data_detector_types: Optional[List[DataDetector]] = None

        self.currency_code: Optional[str] = None
        self.number_style: Optional[NumberStyle] = None
        self.date_style: Optional[DateStyle] = None
        self.time_style: Optional[DateStyle] = None
        self.is_relative: Optional[bool] = None
        self.ignores_time_zone: Optional[bool] = None
        self.semantics: Optional[Semantics] = None

    # =========================================================================
    # Constructors
    # =========================================================================

    @classmethod
    def text(cls, key: str, value: str, label: Optional[str] = None) -> 'Field':
        if not isinstance(value, str):
            raise InvalidFieldConfiguration(
                f"Field '{key}' expects a string value, got {type(value).__name__}"
            )
        return cls(key, value, label, FieldKind.TEXT)

    @classmethod
    def number(cls, key: str, value: Union[int, float, Decimal], label: Optional[str] = None,
               number_style: Union[NumberStyle, str, None] = None) -> 'Field':
        field = cls(key, _coerce_number(key, value), label, FieldKind.NUMBER)
        if number_style is not None:
            field.set_number_style(number_style)
        return field

    @classmethod
    def currency(cls, key: str, amount: Union[int, float, Decimal], currency_code: str,
                 label: Optional[str] = None) -> 'Field':
        field = cls(key, _coerce_number(key, amount), label, FieldKind.CURRENCY)
        field.set_currency_code(currency_code)
        return field

    @classmethod
    def date(cls, key: str, value: Union[datetime, date, str], label: Optional[str] = None,
             date_style: Union[DateStyle, str, None] = None,
             time_style: Union[DateStyle, str, None] = None) -> 'Field':
        field = cls(key, _coerce_date(key, value), label, FieldKind.DATE)
        if date_style is not None:
            field.set_date_style(date_style)
        if time_style is not None:
            field.set_time_style(time_style)
        return field

    @classmethod
    def boolean(cls, key: str, value: bool, label: Optional[str] = None) -> 'Field':
        if not isinstance(value, bool):
            raise InvalidFieldConfiguration(
                f"Field '{key}' expects a boolean value, got {type(value).__name__}"
            )
        return cls(key, value, label, FieldKind.BOOLEAN)

    # =========================================================================
    # Presentation (valid for every kind)
    # =========================================================================

    def set_label(self, label: str) -> 'Field':
        self.label = label
        return self

    def set_change_message(self, change_message: str) -> 'Field':
        """Alert text shown when the field changes; must contain '%@'."""
        if '%@' not in change_message:
            raise InvalidFieldConfiguration(
                f"Change message for field '{self.key}' must contain the '%@' placeholder"
            )
        self.change_message = change_message
        return self

    def set_text_alignment(self, alignment: Union[TextAlignment, str]) -> 'Field':
        self.text_alignment = _coerce_enum(TextAlignment, alignment, 'text alignment')
        return self

    def set_attributed_value(self, attributed_value: str) -> 'Field':
        self.attributed_value = attributed_value
        return self

    def add_data_detector(self, detector: Union[DataDetector, str]) -> 'Field':
        detector = _coerce_enum(DataDetector, detector, 'data detector')
        if self.data_detector_types is None:
            self.data_detector_types = []
        if detector not in self.data_detector_types:
            self.data_detector_types.append(detector)
        return self

    def clear_data_detectors(self) -> 'Field':
        """Use no data detectors at all (serialized as an empty list)."""
        self.data_detector_types = []
        return self

    # =========================================================================
    # Number formatting
    # =========================================================================

    def set_currency_code(self, currency_code: str) -> 'Field':
        """
        Format the value as an amount of money.

        A plain number field becomes a currency field. Currency code and
        number style are mutually exclusive in Apple Wallet.
        """
        if self.kind not in NUMERIC_KINDS:
            raise InvalidFieldConfiguration(
                f"Currency code can't be set on {self.kind.value} field '{self.key}'"
            )
        if self.number_style is not None:
            raise InvalidFieldConfiguration(
                f"Field '{self.key}' already has a number style; "
                f"currencyCode and numberStyle are mutually exclusive"
            )
        if not isinstance(currency_code, str) or not currency_code:
            raise InvalidFieldConfiguration(
                f"Currency code for field '{self.key}' must be a non-empty string"
            )
        self.currency_code = currency_code.upper()
        self.kind = FieldKind.CURRENCY
        return self

    def set_number_style(self, number_style: Union[NumberStyle, str]) -> 'Field':
        if self.kind is not FieldKind.NUMBER:
            raise InvalidFieldConfiguration(
                f"Number style can't be set on {self.kind.value} field '{self.key}'"
            )
        self.number_style = _coerce_enum(NumberStyle, number_style, 'number style')
        return self

    # =========================================================================
    # Date formatting
    # =========================================================================

    def _require_date(self, attribute: str):
        if self.kind is not FieldKind.DATE:
            raise InvalidFieldConfiguration(
                f"{attribute} can't be set on {self.kind.value} field '{self.key}'"
            )

    def set_date_style(self, date_style: Union[DateStyle, str]) -> 'Field':
        self._require_date('Date style')
        self.date_style = _coerce_enum(DateStyle, date_style, 'date style')
        return self

    def set_time_style(self, time_style: Union[DateStyle, str]) -> 'Field':
        self._require_date('Time style')
        self.time_style = _coerce_enum(DateStyle, time_style, 'time style')
        return self

    def set_is_relative(self, is_relative: bool = True) -> 'Field':
        self._require_date('isRelative')
        self.is_relative = bool(is_relative)
        return self

    def set_ignores_time_zone(self, ignores_time_zone: bool = True) -> 'Field':
        self._require_date('ignoresTimeZone')
        self.ignores_time_zone = bool(ignores_time_zone)
        return self

    # =========================================================================
    # Semantic tags
    # =========================================================================

    def set_semantics(self, semantics: Union[Semantics, Dict[str, Any], None]) -> 'Field':
        """Attach machine-readable tags; a dict is parsed as the pass.json form."""
        if isinstance(semantics, dict):
            semantics = Semantics.from_dict(semantics)
        elif semantics is not None and not isinstance(semantics, Semantics):
            raise InvalidFieldConfiguration(
                f"Semantics for field '{self.key}' must be a Semantics instance or a dict"
            )
        self.semantics = semantics
        return self

    # =========================================================================
    # Serialization
    # =========================================================================

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Field':
        """
        Build a field from its pass.json object.

        The kind is inferred from the value type and the formatting keys: a
        number with currencyCode is a currency field, a string with any date
        key is a date field.
        """
        if not isinstance(data, dict):
            raise InvalidFieldConfiguration(f"Pass field must be a JSON object, got {type(data).__name__}")
        if 'key' not in data or 'value' not in data:
            raise InvalidFieldConfiguration(f"Pass field needs both 'key' and 'value': {data!r}")

        unknown = sorted(set(data) - FIELD_KEYS)
        if unknown:
            logger.warning(f"Ignoring unknown keys on field '{data['key']}': {', '.join(unknown)}")

        key, value, label = data['key'], data['value'], data.get('label')
        if isinstance(value, bool):
            field = cls.boolean(key, value, label)
        elif isinstance(value, (int, float)):
            if 'currencyCode' in data:
                field = cls.currency(key, value, data['currencyCode'], label)
            else:
                field = cls.number(key, value, label)
        elif isinstance(value, str) and any(k in data for k in DATE_KEYS):
            field = cls.date(key, value, label)
        elif isinstance(value, str):
            field = cls.text(key, value, label)
        else:
            raise InvalidFieldConfiguration(
                f"Field '{key}' has an unsupported value type {type(value).__name__}"
            )

        setters = (
            ('numberStyle', field.set_number_style),
            ('dateStyle', field.set_date_style),
            ('timeStyle', field.set_time_style),
            ('isRelative', field.set_is_relative),
            ('ignoresTimeZone', field.set_ignores_time_zone),
            ('changeMessage', field.set_change_message),
            ('textAlignment', field.set_text_alignment),
            ('attributedValue', field.set_attributed_value),
            ('semantics', field.set_semantics),
        )
        for name, setter in setters:
            if data.get(name) is not None:
                setter(data[name])

        detectors = data.get('dataDetectorTypes')
        if detectors is not None:
            field.clear_data_detectors()
            for detector in detectors:
                field.add_data_detector(detector)

        return field

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON object for this field, without unset attributes."""
        data: Dict[str, Any] = {'key': self.key}
        if self.label is not None:
            data['label'] = self.label
        data['value'] = self.value

        optional = (
            ('attributedValue', self.attributed_value),
            ('changeMessage', self.change_message),
            ('currencyCode', self.currency_code),
            ('numberStyle', self.number_style),
            ('dateStyle', self.date_style),
            ('timeStyle', self.time_style),
            ('isRelative', self.is_relative),
            ('ignoresTimeZone', self.ignores_time_zone),
            ('textAlignment', self.text_alignment),
        )
        for name, value in optional:
            if value is None:
                continue
            data[name] = value.value if isinstance(value, Enum) else value

        if self.data_detector_types is not None:
            data['dataDetectorTypes'] = [d.value for d in self.data_detector_types]
        if self.semantics is not None:
            data['semantics'] = self.semantics.to_dict()

        return data

    def __repr__(self):
        return f"Field(key={self.key!r}, kind={self.kind.value}, value={self.value!r})"
