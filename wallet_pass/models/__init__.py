# wallet_pass/models/__init__.py

"""
Pass Data Model

Fields, barcodes, style field groups and the pass descriptor that together
render the pass.json document.
"""

from .fields import Field, FieldKind, DateStyle, NumberStyle, TextAlignment, DataDetector
from .semantics import (
    Semantics, EventType, CurrencyAmount, SemanticLocation, PersonNameComponents, Seat
)
from .barcode import Barcode, BarcodeFormat
from .layout import (
    FieldGroup, StoreCard, Generic, EventTicket, Coupon, BoardingPass,
    PassStyle, TransitType, SLOTS
)
from .descriptor import PassDescriptor, FORMAT_VERSION

__all__ = [
    'Field',
    'FieldKind',
    'DateStyle',
    'NumberStyle',
    'TextAlignment',
    'DataDetector',
    'Semantics',
    'EventType',
    'CurrencyAmount',
    'SemanticLocation',
    'PersonNameComponents',
    'Seat',
    'Barcode',
    'BarcodeFormat',
    'FieldGroup',
    'StoreCard',
    'Generic',
    'EventTicket',
    'Coupon',
    'BoardingPass',
    'PassStyle',
    'TransitType',
    'SLOTS',
    'PassDescriptor',
    'FORMAT_VERSION',
]
