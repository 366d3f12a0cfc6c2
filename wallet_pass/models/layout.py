# wallet_pass/models/layout.py

"""
Pass Styles and Field Groups

A pass carries exactly one style (storeCard, generic, eventTicket, coupon,
boardingPass). The style object holds the pass fields partitioned into five
slots: header, primary, secondary, auxiliary and back. A field lives in
exactly one slot and its key is unique within the group.
"""

import copy
import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from wallet_pass.exceptions import InvalidFieldConfiguration
from wallet_pass.models.fields import Field

logger = logging.getLogger(__name__)


class PassStyle(Enum):
    """Top-level key naming the pass style"""
    BOARDING_PASS = 'boardingPass'
    COUPON = 'coupon'
    EVENT_TICKET = 'eventTicket'
    GENERIC = 'generic'
    STORE_CARD = 'storeCard'


class TransitType(Enum):
    """Transit type of a boarding pass"""
    AIR = 'PKTransitTypeAir'
    BOAT = 'PKTransitTypeBoat'
    BUS = 'PKTransitTypeBus'
    GENERIC = 'PKTransitTypeGeneric'
    TRAIN = 'PKTransitTypeTrain'


# Serialization order is fixed
SLOTS = ('header', 'primary', 'secondary', 'auxiliary', 'back')

SLOT_KEYS = {
    'header': 'headerFields',
    'primary': 'primaryFields',
    'secondary': 'secondaryFields',
    'auxiliary': 'auxiliaryFields',
    'back': 'backFields',
}


def _as_field(field: Union[Field, str], value: Any = None, label: Optional[str] = None) -> Field:
    """Build a Field from (key, value, label) shorthand, or pass a Field through."""
    if isinstance(field, Field):
        if value is not None or label is not None:
            raise InvalidFieldConfiguration(
                "Pass either a Field instance or key/value/label, not both"
            )
        return field

    if isinstance(value, bool):
        return Field.boolean(field, value, label)
    if isinstance(value, (int, float, Decimal)):
        return Field.number(field, value, label)
    if value is None:
        raise InvalidFieldConfiguration(f"Field '{field}' needs a value")
    return Field.text(field, str(value), label)


class FieldGroup:
    """
    Slot-partitioned field container for one pass style.

    Fields are copied on the way in and on the way out, so neither the
    caller's Field nor one returned by a lookup can change the group. Use
    replace_field() to change a field that is already in the group.
    """

    style: PassStyle = None

    def __init__(self):
        if self.style is None:
            raise TypeError("FieldGroup is abstract; use StoreCard, Generic, EventTicket, Coupon or BoardingPass")
        self._slots: Dict[str, List[Field]] = {slot: [] for slot in SLOTS}

    # =========================================================================
    # Adding fields
    # =========================================================================

    def add_field(self, slot: str, field: Union[Field, str], value: Any = None,
                  label: Optional[str] = None) -> Field:
        """
        Append a field to a slot.

        Args:
            slot: One of header, primary, secondary, auxiliary, back
            field: Field instance, or a key when value/label are given
            value: Field value for the shorthand form
            label: Field label for the shorthand form

        Returns:
            A copy of the Field stored in the group
        """
        if slot not in self._slots:
            raise InvalidFieldConfiguration(
                f"Unknown field slot '{slot}'; expected one of {', '.join(SLOTS)}"
            )

        field = _as_field(field, value, label)
        existing = self.slot_of(field.key)
        if existing is not None:
            raise InvalidFieldConfiguration(
                f"Field key '{field.key}' is already used in the {existing} slot "
                f"of this {self.style.value}"
            )

        stored = copy.deepcopy(field)
        self._slots[slot].append(stored)
        logger.debug(f"Added {slot} field '{stored.key}' to {self.style.value}")
        return copy.deepcopy(stored)

    def add_header_field(self, field, value=None, label=None) -> Field:
        return self.add_field('header', field, value, label)

    def add_primary_field(self, field, value=None, label=None) -> Field:
        return self.add_field('primary', field, value, label)

    def add_secondary_field(self, field, value=None, label=None) -> Field:
        return self.add_field('secondary', field, value, label)

    def add_auxiliary_field(self, field, value=None, label=None) -> Field:
        return self.add_field('auxiliary', field, value, label)

    def add_back_field(self, field, value=None, label=None) -> Field:
        return self.add_field('back', field, value, label)

    # =========================================================================
    # Replacing and removing fields
    # =========================================================================

    def replace_field(self, field: Field) -> Field:
        """Swap the field that has the same key, keeping its slot and position."""
        slot = self.slot_of(field.key)
        if slot is None:
            raise InvalidFieldConfiguration(
                f"No field with key '{field.key}' to replace in this {self.style.value}"
            )
        fields = self._slots[slot]
        index = next(i for i, f in enumerate(fields) if f.key == field.key)
        fields[index] = copy.deepcopy(field)
        return copy.deepcopy(fields[index])

    def remove_field(self, key: str) -> Field:
        slot = self.slot_of(key)
        if slot is None:
            raise InvalidFieldConfiguration(f"No field with key '{key}' in this {self.style.value}")
        fields = self._slots[slot]
        index = next(i for i, f in enumerate(fields) if f.key == key)
        return fields.pop(index)

    def clear_slot(self, slot: str):
        if slot not in self._slots:
            raise InvalidFieldConfiguration(f"Unknown field slot '{slot}'")
        self._slots[slot] = []

    # =========================================================================
    # Lookup
    # =========================================================================

    def fields(self, slot: str) -> Tuple[Field, ...]:
        return tuple(copy.deepcopy(f) for f in self._slots[slot])

    def get_field(self, key: str) -> Optional[Field]:
        for slot in SLOTS:
            for field in self._slots[slot]:
                if field.key == key:
                    return copy.deepcopy(field)
        return None

    def slot_of(self, key: str) -> Optional[str]:
        for slot in SLOTS:
            if any(f.key == key for f in self._slots[slot]):
                return slot
        return None

    def keys(self) -> List[str]:
        return [f.key for slot in SLOTS for f in self._slots[slot]]

    def __len__(self):
        return sum(len(fields) for fields in self._slots.values())

    # =========================================================================
    # Serialization
    # =========================================================================

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldGroup':
        """Build the group from its pass.json object, e.g. document['storeCard']."""
        if not isinstance(data, dict):
            raise InvalidFieldConfiguration(
                f"'{cls.style.value}' must be a JSON object, got {type(data).__name__}"
            )
        group = cls()
        group._load_slots(data)
        return group

    def _load_slots(self, data: Dict[str, Any]):
        for slot in SLOTS:
            entries = data.get(SLOT_KEYS[slot]) or []
            if not isinstance(entries, list):
                raise InvalidFieldConfiguration(
                    f"'{SLOT_KEYS[slot]}' of {self.style.value} must be a list"
                )
            for entry in entries:
                self.add_field(slot, Field.from_dict(entry))

    def to_dict(self) -> Dict[str, Any]:
        """Slot arrays in header, primary, secondary, auxiliary, back order."""
        data: Dict[str, Any] = {}
        for slot in SLOTS:
            if self._slots[slot]:
                data[SLOT_KEYS[slot]] = [f.to_dict() for f in self._slots[slot]]
        return data

    def __repr__(self):
        counts = ', '.join(f"{slot}={len(self._slots[slot])}" for slot in SLOTS)
        return f"{type(self).__name__}({counts})"


class StoreCard(FieldGroup):
    """Loyalty and gift cards; supports a strip image."""
    style = PassStyle.STORE_CARD


class Generic(FieldGroup):
    """Membership and other cards; supports a thumbnail image."""
    style = PassStyle.GENERIC


class EventTicket(FieldGroup):
    """Tickets for concerts, matches and other events."""
    style = PassStyle.EVENT_TICKET


class Coupon(FieldGroup):
    """Coupons, special offers and discounts."""
    style = PassStyle.COUPON


class BoardingPass(FieldGroup):
    """Boarding passes; the transit type is required."""
    style = PassStyle.BOARDING_PASS

    def __init__(self, transit_type: Union[TransitType, str] = TransitType.GENERIC):
        super().__init__()
        try:
            self.transit_type = TransitType(transit_type)
        except ValueError:
            raise InvalidFieldConfiguration(f"Unknown transit type: {transit_type!r}")

    def to_dict(self) -> Dict[str, Any]:
        data = {'transitType': self.transit_type.value}
        data.update(super().to_dict())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BoardingPass':
        if not isinstance(data, dict):
            raise InvalidFieldConfiguration(
                f"'{cls.style.value}' must be a JSON object, got {type(data).__name__}"
            )
        if 'transitType' not in data:
            raise InvalidFieldConfiguration("boardingPass is missing its transitType")
        group = cls(data['transitType'])
        group._load_slots(data)
        return group


STYLE_GROUPS = {
    group.style: group for group in (StoreCard, Generic, EventTicket, Coupon, BoardingPass)
}
