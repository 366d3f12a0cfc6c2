# wallet_pass/models/semantics.py

"""
Semantic Tags

Machine-readable metadata attached to a pass field so the system can offer
the pass at the right moment (an upcoming flight, a match about to start)
without parsing the visible text. Every tag is optional; unset tags are left
out of pass.json.

    field.set_semantics(Semantics(
        event_type=EventType.SPORTS,
        home_team_name='Seattle Sounders FC',
        away_team_name='Portland Timbers',
        seats=[Seat(seat_section='121', seat_row='K', seat_number='14')],
    ))
"""

import math
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from wallet_pass.exceptions import InvalidFieldConfiguration


class EventType(Enum):
    """Kind of event a ticket is for"""
    GENERIC = 'PKEventTypeGeneric'
    LIVE_PERFORMANCE = 'PKEventTypeLivePerformance'
    MOVIE = 'PKEventTypeMovie'
    SPORTS = 'PKEventTypeSports'
    CONFERENCE = 'PKEventTypeConference'
    CONVENTION = 'PKEventTypeConvention'
    WORKSHOP = 'PKEventTypeWorkshop'
    SOCIAL_GATHERING = 'PKEventTypeSocialGathering'


def serialize_value(value: Any) -> Any:
    """Serialize a tag value to its JSON form."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    elif isinstance(value, Enum):
        return value.value
    elif hasattr(value, 'to_dict'):
        return value.to_dict()
    elif isinstance(value, list):
        return [serialize_value(item) for item in value]
    return value


def _json_key(attribute) -> str:
    if 'json_key' in attribute.metadata:
        return attribute.metadata['json_key']
    head, *rest = attribute.name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


@dataclass
class SemanticObject:
    """
    Base for semantic tag dictionaries.

    Attributes map to camelCase JSON keys; an attribute can override its key
    with field(metadata={'json_key': ...}). Subclasses list attributes that
    hold nested tag objects in `nested` so from_dict() can rebuild them.
    """

    nested: ClassVar[Dict[str, type]] = {}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for attribute in fields(self):
            value = getattr(self, attribute.name)
            if value is None:
                continue
            data[_json_key(attribute)] = serialize_value(value)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SemanticObject':
        if not isinstance(data, dict):
            raise InvalidFieldConfiguration(
                f"{cls.__name__} must be a JSON object, got {type(data).__name__}"
            )

        by_key = {_json_key(attribute): attribute.name for attribute in fields(cls)}
        unknown = sorted(set(data) - set(by_key))
        if unknown:
            raise InvalidFieldConfiguration(
                f"Unknown {cls.__name__} keys: {', '.join(unknown)}"
            )

        kwargs = {}
        for key, value in data.items():
            name = by_key[key]
            nested_cls = cls.nested.get(name)
            if nested_cls is not None and value is not None:
                if isinstance(value, list):
                    value = [nested_cls.from_dict(item) for item in value]
                else:
                    value = nested_cls.from_dict(value)
            kwargs[name] = value
        return cls(**kwargs)


def _require_finite(name: str, value) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidFieldConfiguration(f"Semantic tag '{name}' must be a number")
    finite = value.is_finite() if isinstance(value, Decimal) else math.isfinite(value)
    if not finite:
        raise InvalidFieldConfiguration(f"Semantic tag '{name}' must be finite")
    return float(value) if isinstance(value, Decimal) else value


@dataclass
class CurrencyAmount(SemanticObject):
    """An amount of money; the amount is kept as a decimal string."""
    amount: Optional[str] = None
    currency_code: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.amount, bool):
            raise InvalidFieldConfiguration("CurrencyAmount amount must be a number or string")
        if isinstance(self.amount, (int, float, Decimal)):
            _require_finite('amount', self.amount)
            self.amount = str(self.amount)
        if self.currency_code is not None:
            if not isinstance(self.currency_code, str) or not self.currency_code:
                raise InvalidFieldConfiguration("CurrencyAmount currency code must be a non-empty string")
            self.currency_code = self.currency_code.upper()


@dataclass
class SemanticLocation(SemanticObject):
    latitude: float
    longitude: float

    def __post_init__(self):
        self.latitude = _require_finite('latitude', self.latitude)
        self.longitude = _require_finite('longitude', self.longitude)


@dataclass
class PersonNameComponents(SemanticObject):
    """Parts of a person's name, e.g. the passenger on a boarding pass."""
    family_name: Optional[str] = None
    given_name: Optional[str] = None
    middle_name: Optional[str] = None
    name_prefix: Optional[str] = None
    name_suffix: Optional[str] = None
    nickname: Optional[str] = None
    phonetic_representation: Optional['PersonNameComponents'] = None


PersonNameComponents.nested = {'phonetic_representation': PersonNameComponents}


@dataclass
class Seat(SemanticObject):
    seat_description: Optional[str] = None
    seat_identifier: Optional[str] = None
    seat_number: Optional[str] = None
    seat_row: Optional[str] = None
    seat_section: Optional[str] = None
    seat_type: Optional[str] = None


DateValue = Union[datetime, date, str]


@dataclass
class Semantics(SemanticObject):
    """
    Semantic tags for one pass field.

    Dates may be given as datetime/date objects or ISO 8601 strings. Nested
    tags (balance, seats, passenger_name, locations) take their own objects
    or, through from_dict(), the equivalent JSON.
    """

    nested: ClassVar[Dict[str, type]] = {
        'balance': CurrencyAmount,
        'total_price': CurrencyAmount,
        'departure_location': SemanticLocation,
        'destination_location': SemanticLocation,
        'venue_location': SemanticLocation,
        'passenger_name': PersonNameComponents,
        'seats': Seat,
    }

    # Transit
    airline_code: Optional[str] = None
    flight_code: Optional[str] = None
    flight_number: Optional[int] = None
    boarding_group: Optional[str] = None
    boarding_sequence_number: Optional[str] = None
    car_number: Optional[str] = None
    confirmation_number: Optional[str] = None
    passenger_name: Optional[PersonNameComponents] = None
    priority_status: Optional[str] = None
    security_screening: Optional[str] = None
    transit_provider: Optional[str] = None
    transit_status: Optional[str] = None
    transit_status_reason: Optional[str] = None
    vehicle_name: Optional[str] = None
    vehicle_number: Optional[str] = None
    vehicle_type: Optional[str] = None

    original_arrival_date: Optional[DateValue] = None
    original_boarding_date: Optional[DateValue] = None
    original_departure_date: Optional[DateValue] = None
    current_arrival_date: Optional[DateValue] = None
    current_boarding_date: Optional[DateValue] = None
    current_departure_date: Optional[DateValue] = None

    departure_airport_code: Optional[str] = None
    departure_airport_name: Optional[str] = None
    departure_gate: Optional[str] = None
    departure_location: Optional[SemanticLocation] = None
    departure_location_description: Optional[str] = None
    departure_platform: Optional[str] = None
    departure_station_name: Optional[str] = None
    departure_terminal: Optional[str] = None

    destination_airport_code: Optional[str] = None
    destination_airport_name: Optional[str] = None
    destination_gate: Optional[str] = None
    destination_location: Optional[SemanticLocation] = None
    destination_location_description: Optional[str] = None
    destination_platform: Optional[str] = None
    destination_station_name: Optional[str] = None
    destination_terminal: Optional[str] = None

    # Events
    event_type: Optional[EventType] = None
    event_name: Optional[str] = None
    event_start_date: Optional[DateValue] = None
    event_end_date: Optional[DateValue] = None
    duration: Optional[float] = None
    genre: Optional[str] = None
    artist_ids: Optional[List[str]] = field(default=None, metadata={'json_key': 'artistIDs'})
    performer_names: Optional[List[str]] = None
    seats: Optional[List[Seat]] = None
    silence_requested: Optional[bool] = None
    venue_name: Optional[str] = None
    venue_location: Optional[SemanticLocation] = None
    venue_entrance: Optional[str] = None
    venue_room: Optional[str] = None
    venue_phone_number: Optional[str] = None

    # Sports
    sport_name: Optional[str] = None
    league_name: Optional[str] = None
    league_abbreviation: Optional[str] = None
    home_team_name: Optional[str] = None
    home_team_location: Optional[str] = None
    home_team_abbreviation: Optional[str] = None
    away_team_name: Optional[str] = None
    away_team_location: Optional[str] = None
    away_team_abbreviation: Optional[str] = None

    # Money and membership
    balance: Optional[CurrencyAmount] = None
    total_price: Optional[CurrencyAmount] = None
    membership_program_name: Optional[str] = None
    membership_program_number: Optional[str] = None

    def __post_init__(self):
        if self.event_type is not None and not isinstance(self.event_type, EventType):
            try:
                self.event_type = EventType(self.event_type)
            except ValueError:
                raise InvalidFieldConfiguration(f"Unknown event type: {self.event_type!r}")

        self.duration = _require_finite('duration', self.duration)
        self.flight_number = _require_finite('flightNumber', self.flight_number)

        if self.silence_requested is not None and not isinstance(self.silence_requested, bool):
            raise InvalidFieldConfiguration("Semantic tag 'silenceRequested' must be a boolean")

        for name in ('artist_ids', 'performer_names', 'seats'):
            value = getattr(self, name)
            if value is not None and not isinstance(value, list):
                raise InvalidFieldConfiguration(f"Semantic tag '{name}' must be a list")
