# wallet_pass/models/descriptor.py

"""
Pass Descriptor Model

PassDescriptor collects the top-level attributes of a pass, its barcode and
its single style field group, and renders them as the `pass.json` document.

Typical use:

    descriptor = PassDescriptor(organization_name='ECS FC', description='Membership')
    descriptor.set_pass_type_identifier('pass.com.store.generic')
    descriptor.set_team_identifier('ASDF1234AS')
    descriptor.set_serial_number('1234567890')
    descriptor.set_authentication_token('sda8f6ffDFS798SFDfsfSdf')

    card = descriptor.store_card()
    card.add_primary_field(Field.currency('balance', 13.37, 'EUR', label='balance'))

    descriptor.set_barcode(Barcode('QR Code', BarcodeFormat.QR))
    document = descriptor.to_document()

A descriptor can also be seeded from a template's placeholder pass.json and
then adjusted with the same setters:

    descriptor = PassDescriptor.from_path('StoreCard.pass')
    descriptor.set_serial_number('1234567891')
"""

import copy
import json
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from wallet_pass.bundle import PASS_FILENAME, BundleStore
from wallet_pass.exceptions import (
    ConflictingStyle, InvalidFieldConfiguration, MissingPassAttribute, TemplateReadError
)
from wallet_pass.models.barcode import Barcode, BarcodeFormat
from wallet_pass.models.layout import (
    STYLE_GROUPS, BoardingPass, Coupon, EventTicket, FieldGroup, Generic, PassStyle,
    StoreCard, TransitType
)

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

HEX_COLOR = re.compile(r'^#?([0-9a-fA-F]{6})$')

# Attribute name -> pass.json key, in document order
REQUIRED_ATTRIBUTES = (
    ('pass_type_identifier', 'passTypeIdentifier'),
    ('team_identifier', 'teamIdentifier'),
    ('serial_number', 'serialNumber'),
    ('authentication_token', 'authenticationToken'),
    ('organization_name', 'organizationName'),
    ('description', 'description'),
)

OPTIONAL_ATTRIBUTES = (
    ('web_service_url', 'webServiceURL'),
    ('background_color', 'backgroundColor'),
    ('foreground_color', 'foregroundColor'),
    ('label_color', 'labelColor'),
    ('logo_text', 'logoText'),
    ('suppress_strip_shine', 'suppressStripShine'),
    ('relevant_date', 'relevantDate'),
    ('expiration_date', 'expirationDate'),
    ('voided', 'voided'),
    ('max_distance', 'maxDistance'),
    ('grouping_identifier', 'groupingIdentifier'),
    ('app_launch_url', 'appLaunchURL'),
    ('associated_store_identifiers', 'associatedStoreIdentifiers'),
    ('locations', 'locations'),
    ('beacons', 'beacons'),
    ('nfc', 'nfc'),
    ('user_info', 'userInfo'),
)


def _normalize_color(value: str) -> str:
    """Accept 'rgb(r, g, b)' as-is and convert '#rrggbb' to it."""
    if not isinstance(value, str):
        raise InvalidFieldConfiguration(
            f"Colors must be strings like '#rrggbb' or 'rgb(r, g, b)', got {type(value).__name__}"
        )
    match = HEX_COLOR.match(value.strip())
    if match:
        hex_value = match.group(1)
        r, g, b = (int(hex_value[i:i + 2], 16) for i in (0, 2, 4))
        return f"rgb({r}, {g}, {b})"
    return value


def _timestamp(value: Union[datetime, date, str]) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class PassDescriptor:
    """
    In-memory model of a pass.json document.

    Setters validate their input and return the descriptor, so mutations can
    be chained. to_document() takes a snapshot and never modifies the model.
    """

    def __init__(self, organization_name: str = '', description: str = ''):
        self.format_version = FORMAT_VERSION

        self.pass_type_identifier: str = ''
        self.team_identifier: str = ''
        self.serial_number: str = ''
        self.organization_name = organization_name
        self.description = description

        self.authentication_token: str = ''
        self.web_service_url: Optional[str] = None
        self.background_color: Optional[str] = None
        self.foreground_color: Optional[str] = None
        self.label_color: Optional[str] = None
        self.logo_text: Optional[str] = None
        self.suppress_strip_shine: Optional[bool] = None
        self.relevant_date: Optional[str] = None
        self.expiration_date: Optional[str] = None
        self.voided: Optional[bool] = None
        self.max_distance: Optional[float] = None
        self.grouping_identifier: Optional[str] = None
        self.app_launch_url: Optional[str] = None
        self.associated_store_identifiers: Optional[List[int]] = None
        self.locations: Optional[List[Dict[str, Any]]] = None
        self.beacons: Optional[List[Dict[str, Any]]] = None
        self.nfc: Optional[Dict[str, Any]] = None
        self.user_info: Optional[Dict[str, Any]] = None

        self.barcode: Optional[Barcode] = None
        self.barcodes: Optional[List[Barcode]] = None
        self.field_group: Optional[FieldGroup] = None

    # =========================================================================
    # Identifiers
    # =========================================================================

    def set_pass_type_identifier(self, value: str) -> 'PassDescriptor':
        self.pass_type_identifier = value
        return self

    def set_team_identifier(self, value: str) -> 'PassDescriptor':
        self.team_identifier = value
        return self

    def set_serial_number(self, value: str) -> 'PassDescriptor':
        self.serial_number = value
        return self

    def set_authentication_token(self, value: str) -> 'PassDescriptor':
        """Token the device presents to the web service; required on every pass."""
        self.authentication_token = value
        return self

    def set_organization_name(self, value: str) -> 'PassDescriptor':
        self.organization_name = value
        return self

    def set_description(self, value: str) -> 'PassDescriptor':
        self.description = value
        return self

    # =========================================================================
    # Appearance
    # =========================================================================

    def set_background_color(self, value: str) -> 'PassDescriptor':
        self.background_color = _normalize_color(value)
        return self

    def set_foreground_color(self, value: str) -> 'PassDescriptor':
        self.foreground_color = _normalize_color(value)
        return self

    def set_label_color(self, value: str) -> 'PassDescriptor':
        self.label_color = _normalize_color(value)
        return self

    def set_logo_text(self, value: str) -> 'PassDescriptor':
        self.logo_text = value
        return self

    def set_suppress_strip_shine(self, value: bool = True) -> 'PassDescriptor':
        self.suppress_strip_shine = bool(value)
        return self

    # =========================================================================
    # Relevance, updates and lifecycle
    # =========================================================================

    def set_web_service(self, url: str, authentication_token: str) -> 'PassDescriptor':
        """Enable push updates; a webServiceURL is useless without its token."""
        if not url or not authentication_token:
            raise InvalidFieldConfiguration(
                "set_web_service needs both a webServiceURL and an authenticationToken"
            )
        self.web_service_url = url
        self.authentication_token = authentication_token
        return self

    def set_relevant_date(self, value: Union[datetime, date, str]) -> 'PassDescriptor':
        self.relevant_date = _timestamp(value)
        return self

    def set_expiration_date(self, value: Union[datetime, date, str]) -> 'PassDescriptor':
        self.expiration_date = _timestamp(value)
        return self

    def set_voided(self, value: bool = True) -> 'PassDescriptor':
        self.voided = bool(value)
        return self

    def set_max_distance(self, meters: float) -> 'PassDescriptor':
        if meters < 0:
            raise InvalidFieldConfiguration("maxDistance must not be negative")
        self.max_distance = meters
        return self

    def set_grouping_identifier(self, value: str) -> 'PassDescriptor':
        self.grouping_identifier = value
        return self

    def set_app_launch_url(self, value: str) -> 'PassDescriptor':
        self.app_launch_url = value
        return self

    def add_associated_store_identifier(self, identifier: int) -> 'PassDescriptor':
        if self.associated_store_identifiers is None:
            self.associated_store_identifiers = []
        self.associated_store_identifiers.append(int(identifier))
        return self

    def add_location(self, latitude: float, longitude: float, altitude: float = None,
                     relevant_text: str = None) -> 'PassDescriptor':
        location: Dict[str, Any] = {'latitude': latitude, 'longitude': longitude}
        if altitude is not None:
            location['altitude'] = altitude
        if relevant_text is not None:
            location['relevantText'] = relevant_text
        if self.locations is None:
            self.locations = []
        self.locations.append(location)
        return self

    def add_beacon(self, proximity_uuid: str, major: int = None, minor: int = None,
                   relevant_text: str = None) -> 'PassDescriptor':
        beacon: Dict[str, Any] = {'proximityUUID': proximity_uuid}
        if major is not None:
            beacon['major'] = major
        if minor is not None:
            beacon['minor'] = minor
        if relevant_text is not None:
            beacon['relevantText'] = relevant_text
        if self.beacons is None:
            self.beacons = []
        self.beacons.append(beacon)
        return self

    def set_nfc(self, message: str, encryption_public_key: str = None) -> 'PassDescriptor':
        nfc: Dict[str, Any] = {'message': message}
        if encryption_public_key is not None:
            nfc['encryptionPublicKey'] = encryption_public_key
        self.nfc = nfc
        return self

    def set_user_info(self, key: str, value: Any) -> 'PassDescriptor':
        try:
            json.dumps(value, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise InvalidFieldConfiguration(f"userInfo value for '{key}' is not JSON serializable: {e}")
        if self.user_info is None:
            self.user_info = {}
        self.user_info[key] = value
        return self

    # =========================================================================
    # Barcodes
    # =========================================================================

    def set_barcode(self, barcode: Barcode) -> 'PassDescriptor':
        """Set the legacy single barcode."""
        if barcode.format is BarcodeFormat.CODE128:
            raise InvalidFieldConfiguration(
                "PKBarcodeFormatCode128 is only allowed in the barcodes array; use add_barcode()"
            )
        self.barcode = barcode
        return self

    def add_barcode(self, barcode: Barcode) -> 'PassDescriptor':
        """Append to the barcodes array; the device shows the first one it supports."""
        if self.barcodes is None:
            self.barcodes = []
        self.barcodes.append(barcode)
        return self

    def clear_barcodes(self) -> 'PassDescriptor':
        self.barcode = None
        self.barcodes = None
        return self

    # =========================================================================
    # Style
    # =========================================================================

    @property
    def style(self):
        return self.field_group.style if self.field_group is not None else None

    def set_style(self, field_group: FieldGroup) -> FieldGroup:
        """
        Install the field group for this pass's style.

        Replacing the group of the same style is allowed; installing a
        different style on a pass that already has one is not.
        """
        if self.field_group is not None and self.field_group.style is not field_group.style:
            raise ConflictingStyle(
                f"Pass already has style '{self.field_group.style.value}'; "
                f"can't also set '{field_group.style.value}'"
            )
        self.field_group = field_group
        return field_group

    def store_card(self) -> StoreCard:
        return self.set_style(StoreCard())

    def generic(self) -> Generic:
        return self.set_style(Generic())

    def event_ticket(self) -> EventTicket:
        return self.set_style(EventTicket())

    def coupon(self) -> Coupon:
        return self.set_style(Coupon())

    def boarding_pass(self, transit_type: Union[TransitType, str] = TransitType.GENERIC) -> BoardingPass:
        return self.set_style(BoardingPass(transit_type))

    # =========================================================================
    # Validation and serialization
    # =========================================================================

    def missing_attributes(self) -> List[str]:
        missing = [key for attr, key in REQUIRED_ATTRIBUTES if not getattr(self, attr)]
        if self.field_group is None:
            missing.append('style')
        return missing

    def validate(self):
        """Raise if the descriptor can't be exported."""
        missing = self.missing_attributes()
        if missing:
            raise MissingPassAttribute(
                f"Pass descriptor is missing required attributes: {', '.join(missing)}"
            )

    def to_document(self) -> Dict[str, Any]:
        """
        Render the pass.json document.

        Unset optional attributes are omitted rather than written as null.
        The returned dict is independent of the model.
        """
        document: Dict[str, Any] = {'formatVersion': self.format_version}

        for attr, key in REQUIRED_ATTRIBUTES + OPTIONAL_ATTRIBUTES:
            value = getattr(self, attr)
            if value is None or value == '':
                continue
            document[key] = copy.deepcopy(value)

        if self.barcode is not None:
            document['barcode'] = self.barcode.to_dict()
        if self.barcodes:
            document['barcodes'] = [b.to_dict() for b in self.barcodes]

        if self.field_group is not None:
            document[self.field_group.style.value] = self.field_group.to_dict()

        return document

    def to_json(self) -> bytes:
        return json.dumps(self.to_document(), indent=2, ensure_ascii=False).encode('utf-8')

    # =========================================================================
    # Loading from a template
    # =========================================================================

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> 'PassDescriptor':
        """
        Build a descriptor from a parsed pass.json document.

        Placeholder values in the document are kept; missing identifiers stay
        empty so validate() reports them until they are set. Unknown top-level
        keys are logged and dropped.

        Raises:
            InvalidFieldConfiguration: A value has the wrong type or shape
            ConflictingStyle: More than one style key is present
        """
        if not isinstance(document, dict):
            raise InvalidFieldConfiguration(
                f"pass.json must contain a JSON object, got {type(document).__name__}"
            )

        version = document.get('formatVersion', FORMAT_VERSION)
        if version != FORMAT_VERSION or isinstance(version, bool):
            raise InvalidFieldConfiguration(f"Unsupported pass formatVersion: {version!r}")

        descriptor = cls()
        for attr, key in REQUIRED_ATTRIBUTES:
            value = document.get(key, '')
            if not isinstance(value, str):
                raise InvalidFieldConfiguration(f"'{key}' must be a string, got {type(value).__name__}")
            setattr(descriptor, attr, value)

        for attr, key in OPTIONAL_ATTRIBUTES:
            value = document.get(key)
            if value is None:
                continue
            if attr.endswith('_color') or attr == 'max_distance':
                getattr(descriptor, f'set_{attr}')(value)
            else:
                setattr(descriptor, attr, copy.deepcopy(value))

        if document.get('barcode') is not None:
            descriptor.set_barcode(Barcode.from_dict(document['barcode']))
        for entry in document.get('barcodes') or []:
            descriptor.add_barcode(Barcode.from_dict(entry))

        styles = [style for style in PassStyle if style.value in document]
        if len(styles) > 1:
            raise ConflictingStyle(
                f"pass.json has more than one style: {', '.join(s.value for s in styles)}"
            )
        if styles:
            style = styles[0]
            descriptor.set_style(STYLE_GROUPS[style].from_dict(document[style.value]))

        known = {'formatVersion', 'barcode', 'barcodes'}
        known.update(key for _, key in REQUIRED_ATTRIBUTES + OPTIONAL_ATTRIBUTES)
        known.update(style.value for style in PassStyle)
        unknown = sorted(set(document) - known)
        if unknown:
            logger.warning(f"Ignoring unknown pass.json keys: {', '.join(unknown)}")

        return descriptor

    @classmethod
    def from_json(cls, data: Union[bytes, str]) -> 'PassDescriptor':
        try:
            document = json.loads(data)
        except ValueError as e:
            raise TemplateReadError(f"{PASS_FILENAME} is not valid JSON: {e}")
        return cls.from_document(document)

    @classmethod
    def from_bundle(cls, bundle: BundleStore) -> 'PassDescriptor':
        """Seed a descriptor from the pass.json of a loaded template bundle."""
        if PASS_FILENAME not in bundle:
            raise TemplateReadError(f"Template bundle has no {PASS_FILENAME}")
        return cls.from_json(bundle[PASS_FILENAME])

    @classmethod
    def from_path(cls, directory: Union[str, Path]) -> 'PassDescriptor':
        """Seed a descriptor from <directory>/pass.json."""
        path = Path(directory) / PASS_FILENAME
        try:
            data = path.read_bytes()
        except OSError as e:
            raise TemplateReadError(f"Can't read {path}: {e.strerror}")
        logger.debug(f"Loaded pass descriptor template from {path}")
        return cls.from_json(data)

    def __repr__(self):
        style = self.style.value if self.style else None
        return (
            f"PassDescriptor(pass_type_identifier={self.pass_type_identifier!r}, "
            f"serial_number={self.serial_number!r}, style={style!r})"
        )
