# wallet_pass/models/barcode.py

"""Barcode shown on the front of a pass."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from wallet_pass.exceptions import InvalidFieldConfiguration


class BarcodeFormat(Enum):
    """Barcode symbologies supported by Apple Wallet"""
    QR = 'PKBarcodeFormatQR'
    PDF417 = 'PKBarcodeFormatPDF417'
    AZTEC = 'PKBarcodeFormatAztec'
    CODE128 = 'PKBarcodeFormatCode128'


DEFAULT_MESSAGE_ENCODING = 'iso-8859-1'


@dataclass
class Barcode:
    """
    Barcode payload and symbology.

    Code128 is only valid inside the `barcodes` array of a pass, never as the
    legacy single `barcode` entry.
    """
    message: str
    format: BarcodeFormat = BarcodeFormat.QR
    alt_text: Optional[str] = None
    message_encoding: str = DEFAULT_MESSAGE_ENCODING

    def __post_init__(self):
        if not isinstance(self.format, BarcodeFormat):
            try:
                self.format = BarcodeFormat(self.format)
            except ValueError:
                raise InvalidFieldConfiguration(f"Unknown barcode format: {self.format!r}")
        if not isinstance(self.message, str) or not self.message:
            raise InvalidFieldConfiguration("Barcode message must be a non-empty string")
        if not self.message_encoding:
            raise InvalidFieldConfiguration("Barcode message encoding must not be empty")

    @classmethod
    def qr(cls, message: str, alt_text: Optional[str] = None) -> 'Barcode':
        return cls(message=message, format=BarcodeFormat.QR, alt_text=alt_text)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Barcode':
        if not isinstance(data, dict) or 'message' not in data or 'format' not in data:
            raise InvalidFieldConfiguration(f"Barcode needs 'message' and 'format': {data!r}")
        return cls(
            message=data['message'],
            format=data['format'],
            alt_text=data.get('altText'),
            message_encoding=data.get('messageEncoding', DEFAULT_MESSAGE_ENCODING),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'format': self.format.value,
            'message': self.message,
            'messageEncoding': self.message_encoding,
        }
        if self.alt_text is not None:
            data['altText'] = self.alt_text
        return data
