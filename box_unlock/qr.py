"""
QR payload parsing.

Box labels carry the box id as a bare decimal string.
"""

from __future__ import annotations

from box_unlock.errors import InvalidQRCodeError


def parse_box_qr(payload: str | None) -> int:
    """Parse a scanned QR payload into a box id.

    Args:
        payload: Raw text read from the QR code.

    Returns:
        The box id.

    Raises:
        InvalidQRCodeError: If the payload is not a non-empty run of digits.
    """
    if payload is None:
        raise InvalidQRCodeError("")

    text = payload.strip()
    # str.isdigit() accepts superscripts and other unicode digits
    if not text or not (text.isascii() and text.isdigit()):
        raise InvalidQRCodeError(payload)

    return int(text)
