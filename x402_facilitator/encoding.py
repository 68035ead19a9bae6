"""Transport encoding for payment headers: base64 of JSON."""

import base64
from typing import Union

from .errors import InvalidEncodingError
from .schemas import PaymentPayload, PaymentRequirements


def safe_base64_encode(data: Union[str, bytes]) -> str:
    """Safely encode string or bytes to base64 string.

    Args:
        data: String or bytes to encode

    Returns:
        Base64 encoded string
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("utf-8")


def safe_base64_decode(data: str) -> str:
    """Decode a base64 string and then the utf-8 text inside it.

    Raises:
        binascii.Error: On invalid base64 (including bad padding).
        UnicodeDecodeError: If the decoded bytes are not utf-8.
    """
    return base64.b64decode(data, validate=True).decode("utf-8")


def encode_payment(payload: PaymentPayload) -> str:
    """Encode a payment payload for the ``X-Payment`` header."""
    return safe_base64_encode(payload.model_dump_json(by_alias=True))


def decode_payment(header: str) -> PaymentPayload:
    """Decode an ``X-Payment`` header value.

    This is the most adversarial input the facilitator sees, so every
    failure is reported as ``InvalidEncodingError`` and nothing else.

    Raises:
        InvalidEncodingError: If the header is not base64(JSON(PaymentPayload)).
    """
    try:
        json_str = safe_base64_decode(header)
        return PaymentPayload.model_validate_json(json_str)
    except (ValueError, TypeError) as e:
        raise InvalidEncodingError(f"Invalid payment header encoding: {e}") from e


def encode_requirements(requirements: PaymentRequirements) -> str:
    """Encode requirements for the ``X-Payment-Requirements`` header."""
    return safe_base64_encode(requirements.model_dump_json(by_alias=True))


def decode_requirements(header: str) -> PaymentRequirements:
    """Decode an ``X-Payment-Requirements`` header value.

    Raises:
        InvalidEncodingError: If the header cannot be decoded.
    """
    try:
        json_str = safe_base64_decode(header)
        return PaymentRequirements.model_validate_json(json_str)
    except (ValueError, TypeError) as e:
        raise InvalidEncodingError(f"Invalid payment requirements encoding: {e}") from e
