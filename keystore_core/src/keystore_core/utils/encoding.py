import base64
import binascii

from ..exceptions import DecodeError


def b64e(data: bytes) -> str:
    """URL-safe base64 encode without padding"""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64d(value: str) -> bytes:
    """Strict URL-safe base64 decode that tolerates missing padding"""
    pad = "=" * (-len(value) % 4)
    try:
        return base64.b64decode((value + pad).encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
        raise DecodeError("Value is not valid base64") from exc
