from typing import Dict, Iterable, Optional


def mask_value(value: str) -> str:
    if not isinstance(value, str):
        return value
    if "@" in value:  # email
        name, _, domain = value.partition("@")
        return (name[:2] + "***@" + domain) if name else "***@" + domain
    if len(value) > 12:
        return value[:4] + "..." + value[-4:]
    return "***"


def mask_phone(value: str) -> str:
    digits = "".join(ch for ch in str(value or "") if ch.isdigit())
    if len(digits) < 4:
        return "***"
    return "*" * (len(digits) - 4) + digits[-4:]


def sanitize_payload(payload: Dict, allowed_keys: Iterable[str], plain_keys: Optional[Iterable[str]] = None) -> Dict:
    """
    Return a filtered copy of payload with only allowed keys.

    Values are masked unless their key is listed in plain_keys (ids, amounts).
    Phone numbers keep their last four digits.
    """
    plain = set(plain_keys or ())
    result = {}
    for key in allowed_keys:
        if key in payload:
            if key in plain:
                result[key] = payload[key]
            elif "phone" in key:
                result[key] = mask_phone(payload[key])
            else:
                result[key] = mask_value(payload[key])
    return result
