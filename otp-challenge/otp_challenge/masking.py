"""
Display Masking
===============
Mask recipient identifiers and codes for display and logs.
"""


def mask_email(email: str) -> str:
    """
    Mask an email address for display.

    Example: ``john.doe@gmail.com`` -> ``j***@gmail.com``
    """
    username, sep, domain = email.partition("@")
    if not username or not sep or not domain:
        return email

    return f"{username[0]}***@{domain}"


def mask_phone(phone: str) -> str:
    """
    Mask a phone number for display.

    Example: ``+923001234567`` -> ``+92********67``
    """
    if len(phone) < 4:
        return phone

    if len(phone) < 6:
        # Too short to show both ends without revealing everything
        return "*" * (len(phone) - 2) + phone[-2:]

    return phone[:3] + "*" * (len(phone) - 5) + phone[-2:]


def mask_recipient(recipient: str) -> str:
    """Mask an email or phone, whichever the recipient looks like."""
    if "@" in recipient:
        return mask_email(recipient)
    return mask_phone(recipient)


def mask_code(code: str) -> str:
    """Mask an OTP code for logs. Only the length survives."""
    if not code:
        return ""
    return "*" * len(code)
