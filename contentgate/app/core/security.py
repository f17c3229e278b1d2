import secrets
import uuid


def generate_otp(length: int = 6) -> str:
    """Generate a numeric one-time code.

    Uses the `secrets` module so codes are not predictable from earlier ones.

    Args:
        length: Number of digits.

    Returns:
        A zero-padded string of exactly ``length`` digits.
    """
    if length < 1:
        raise ValueError("OTP length must be at least 1")
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def generate_login_token() -> str:
    return str(uuid.uuid4())


def constant_time_equals(expected: str, candidate: str) -> bool:
    """Compare two secrets without leaking the matching prefix length.

    A length mismatch fails immediately; codes have a fixed length so this
    reveals nothing useful. Equal-length values are always compared in full.

    Args:
        expected: The stored value
        candidate: The value supplied by the caller

    Returns:
        True if the values are identical, False otherwise
    """
    a = expected.encode("utf-8")
    b = str(candidate).encode("utf-8")
    if len(a) != len(b):
        return False
    return secrets.compare_digest(a, b)
