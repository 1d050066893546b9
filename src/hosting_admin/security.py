"""Hashing and random-credential helpers."""

import hashlib
import secrets

OTP_LENGTH = 6


def hash_token(value: str) -> str:
    """SHA-256 hex digest used for every stored code and session token."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_otp() -> str:
    """Uniform 6-digit code; leading zeros are kept."""
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def generate_session_token() -> str:
    """256 bits of randomness, hex encoded."""
    return secrets.token_hex(32)


def is_well_formed_otp(code: str) -> bool:
    return len(code) == OTP_LENGTH and code.isascii() and code.isdigit()
