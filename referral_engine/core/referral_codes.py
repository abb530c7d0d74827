from __future__ import annotations

import random
import re
import secrets

ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_LENGTH = 8
FIRST_ORDER_CODE_PREFIX = "BENVENUTO"
FIRST_ORDER_CODE_SUFFIX_LENGTH = 6
MAX_CODE_ATTEMPTS = 10

REFERRAL_CODE_RE = re.compile(rf"^[{ALPHABET}]{{{REFERRAL_CODE_LENGTH}}}$")

_system_rng = secrets.SystemRandom()


def _draw(length: int, rng: random.Random | None) -> str:
    source = rng if rng is not None else _system_rng
    return "".join(source.choice(ALPHABET) for _ in range(length))


def generate_referral_code(
    length: int = REFERRAL_CODE_LENGTH,
    *,
    rng: random.Random | None = None,
) -> str:
    """Generates a short uppercase referral code with low typo ambiguity."""
    if length <= 0:
        raise ValueError("length must be positive")
    return _draw(length, rng)


def generate_first_order_code(*, rng: random.Random | None = None) -> str:
    return FIRST_ORDER_CODE_PREFIX + _draw(FIRST_ORDER_CODE_SUFFIX_LENGTH, rng)


def normalize_referral_code(raw_code: str | None) -> str | None:
    if raw_code is None:
        return None
    normalized = raw_code.strip().upper()
    return normalized or None


def is_valid_referral_code(raw_code: str | None) -> bool:
    normalized = normalize_referral_code(raw_code)
    if normalized is None:
        return False
    return REFERRAL_CODE_RE.fullmatch(normalized) is not None
