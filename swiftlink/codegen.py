"""Random short-code generation.

Codes are sampled with nanoid, which draws from ``os.urandom``, so every symbol
is chosen uniformly from the 62-character alphabet by a cryptographically
strong source. Generation is stateless and can be called repeatedly when a
candidate collides with an existing code.
"""

from collections.abc import Callable

from nanoid import generate

from swiftlink.config import get_settings

__all__ = ["ALPHABET", "CodeGenerator", "generate_short_code"]

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"

# Zero-argument callable producing a candidate code; injected into the
# shortening service so tests can script collisions.
CodeGenerator = Callable[[], str]


def generate_short_code(length: int | None = None) -> str:
    if length is None:
        length = get_settings().SHORT_CODE_LENGTH
    assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
    return generate(ALPHABET, length)
