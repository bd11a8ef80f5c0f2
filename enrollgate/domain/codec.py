"""
Secret codec - One-time code generation and hashing.

Codes are 6-digit strings drawn from the secrets module. Only a bcrypt
hash of the code is ever stored; verification goes through bcrypt's
constant-time comparison.
"""

import secrets
from dataclasses import dataclass

import bcrypt

CODE_LENGTH = 6
_CODE_FLOOR = 100000
_CODE_SPAN = 900000  # codes cover [100000, 999999]


def is_code_shaped(code: object) -> bool:
    """True if code is a 6-character string of ASCII digits."""
    return (
        isinstance(code, str)
        and len(code) == CODE_LENGTH
        and code.isascii()
        and code.isdigit()
    )


@dataclass(frozen=True)
class SecretCodec:
    """Stateless generate/hash/verify for verification codes."""

    cost: int = 10

    def generate(self) -> str:
        """
        Generate cryptographically secure 6-digit verification code.

        Uniform over [100000, 999999], so the string never has a leading zero.
        """
        return str(_CODE_FLOOR + secrets.randbelow(_CODE_SPAN))

    def hash(self, code: str) -> str:
        """Hash a code with bcrypt using a fresh salt."""
        return bcrypt.hashpw(code.encode(), bcrypt.gensalt(rounds=self.cost)).decode()

    def verify(self, code: str, code_hash: str) -> bool:
        """
        Check a submitted code against a stored hash.

        Malformed codes and malformed hashes return False instead of raising.
        """
        if not is_code_shaped(code):
            return False
        try:
            return bcrypt.checkpw(code.encode(), code_hash.encode())
        except (ValueError, TypeError, AttributeError):
            return False
