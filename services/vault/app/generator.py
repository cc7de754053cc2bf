from __future__ import annotations

import secrets
import string

from services.vault.app.errors import RangeError
from services.vault.app.schemas import GenerationOptions


MIN_LENGTH = 8
MAX_LENGTH = 128

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
DIGITS = string.digits
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

# Used when no class is selected. Symbols are deliberately left out.
DEFAULT_CHARSET = LOWERCASE + UPPERCASE + DIGITS


def build_charset(options: GenerationOptions) -> str:
    charset = ""
    if options.include_uppercase:
        charset += UPPERCASE
    if options.include_lowercase:
        charset += LOWERCASE
    if options.include_numbers:
        charset += DIGITS
    if options.include_symbols:
        charset += SYMBOLS
    return charset or DEFAULT_CHARSET


def generate_password(options: GenerationOptions) -> str:
    """
    Draw `options.length` characters independently and uniformly from the
    selected character classes using the OS CSPRNG.

    No class is guaranteed to appear in the result.
    """
    if not MIN_LENGTH <= options.length <= MAX_LENGTH:
        raise RangeError("length", options.length, MIN_LENGTH, MAX_LENGTH)
    charset = build_charset(options)
    return "".join(secrets.choice(charset) for _ in range(options.length))
