# coffee_stand/passwords.py
import hmac
from typing import Optional

import bcrypt

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
MIN_PASSWORD_LENGTH = 6


def is_hashed(stored: Optional[str]) -> bool:
    return isinstance(stored, str) and stored.startswith(BCRYPT_PREFIXES)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, stored: Optional[str]) -> bool:
    """Checks a bcrypt hash, or falls back to comparing legacy plain-text cells."""
    if not password or not stored:
        return False
    if is_hashed(stored):
        try:
            return bcrypt.checkpw(password.encode(), stored.encode())
        except ValueError:
            # looked like bcrypt but isn't a valid salt
            return False
    return hmac.compare_digest(password.encode(), stored.encode())


def needs_password_change(stored: Optional[str]) -> bool:
    return not is_hashed(stored)


def validate_new_password(current: str, new: str) -> Optional[str]:
    if not current or not new:
        return "Текущий и новый пароли обязательны"
    if len(new) < MIN_PASSWORD_LENGTH:
        return f"Новый пароль должен быть не менее {MIN_PASSWORD_LENGTH} символов"
    if new == current:
        return "Новый пароль не должен совпадать с текущим"
    return None
