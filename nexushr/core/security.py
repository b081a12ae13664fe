import hmac
import logging
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def is_password_hash(value: str) -> bool:
    return bool(value) and pwd_context.identify(value) is not None


def verify_password(plain_password: str, stored: str) -> bool:
    """
    Check a password against the stored value.

    Records written by older clients carry the password in plain text;
    those are compared in constant time instead of failing the login.
    """
    if not stored:
        return False
    if is_password_hash(stored):
        return pwd_context.verify(plain_password, stored)
    logger.warning("Comparing against a legacy plaintext password")
    return hmac.compare_digest(plain_password.encode(), stored.encode())
