from passlib.context import CryptContext
from passlib.exc import UnknownHashError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class SecurityUtils:
    """Password hashing for stored user credentials (bcrypt)"""

    @staticmethod
    def hash_password(plain_password: str) -> str:
        return pwd_context.hash(plain_password)

    @staticmethod
    def verify_password(plain_password: str, password_hash: str) -> bool:
        """Check a login password; unreadable stored hashes never match."""
        try:
            return pwd_context.verify(plain_password, password_hash)
        except (UnknownHashError, ValueError):
            return False
