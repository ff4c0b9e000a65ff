from passlib.context import CryptContext


_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plaintext password with a fresh random salt."""
    return _pwd_context.hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a stored hash.

    Returns False on mismatch. Raises ValueError when the stored hash is not
    a recognised bcrypt hash.
    """
    return _pwd_context.verify(password, password_hash)


# PUBLIC_INTERFACE
def normalize_email(email: str) -> str:
    """Canonical form used for storing and looking up login emails."""
    return email.strip().lower()
