"""Username/password credential validation (RFC 1929)."""

import hmac


class CredentialValidator:
    """Check credentials against one configured username/password pair.

    There is no hashing, rate limiting or lockout: a mismatch simply ends the
    connection that supplied it.
    """

    def __init__(self, username: str, password: str) -> None:
        self._username = username.encode()
        self._password = password.encode()

    @property
    def username(self) -> str:
        return self._username.decode()

    def validate(self, username: str, password: str) -> bool:
        """Return True if both values match exactly."""
        user_ok = hmac.compare_digest(username.encode(), self._username)
        pass_ok = hmac.compare_digest(password.encode(), self._password)
        return user_ok and pass_ok
