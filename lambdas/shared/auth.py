"""Bearer token verification."""

from aws_lambda_powertools import Logger
from jose import jwt
from jose.exceptions import JWTError

from .exceptions import Unauthenticated
from .utils import get_header

logger = Logger(child=True)

JWT_ALGORITHMS = ["HS256"]


def parse_bearer(header: str | None) -> str | None:
    """Pull the token out of an Authorization header value."""
    if not header:
        return None
    parts = header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


class IdentityVerifier:
    """Verifies HS256 access tokens and returns the subject."""

    def __init__(self, secret: str | None, audience: str | None = "authenticated"):
        """Initialize verifier.

        Args:
            secret: Shared signing secret. Without one every token is rejected.
            audience: Expected aud claim, or None to skip the check
        """
        self.secret = secret
        self.audience = audience

    def verify(self, headers: dict[str, str] | None) -> str | None:
        """Get the verified user id for a request.

        Args:
            headers: Request headers

        Returns:
            User id (token sub), or None if unauthenticated
        """
        token = parse_bearer(get_header(headers, "authorization"))
        if not token or not self.secret:
            return None
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=JWT_ALGORITHMS,
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            logger.info("Rejected access token", extra={"error": str(e)})
            return None
        subject = claims.get("sub")
        return subject if isinstance(subject, str) and subject else None

    def require_user_key(self, headers: dict[str, str] | None) -> str:
        """Get the user key for a request or refuse it.

        An X-User-Id header, when sent, must match the token subject.

        Raises:
            Unauthenticated: Missing/invalid token or mismatched header
        """
        user_id = self.verify(headers)
        if not user_id:
            raise Unauthenticated("Unauthorized")
        header_user_id = (get_header(headers, "x-user-id") or "").strip()
        if header_user_id and header_user_id != user_id:
            raise Unauthenticated("Unauthorized (mismatch)")
        return f"user:{user_id}"
