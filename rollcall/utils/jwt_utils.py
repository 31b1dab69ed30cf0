# utils/jwt_utils.py
import jwt

from rollcall.errors import DecodeError

JWT_ALGO = "HS256"
TOKEN_VERSION = 1


class TokenCodec:
    """Signs and verifies redemption tokens.

    A token is a compact HS256 JWT (URL-safe text) whose claims are::

        {"v": 1, "sid": <session id>, "n": <rotation nonce>}

    The JWT signature is the integrity tag. No expiry claim is embedded:
    liveness is decided by the session, so the codec stays a pure function of
    its inputs and the secret.
    """

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("a signing secret is required")
        self._secret = secret

    def mint(self, session_id: str, nonce: str) -> str:
        payload = {"v": TOKEN_VERSION, "sid": str(session_id), "n": str(nonce)}
        # pyjwt returns str in v2+
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGO)

    def mint_for(self, session) -> str:
        return self.mint(session.id, session.nonce)

    def decode(self, token: str):
        """Return ``(session_id, nonce)`` or raise :class:`DecodeError`."""
        if not isinstance(token, str) or not token:
            raise DecodeError()
        try:
            payload = jwt.decode(
                token.strip(),
                self._secret,
                algorithms=[JWT_ALGO],
                options={"require": ["v", "sid", "n"]},
            )
        except (jwt.InvalidTokenError, UnicodeError):
            # Lone surrogates fail while PyJWT encodes the text to bytes
            raise DecodeError() from None

        session_id = payload.get("sid")
        nonce = payload.get("n")
        if payload.get("v") != TOKEN_VERSION:
            raise DecodeError()
        if not isinstance(session_id, str) or not isinstance(nonce, str):
            raise DecodeError()
        if not session_id or not nonce:
            raise DecodeError()
        return session_id, nonce
