"""
Signature Service for Processor Messages

Implements HMAC signature generation and verification over the ordered
signature fields of a message. The processor deploys HMAC-SHA256 with the
base64-decoded signing key; the digest travels as lowercase hex.
"""
import base64
import binascii
import hashlib
import hmac
import logging
from typing import Iterable, Optional

from ..config import settings
from ..exceptions import ConfigurationError
from ..models.message import SignableMessage

logger = logging.getLogger(__name__)


SEPARATOR = ","

ALGORITHMS = {
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}


def canonicalize(fields: Iterable[Optional[str]]) -> str:
    """
    Create the canonical string representation for signing.

    Fields keep their order; missing values become empty strings.
    """
    return SEPARATOR.join("" if field is None else str(field) for field in fields)


def decode_signing_key(signing_key: str) -> bytes:
    """
    Decode the base64 signing key from the processor dashboard.

    Raises:
        ConfigurationError: If the key is empty or not valid base64
    """
    if not signing_key:
        raise ConfigurationError("Signing key is not configured.")

    try:
        return base64.b64decode(signing_key, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"Signing key is not valid base64: {e}")


class SignatureService:
    """
    Sign and verify processor messages.

    Args:
        signing_key: Base64 signing key shared with the processor
        algorithm: HMAC digest, "sha256" (deployed) or "sha512"
    """

    def __init__(self, signing_key: str, algorithm: str = "sha256"):
        if algorithm not in ALGORITHMS:
            raise ConfigurationError(
                f"Unsupported signature algorithm: {algorithm}",
                {"supported": sorted(ALGORITHMS)}
            )

        self._key = decode_signing_key(signing_key)
        self._digest = ALGORITHMS[algorithm]
        self.algorithm = algorithm
        self.signature_length = self._digest().digest_size * 2

    def get_signature(self, message: SignableMessage) -> str:
        """
        Compute the signature of a message from its current field values.

        Returns:
            Lowercase hex HMAC digest
        """
        canonical_data = canonicalize(message.signature_fields())

        return hmac.new(
            self._key,
            canonical_data.encode("utf-8"),
            self._digest
        ).hexdigest()

    def sign(self, message: SignableMessage) -> str:
        """Signature for an outbound message."""
        return self.get_signature(message)

    def verify(self, message: SignableMessage) -> bool:
        """
        Verify the signature a message carries, using constant-time comparison.

        Returns:
            True if the carried signature matches, False otherwise
            (including when either signature is empty)
        """
        expected_signature = self.get_signature(message)

        if not expected_signature:
            return False

        carried_signature = message.signature

        if not carried_signature:
            logger.debug(f"{type(message).__name__} carries no signature")
            return False

        # Constant-time comparison
        return hmac.compare_digest(
            expected_signature.encode("utf-8"),
            carried_signature.strip().lower().encode("utf-8")
        )


def get_signature_service() -> SignatureService:
    """Signature service for the configured signing key."""
    return SignatureService(settings.signing_key, settings.signature_algorithm)
