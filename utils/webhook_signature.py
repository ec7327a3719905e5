"""
Webhook signature verification (HMAC over the raw request body).
"""
import enum
import hashlib
import hmac


class VerificationResult(enum.Enum):
    VERIFIED = "verified"
    SKIPPED = "skipped"  # no secret configured
    MISSING = "missing"
    INVALID = "invalid"


def compute_signature(raw_body, secret, algorithm="sha512"):
    """Hex HMAC digest of raw_body keyed with secret."""
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    return hmac.new(secret, raw_body, getattr(hashlib, algorithm)).hexdigest()


def verify(raw_body, signature_header, secret, algorithm="sha512"):
    """
    Check signature_header against an HMAC of the exact bytes received.

    Args:
        raw_body: Request body bytes as received (never re-serialized JSON)
        signature_header: Hex signature sent by the provider, or None
        secret: Shared secret; empty/None disables verification
        algorithm: hashlib algorithm name used by the provider

    Returns:
        VerificationResult
    """
    if not secret:
        return VerificationResult.SKIPPED
    if not signature_header:
        return VerificationResult.MISSING

    expected = compute_signature(raw_body, secret, algorithm)
    supplied = signature_header.strip().encode("utf-8")
    if hmac.compare_digest(expected.encode("ascii"), supplied):
        return VerificationResult.VERIFIED
    return VerificationResult.INVALID
