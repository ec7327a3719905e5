"""
Payment gateway utility functions (Paystack transaction verification)
"""
import json
import urllib.error
import urllib.parse
import urllib.request

from flask import current_app

from utils.payment_errors import ProviderUnavailable


def verify_paystack_transaction(reference):
    """
    Ask Paystack for the current state of a transaction reference.

    Args:
        reference: Paystack transaction reference

    Returns:
        dict: Decoded Paystack response ({"status": bool, "message": str, "data": {...}})

    Raises:
        ProviderUnavailable: Paystack could not be reached or answered with non-JSON
    """
    base_url = current_app.config.get('PAYSTACK_API_URL', 'https://api.paystack.co')
    secret_key = current_app.config.get('PAYSTACK_SECRET_KEY', '')
    timeout = current_app.config.get('PAYSTACK_VERIFY_TIMEOUT', 10)

    url = f"{base_url}/transaction/verify/{urllib.parse.quote(str(reference), safe='')}"
    req = urllib.request.Request(url, method="GET", headers={
        "Authorization": f"Bearer {secret_key}",
        "Content-Type": "application/json",
    })

    try:
        with urllib.request.urlopen(req, timeout=timeout) as r:
            raw = r.read().decode("utf-8")
    except urllib.error.HTTPError as e:
        # Paystack reports unknown references as 4xx with a JSON body
        raw = e.read().decode("utf-8", errors="replace")
    except (urllib.error.URLError, OSError) as e:
        current_app.logger.error(f"Paystack verify request failed for {reference}: {str(e)}", exc_info=True)
        raise ProviderUnavailable("Could not reach Paystack") from e

    try:
        result = json.loads(raw)
    except ValueError as e:
        current_app.logger.error(f"Could not parse Paystack verify response for {reference}: {raw[:200]}")
        raise ProviderUnavailable("Could not parse provider response") from e

    if not isinstance(result, dict):
        raise ProviderUnavailable("Could not parse provider response")
    return result
