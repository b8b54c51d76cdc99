"""
errors.py — Exception Taxonomy for the Fulfilment Service

Intake errors are terminal for a single webhook request and are answered
with their HTTP status code. Processing errors propagate out of the worker
so that the message queue redelivers (or dead-letters) the message.
"""


class FulfilmentError(Exception):
    """Base class for all errors raised by the fulfilment service."""


# --- Intake phase ---
class IntakeError(FulfilmentError):
    """A webhook request was rejected. Never retried by the queue."""
    status_code = 500
    public_message = "Internal error"


class UnknownTenantError(IntakeError):
    status_code = 404
    public_message = "Unknown client"

    def __init__(self, slug: str):
        super().__init__(f"No client configured for slug '{slug}'")
        self.slug = slug


class InvalidSignatureError(IntakeError):
    status_code = 401
    public_message = "Invalid HMAC"


class MalformedBodyError(IntakeError):
    status_code = 400
    public_message = "Invalid JSON"


# --- Processing phase ---
class ProcessingError(FulfilmentError):
    """Fatal for one delivery of a queue message, retryable by redelivery."""


class MissingProductMappingError(ProcessingError):
    """One or more personalised lines have no partner product id."""

    def __init__(self, slug: str, missing_skus: list):
        super().__init__(f"Missing product_id mapping for '{slug}': {', '.join(missing_skus)}")
        self.slug = slug
        self.missing_skus = missing_skus


class SubmissionError(ProcessingError):
    """
    The partner API answered with a non-success status.

    Attributes:
        status_code (int): HTTP status returned by the partner API.
        status_text (str): HTTP reason phrase.
        body (str): Response body text, empty if it could not be read.
    """

    def __init__(self, status_code: int, status_text: str, body: str = ""):
        super().__init__(f"Partner API {status_code} {status_text} - {body}")
        self.status_code = status_code
        self.status_text = status_text
        self.body = body


# --- Collaborators ---
class SecretNotFoundError(FulfilmentError):
    """A secret reference could not be resolved. Never answered with empty secrets."""

    def __init__(self, secret_ref: str):
        super().__init__(f"Secret '{secret_ref}' not found")
        self.secret_ref = secret_ref
