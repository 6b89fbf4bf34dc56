"""Input validation schemas and sanitizers for user-supplied data."""

from security_kernel.validation.sanitize import (
    ALLOWED_HTML_TAGS,
    UploadCheck,
    sanitize_email,
    sanitize_filename,
    sanitize_html,
    sanitize_phone,
    sanitize_tax_id,
    sanitize_text,
    sanitize_url,
    validate_file_upload,
)
from security_kernel.validation.schemas import CompanyInput, TransactionInput, UserInput
from security_kernel.validation.validator import (
    FieldError,
    MultiLayerValidator,
    ValidationLayer,
    ValidationResult,
    validate_before_db,
    validate_request,
)

__all__ = [
    "ALLOWED_HTML_TAGS",
    "UploadCheck",
    "sanitize_email",
    "sanitize_filename",
    "sanitize_html",
    "sanitize_phone",
    "sanitize_tax_id",
    "sanitize_text",
    "sanitize_url",
    "validate_file_upload",
    "CompanyInput",
    "TransactionInput",
    "UserInput",
    "FieldError",
    "MultiLayerValidator",
    "ValidationLayer",
    "ValidationResult",
    "validate_before_db",
    "validate_request",
]
