"""
Custom validators for marketplace entities and the mocked signup/checkout steps.
"""

import re

from django.conf import settings
from django.core.exceptions import ValidationError


def marketplace_setting(name):
    """
    Read a key from the MARKETPLACE settings dictionary.

    Args:
        name: Key inside settings.MARKETPLACE

    Returns:
        The configured value
    """
    return settings.MARKETPLACE[name]


def validate_not_blank(value):
    """
    Reject empty or whitespace-only text.

    Raises:
        ValidationError: If value is empty after trimming
    """
    if value is None or not str(value).strip():
        raise ValidationError(
            'This field cannot be blank.',
            code='blank'
        )


def validate_positive_amount(value):
    """
    Validate that a price or bid amount is greater than zero.

    Raises:
        ValidationError: If value is zero or negative
    """
    if value is not None and value <= 0:
        raise ValidationError(
            'Amount must be greater than 0.',
            code='non_positive_amount'
        )


def validate_campus_email(value):
    """
    Validate that an email address belongs to the campus domain.

    The domain comes from settings.MARKETPLACE['EMAIL_DOMAIN'] (e.g. 'utexas.edu').

    Raises:
        ValidationError: If the email is outside the campus domain
    """
    domain = marketplace_setting('EMAIL_DOMAIN')
    if not value or not value.strip().lower().endswith(f'@{domain}'):
        raise ValidationError(
            f'Please use your @{domain} email.',
            code='not_campus_email'
        )


def validate_password_length(value):
    """
    Validate the minimum password length used by the signup form.

    Raises:
        ValidationError: If the password is too short
    """
    minimum = marketplace_setting('MIN_PASSWORD_LENGTH')
    if value is None or len(value) < minimum:
        raise ValidationError(
            f'Password must be at least {minimum} characters.',
            code='password_too_short'
        )


def validate_verification_code(value):
    """
    Validate the shape of a signup verification code (six digits).

    Raises:
        ValidationError: If the code is not exactly six digits
    """
    if not value or not re.fullmatch(r'\d{6}', value):
        raise ValidationError(
            'Enter the 6-digit verification code.',
            code='invalid_code_format'
        )


def validate_card_number(value):
    """
    Validate a mocked card number.

    Spaces are ignored; at least 16 digits are required. No checksum is
    applied because payment is simulated.

    Raises:
        ValidationError: If the card number is too short or has non-digits
    """
    digits = re.sub(r'\s', '', value or '')
    if not digits.isdigit() or len(digits) < 16:
        raise ValidationError(
            'Enter a valid card number.',
            code='invalid_card_number'
        )


def validate_card_expiry(value):
    """
    Validate a mocked card expiry in MM/YY format.

    Raises:
        ValidationError: If expiry is not MM/YY
    """
    if not value or not re.fullmatch(r'\d{2}/\d{2}', value):
        raise ValidationError(
            'Enter expiry as MM/YY.',
            code='invalid_expiry'
        )


def validate_card_cvv(value):
    """
    Validate a mocked card CVV (three or four digits).

    Raises:
        ValidationError: If the CVV is too short or not numeric
    """
    if not value or not value.isdigit() or len(value) < 3:
        raise ValidationError(
            'Enter a valid CVV.',
            code='invalid_cvv'
        )


def validate_id_image(image):
    """
    Validate an uploaded student ID image.

    Checks:
    - File size (max 5MB)
    - File format (jpg, jpeg, png, webp)

    Args:
        image: UploadedFile object

    Raises:
        ValidationError: If image is invalid
    """
    if not image:
        return

    max_size = 5 * 1024 * 1024
    if image.size > max_size:
        raise ValidationError(
            f'Image file size cannot exceed 5MB. Current size: {image.size / (1024 * 1024):.2f}MB',
            code='image_too_large'
        )

    valid_extensions = ['jpg', 'jpeg', 'png', 'webp']
    file_name = image.name.lower()

    if not any(file_name.endswith(f'.{ext}') for ext in valid_extensions):
        raise ValidationError(
            f'Invalid image format. Allowed formats: {", ".join(valid_extensions)}',
            code='invalid_image_format'
        )

    valid_content_types = [
        'image/jpeg',
        'image/png',
        'image/webp'
    ]

    if hasattr(image, 'content_type') and image.content_type:
        if image.content_type not in valid_content_types:
            raise ValidationError(
                f'Invalid image content type: {image.content_type}',
                code='invalid_content_type'
            )
