"""
Soltip Utilities

This module provides helper functions shared across the application:
- Image metadata stripping for uploaded avatars
- Platform fee calculation for tips
- Pagination and request metadata helpers for the API views
- Account emails (verification, password reset), optionally DKIM-signed

Email delivery problems are logged and never surfaced to API clients.
"""

import logging
import math
import smtplib
import email.utils
from decimal import Decimal, ROUND_HALF_UP
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

import dkim
from django.conf import settings
from django.core.mail import send_mail
from PIL import Image

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def strip_image_metadata(path):
    """
    Re-encode an image in place without its metadata.

    Copies only the pixel data into a fresh image so EXIF blocks (camera,
    GPS location, timestamps) are dropped from creator uploads.

    Args:
        path: Filesystem path of the stored image
    """
    with Image.open(path) as img:
        img.load()
        clean = Image.new(img.mode, img.size)
        clean.putdata(list(img.getdata()))
        if img.mode == 'P':
            clean.putpalette(img.getpalette())
            if 'transparency' in img.info:
                clean.info['transparency'] = img.info['transparency']
    clean.save(path)


def calculate_platform_fee(amount, percent=None):
    """
    Calculate the platform fee for a tip.

    Args:
        amount: Tip amount (Decimal, int, float or numeric string)
        percent: Fee percentage; defaults to settings.PLATFORM_FEE_PERCENT

    Returns:
        Decimal: Fee rounded to two decimal places
    """
    if percent is None:
        percent = settings.PLATFORM_FEE_PERCENT
    fee = Decimal(str(amount)) * Decimal(str(percent)) / Decimal('100')
    return fee.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def parse_int(value, default, minimum=1, maximum=None):
    """Parse a query-string integer, falling back to ``default`` on bad input."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    number = max(number, minimum)
    if maximum is not None:
        number = min(number, maximum)
    return number


def paginate(queryset, params, default_limit=DEFAULT_PAGE_SIZE):
    """
    Slice a queryset using ``page``/``limit`` query parameters.

    Returns:
        tuple: (items, pagination) where pagination holds total, page,
        limit and pages
    """
    page = parse_int(params.get('page'), 1)
    limit = parse_int(params.get('limit'), default_limit, maximum=MAX_PAGE_SIZE)
    total = queryset.count()
    offset = (page - 1) * limit
    items = list(queryset[offset:offset + limit])
    return items, {
        'total': total,
        'page': page,
        'limit': limit,
        'pages': math.ceil(total / limit) if total else 0,
    }


def get_client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def get_user_agent(request):
    return request.META.get('HTTP_USER_AGENT', '')[:500]


def send_dkim_email(subject, message, to_email, from_email, dkim_selector, dkim_domain, dkim_key_path, smtp_host, smtp_port, smtp_user, smtp_pass):
    """Send a plain-text email signed with the domain's DKIM key over SMTP SSL."""
    msg = MIMEMultipart()
    msg['From'] = from_email
    msg['To'] = to_email
    msg['Subject'] = subject
    msg['Date'] = email.utils.formatdate()
    msg['Message-ID'] = email.utils.make_msgid(domain=dkim_domain)
    msg.attach(MIMEText(message, "plain"))

    headers = [b"To", b"From", b"Subject", b"Date", b"Message-ID"]
    with open(dkim_key_path, "rb") as fh:
        dkim_private = fh.read()
    sig = dkim.sign(
        message=msg.as_bytes(),
        selector=dkim_selector.encode(),
        domain=dkim_domain.encode(),
        privkey=dkim_private,
        include_headers=headers,
    )
    msg["DKIM-Signature"] = sig.decode()[len("DKIM-Signature: "):]

    with smtplib.SMTP_SSL(smtp_host, smtp_port) as s:
        s.login(smtp_user, smtp_pass)
        s.sendmail(from_email, to_email, msg.as_string())


def send_account_email(subject, message, to_email):
    """
    Deliver an account email.

    Uses DKIM-signed SMTP when a DKIM key is configured, otherwise Django's
    configured email backend (console in development).

    Returns:
        bool: True if the message was handed off successfully
    """
    try:
        if settings.DKIM_KEY_PATH:
            send_dkim_email(
                subject=subject,
                message=message,
                to_email=to_email,
                from_email=settings.DEFAULT_FROM_EMAIL,
                dkim_selector=settings.DKIM_SELECTOR,
                dkim_domain=settings.DKIM_DOMAIN,
                dkim_key_path=settings.DKIM_KEY_PATH,
                smtp_host=settings.EMAIL_HOST,
                smtp_port=settings.EMAIL_PORT,
                smtp_user=settings.EMAIL_HOST_USER,
                smtp_pass=settings.EMAIL_HOST_PASSWORD,
            )
        else:
            send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, [to_email])
    except (smtplib.SMTPException, OSError, dkim.DKIMException, ValueError) as e:
        logger.error("Couldn't send email '%s' to %s: %s", subject, to_email, e)
        return False
    return True


def send_verification_email(creator, token):
    link = f"{settings.FRONTEND_URL}/verify-email/{token}"
    message = (
        "Welcome to Soltip!\n\n"
        f"Confirm your email address by opening the link below:\n{link}\n\n"
        "This link expires in 24 hours."
    )
    return send_account_email("Verify your Soltip email", message, creator.user.email)


def send_password_reset_email(creator, token):
    link = f"{settings.FRONTEND_URL}/reset-password/{token}"
    message = (
        "We received a request to reset your Soltip password.\n\n"
        f"Choose a new password here:\n{link}\n\n"
        "This link expires in 1 hour. If you didn't ask for this, you can ignore this email."
    )
    return send_account_email("Reset your Soltip password", message, creator.user.email)
