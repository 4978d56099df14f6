# core/notifications.py

import logging
from functools import lru_cache

from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string
from twilio.rest import Client as TwilioClient
from twilio.base.exceptions import TwilioRestException

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_twilio_client():
    sid = getattr(settings, "TWILIO_ACCOUNT_SID", None)
    token = getattr(settings, "TWILIO_AUTH_TOKEN", None)
    if not all([sid, token, getattr(settings, "TWILIO_PHONE_NUMBER", None)]):
        return None
    return TwilioClient(sid, token)


def send_notification(recipient, subject, template_prefix, context):
    """
    Email ``recipient`` using ``<template_prefix>.txt``/``.html`` and, when
    Twilio is configured and the user has a phone number, send an SMS too.
    Delivery failures are logged and never raised.
    """
    if not getattr(recipient, "email", None):
        logger.warning(f"Attempted to send notification to recipient {recipient} but they have no email.")
        return

    text_body = ""
    try:
        text_body = render_to_string(f"{template_prefix}.txt", context)
        html_body = render_to_string(f"{template_prefix}.html", context)
        send_mail(
            subject=subject,
            message=text_body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient.email],
            html_message=html_body,
            fail_silently=False,
        )
    except Exception as e:
        logger.error(f"Failed to send email for template {template_prefix} to {recipient.email}: {e}")

    twilio_client = get_twilio_client()
    phone_number = getattr(recipient, "phone_number", None)
    if twilio_client and phone_number:
        sms_body = context.get("sms_text", text_body[:160])
        try:
            twilio_client.messages.create(
                body=sms_body,
                from_=settings.TWILIO_PHONE_NUMBER,
                to=str(phone_number),
            )
        except TwilioRestException as e:
            logger.error(f"Failed to send SMS to {phone_number}: {e}")
