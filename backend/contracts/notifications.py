# contracts/notifications.py

from django.conf import settings

from core.notifications import send_notification

HEADLINES = {
    "contract": "Your contract is now {status}.",
    "cancelticket": "A cancellation request is now {status}.",
    "revisionticket": "A revision request is now {status}.",
    "changeticket": "A contract change request is now {status}.",
    "progressuploadmilestone": "A milestone delivery is now {status}.",
    "revisionupload": "A revision delivery is now {status}.",
    "finalupload": "The final delivery is now {status}.",
    "resolutionticket": "A dispute on your contract is now {status}.",
}


def contract_link(contract):
    return f"{settings.FRONTEND_URL}/contracts/{contract.pk}"


def notify_lifecycle_change(instance):
    """Email (and SMS) both parties about a status change on ``instance``."""
    contract = instance if instance._meta.model_name == "contract" else instance.contract
    status_label = instance.get_status_display() if instance.status else "posted"
    headline = HEADLINES.get(instance._meta.model_name, "Your contract was updated ({status}).").format(
        status=status_label.lower()
    )
    detail = getattr(instance, "rejection_reason", "") or getattr(instance, "resolution_note", "")
    link = contract_link(contract)

    for recipient in (contract.client, contract.artist):
        context = {
            "recipient_name": str(recipient),
            "headline": headline,
            "contract": contract,
            "status_label": status_label,
            "detail": detail,
            "link": link,
            "site_name": settings.SITE_NAME,
            "sms_text": f"{contract.number}: {headline} {link}",
        }
        send_notification(
            recipient=recipient,
            subject=f"[{contract.number}] {headline}",
            template_prefix="emails/contract_update",
            context=context,
        )
