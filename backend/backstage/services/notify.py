from __future__ import annotations

import json
import logging
import urllib.parse
import urllib.request

from backstage.core.config import settings

log = logging.getLogger("backstage.notify")


def app_link(path: str, **params: str | None) -> str:
    query = urllib.parse.urlencode({k: v for k, v in params.items() if v})
    return settings.PUBLIC_APP_URL.rstrip("/") + path + ("?" + query if query else "")


def invitation_link(token: str) -> str:
    return app_link("/accept-invitation", token=token)


def send_mail(to: str, subject: str, text: str, *, url: str | None = None, button_text: str | None = None) -> bool:
    """Best-effort mail through the internal mailer service.

    Returns True if the request succeeded, else False. Never raises.
    """
    svc_url = settings.MAILER_SERVICE_URL
    secret = settings.MAILER_SERVICE_SECRET

    if not svc_url:
        log.warning("mail skipped: no MAILER_SERVICE_URL (to=%s)", to)
        return False

    try:
        data_obj = {"to": to, "subject": subject, "text": text}
        if url:
            data_obj["url"] = url
        if button_text:
            data_obj["button_text"] = button_text

        payload = json.dumps(data_obj, ensure_ascii=False).encode("utf-8")
        req = urllib.request.Request(
            svc_url.rstrip("/") + "/send",
            data=payload,
            method="POST",
            headers={
                "Content-Type": "application/json",
                **({"X-Mailer-Secret": secret} if secret else {}),
            },
        )
        with urllib.request.urlopen(req, timeout=5) as resp:
            body = resp.read().decode("utf-8", errors="ignore")
            if 200 <= resp.status < 300:
                if not body:
                    return True
                try:
                    js = json.loads(body)
                    return bool(js.get("ok", True))
                except Exception:
                    return True
            log.warning("mailer send failed status=%s body=%s", resp.status, body[:300])
            return False
    except Exception as e:
        log.exception("mailer send exception: %s", e)
        return False


def notify_invitation(*, email: str, entity_name: str, access: str, token: str, inviter_name: str | None) -> bool:
    who = inviter_name or "Someone"
    link = invitation_link(token)
    text = f"{who} invited you to join {entity_name} as {access}.\n\nOpen the link to accept: {link}"
    return send_mail(
        email,
        f"Invitation to {entity_name}",
        text,
        url=link,
        button_text="Accept invitation",
    )


def notify_email_verification(*, email: str, token: str, next_url: str | None = None) -> bool:
    link = app_link("/verify-email", token=token, next=next_url)
    return send_mail(
        email,
        "Confirm your email address",
        f"Confirm that this address is yours: {link}",
        url=link,
        button_text="Confirm email",
    )


def notify_access_request_verification(*, email: str, name: str, token: str) -> bool:
    link = app_link("/verify-access-email", token=token)
    return send_mail(
        email,
        "Confirm your access request",
        f"Hi {name},\n\nConfirm your email so we can review your request: {link}",
        url=link,
        button_text="Confirm email",
    )
