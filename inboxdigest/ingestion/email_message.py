"""Raw email records handed to newsletter parsers.

Two sources are supported:
- Gmail API ``users.messages.get(format="full")`` resources (base64url bodies)
- RFC-822 messages (``.eml`` files, mbox archives)

Fetching and authenticating against a mailbox happens elsewhere; this module only
turns already-retrieved payloads into ``EmailMessage`` records.
"""

from __future__ import annotations

import base64
import binascii
import email
import logging
import mailbox
import os
from dataclasses import dataclass
from email import policy
from email.message import EmailMessage as MIMEMessage
from typing import Any, Dict, List, Tuple, Union


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    id: str
    subject: str
    sender: str
    date: str
    html_body: str = ""
    text_body: str = ""
    thread_id: str = ""


def _b64url_decode(data: str) -> str:
    try:
        padded = data + "=" * (-len(data) % 4)
        return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def _gmail_bodies(part: Dict[str, Any]) -> Tuple[str, str]:
    html_body = ""
    text_body = ""
    mime_type = part.get("mimeType") or ""
    data = (part.get("body") or {}).get("data")
    if data:
        decoded = _b64url_decode(data)
        if mime_type == "text/html":
            html_body = decoded
        elif mime_type == "text/plain":
            text_body = decoded
    # Later parts win, matching a depth-first walk of the MIME tree
    for sub in part.get("parts") or []:
        sub_html, sub_text = _gmail_bodies(sub)
        html_body = sub_html or html_body
        text_body = sub_text or text_body
    return html_body, text_body


def from_gmail_payload(message: Dict[str, Any]) -> EmailMessage:
    """Build an ``EmailMessage`` from a Gmail API message resource."""
    payload = message.get("payload") or {}
    headers = {
        (h.get("name") or "").lower(): h.get("value") or ""
        for h in payload.get("headers") or []
    }
    html_body, text_body = _gmail_bodies(payload) if payload else ("", "")
    return EmailMessage(
        id=str(message.get("id") or ""),
        thread_id=str(message.get("threadId") or ""),
        subject=headers.get("subject", ""),
        sender=headers.get("from", ""),
        date=headers.get("date", ""),
        html_body=html_body,
        text_body=text_body,
    )


def _part_text(part: MIMEMessage) -> str:
    try:
        content = part.get_content()
    except (LookupError, UnicodeDecodeError):
        raw = part.get_payload(decode=True) or b""
        return raw.decode("utf-8", errors="replace")
    return content if isinstance(content, str) else ""


def from_mime(msg: MIMEMessage, *, fallback_id: str = "") -> EmailMessage:
    html_body = ""
    text_body = ""
    for part in msg.walk():
        if part.is_multipart() or part.get_content_disposition() == "attachment":
            continue
        ctype = part.get_content_type()
        if ctype == "text/html":
            html_body = _part_text(part)
        elif ctype == "text/plain":
            text_body = _part_text(part)
    return EmailMessage(
        id=str(msg.get("Message-ID") or fallback_id).strip(),
        subject=str(msg.get("Subject") or ""),
        sender=str(msg.get("From") or ""),
        date=str(msg.get("Date") or ""),
        html_body=html_body,
        text_body=text_body,
    )


def from_rfc822(raw: Union[bytes, str], *, fallback_id: str = "") -> EmailMessage:
    """Parse a raw RFC-822 message (``.eml`` contents)."""
    if isinstance(raw, bytes):
        msg = email.message_from_bytes(raw, policy=policy.default)
    else:
        msg = email.message_from_string(raw, policy=policy.default)
    return from_mime(msg, fallback_id=fallback_id)


def load_mailbox(path: str) -> List[EmailMessage]:
    """Load messages from a directory of ``.eml`` files or an mbox file."""
    out: List[EmailMessage] = []
    if os.path.isdir(path):
        for name in sorted(os.listdir(path)):
            if not name.lower().endswith(".eml"):
                continue
            with open(os.path.join(path, name), "rb") as f:
                out.append(from_rfc822(f.read(), fallback_id=name))
        return out
    if not os.path.exists(path):
        logger.warning("Mailbox path does not exist: %s", path)
        return out
    box = mailbox.mbox(path, factory=None, create=False)
    try:
        for key, mbox_msg in box.items():
            msg = email.message_from_bytes(mbox_msg.as_bytes(), policy=policy.default)
            out.append(from_mime(msg, fallback_id=str(key)))
    finally:
        box.close()
    return out
