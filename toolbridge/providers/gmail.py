"""
Gmail tools: send, list, get, list labels and create label.

All calls go through the Gmail API v1 with the shared OAuth2 bundle. The list
tool makes one messages.list call and then fetches the metadata of every
returned id in a single batch request; a failure of any entry fails the
whole invocation.
"""

import base64
import binascii
import html
import logging
from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from email.utils import parsedate_to_datetime

from toolbridge.credentials import ProviderKind, resolve
from toolbridge.errors import EmptyResultError
from toolbridge.markdown import MarkdownDocument, strip_tags
from toolbridge.providers import google_api
from toolbridge.resolvers import Resolver, text
from toolbridge.schemas import (
    CreateLabelRequest,
    GetEmailRequest,
    ListEmailsRequest,
    ListLabelsRequest,
    SendEmailRequest,
)

logger = logging.getLogger(__name__)

SERVICE = "Gmail"
USER_ID = "me"

BODY_LIMIT = 20000
TRUNCATION_MARKER = "[Email body truncated - content too long]"

METADATA_HEADERS = ["From", "To", "Subject", "Date"]

NO_EMAILS = "No emails found matching your search criteria."
NO_LABELS = "No labels found."

INLINE_BODY = Resolver("inline_body", "payload.body.data")


# ---------------------------------------------------------------------------
# Normalized result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EmailSummary:
    id: str
    thread_id: str | None
    sender: str | None
    to: str | None
    subject: str | None
    date: str | None
    snippet: str | None
    label_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class EmailMessage:
    id: str
    thread_id: str | None
    sender: str | None
    to: str | None
    cc: str | None
    bcc: str | None
    subject: str | None
    date: str | None
    body: str
    truncated: bool = False


@dataclass(frozen=True)
class MailLabel:
    id: str
    name: str
    type: str
    messages_total: int | None = None
    messages_unread: int | None = None


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------
# Gmail returns headers as a list of name/value pairs and bodies as base64url
# MIME parts. The inline payload body wins; otherwise the part tree is
# searched depth-first for text/plain, then for text/html with the tags
# stripped. Bodies over BODY_LIMIT characters are cut and marked.


def header(message: dict, name: str) -> str | None:
    """Case-insensitive header lookup on a Gmail message resource."""
    headers = (message.get("payload") or {}).get("headers") or []
    wanted = name.lower()
    for entry in headers:
        if isinstance(entry, dict) and str(entry.get("name", "")).lower() == wanted:
            return text(entry.get("value"))
    return None


def decode_body(data: str) -> str:
    """Decode Gmail's base64url body data (padding is frequently omitted)."""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def _find_part(part: dict, mime_type: str) -> str | None:
    if part.get("mimeType") == mime_type:
        data = (part.get("body") or {}).get("data")
        if data:
            return decode_body(data)
    for child in part.get("parts") or []:
        if isinstance(child, dict):
            found = _find_part(child, mime_type)
            if found is not None:
                return found
    return None


def extract_body(message: dict) -> str:
    """
    Pick the readable body of a full-format message.

    Order: the payload's own body data, then the first text/plain part
    (searched depth-first through nested multiparts), then the first
    text/html part with its tags stripped.
    """
    payload = message.get("payload") or {}
    inline = INLINE_BODY.resolve(message)
    if inline:
        body = decode_body(inline)
        return strip_tags(body) if payload.get("mimeType") == "text/html" else body
    plain = _find_part(payload, "text/plain")
    if plain is not None:
        return plain
    rich = _find_part(payload, "text/html")
    if rich is not None:
        return strip_tags(rich)
    return ""


def truncate_body(body: str) -> tuple[str, bool]:
    if len(body) <= BODY_LIMIT:
        return body, False
    return f"{body[:BODY_LIMIT]}\n\n{TRUNCATION_MARKER}", True


def normalize_summary(message: dict) -> EmailSummary:
    snippet = text(message.get("snippet"))
    return EmailSummary(
        id=message.get("id", ""),
        thread_id=message.get("threadId"),
        sender=header(message, "From"),
        to=header(message, "To"),
        subject=header(message, "Subject"),
        date=header(message, "Date"),
        snippet=html.unescape(snippet) if snippet else None,
        label_ids=tuple(message.get("labelIds") or ()),
    )


def normalize_message(message: dict) -> EmailMessage:
    body, truncated = truncate_body(extract_body(message))
    return EmailMessage(
        id=message.get("id", ""),
        thread_id=message.get("threadId"),
        sender=header(message, "From"),
        to=header(message, "To"),
        cc=header(message, "Cc"),
        bcc=header(message, "Bcc"),
        subject=header(message, "Subject"),
        date=header(message, "Date"),
        body=body,
        truncated=truncated,
    )


def normalize_labels(raw: dict) -> tuple[MailLabel, ...]:
    labels = []
    for record in raw.get("labels") or []:
        if not isinstance(record, dict) or not record.get("id"):
            continue
        labels.append(
            MailLabel(
                id=record["id"],
                name=record.get("name") or record["id"],
                type=record.get("type") or "user",
                messages_total=record.get("messagesTotal"),
                messages_unread=record.get("messagesUnread"),
            )
        )
    return tuple(labels)


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def format_address(value: str | None) -> str | None:
    return value.replace("<", "").replace(">", "") if value else None


def format_date(value: str | None) -> str | None:
    """RFC 2822 date header as YYYY-MM-DD; unparseable dates pass through."""
    if not value:
        return None
    try:
        return parsedate_to_datetime(value).strftime("%Y-%m-%d")
    except (TypeError, ValueError):
        return value


def render_email_list(emails: tuple[EmailSummary, ...]) -> str:
    doc = MarkdownDocument().title(f"Inbox ({len(emails)} emails)")
    for index, email in enumerate(emails, 1):
        doc.heading(f"{index}. {email.subject or '(No Subject)'}", level=2)
        doc.field("From", format_address(email.sender))
        doc.field("Date", format_date(email.date))
        doc.raw(f"ID: `{email.id}`\n\n")
        if email.snippet:
            doc.raw(f"{email.snippet}\n\n")
        doc.rule()
    return doc.render()


def render_email(email: EmailMessage) -> str:
    doc = MarkdownDocument().title(email.subject or "(No Subject)")
    doc.field("From", format_address(email.sender))
    doc.field("To", format_address(email.to))
    doc.field("CC", format_address(email.cc))
    doc.field("BCC", format_address(email.bcc))
    doc.field("Date", format_date(email.date))
    doc.raw(f"Message ID: `{email.id}`\n\n")
    if email.body:
        doc.rule().raw(f"{email.body}\n")
    return doc.render()


def _label_line(label: MailLabel, with_total: bool) -> str:
    line = f"{label.name} (`{label.id}`)"
    if with_total and label.messages_total:
        line += f" - {label.messages_total} total"
        if label.messages_unread:
            line += f", {label.messages_unread} unread"
    elif label.messages_unread:
        line += f" - {label.messages_unread} unread"
    return line


def render_labels(labels: tuple[MailLabel, ...]) -> str:
    doc = MarkdownDocument().title(f"Gmail Labels ({len(labels)})")
    system = [label for label in labels if label.type == "system"]
    custom = [label for label in labels if label.type != "system"]
    if system:
        doc.section("System Labels")
        for label in system:
            doc.bullet(_label_line(label, with_total=False))
        doc.blank()
    if custom:
        doc.section("Custom Labels")
        for label in custom:
            doc.bullet(_label_line(label, with_total=True))
    return doc.render()


# ---------------------------------------------------------------------------
# Request builders
# ---------------------------------------------------------------------------
# Outgoing mail is built with the standard library email package and sent as
# one base64url `raw` string. Header values are single-line by the time they
# get here; SendEmailRequest rejects line breaks in them.


def build_raw_message(request: SendEmailRequest) -> str:
    """RFC 2822 message encoded as the base64url `raw` field Gmail expects."""
    message = MimeMessage()
    message["To"] = request.to
    if request.cc:
        message["Cc"] = request.cc
    if request.bcc:
        message["Bcc"] = request.bcc
    message["Subject"] = request.subject
    message.set_content(request.body)
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")


def build_list_params(request: ListEmailsRequest) -> dict:
    params = {"userId": USER_ID, "maxResults": request.max_results}
    if request.query:
        params["q"] = request.query
    if request.label_ids:
        params["labelIds"] = list(request.label_ids)
    return params


# ---------------------------------------------------------------------------
# Tool pipelines
# ---------------------------------------------------------------------------
# A fresh discovery client is built per call from the resolved OAuth bundle.
# Building it runs off the event loop, like every request it executes.


async def _service():
    credential = resolve(ProviderKind.GMAIL)
    return await google_api.build_service("gmail", "v1", credential)


async def send_email(request: SendEmailRequest) -> str:
    service = await _service()
    sent = await google_api.execute(
        service.users().messages().send(
            userId=USER_ID, body={"raw": build_raw_message(request)}
        ),
        SERVICE,
    )
    logger.info("Sent message %s", sent.get("id"))
    doc = MarkdownDocument().title("Email Sent Successfully")
    doc.line(f"Message ID: `{sent.get('id')}`")
    doc.line(f"Thread ID: `{sent.get('threadId')}`")
    doc.line(f"To: {request.to}")
    doc.line(f"Subject: {request.subject}")
    return doc.render()


async def list_emails(request: ListEmailsRequest) -> str:
    service = await _service()
    messages = service.users().messages()
    listing = await google_api.execute(messages.list(**build_list_params(request)), SERVICE)

    ids = [m["id"] for m in listing.get("messages") or [] if isinstance(m, dict) and m.get("id")]
    ids = ids[: request.max_results]
    if not ids:
        raise EmptyResultError(NO_EMAILS)

    details = await google_api.execute_batch(
        service,
        [
            messages.get(
                userId=USER_ID, id=message_id, format="metadata", metadataHeaders=METADATA_HEADERS
            )
            for message_id in ids
        ],
        SERVICE,
    )
    return render_email_list(tuple(normalize_summary(detail) for detail in details))


async def get_email(request: GetEmailRequest) -> str:
    service = await _service()
    message = await google_api.execute(
        service.users().messages().get(userId=USER_ID, id=request.message_id, format="full"),
        SERVICE,
    )
    email = normalize_message(message)
    if email.truncated:
        logger.debug("Truncated body of message %s", email.id)
    return render_email(email)


async def list_labels(request: ListLabelsRequest) -> str:
    service = await _service()
    raw = await google_api.execute(service.users().labels().list(userId=USER_ID), SERVICE)
    labels = normalize_labels(raw)
    if not labels:
        raise EmptyResultError(NO_LABELS)
    return render_labels(labels)


async def create_label(request: CreateLabelRequest) -> str:
    service = await _service()
    created = await google_api.execute(
        service.users().labels().create(
            userId=USER_ID,
            body={
                "name": request.name,
                "messageListVisibility": request.message_list_visibility,
                "labelListVisibility": request.label_list_visibility,
            },
        ),
        SERVICE,
    )
    doc = MarkdownDocument().title("Label Created")
    doc.field("Name", created.get("name") or request.name)
    doc.line(f"ID: `{created.get('id')}`")
    return doc.render()
