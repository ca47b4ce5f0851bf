from typing import Optional
import re

from ..core.logging import get_logger
from ..schemas import RawEmailMessage, TicketContent
from .email_cleaner import clean_email_content

logger = get_logger(__name__)

TICKET_NUMBER = re.compile(r"TKT-(\d{6})")
_REPLY_PREFIX = re.compile(r"^(Re:|Fwd?:|AW:)\s*", re.IGNORECASE)
_TICKET_REF = re.compile(r"\bTKT-\d{6}\b")

SYSTEM_SENDER_PATTERNS = (
    "mailer-daemon@",
    "postmaster@",
    "no-reply@",
    "noreply@",
    "do-not-reply@",
    "donotreply@",
    "bounce@",
    "bounces@",
    "notification@",
    "notifications@",
    "automated@",
    "daemon@",
    "system@",
)

def normalize_subject(subject: str) -> str:
    subject = _REPLY_PREFIX.sub("", subject or "")
    subject = _TICKET_REF.sub("", subject)
    return subject.lower().strip()

def extract_ticket_number(subject: str) -> Optional[str]:
    m = TICKET_NUMBER.search(subject or "")
    return f"TKT-{m.group(1)}" if m else None

def is_system_email(address: str) -> bool:
    address = (address or "").strip().lower()
    return any(p in address for p in SYSTEM_SENDER_PATTERNS)

def extract_name_from_email(address: str) -> str:
    local = (address or "").split("@", 1)[0]
    for sep in (".", "_", "-", "+"):
        local = local.replace(sep, " ")
    return " ".join(w[:1].upper() + w[1:] for w in local.split(" "))

def prepare_ticket_content(message: RawEmailMessage) -> TicketContent:
    """Title and cleaned description for a ticket created from an inbound email."""
    description = clean_email_content(message.body, message.is_html)
    if not description:
        if message.attachment_count:
            description = f"[Email received with {message.attachment_count} attachment(s)]"
            logger.warning(f"Email from {message.from_address} has only attachments; creating ticket anyway")
        else:
            description = "[No readable content - possible email parsing error]"
            logger.error(f"Email from {message.from_address} has no content and no attachments")

    return TicketContent(
        title=(message.subject or "").strip() or "No Subject",
        description=description,
        ticket_number=extract_ticket_number(message.subject),
        normalized_subject=normalize_subject(message.subject),
        requester_name=extract_name_from_email(message.from_address) if message.from_address else "",
    )
