"""Tests for email-to-ticket helpers."""

from aidly.schemas import RawEmailMessage
from aidly.services.email_ticket import (
    extract_name_from_email,
    extract_ticket_number,
    is_system_email,
    normalize_subject,
    prepare_ticket_content,
)


class TestSubjects:
    def test_normalize_strips_reply_prefix_and_ticket_ref(self):
        assert normalize_subject("RE: TKT-001234 Printer Broken") == "printer broken"
        assert normalize_subject("Fwd: Invoice question") == "invoice question"
        assert normalize_subject("AW: Rechnung") == "rechnung"

    def test_normalize_only_strips_one_prefix(self):
        assert normalize_subject("Re: Re: Login") == "re: login"

    def test_extract_ticket_number(self):
        assert extract_ticket_number("Re: [Ticket #TKT-001234] Printer") == "TKT-001234"
        assert extract_ticket_number("Ticket: TKT-000042 follow-up") == "TKT-000042"

    def test_extract_ticket_number_requires_six_digits(self):
        assert extract_ticket_number("TKT-12345 short") is None
        assert extract_ticket_number("No reference") is None


class TestSenders:
    def test_system_senders(self):
        assert is_system_email("MAILER-DAEMON@mx.example.com") is True
        assert is_system_email(" no-reply@github.com ") is True
        assert is_system_email("notifications@service.io") is True

    def test_human_sender(self):
        assert is_system_email("jane.doe@example.com") is False

    def test_extract_name(self):
        assert extract_name_from_email("john.doe-smith@example.com") == "John Doe Smith"
        assert extract_name_from_email("mary_ann+support@example.com") == "Mary Ann Support"


class TestPrepareTicketContent:
    def test_builds_ticket_from_html_email(self):
        message = RawEmailMessage(
            subject="Re: TKT-000777 VPN keeps dropping",
            body="<p>Still happening today.</p><p>Thanks,</p><p>Ann</p>",
            is_html=True,
            from_address="ann.lee@example.com",
        )
        content = prepare_ticket_content(message)
        assert content.title == "Re: TKT-000777 VPN keeps dropping"
        assert content.description == "Still happening today."
        assert content.ticket_number == "TKT-000777"
        assert content.normalized_subject == "vpn keeps dropping"
        assert content.requester_name == "Ann Lee"

    def test_attachment_only_email(self):
        message = RawEmailMessage(subject="Scan", body="", attachment_count=2, from_address="a@b.io")
        assert prepare_ticket_content(message).description == "[Email received with 2 attachment(s)]"

    def test_empty_email_fallback(self):
        message = RawEmailMessage(subject="", body="> quoted only")
        content = prepare_ticket_content(message)
        assert content.description == "[No readable content - possible email parsing error]"
        assert content.title == "No Subject"
