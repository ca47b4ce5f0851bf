"""Tests for the inbound email cleaner."""

import pytest

from aidly.services.email_cleaner import LINE_RULES, SKIP, STOP, classify_line, clean_email_content, html_to_text


class TestLineRules:
    """Each rule in isolation."""

    @pytest.mark.parametrize(
        "line,rule_name",
        [
            ("--", "signature_delimiter"),
            ("__  ", "signature_delimiter"),
            ("Best regards,", "closing_salutation"),
            ("kind regards", "closing_salutation"),
            ("Thanks", "closing_salutation"),
            ("Thank you,", "closing_salutation"),
            ("Cheers", "closing_salutation"),
            ("On Mon, Jan 8, 2024 at 9:15 AM Jane Doe <jane@example.com> wrote:", "reply_header"),
            ("1/8/24, 9:15 AM, Jane Doe wrote:", "reply_header_numeric_date"),
            ("2024-01-08 09:15 GMT+01:00 Jane Doe wrote:", "reply_header_iso_date"),
            ("> earlier message", "quoted_line"),
            (">> older message", "quoted_line"),
            ("CONFIDENTIAL: for the addressee only", "disclaimer"),
            ("This email and any attachments are private", "disclaimer"),
            ("The information contained herein is privileged", "disclaimer"),
            ("Sent from my iPhone", "mobile_signature"),
            ("sent from my Samsung Galaxy", "mobile_signature"),
        ],
    )
    def test_rule_matches(self, line, rule_name):
        rule = classify_line(line)
        assert rule is not None
        assert rule.name == rule_name

    @pytest.mark.parametrize(
        "line",
        [
            "Thanks for the update, it works now.",
            "Best way to reproduce is below",
            "The printer is -- again -- offline",
            "I wrote: nothing yet",
            "",
        ],
    )
    def test_ordinary_lines_match_nothing(self, line):
        assert classify_line(line) is None

    def test_only_quoted_lines_are_skipped(self):
        actions = {rule.name: rule.action for rule in LINE_RULES}
        assert actions.pop("quoted_line") == SKIP
        assert set(actions.values()) == {STOP}

    def test_leading_whitespace_is_ignored(self):
        assert classify_line("    Best regards,").name == "closing_salutation"


class TestCleanEmailContent:
    """Tests for clean_email_content."""

    def test_empty_input(self):
        assert clean_email_content("") == ""
        assert clean_email_content("", is_html=True) == ""

    def test_stops_at_closing_salutation(self):
        content = "Hi there,\n\nThanks!\n\nBest regards,\nJohn"
        assert clean_email_content(content) == "Hi there,\n\nThanks!"

    def test_skips_quoted_lines_but_keeps_later_text(self):
        assert clean_email_content("> quoted text\nactual reply") == "actual reply"

    def test_stops_at_reply_header(self):
        content = "The fix worked.\n\nOn Mon, Jan 8, 2024 at 9:15 AM Support wrote:\n> Please try again"
        assert clean_email_content(content) == "The fix worked."

    def test_stops_at_signature_delimiter(self):
        assert clean_email_content("Please call me.\n-- \nJane\n555-0100") == "Please call me."

    def test_stops_at_disclaimer(self):
        content = "Invoice attached.\nDISCLAIMER: this message is confidential.\nMore legal text"
        assert clean_email_content(content) == "Invoice attached."

    def test_stops_at_mobile_signature(self):
        assert clean_email_content("On my way\n\nSent from my iPhone") == "On my way"

    def test_leading_blank_lines_are_dropped(self):
        assert clean_email_content("\n\n   \nHello") == "Hello"

    def test_collapses_blank_runs_and_spaces(self):
        content = "First    line\t\there\n\n\n\n\nSecond line"
        assert clean_email_content(content) == "First line here\n\nSecond line"

    def test_handles_crlf(self):
        assert clean_email_content("Hello\r\n\r\nRegards\r\nBob") == "Hello"

    def test_everything_stripped_gives_empty_string(self):
        assert clean_email_content("> only\n> quoted\n--\nsig") == ""

    def test_signature_phrase_inside_sentence_is_kept(self):
        content = "Thanks for the update.\nThe printer works again."
        assert clean_email_content(content) == content

    def test_idempotent_on_clean_text(self):
        text = "Hello team,\n\nThe export job fails every night.\nSee attached log."
        once = clean_email_content(text)
        assert clean_email_content(once) == once == text


class TestHtml:
    """HTML bodies are flattened before line filtering."""

    def test_html_to_text(self):
        html = (
            "<html><head><style>p { color: red; }</style></head><body>"
            "<p>Hello &amp; welcome</p><p>Line one<br>Line two</p>"
            "<script>alert('x')</script></body></html>"
        )
        assert html_to_text(html).strip() == "Hello & welcome\n\nLine one\nLine two"

    def test_html_email_is_cleaned(self):
        html = (
            "<div>My account is locked.</div><br/>"
            "<p>Can you help?</p>"
            "<p>Best regards,</p><p>Jane</p>"
        )
        assert clean_email_content(html, is_html=True) == "My account is locked.\nCan you help?"

    def test_html_blockquote_reply_is_cut(self):
        html = "<p>Done, thanks</p><p>On Tue, Jan 9, 2024, Support &lt;help@aidly.io&gt; wrote:</p><blockquote>Old</blockquote>"
        assert clean_email_content(html, is_html=True) == "Done, thanks"

    def test_entities_are_decoded(self):
        assert clean_email_content("<p>R&eacute;sum&eacute; &quot;draft&quot;</p>", is_html=True) == 'Résumé "draft"'
