"""Turn a raw inbound support email into plain-text ticket content.

Heuristic only: signature, quoted-reply and disclaimer detection works line
by line against an ordered rule list, and some false positives are expected.
"""
from __future__ import annotations
from html import unescape
from typing import List, NamedTuple, Optional, Pattern
import re

STOP = "stop"   # drop this line and everything after it
SKIP = "skip"   # drop this line only

class LineRule(NamedTuple):
    name: str
    pattern: Pattern[str]
    action: str

    def matches(self, line: str) -> bool:
        return bool(self.pattern.search(line))

# Evaluated in order against the stripped line; first match wins.
LINE_RULES: List[LineRule] = [
    LineRule("signature_delimiter", re.compile(r"^(--|__)\s*$"), STOP),
    LineRule(
        "closing_salutation",
        re.compile(r"^(Best regards|Kind regards|Thanks|Regards|Sincerely|Cheers|Best|BR|Thank you),?\s*$", re.IGNORECASE),
        STOP,
    ),
    LineRule("reply_header", re.compile(r"^On .+ wrote:$", re.IGNORECASE), STOP),
    LineRule("reply_header_numeric_date", re.compile(r"^[0-9]{1,2}/[0-9]{1,2}/[0-9]{2,4}.+wrote:$", re.IGNORECASE), STOP),
    LineRule("reply_header_iso_date", re.compile(r"^\d{4}-\d{2}-\d{2}.+wrote:$", re.IGNORECASE), STOP),
    LineRule("quoted_line", re.compile(r"^>+"), SKIP),
    LineRule(
        "disclaimer",
        re.compile(r"^(CONFIDENTIAL|DISCLAIMER|This email|The information contained)", re.IGNORECASE),
        STOP,
    ),
    LineRule("mobile_signature", re.compile(r"^Sent from my (iPhone|iPad|Android|Samsung|Mobile)", re.IGNORECASE), STOP),
]

_STYLE = re.compile(r"<style\b[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_SCRIPT = re.compile(r"<script\b[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_BR = re.compile(r"<br\s*/?>", re.IGNORECASE)
_P_CLOSE = re.compile(r"</p>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]*>")
_MANY_NEWLINES = re.compile(r"\n{3,}")
_MANY_SPACES = re.compile(r"[ \t]{2,}")

def classify_line(line: str) -> Optional[LineRule]:
    stripped = line.strip()
    for rule in LINE_RULES:
        if rule.matches(stripped):
            return rule
    return None

def html_to_text(content: str) -> str:
    content = _STYLE.sub("", content)
    content = _SCRIPT.sub("", content)
    content = _BR.sub("\n", content)
    content = _P_CLOSE.sub("\n\n", content)
    content = _TAG.sub("", content)
    return unescape(content)

def clean_email_content(content: str, is_html: bool = False) -> str:
    if not content:
        return ""

    if is_html:
        content = html_to_text(content)
    content = content.replace("\r\n", "\n")

    kept: List[str] = []
    for line in content.split("\n"):
        rule = classify_line(line)
        if rule is not None:
            if rule.action == STOP:
                break
            continue
        # Leading blank lines are dropped
        if not kept and not line.strip():
            continue
        kept.append(line)

    cleaned = "\n".join(kept)
    cleaned = _MANY_NEWLINES.sub("\n\n", cleaned)
    cleaned = _MANY_SPACES.sub(" ", cleaned)
    return cleaned.strip()
