"""Markdown to Slack mrkdwn conversion for delivered reports."""

import re

_H2_RE = re.compile(r"^## (.+)$", re.MULTILINE)
_H3_RE = re.compile(r"^### (.+)$", re.MULTILINE)
_BULLET_RE = re.compile(r"^- ", re.MULTILINE)


def format_report_for_slack(report: str) -> str:
    """Convert '##'/'###' headings to bold and '- ' bullets to '• '.

    Markdown links are left as-is; Slack renders them in messages posted
    with mrkdwn enabled.
    """
    text = _H2_RE.sub(r"*\1*", report)
    text = _H3_RE.sub(r"*\1*", text)
    return _BULLET_RE.sub("• ", text)
