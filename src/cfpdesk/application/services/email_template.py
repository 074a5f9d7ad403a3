"""HTML / plain-text templates for CFP decision emails.

Rendered by the mail transport at send time from the ``template_data`` dict the
scheduler builds, so a cancelled email is never rendered at all.

Layout:
  1. Header (accepted / update on your submission)
  2. Greeting + decision paragraph
  3. Selection context (rejection only, when stats are known)
  4. Committee note, reviewer feedback
  5. Call to action: dashboard confirmation or discount code
  6. Footer
"""
from __future__ import annotations

import html as _html
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

# ── colour palette ──────────────────────────────────────────────
_BLUE = "#2563eb"
_GREEN = "#16a34a"
_AMBER_BG = "#fffbeb"
_AMBER = "#f59e0b"
_GRAY_50 = "#f9fafb"
_GRAY_200 = "#e5e7eb"
_GRAY_400 = "#9ca3af"
_GRAY_500 = "#6b7280"
_GRAY_900 = "#111827"

TEMPLATE_ACCEPTANCE = "acceptance"
TEMPLATE_REJECTION = "rejection"


# ── helpers ─────────────────────────────────────────────────────

def _esc(val: Any) -> str:
    return _html.escape(str(val)) if val else ""


def _first_name(data: Dict[str, Any]) -> str:
    first = str(data.get("first_name") or "").strip()
    if first:
        return first
    name = str(data.get("speaker_name") or "").strip()
    return name.split(" ")[0] if name else "there"


def _format_date(value: Any) -> Optional[str]:
    if not value:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def _paragraph(text: str) -> str:
    return f'<p style="margin:0 0 14px;font-size:15px;line-height:1.6;color:{_GRAY_900};">{text}</p>'


def _section_title(text: str) -> str:
    return f'<h2 style="margin:24px 0 10px;font-size:17px;color:{_GRAY_900};">{_esc(text)}</h2>'


def _boxed(text: str, *, border: str = _BLUE, bg: str = _GRAY_50) -> str:
    body = _esc(text).replace("\n", "<br>")
    return (
        f'<div style="border-left:4px solid {border};background:{bg};padding:12px 16px;'
        f'margin:0 0 16px;font-size:14px;line-height:1.6;color:{_GRAY_900};">{body}</div>'
    )


def _stats_lines(data: Dict[str, Any]) -> List[str]:
    lines: List[str] = []
    if data.get("total_submissions"):
        lines.append(f"We received {data['total_submissions']} submissions this year")
    if data.get("total_reviews"):
        lines.append(f"Our committee completed {data['total_reviews']} reviews")
    if data.get("talks_from_cfp") and data.get("talks_total"):
        lines.append(
            f"We only have room for {data['talks_from_cfp']} talks from the CFP "
            f"(out of {data['talks_total']} total speaking slots)"
        )
    if data.get("workshop_slots_min") and data.get("workshop_slots_max"):
        lines.append(
            f"Workshop slots: {data['workshop_slots_min']}-{data['workshop_slots_max']} available"
        )
    return lines


def _page(title: str, accent: str, body: str, conference_name: str) -> str:
    header = (
        f'<div style="border-top:4px solid {accent};padding:20px 0 16px;">'
        f'<h1 style="margin:0;font-size:24px;color:{accent};font-weight:700;">{_esc(title)}</h1>'
        f'</div>'
    )
    footer = (
        f'<div style="margin-top:32px;padding-top:16px;border-top:1px solid {_GRAY_200};'
        f'font-size:12px;color:{_GRAY_400};">'
        f'You received this because you submitted a proposal to {_esc(conference_name)}.'
        f'</div>'
    )
    return (
        f'<!DOCTYPE html><html><head><meta charset="utf-8"></head>'
        f'<body style="font-family:-apple-system,BlinkMacSystemFont,\'Segoe UI\',Roboto,sans-serif;'
        f'max-width:680px;margin:0 auto;padding:24px;color:{_GRAY_900};background:#fff;">'
        f'{header}{body}{footer}'
        f'</body></html>'
    )


def _button(url: str, label: str, color: str) -> str:
    return (
        f'<p style="margin:20px 0;"><a href="{_esc(url)}" style="display:inline-block;'
        f'background:{color};color:#fff;text-decoration:none;padding:10px 18px;'
        f'border-radius:6px;font-weight:600;">{_esc(label)}</a></p>'
    )


# ── acceptance ──────────────────────────────────────────────────

def build_acceptance_subject(data: Dict[str, Any]) -> str:
    return (
        f'Congratulations! Your talk "{data.get("talk_title", "")}" has been accepted '
        f'to {data.get("conference_name", "")}'
    )


def build_acceptance_html(data: Dict[str, Any]) -> str:
    conference = data.get("conference_name") or ""
    parts = [
        _paragraph(f"Hi {_esc(_first_name(data))},"),
        _paragraph(
            f'We are thrilled to let you know that <strong>"{_esc(data.get("talk_title"))}"</strong> '
            f"has been accepted to {_esc(conference)}"
            + (f", taking place on {_esc(data['conference_date'])}." if data.get("conference_date") else ".")
        ),
    ]
    if data.get("personal_message"):
        parts.append(_section_title("A Note from the Committee"))
        parts.append(_boxed(data["personal_message"], border=_GREEN))
    parts.append(
        _paragraph("Please confirm your attendance from your speaker dashboard so we can plan the program.")
    )
    if data.get("confirmation_url"):
        parts.append(_button(data["confirmation_url"], "Confirm attendance", _GREEN))
    return _page("You're in!", _GREEN, "".join(parts), conference)


def build_acceptance_text(data: Dict[str, Any]) -> str:
    lines: List[str] = [f"Hi {_first_name(data)},", ""]
    sentence = f'We are thrilled to let you know that "{data.get("talk_title", "")}" has been accepted to {data.get("conference_name", "")}'
    if data.get("conference_date"):
        sentence += f", taking place on {data['conference_date']}"
    lines.append(sentence + ".")
    lines.append("")
    if data.get("personal_message"):
        lines.append("A note from the committee:")
        lines.append(str(data["personal_message"]))
        lines.append("")
    lines.append("Please confirm your attendance from your speaker dashboard.")
    if data.get("confirmation_url"):
        lines.append(str(data["confirmation_url"]))
    return "\n".join(lines)


# ── rejection ───────────────────────────────────────────────────

def build_rejection_subject(data: Dict[str, Any]) -> str:
    return f"Update on your {data.get('conference_name', '')} submission"


def build_rejection_html(data: Dict[str, Any]) -> str:
    conference = data.get("conference_name") or ""
    parts = [
        _paragraph(f"Hi {_esc(_first_name(data))},"),
        _paragraph(
            f'Thank you for submitting <strong>"{_esc(data.get("talk_title"))}"</strong> to '
            f"{_esc(conference)}. We genuinely appreciate you taking the time to share your idea with us."
        ),
        _paragraph(
            "After careful review, we weren't able to include your talk in this year's program. "
            "This was a really hard decision for our committee."
        ),
    ]

    stats = _stats_lines(data)
    if stats:
        items = "".join(f'<li style="margin:4px 0;">{_esc(s)}</li>' for s in stats)
        parts.append(
            f'<div style="background:{_GRAY_50};padding:12px 16px;margin:0 0 16px;">'
            f'<p style="margin:0 0 6px;font-size:13px;color:{_GRAY_500};">Some context on our selection</p>'
            f'<ul style="margin:0;padding-left:20px;font-size:14px;">{items}</ul></div>'
        )

    if data.get("personal_message"):
        parts.append(_section_title("A Note from the Committee"))
        parts.append(_boxed(data["personal_message"]))

    if data.get("include_feedback") and data.get("feedback_text"):
        parts.append(_section_title("Feedback from Our Reviewers"))
        parts.append(_paragraph("We hope this feedback is helpful for future submissions:"))
        parts.append(_boxed(data["feedback_text"], border=_AMBER, bg=_AMBER_BG))

    if data.get("has_other_pending_submissions"):
        parts.append(
            _paragraph(
                "<strong>Note:</strong> You have other submissions still under review. "
                "We'll be in touch about those separately."
            )
        )

    parts.append(
        _paragraph(
            "Not being selected doesn't reflect on the quality of your work. We'd love to have "
            "you in our community, as a speaker next year or as an attendee this year."
        )
    )

    if data.get("coupon_code"):
        expiry = _format_date(data.get("coupon_expires_at"))
        parts.append(_section_title("Join Us Anyway?"))
        parts.append(
            _paragraph(
                f"Here's a thank-you discount of {_esc(data.get('coupon_discount_percent'))}% "
                "for taking the time to submit:"
            )
        )
        parts.append(
            f'<div style="border:2px dashed {_BLUE};padding:14px;text-align:center;margin:0 0 16px;">'
            f'<span style="font-size:20px;font-weight:700;letter-spacing:2px;color:{_BLUE};">'
            f'{_esc(data["coupon_code"])}</span>'
            + (f'<p style="margin:6px 0 0;font-size:12px;color:{_GRAY_500};">Valid until {_esc(expiry)}</p>' if expiry else "")
            + "</div>"
        )
        if data.get("tickets_url"):
            parts.append(_button(data["tickets_url"], "Get your ticket", _BLUE))

    return _page("Update on Your Submission", _GRAY_500, "".join(parts), conference)


def build_rejection_text(data: Dict[str, Any]) -> str:
    lines: List[str] = [f"Hi {_first_name(data)},", ""]
    lines.append(
        f'Thank you for submitting "{data.get("talk_title", "")}" to {data.get("conference_name", "")}.'
    )
    lines.append("After careful review, we weren't able to include your talk in this year's program.")
    lines.append("")

    stats = _stats_lines(data)
    if stats:
        lines.append("Some context on our selection:")
        lines.extend(f"  - {s}" for s in stats)
        lines.append("")
    if data.get("personal_message"):
        lines.append("A note from the committee:")
        lines.append(str(data["personal_message"]))
        lines.append("")
    if data.get("include_feedback") and data.get("feedback_text"):
        lines.append("Feedback from our reviewers:")
        lines.append(str(data["feedback_text"]))
        lines.append("")
    if data.get("has_other_pending_submissions"):
        lines.append("Note: You have other submissions still under review.")
        lines.append("")
    if data.get("coupon_code"):
        lines.append(
            f"Join us anyway? Use code {data['coupon_code']} for "
            f"{data.get('coupon_discount_percent')}% off your ticket."
        )
        expiry = _format_date(data.get("coupon_expires_at"))
        if expiry:
            lines.append(f"Valid until {expiry}.")
        if data.get("tickets_url"):
            lines.append(str(data["tickets_url"]))
    return "\n".join(lines)


def render_email(template_type: str, data: Dict[str, Any]) -> Tuple[str, str, str]:
    """Return ``(subject, html, text)`` for a decision email."""
    if template_type == TEMPLATE_ACCEPTANCE:
        return build_acceptance_subject(data), build_acceptance_html(data), build_acceptance_text(data)
    if template_type == TEMPLATE_REJECTION:
        return build_rejection_subject(data), build_rejection_html(data), build_rejection_text(data)
    raise ValueError(f"Unknown email template: {template_type}")
