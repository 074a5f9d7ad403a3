import pytest

from cfpdesk.application.services.email_template import (
    TEMPLATE_ACCEPTANCE,
    TEMPLATE_REJECTION,
    render_email,
)


def _rejection_data(**overrides):
    data = {
        "speaker_name": "Ada Lovelace",
        "first_name": "Ada",
        "talk_title": "Streams all the way down",
        "conference_name": "ZurichJS Conference 2026",
        "coupon_code": "CFPTHXAB12CD",
        "coupon_discount_percent": 20,
        "coupon_expires_at": "2026-06-15T09:00:00+00:00",
        "tickets_url": "https://conf.example.org/#tickets",
        "include_feedback": True,
        "feedback_text": "Great topic, narrow the scope.",
        "total_submissions": 180,
        "total_reviews": 640,
        "has_other_pending_submissions": False,
    }
    data.update(overrides)
    return data


def test_acceptance_email():
    subject, html, text = render_email(
        TEMPLATE_ACCEPTANCE,
        {
            "first_name": "Ada",
            "talk_title": "Streams",
            "conference_name": "ZurichJS Conference 2026",
            "conference_date": "September 27, 2026",
            "confirmation_url": "https://conf.example.org/cfp/dashboard",
            "personal_message": "Loved it!",
        },
    )

    assert subject.startswith("Congratulations!")
    assert "Streams" in subject
    assert "September 27, 2026" in html
    assert "Loved it!" in text
    assert "https://conf.example.org/cfp/dashboard" in text


def test_rejection_email_with_coupon_and_feedback():
    subject, html, text = render_email(TEMPLATE_REJECTION, _rejection_data())

    assert "ZurichJS Conference 2026" in subject
    assert "CFPTHXAB12CD" in html
    assert "20% off" in text
    assert "Valid until June 15, 2026." in text
    assert "Great topic, narrow the scope." in html
    assert "We received 180 submissions this year" in text
    assert "other submissions" not in text


def test_rejection_email_mentions_other_pending_submissions():
    _, html, text = render_email(
        TEMPLATE_REJECTION, _rejection_data(has_other_pending_submissions=True)
    )
    assert "other submissions still under review" in text
    assert "other submissions still under review" in html


def test_rejection_email_without_extras():
    _, html, text = render_email(
        TEMPLATE_REJECTION,
        _rejection_data(coupon_code=None, include_feedback=False, total_submissions=None, total_reviews=None),
    )
    assert "Join us anyway" not in text
    assert "Feedback from our reviewers" not in text
    assert "Some context on our selection" not in html


def test_user_text_is_escaped_in_html():
    _, html, _ = render_email(
        TEMPLATE_REJECTION, _rejection_data(personal_message="<script>alert(1)</script>")
    )
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_unknown_template():
    with pytest.raises(ValueError):
        render_email("reminder", {})
