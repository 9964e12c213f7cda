import io
import json
import os

import pytest

from mailroom.errors import BadRequest
from mailroom.extensions import db
from mailroom.models import Attachment, Authority, EmailLog, EmailTemplate
from mailroom.sender import MAX_ERROR_LENGTH, build_send_request


@pytest.fixture
def template_with_files(app, attachments_dir):
    with open(os.path.join(attachments_dir, "alpha.pdf"), "wb") as handle:
        handle.write(b"%PDF alpha")

    with app.app_context():
        template = EmailTemplate(title="Monthly", subject="s", body_html="<p>b</p>")
        db.session.add(template)
        db.session.flush()
        db.session.add_all(
            [
                Attachment(
                    template_id=template.id,
                    file_name="ייפוי כוח אלפא.pdf",
                    file_url="/attachments/alpha.pdf",
                ),
                Attachment(
                    template_id=template.id,
                    file_name="missing.pdf",
                    file_url="/attachments/missing.pdf",
                ),
            ]
        )
        db.session.commit()
        return template.id


def _logs(app):
    with app.app_context():
        return [
            (log.email, log.status, log.authority_id, log.template_id, log.error)
            for log in EmailLog.query.order_by(EmailLog.id).all()
        ]


def test_partial_failure_is_reported_and_logged(app, auth_client, transport):
    with app.app_context():
        authority = Authority(name="A", email="a@x.com")
        db.session.add(authority)
        db.session.commit()
        authority_id = authority.id
    transport.fail_for.add("bad@x.com")

    response = auth_client.post(
        "/api/email/send-all",
        json={
            "to": [{"email": "a@x.com", "name": "A"}, {"email": "bad@x.com", "name": "B"}],
            "subject": "Hi {{name}}",
            "body": "<p>Hello {{firstName}}</p>",
        },
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["results"][0] == {"to": "a@x.com", "success": True}
    assert body["results"][1]["to"] == "bad@x.com"
    assert body["results"][1]["success"] is False
    assert "550" in body["results"][1]["error"]

    logs = _logs(app)
    assert [(email, status) for email, status, *_ in logs] == [
        ("a@x.com", "sent"),
        ("bad@x.com", "failed"),
    ]
    assert logs[0][2] == authority_id
    assert logs[1][2] is None
    assert "550" in logs[1][4]

    [sent] = transport.calls
    assert sent["to"] == "a@x.com"
    assert sent["subject"] == "Hi A"
    assert sent["html"].startswith('<div dir="rtl"')
    assert "<p>Hello A</p>" in sent["html"]


def test_logs_link_authority_whatever_the_address_case(app, auth_client, transport):
    created = auth_client.post(
        "/api/clients", json={"name": "Mixed", "email": "Mixed.Case@X.com"}
    ).get_json()
    duplicate = auth_client.post(
        "/api/clients", json={"name": "Dup", "email": "mixed.case@x.com"}
    )
    assert duplicate.status_code == 409

    response = auth_client.post(
        "/api/email/send-all",
        json={"to": ["MIXED.CASE@x.com"], "subject": "s", "body": "b"},
    )
    assert response.status_code == 200

    [log] = _logs(app)
    assert log[0] == "MIXED.CASE@x.com"
    assert log[2] == created["id"]


def test_one_log_row_per_recipient_in_order(app, auth_client, template_with_files):
    recipients = [{"email": f"r{i}@x.com", "name": f"R {i}"} for i in range(4)]
    response = auth_client.post(
        "/api/email/send-all",
        json={"to": recipients, "subject": "s", "body": "b"},
    )

    results = response.get_json()["results"]
    assert [r["to"] for r in results] == [r["email"] for r in recipients]
    logs = _logs(app)
    assert len(logs) == 4
    assert [log[0] for log in logs] == [r["email"] for r in recipients]
    assert {log[3] for log in logs} == {template_with_files}


def test_missing_template_files_are_skipped(auth_client, transport, template_with_files):
    response = auth_client.post(
        "/api/email/send-all",
        json={
            "to": [{"email": "a@x.com", "name": "A"}],
            "subject": "s",
            "body": "b",
            "include_attachments": True,
        },
    )
    assert response.status_code == 200
    assert response.get_json()["results"] == [{"to": "a@x.com", "success": True}]

    [attachment] = transport.calls[0]["attachments"]
    assert attachment.filename == "ייפוי כוח אלפא.pdf"
    assert attachment.content == b"%PDF alpha"
    assert attachment.content_type == "application/pdf"


def test_include_attachments_false_sends_none(auth_client, transport, template_with_files):
    auth_client.post(
        "/api/email/send-all",
        json={
            "to": ["a@x.com"],
            "subject": "s",
            "body": "b",
            "include_attachments": False,
        },
    )
    assert transport.calls[0]["attachments"] == []


def test_one_time_attachments_replace_template_files(
    auth_client, transport, template_with_files
):
    payload = {
        "to": [{"email": "a@x.com", "name": "A"}],
        "subject": "s",
        "body": "b",
        "include_attachments": True,
        "from_name": "Road Protect",
        "reply_to": "ops@example.com",
    }
    response = auth_client.post(
        "/api/email/send-all",
        data={
            "json": json.dumps(payload),
            "attachments": [
                (io.BytesIO(b"one"), "one.pdf", "application/pdf"),
                (io.BytesIO(b"two"), "two.pdf", "application/pdf"),
            ],
        },
        content_type="multipart/form-data",
    )
    assert response.status_code == 200

    call = transport.calls[0]
    assert [a.filename for a in call["attachments"]] == ["one.pdf", "two.pdf"]
    assert [a.content for a in call["attachments"]] == [b"one", b"two"]
    assert call["from_name"] == "Road Protect"
    assert call["reply_to"] == "ops@example.com"


def test_malformed_multipart_json_is_rejected(auth_client, transport):
    response = auth_client.post(
        "/api/email/send-all",
        data={"json": "{not json"},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert transport.calls == []


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"to": [], "subject": "s", "body": "b"}, "to"),
        ({"to": [{"name": "A"}], "subject": "s", "body": "b"}, "to[0].email"),
        ({"to": ["a@x.com"], "subject": " ", "body": "b"}, "subject"),
        ({"to": ["a@x.com"], "subject": "s"}, "body"),
    ],
)
def test_validation_happens_before_any_send(app, auth_client, transport, payload, field):
    response = auth_client.post("/api/email/send-all", json=payload)
    assert response.status_code == 400
    assert response.get_json()["error"].startswith(field)
    assert transport.calls == []
    assert _logs(app) == []


def test_stored_error_is_truncated(app, auth_client):
    def failing_transport(to, subject, html, attachments=(), from_name=None, reply_to=None):
        raise RuntimeError("x" * (MAX_ERROR_LENGTH * 3))

    app.config["MAIL_TRANSPORT"] = failing_transport
    response = auth_client.post(
        "/api/email/send-all",
        json={"to": ["a@x.com"], "subject": "s", "body": "b"},
    )
    assert response.get_json()["results"][0]["success"] is False
    assert len(_logs(app)[0][4]) == MAX_ERROR_LENGTH


def test_test_send_uses_one_call_without_logging(
    app, auth_client, transport, template_with_files
):
    response = auth_client.post(
        "/api/email/test-send",
        json={
            "to": ["a@x.com", {"email": "b@x.com", "name": "B"}],
            "subject": "Hi {{name}}",
            "body": "<p>fixed</p>",
        },
    )
    assert response.get_json() == {"success": True, "sent": True}

    [call] = transport.calls
    assert call["to"] == ["a@x.com", "b@x.com"]
    assert call["subject"] == "Hi {{name}}"
    assert [a.filename for a in call["attachments"]] == ["ייפוי כוח אלפא.pdf"]
    assert _logs(app) == []


def test_test_send_failure_is_server_error(auth_client, transport):
    transport.fail_for.add("a@x.com")
    response = auth_client.post(
        "/api/email/test-send",
        json={"to": ["a@x.com"], "subject": "s", "body": "b"},
    )
    assert response.status_code == 500
    assert "550" in response.get_json()["error"]


def test_logs_listing_newest_first(app, auth_client, transport):
    with app.app_context():
        db.session.add(Authority(name="Alpha", email="a@x.com"))
        db.session.commit()
    transport.fail_for.add("b@x.com")
    auth_client.post(
        "/api/email/send-all",
        json={"to": ["a@x.com", "b@x.com"], "subject": "s", "body": "b"},
    )

    logs = auth_client.get("/api/email/logs").get_json()
    assert [log["email"] for log in logs] == ["b@x.com", "a@x.com"]
    assert logs[1]["authority_name"] == "Alpha"

    failed = auth_client.get("/api/email/logs?status=failed").get_json()
    assert [log["email"] for log in failed] == ["b@x.com"]


def test_build_send_request_defaults():
    request = build_send_request({"to": ["a@x.com"], "subject": "s", "body": "b"})
    assert request.to == [{"email": "a@x.com", "name": ""}]
    assert request.include_attachments is True
    assert request.attachments == []

    with pytest.raises(BadRequest):
        build_send_request(None)
