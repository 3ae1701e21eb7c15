"""
Email outbox: delivery after commit, failure recording and retries.
"""

from datetime import date

import pytest

from portal.core.constants import EmailCategory, EmailStatus
from portal.db.models import CashTransaction, EmailOutboxMessage
from portal.services.mailer import EmailTransport, SMTPTransport
from portal.services.outbox_service import EmailOutboxService, unique_recipients


def _pending_entry(client, headers):
    return client.post(
        "/api/cashbook/transactions",
        json={"branch": "North Branch", "transaction_date": date.today().isoformat(), "cash_out": 300},
        headers=headers,
    )


class TestTransportInterface:
    def test_transport_must_implement_send(self):
        class HalfTransport(EmailTransport):
            @property
            def is_configured(self) -> bool:
                return True

        with pytest.raises(TypeError):
            HalfTransport()

    def test_transport_must_report_configuration(self):
        class SilentTransport(EmailTransport):
            def send(self, recipients, subject, html):
                return None

        with pytest.raises(TypeError):
            SilentTransport()

    def test_smtp_transport_is_complete(self, transport):
        assert isinstance(SMTPTransport(), EmailTransport)
        assert transport.is_configured is True


class TestUniqueRecipients:
    def test_blanks_and_duplicates_dropped(self):
        assert unique_recipients(
            ["a@example.com", None, "", " A@example.com ", "b@example.com"]
        ) == ["a@example.com", "b@example.com"]


class TestEnqueue:
    def test_nobody_to_send_to(self, db_session, transport):
        outbox = EmailOutboxService(db_session, transport)

        assert outbox.enqueue([None, ""], "Subject", "<p>Body</p>", EmailCategory.LOW_BALANCE.value) is None
        assert outbox.deliver_many([None]) == {"attempted": 0, "sent": 0, "failed": 0, "pending": 0}

    def test_sent_message_is_not_sent_again(self, db_session, transport):
        outbox = EmailOutboxService(db_session, transport)
        message = outbox.enqueue(["ops@example.com"], "Subject", "<p>Body</p>", EmailCategory.LOW_BALANCE.value)
        db_session.commit()

        assert outbox.deliver(message) is True
        assert outbox.deliver(message) is True
        assert outbox.flush() == {"attempted": 0, "sent": 0, "failed": 0, "pending": 0}

        assert len(transport.sent) == 1
        assert message.attempts == 1


class TestDeliveryFailures:
    """Mail problems never undo the data change."""

    def test_failed_send_keeps_transaction(self, client, db_session, transport, staff_headers,
                                           accountant, admin, manual_branch):
        transport.fail_all = True

        response = _pending_entry(client, staff_headers)

        assert response.status_code == 201
        assert db_session.query(CashTransaction).count() == 1
        message = db_session.query(EmailOutboxMessage).one()
        assert message.category == EmailCategory.CASHBOOK_PENDING.value
        assert message.status == EmailStatus.FAILED.value
        assert message.attempts == 1
        assert "SMTP unavailable" in message.last_error

    def test_flush_retries_failed_messages(self, client, db_session, transport, staff_headers,
                                           admin_headers, accountant, manual_branch):
        transport.fail_all = True
        _pending_entry(client, staff_headers)
        transport.fail_all = False

        response = client.post("/api/email/outbox/flush", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "attempted": 1, "sent": 1, "failed": 0, "pending": 0}
        db_session.expire_all()
        message = db_session.query(EmailOutboxMessage).one()
        assert message.status == EmailStatus.SENT.value
        assert message.attempts == 2
        assert message.last_error is None

    def test_flush_stops_at_attempt_ceiling(self, client, db_session, transport, staff_headers,
                                            admin_headers, manual_branch):
        transport.fail_all = True
        _pending_entry(client, staff_headers)
        for _ in range(3):
            client.post("/api/email/outbox/flush", headers=admin_headers)

        response = client.post("/api/email/outbox/flush", headers=admin_headers)

        assert response.json()["attempted"] == 0
        db_session.expire_all()
        assert db_session.query(EmailOutboxMessage).one().attempts == 3

    def test_flush_requires_admin(self, client, staff_headers):
        response = client.post("/api/email/outbox/flush", headers=staff_headers)

        assert response.status_code == 403

    def test_partial_per_recipient_failure_counts_as_sent(self, client, db_session, transport, staff_headers,
                                                           accountant, admin, second_admin, manual_branch):
        pending = _pending_entry(client, staff_headers).json()["data"]
        transport.sent.clear()
        transport.fail_for = {"ops@example.com"}

        client.post("/api/cashbook/transactions/approve", json={"id": pending["id"], "verifier_id": accountant.id})

        message = db_session.query(EmailOutboxMessage).filter_by(
            category=EmailCategory.CASHBOOK_APPROVED.value
        ).one()
        assert message.status == EmailStatus.SENT.value
        assert sorted(m["recipients"][0] for m in transport.sent) == ["admin@example.com", "staff@example.com"]

    def test_unconfigured_transport_leaves_pending(self, client, db_session, transport, staff_headers,
                                                   admin, manual_branch):
        transport.configured = False

        _pending_entry(client, staff_headers)

        message = db_session.query(EmailOutboxMessage).one()
        assert message.status == EmailStatus.PENDING.value
        assert message.attempts == 0
        assert transport.sent == []
