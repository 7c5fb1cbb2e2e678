from pathlib import Path
from dotenv import load_dotenv
import pytest

# Load environment variables for tests before the application reads settings
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test', override=True)


# Never talk to an SMTP server from tests
@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Replace send_email with a recorder and return the recorded messages."""
    sent = []

    def _fake_send(recipient, subject, body):
        sent.append({"to": recipient, "subject": subject, "body": body})
        return True

    monkeypatch.setattr("marketplace.utils.email.send_email", _fake_send)
    return sent
