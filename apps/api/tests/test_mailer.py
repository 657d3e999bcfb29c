from unittest.mock import MagicMock, patch

import pytest

from services import mailer


@pytest.mark.asyncio
async def test_delivery_is_skipped_without_smtp_host():
    with patch.object(mailer.settings, "SMTP_HOST", None), patch("services.mailer.smtplib.SMTP") as smtp:
        delivered = await mailer.send_magic_link("a@example.com", "http://localhost:3000/auth/callback?token=t")

    assert delivered is False
    smtp.assert_not_called()


@pytest.mark.asyncio
async def test_delivery_uses_configured_smtp_server():
    smtp_instance = MagicMock()
    smtp_class = MagicMock()
    smtp_class.return_value.__enter__.return_value = smtp_instance

    with patch.object(mailer.settings, "SMTP_HOST", "smtp.example.com"), \
         patch.object(mailer.settings, "SMTP_USERNAME", "mailer"), \
         patch.object(mailer.settings, "SMTP_PASSWORD", "pw"), \
         patch("services.mailer.smtplib.SMTP", smtp_class):
        delivered = await mailer.send_magic_link("a@example.com", "http://localhost:3000/auth/callback?token=t")

    assert delivered is True
    smtp_class.assert_called_once_with("smtp.example.com", int(mailer.settings.SMTP_PORT), timeout=15)
    smtp_instance.starttls.assert_called_once()
    smtp_instance.login.assert_called_once_with("mailer", "pw")
    message = smtp_instance.send_message.call_args.args[0]
    assert message["To"] == "a@example.com"
    assert "auth/callback?token=t" in message.get_content()
