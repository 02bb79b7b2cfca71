import logging

from twilio.rest import Client

from salubot.config import settings

logger = logging.getLogger(__name__)


class TwilioChannel:
    """Salida hacia WhatsApp a través de Twilio."""

    def __init__(self, client: Client = None, from_number: str = None):
        self.client = client or Client(settings.TWILIO_SID, settings.TWILIO_TOKEN)
        self.from_number = from_number or settings.TWILIO_FROM

    @staticmethod
    def _address(to: str) -> str:
        return to if to.startswith("whatsapp:") else f"whatsapp:{to}"

    def send_text(self, to: str, body: str) -> None:
        self.client.messages.create(
            from_=self.from_number,
            body=body,
            to=self._address(to),
        )

    def send_presence(self, to: str, presence: str) -> None:
        # El SDK de Twilio no expone indicador de "escribiendo" para WhatsApp
        logger.debug("Presencia %s → %s", presence, to)
