import logging
from typing import Any, Dict

import requests

from salubot.config import settings
from salubot.core.errors import BookingFailed

logger = logging.getLogger(__name__)


class BookingClient:
    def __init__(self, url: str = None, timeout: float = None):
        self.url = url or settings.BOOKING_API_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    def create_appointment(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Registra la cita. Cualquier status distinto de 2xx es BookingFailed.
        Devuelve el JSON de la respuesta (vacío si no trae cuerpo).
        """
        if not self.url:
            raise BookingFailed("BOOKING_API_URL no configurada")

        try:
            logger.info("🚀 POST → %s | payload=%s", self.url, payload)
            res = requests.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("❌ Error POST %s: %s", self.url, e)
            raise BookingFailed(f"Sin conexión con {self.url}: {e}") from e

        logger.info("🔙 Respuesta %s: %s %s", self.url, res.status_code, res.text)
        if not res.ok:
            raise BookingFailed(f"Status {res.status_code} al registrar la cita")

        try:
            return res.json()
        except ValueError:
            return {}
