import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping

import requests

from salubot.config import settings
from salubot.core.errors import CatalogUnavailable, InvalidSelection

logger = logging.getLogger(__name__)

NOT_APPLICABLE = "No Aplica"


@dataclass
class SpecialtyCatalog:
    names: List[str] = field(default_factory=list)
    index: Dict[int, str] = field(default_factory=dict)
    available: bool = True
    fallback_message: str = ""

    @property
    def text(self) -> str:
        """Lista numerada para WhatsApp, o el mensaje de respaldo."""
        if not self.available:
            return self.fallback_message
        return "\n".join(f"*{idx}.* {name}" for idx, name in self.index.items())

    @property
    def inline_text(self) -> str:
        if not self.available:
            return self.fallback_message
        return ", ".join(self.names)


def build_specialty_index(names: List[str]) -> Dict[int, str]:
    """Índice 1..n en el orden del catálogo, sin el valor 'No Aplica'."""
    filtered = [n for n in names if n and n.strip() and n.strip() != NOT_APPLICABLE]
    return {idx: name.strip() for idx, name in enumerate(filtered, start=1)}


def resolve_choice(reply: str, index: Mapping) -> str:
    """
    Traduce la respuesta numérica del usuario a la especialidad.
    El índice puede venir con claves int o str (tras pasar por JSON).
    """
    text = (reply or "").strip().rstrip(".")
    if not text.isdigit():
        raise InvalidSelection(f"Respuesta no numérica: {reply!r}")

    number = int(text)
    name = index.get(number) or index.get(str(number))
    if not name:
        raise InvalidSelection(f"Opción {number} fuera del índice ({len(index)} opciones)")
    return name


class SpecialtyCatalogClient:
    def __init__(self, url: str = None, timeout: float = None):
        self.url = url or settings.SPECIALTIES_API_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    def _request(self) -> List[str]:
        try:
            logger.info("🔎 GET → %s", self.url)
            res = requests.get(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            raise CatalogUnavailable(f"Sin conexión con {self.url}: {e}") from e

        logger.info("🔙 Respuesta GET %s: %s", self.url, res.status_code)
        if not res.ok:
            raise CatalogUnavailable(f"Status {res.status_code} en {self.url}")

        try:
            payload = res.json()
        except ValueError as e:
            raise CatalogUnavailable(f"Respuesta no JSON en {self.url}") from e

        # La API responde {"data": [...]}; también aceptamos la lista directa
        entities = payload.get("data", []) if isinstance(payload, dict) else payload
        if not isinstance(entities, list):
            raise CatalogUnavailable(f"Formato inesperado en {self.url}")

        return [
            str(e.get("name", "")) for e in entities
            if isinstance(e, dict) and e.get("name")
        ]

    def fetch_specialties(self) -> SpecialtyCatalog:
        try:
            names = self._request()
        except CatalogUnavailable as e:
            logger.error("❌ Error cargando especialidades: %s", e)
            return SpecialtyCatalog(
                available=False, fallback_message=CatalogUnavailable.user_message
            )

        index = build_specialty_index(names)
        return SpecialtyCatalog(names=list(index.values()), index=index)
