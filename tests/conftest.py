"""Dobles de prueba para los colaboradores externos del flujo."""

from datetime import date

import pytest

from salubot.agents.nodes import FlowServices
from salubot.agents.session import ConversationService
from salubot.core.catalog import SpecialtyCatalog, build_specialty_index
from salubot.core.errors import BookingFailed, CatalogUnavailable
from salubot.core.store import MemoryStateStore

EXTRACTED_JSON = (
    "Claro, aquí tienes los datos:\n"
    "```json\n"
    '{"fullName": "Ana Pérez", "date": "2025-08-20", "time": "16:00", '
    '"specialty": null, "phone": null}\n'
    "```\n"
    "Avísame si necesitas algo más."
)


class FakeCatalog:
    def __init__(self, names=None, available=True):
        self.names = names if names is not None else ["Cardiología", "Pediatría", "No Aplica"]
        self.available = available
        self.calls = 0

    def fetch_specialties(self):
        self.calls += 1
        if not self.available:
            return SpecialtyCatalog(
                available=False, fallback_message=CatalogUnavailable.user_message
            )
        index = build_specialty_index(self.names)
        return SpecialtyCatalog(names=list(index.values()), index=index)


class FakeExtractor:
    def __init__(self, response=EXTRACTED_JSON, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def extract(self, instructions, context, user_utterance):
        self.calls.append((instructions, context, user_utterance))
        if self.error:
            raise self.error
        return self.response


class FakeBooking:
    def __init__(self, fail=False):
        self.fail = fail
        self.payloads = []

    def create_appointment(self, payload):
        self.payloads.append(payload)
        if self.fail:
            raise BookingFailed("Status 500 al registrar la cita")
        return {"id": 123}


class FakeChannel:
    def __init__(self):
        self.sent = []
        self.presence = []

    def send_text(self, to, body):
        self.sent.append((to, body))

    def send_presence(self, to, presence):
        self.presence.append((to, presence))


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def booking():
    return FakeBooking()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def flow_services(catalog, extractor, booking, channel):
    return FlowServices(
        catalog=catalog,
        extractor=extractor,
        booking=booking,
        presence=channel.send_presence,
        idle_timeout=300,
        greeting_keywords=["Hola"],
        greeting_case_sensitive=True,
        today=lambda: date(2025, 8, 19),
    )


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def service(flow_services, store, channel):
    return ConversationService(flow_services, store, channel)


@pytest.fixture
def talk(service):
    """Envía mensajes en orden y devuelve las respuestas de cada turno."""
    def _talk(*messages, conversation_id="51999888777", now=None):
        return [
            service.run_turn(conversation_id, m, contact_phone=conversation_id, now=now)
            for m in messages
        ]
    return _talk

