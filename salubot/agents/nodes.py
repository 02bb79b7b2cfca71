import logging
import re
import time
import unicodedata
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence

from langchain_core.runnables import RunnableConfig

from salubot.config import settings
from salubot.core.catalog import resolve_choice
from salubot.core.errors import (
    BookingFailed,
    CatalogUnavailable,
    EmptyExtraction,
    FlowError,
    IncompleteState,
    InferenceUnavailable,
    InvalidSelection,
)
from salubot.core.parser import extract_json
from salubot.agents.flow import Event, Step, transition
from salubot.agents.state import (
    ConversationState,
    merge_appointment_data,
    normalize_extraction,
    to_booking_payload,
)
from salubot.agents.prompts import (
    BOOKED_TEXT,
    CATALOG_HINT_TEXT,
    CATALOG_RETRY_TEXT,
    CATALOG_TEXT,
    CONFIRM_QUESTION_TEXT,
    CONFIRM_RETRY_TEXT,
    EXTRACTION_PROMPT,
    FIELD_PROMPTS,
    IDLE_CLOSED_TEXT,
    MENU_RETRY_TEXT,
    MENU_TEXT,
    MISSING_VALUE,
    PROCESSING_TEXT,
    RESTART_TEXT,
    SEARCHING_SPECIALTIES_TEXT,
    SPECIALTY_CHOSEN_TEXT,
    SPECIALTY_PROMPT_TEXT,
    START_HINT_TEXT,
    SUMMARY_TEXT,
    WELCOME_TEXT,
)

logger = logging.getLogger(__name__)

# ==========================================================
# CONSTANTES / HELPERS
# ==========================================================

CATALOG_KEYWORDS = ["1"]
BOOKING_KEYWORDS = ["2", "agendar", "cita"]
AFFIRMATIVE_KEYWORDS = {"si", "s", "yes", "ok", "confirmo", "confirmar", "correcto"}
NEGATIVE_KEYWORDS = {"no", "n"}

# Orden de captura en FieldCapture
CAPTURE_FIELDS = ("full_name", "date", "time")


def _no_presence(to: str, presence: str) -> None:
    return None


@dataclass
class FlowServices:
    """Colaboradores externos que usan los nodos (se pasan por config)."""
    catalog: Any
    extractor: Any
    booking: Any
    presence: Callable[[str, str], None] = _no_presence
    idle_timeout: float = settings.IDLE_TIMEOUT_SECONDS
    greeting_keywords: List[str] = field(default_factory=lambda: list(settings.GREETING_KEYWORDS))
    greeting_case_sensitive: bool = settings.GREETING_CASE_SENSITIVE
    today: Callable[[], date] = date.today


def get_services(config: RunnableConfig) -> FlowServices:
    return config["configurable"]["services"]


def matches_keyword(text: str, keywords: Sequence[str], sensitive: bool = False) -> bool:
    """Coincidencia por palabra completa (no por subcadena)."""
    text = (text or "").strip()
    flags = 0 if sensitive else re.IGNORECASE
    for keyword in keywords:
        if re.search(rf"(?<!\w){re.escape(keyword)}(?!\w)", text, flags):
            return True
    return False


def _plain(text: str) -> str:
    # "Sí." → "si"
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def classify_confirmation(reply: str) -> Optional[bool]:
    """True = sí, False = no, None = no se entendió."""
    words = re.findall(r"\w+", _plain(reply or ""))
    if not words:
        return None
    if words[0] in AFFIRMATIVE_KEYWORDS:
        return True
    if words[0] in NEGATIVE_KEYWORDS:
        return False
    return None


def render_summary(data: Dict[str, Any]) -> str:
    return SUMMARY_TEXT.format(
        **{k: data.get(k) or MISSING_VALUE for k in ("full_name", "date", "time", "specialty", "phone")}
    )


def _now(state: ConversationState) -> float:
    return state.get("received_at") or time.time()


def _deadline(services: FlowServices, now: float) -> Optional[float]:
    if services.idle_timeout and services.idle_timeout > 0:
        return now + services.idle_timeout
    return None


# ==========================================================
# DISPATCH: ¿QUÉ PASO ATIENDE ESTE MENSAJE?
# ==========================================================

def dispatch_node(state: ConversationState, config: RunnableConfig) -> dict:
    """
    - Si hay un paso suspendido esperando respuesta, el mensaje es SU respuesta
      (nunca se vuelve a buscar por palabras clave).
    - Si no, se buscan las palabras clave globales (saludo, agendar, ver especialidades).
    - Excepción: tras una extracción fallida el saludo sí reinicia la conversación.
    - Un barrido por inactividad solo afecta al saludo que espera el menú.
    """
    services = get_services(config)
    raw = state.get("user_message") or ""
    msg = raw.strip()
    step = state.get("step")
    awaiting = state.get("awaiting")

    if state.get("idle"):
        if step == Step.GREETING.value and awaiting:
            return {"redirect": step, "reply": None}
        return {"redirect": None}

    if step == Step.EXTRACTION.value and awaiting == "retry" and matches_keyword(
        msg, services.greeting_keywords, services.greeting_case_sensitive
    ):
        return {"redirect": Step.GREETING.value, "reply": None, "awaiting": None}

    if step and awaiting:
        return {"redirect": step, "reply": raw}

    if matches_keyword(msg, services.greeting_keywords, services.greeting_case_sensitive):
        return {"redirect": Step.GREETING.value, "reply": None}
    if matches_keyword(msg, BOOKING_KEYWORDS):
        return {"redirect": Step.SPECIALTY_SELECTION.value, "reply": None}
    if matches_keyword(msg, CATALOG_KEYWORDS):
        return {"redirect": Step.SPECIALTY_CATALOG.value, "reply": None}

    return {"redirect": None, "outbox": [START_HINT_TEXT]}


# ==========================================================
# PASO 1: SALUDO + MENÚ
# ==========================================================

def greeting_node(state: ConversationState, config: RunnableConfig) -> dict:
    services = get_services(config)
    now = _now(state)
    reply = state.get("reply")

    deadline = state.get("idle_deadline")
    if state.get("idle") or (reply is not None and deadline and now > deadline):
        logger.info("⏱️ Sesión %s cerrada por inactividad", state.get("conversation_id"))
        return transition(
            Step.GREETING, Event.IDLE_TIMEOUT,
            idle_deadline=None,
            outbox=[IDLE_CLOSED_TEXT],
        )

    # Entrada nueva (o saludo repetido): reiniciamos la cita
    if reply is None or matches_keyword(
        reply, services.greeting_keywords, services.greeting_case_sensitive
    ):
        seed = merge_appointment_data({}, {"phone": state.get("contact_phone")})
        return transition(
            Step.GREETING, Event.AWAIT_REPLY,
            awaiting="menu",
            appointment_data=seed,
            specialty_index={},
            idle_deadline=_deadline(services, now),
            outbox=[WELCOME_TEXT, MENU_TEXT],
        )

    if matches_keyword(reply, BOOKING_KEYWORDS):
        return transition(Step.GREETING, Event.CHOSE_BOOKING, idle_deadline=None)
    if matches_keyword(reply, CATALOG_KEYWORDS):
        return transition(Step.GREETING, Event.CHOSE_CATALOG, idle_deadline=None)

    return transition(
        Step.GREETING, Event.AWAIT_REPLY,
        awaiting="menu",
        idle_deadline=_deadline(services, now),
        outbox=[MENU_RETRY_TEXT],
    )


# ==========================================================
# PASO 2: VER ESPECIALIDADES (OPCIÓN 1 DEL MENÚ)
# ==========================================================

def specialty_catalog_node(state: ConversationState, config: RunnableConfig) -> dict:
    catalog = get_services(config).catalog.fetch_specialties()

    if catalog.available and catalog.index:
        messages = [
            SEARCHING_SPECIALTIES_TEXT,
            CATALOG_TEXT.format(specialties=catalog.inline_text),
            CATALOG_HINT_TEXT,
        ]
    else:
        messages = [SEARCHING_SPECIALTIES_TEXT, catalog.fallback_message or CatalogUnavailable.user_message]

    return transition(
        Step.SPECIALTY_CATALOG, Event.CATALOG_SHOWN,
        step=None,
        awaiting=None,
        outbox=messages,
    )


# ==========================================================
# PASO 3: ELEGIR ESPECIALIDAD
# ==========================================================

def specialty_selection_node(state: ConversationState, config: RunnableConfig) -> dict:
    reply = state.get("reply")

    # 3.1 Consultar catálogo y mostrar lista numerada
    if reply is None:
        catalog = get_services(config).catalog.fetch_specialties()
        if catalog.available and catalog.index:
            messages = [SEARCHING_SPECIALTIES_TEXT, catalog.text, SPECIALTY_PROMPT_TEXT]
        else:
            messages = [
                SEARCHING_SPECIALTIES_TEXT,
                catalog.fallback_message or CatalogUnavailable.user_message,
                CATALOG_RETRY_TEXT,
            ]

        return transition(
            Step.SPECIALTY_SELECTION, Event.AWAIT_REPLY,
            awaiting="specialty",
            specialty_index={str(k): v for k, v in catalog.index.items()},
            outbox=messages,
        )

    # 3.2 Validar la opción contra el índice de ESTA conversación
    try:
        specialty = resolve_choice(reply, state.get("specialty_index") or {})
    except InvalidSelection as e:
        logger.info("Selección inválida en %s: %s", state.get("conversation_id"), e)
        return transition(
            Step.SPECIALTY_SELECTION, Event.INVALID_SELECTION,
            specialty_index={},
            outbox=[e.user_message],
        )

    data = merge_appointment_data(state.get("appointment_data"), {"specialty": specialty})
    return transition(
        Step.SPECIALTY_SELECTION, Event.SPECIALTY_SELECTED,
        appointment_data=data,
        specialty_index={},
        outbox=[SPECIALTY_CHOSEN_TEXT.format(specialty=specialty)],
    )


# ==========================================================
# PASO 4: CAPTURA DE NOMBRE, FECHA Y HORA
# ==========================================================

def field_capture_node(state: ConversationState, config: RunnableConfig) -> dict:
    awaiting = state.get("awaiting")
    reply = state.get("reply")

    if reply is None or awaiting not in CAPTURE_FIELDS:
        first = CAPTURE_FIELDS[0]
        return transition(
            Step.FIELD_CAPTURE, Event.AWAIT_REPLY,
            awaiting=first,
            outbox=[FIELD_PROMPTS[first]],
        )

    # Respuesta en blanco: se repite la pregunta (no se conserva el valor anterior)
    if not reply.strip():
        return transition(
            Step.FIELD_CAPTURE, Event.AWAIT_REPLY,
            awaiting=awaiting,
            outbox=[FIELD_PROMPTS[awaiting]],
        )

    # Se guarda tal cual; la normalización la hace la extracción
    data = merge_appointment_data(state.get("appointment_data"), {awaiting: reply})

    position = CAPTURE_FIELDS.index(awaiting)
    if position + 1 < len(CAPTURE_FIELDS):
        following = CAPTURE_FIELDS[position + 1]
        return transition(
            Step.FIELD_CAPTURE, Event.AWAIT_REPLY,
            awaiting=following,
            appointment_data=data,
            outbox=[FIELD_PROMPTS[following]],
        )

    return transition(
        Step.FIELD_CAPTURE, Event.FIELDS_CAPTURED,
        appointment_data=data,
        outbox=[PROCESSING_TEXT],
    )


# ==========================================================
# PASO 5: EXTRACCIÓN CON EL MODELO
# ==========================================================

def _extraction_failed(error: FlowError) -> dict:
    logger.warning("❌ Extracción fallida (%s): %s", type(error).__name__, error)
    return transition(
        Step.EXTRACTION, Event.EXTRACTION_FAILED,
        awaiting="retry",
        outbox=[error.user_message],
    )


def extraction_node(state: ConversationState, config: RunnableConfig) -> dict:
    services = get_services(config)
    contact = state.get("conversation_id", "")
    data = state.get("appointment_data") or {}

    utterance = (
        f"Nombre: {data.get('full_name') or ''}. "
        f"Fecha: {data.get('date') or ''}. "
        f"Hora: {data.get('time') or ''}."
    )
    instructions = EXTRACTION_PROMPT.format(today=services.today().isoformat())

    services.presence(contact, "composing")
    try:
        raw = services.extractor.extract(instructions, to_booking_payload(data), utterance)
    except InferenceUnavailable as e:
        return _extraction_failed(e)
    finally:
        services.presence(contact, "paused")

    try:
        extracted = normalize_extraction(extract_json(raw))
        if not extracted:
            raise EmptyExtraction(f"Objeto sin datos: {raw[:80]!r}")
    except FlowError as e:
        return _extraction_failed(e)

    # La especialidad elegida del catálogo manda sobre la que sugiera el modelo
    if data.get("specialty"):
        extracted.pop("specialty", None)

    return transition(
        Step.EXTRACTION, Event.EXTRACTED,
        appointment_data=merge_appointment_data(data, extracted),
    )


# ==========================================================
# PASO 6: RESUMEN Y CONFIRMACIÓN (SÍ / NO)
# ==========================================================

def summary_node(state: ConversationState, config: RunnableConfig) -> dict:
    data = state.get("appointment_data") or {}
    reply = state.get("reply")

    if reply is None:
        if not (data.get("full_name") or "").strip():
            error = IncompleteState("Resumen sin nombre")
            logger.warning("⚠️ %s en %s", error, state.get("conversation_id"))
            return transition(
                Step.SUMMARY, Event.INCOMPLETE,
                step=None,
                awaiting=None,
                outbox=[error.user_message],
            )
        return transition(
            Step.SUMMARY, Event.AWAIT_REPLY,
            awaiting="confirmation",
            outbox=[render_summary(data), CONFIRM_QUESTION_TEXT],
        )

    answer = classify_confirmation(reply)
    if answer is True:
        return transition(Step.SUMMARY, Event.AFFIRMATIVE)
    if answer is False:
        return transition(Step.SUMMARY, Event.NEGATIVE)

    return transition(
        Step.SUMMARY, Event.AWAIT_REPLY,
        awaiting="confirmation",
        outbox=[CONFIRM_RETRY_TEXT],
    )


def confirmation_node(state: ConversationState, config: RunnableConfig) -> dict:
    data = state.get("appointment_data") or {}

    try:
        get_services(config).booking.create_appointment(to_booking_payload(data))
    except BookingFailed as e:
        logger.error("❌ No se registró la cita de %s: %s", state.get("conversation_id"), e)
        return transition(
            Step.CONFIRMATION, Event.BOOKING_FAILED,
            outbox=[e.user_message],
        )

    return transition(
        Step.CONFIRMATION, Event.BOOKED,
        outbox=[BOOKED_TEXT.format(
            date=data.get("date") or MISSING_VALUE,
            time=data.get("time") or MISSING_VALUE,
            specialty=data.get("specialty") or MISSING_VALUE,
        )],
    )


def restart_node(state: ConversationState, config: RunnableConfig) -> dict:
    return transition(Step.RESTART, Event.RESTARTED, outbox=[RESTART_TEXT])


def session_closed_node(state: ConversationState, config: RunnableConfig) -> dict:
    return transition(
        Step.SESSION_CLOSED, Event.CLOSED,
        awaiting=None,
        specialty_index={},
        idle_deadline=None,
    )
