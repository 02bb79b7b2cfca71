"""
Máquina de estados de la conversación.

Cada paso (Step) es un nodo del grafo. Un nodo termina emitiendo un evento
(Event) y la tabla TRANSITIONS dice a dónde va: a otro paso dentro del mismo
turno (redirección) o a END (el turno termina y, si el paso quedó esperando
respuesta, el próximo mensaje del usuario vuelve a ese mismo paso).
"""
from enum import Enum
from typing import Any, Dict, Tuple, Union

from langgraph.graph import END


class Step(str, Enum):
    GREETING = "greeting"
    SPECIALTY_CATALOG = "specialty_catalog"
    SPECIALTY_SELECTION = "specialty_selection"
    FIELD_CAPTURE = "field_capture"
    EXTRACTION = "extraction"
    SUMMARY = "summary"
    CONFIRMATION = "confirmation"
    RESTART = "restart"
    SESSION_CLOSED = "session_closed"


class Event(str, Enum):
    AWAIT_REPLY = "await_reply"              # el paso se suspende esperando respuesta
    IDLE_TIMEOUT = "idle_timeout"
    CHOSE_CATALOG = "chose_catalog"
    CHOSE_BOOKING = "chose_booking"
    CATALOG_SHOWN = "catalog_shown"
    INVALID_SELECTION = "invalid_selection"
    SPECIALTY_SELECTED = "specialty_selected"
    FIELDS_CAPTURED = "fields_captured"
    EXTRACTED = "extracted"
    EXTRACTION_FAILED = "extraction_failed"
    INCOMPLETE = "incomplete"
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    BOOKED = "booked"
    BOOKING_FAILED = "booking_failed"
    RESTARTED = "restarted"
    CLOSED = "closed"


Target = Union[Step, str]

TRANSITIONS: Dict[Tuple[Step, Event], Target] = {
    (Step.GREETING, Event.AWAIT_REPLY): END,
    (Step.GREETING, Event.IDLE_TIMEOUT): Step.SESSION_CLOSED,
    (Step.GREETING, Event.CHOSE_CATALOG): Step.SPECIALTY_CATALOG,
    (Step.GREETING, Event.CHOSE_BOOKING): Step.SPECIALTY_SELECTION,

    (Step.SPECIALTY_CATALOG, Event.CATALOG_SHOWN): END,

    (Step.SPECIALTY_SELECTION, Event.AWAIT_REPLY): END,
    (Step.SPECIALTY_SELECTION, Event.INVALID_SELECTION): Step.SPECIALTY_SELECTION,
    (Step.SPECIALTY_SELECTION, Event.SPECIALTY_SELECTED): Step.FIELD_CAPTURE,

    (Step.FIELD_CAPTURE, Event.AWAIT_REPLY): END,
    (Step.FIELD_CAPTURE, Event.FIELDS_CAPTURED): Step.EXTRACTION,

    (Step.EXTRACTION, Event.EXTRACTION_FAILED): END,
    (Step.EXTRACTION, Event.EXTRACTED): Step.SUMMARY,

    (Step.SUMMARY, Event.INCOMPLETE): END,
    (Step.SUMMARY, Event.AWAIT_REPLY): END,
    (Step.SUMMARY, Event.AFFIRMATIVE): Step.CONFIRMATION,
    (Step.SUMMARY, Event.NEGATIVE): Step.RESTART,

    (Step.CONFIRMATION, Event.BOOKED): Step.SESSION_CLOSED,
    (Step.CONFIRMATION, Event.BOOKING_FAILED): Step.SESSION_CLOSED,

    (Step.RESTART, Event.RESTARTED): Step.FIELD_CAPTURE,

    (Step.SESSION_CLOSED, Event.CLOSED): END,
}


def next_step(step: Step, event: Event) -> Target:
    """Destino de (paso, evento). Un par fuera de la tabla es un bug del nodo."""
    try:
        return TRANSITIONS[(step, event)]
    except KeyError:
        raise ValueError(f"Transición no definida: {step.value} × {event.value}") from None


def successors(step: Step) -> Dict[str, str]:
    """Mapa de rutas para add_conditional_edges, derivado de la tabla."""
    targets = {
        target.value if isinstance(target, Step) else target
        for (source, _), target in TRANSITIONS.items()
        if source == step
    }
    targets.add(END)
    return {t: t for t in targets}


def transition(source: Step, event: Event, **updates: Any) -> Dict[str, Any]:
    """
    Actualización de estado para el evento `event` emitido por `source`.

    - Redirección: el destino pasa a ser el paso actual, sin respuesta
      pendiente, y empieza desde su primer mensaje.
    - END: el turno termina en `source`; `updates` decide si queda esperando
      (awaiting) o si se despeja.
    """
    target = next_step(source, event)
    base: Dict[str, Any] = {"last_event": event.value, "reply": None}

    if target == END:
        base.update({"step": source.value, "redirect": None})
    else:
        base.update({"step": target.value, "redirect": target.value, "awaiting": None})

    base.update(updates)
    return base


def route(state) -> str:
    """Arista condicional común a todos los nodos."""
    return state.get("redirect") or END
