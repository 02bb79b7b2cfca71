import operator
from typing import Annotated, Any, Dict, List, Mapping, Optional, TypedDict


# total=False para que los campos sean opcionales a nivel de type-checking
class AppointmentData(TypedDict, total=False):
    full_name: Optional[str]
    date: Optional[str]
    time: Optional[str]
    specialty: Optional[str]
    phone: Optional[str]


APPOINTMENT_FIELDS = ("full_name", "date", "time", "specialty", "phone")

# Nombres que usa el modelo (y la API de citas) → nombres del estado
FIELD_ALIASES = {
    "fullName": "full_name",
    "full_name": "full_name",
    "nombreCompleto": "full_name",
    "date": "date",
    "fecha": "date",
    "time": "time",
    "hora": "time",
    "specialty": "specialty",
    "especialidad": "specialty",
    "phone": "phone",
    "telefono": "phone",
    "teléfono": "phone",
}


class ConversationState(TypedDict, total=False):
    # Identidad
    conversation_id: str
    contact_phone: Optional[str]

    # Entrada del turno (no se persiste)
    user_message: str
    received_at: float
    idle: bool

    # Posición en el flujo
    step: Optional[str]          # valor de Step o None si no hay flujo activo
    awaiting: Optional[str]      # "menu" | "specialty" | "full_name" | "date" | "time" | "confirmation" | "retry"
    idle_deadline: Optional[float]
    last_event: Optional[str]

    # Control del turno (no se persiste)
    reply: Optional[str]         # mensaje que consume el paso suspendido
    redirect: Optional[str]      # siguiente nodo dentro del mismo turno
    outbox: Annotated[List[str], operator.add]

    # Datos de la cita
    appointment_data: AppointmentData
    specialty_index: Dict[str, str]

    history: List[str]


TRANSIENT_KEYS = ("user_message", "received_at", "idle", "reply", "redirect", "outbox")


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def normalize_extraction(raw: Mapping[str, Any]) -> AppointmentData:
    """
    Traduce el JSON del modelo a campos del estado.
    Descarta claves desconocidas y valores nulos/vacíos.
    """
    data: AppointmentData = {}
    for key, value in raw.items():
        field = FIELD_ALIASES.get(key)
        if field and _has_value(value):
            data[field] = str(value).strip()
    return data


def merge_appointment_data(
    current: Optional[Mapping[str, Any]],
    update: Optional[Mapping[str, Any]],
) -> AppointmentData:
    """
    Mezcla campo a campo: se conserva lo existente salvo que la
    actualización traiga un valor nuevo. Nunca borra un dato capturado.
    """
    merged: AppointmentData = {
        k: v for k, v in (current or {}).items() if k in APPOINTMENT_FIELDS
    }
    for key, value in (update or {}).items():
        if key in APPOINTMENT_FIELDS and _has_value(value):
            merged[key] = value
    return merged


def to_booking_payload(data: Mapping[str, Any]) -> Dict[str, Optional[str]]:
    return {
        "fullName": data.get("full_name"),
        "date": data.get("date"),
        "time": data.get("time"),
        "specialty": data.get("specialty"),
        "phone": data.get("phone"),
    }


def persistable(state: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in state.items() if k not in TRANSIENT_KEYS}
