# salubot/core/errors.py
"""
Errores del flujo de citas.

Cada error trae el mensaje que se le muestra al usuario. Ninguno debe salir
del grafo: los nodos los capturan y los convierten en respuesta.
"""


class FlowError(Exception):
    user_message = "Lo siento, ocurrió un problema. Inténtalo nuevamente."

    def __init__(self, detail: str = "", user_message: str | None = None):
        super().__init__(detail or self.__class__.__name__)
        if user_message:
            self.user_message = user_message


class CatalogUnavailable(FlowError):
    user_message = "No se pudieron cargar las especialidades en este momento."


class InferenceUnavailable(FlowError):
    user_message = (
        "Lo siento, no puedo procesar tu solicitud en este momento. "
        "Inténtalo más tarde."
    )


class NoJsonFound(FlowError):
    user_message = (
        "Lo siento, no logré interpretar tus datos. "
        "Envía cualquier mensaje para intentarlo de nuevo."
    )


class MalformedJson(FlowError):
    user_message = (
        "Lo siento, hubo un error leyendo la información de tu cita. "
        "Envía cualquier mensaje para intentarlo de nuevo."
    )


class EmptyExtraction(FlowError):
    user_message = (
        "Lo siento, no encontré datos de tu cita en lo que me enviaste. "
        "Envía cualquier mensaje para intentarlo de nuevo."
    )


class BookingFailed(FlowError):
    user_message = (
        "⚠️ Ocurrió un error al registrar tu cita en el sistema.\n"
        "Por favor intenta más tarde o comunícate con el centro médico."
    )


class InvalidSelection(FlowError):
    user_message = "Opción no válida. Por favor elige un número de la lista."


class IncompleteState(FlowError):
    user_message = (
        "Lo siento, se perdieron los datos de tu cita. "
        "Escribe *Hola* para empezar de nuevo."
    )
