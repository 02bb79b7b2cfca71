# salubot/agents/prompts.py

EXTRACTION_PROMPT = """
Eres el asistente de citas médicas de Salu. Tu tarea es extraer los datos de una cita
a partir de los datos actuales y del mensaje del usuario.

Responde ÚNICAMENTE con un JSON válido con exactamente estas claves:
{{
    "fullName": "Nombre completo del paciente",
    "date": "Fecha de la cita en formato YYYY-MM-DD",
    "time": "Hora de la cita en formato 24 horas HH:MM",
    "specialty": "Especialidad médica",
    "phone": "Teléfono de contacto"
}}

Reglas:
1. Si falta un dato escribe null, nunca omitas la clave.
2. Acepta fechas y horas informales ("mañana", "el próximo lunes", "4 de la tarde")
   pero devuélvelas normalizadas. Hoy es {today}.
3. No agregues comentarios ni texto fuera del JSON.
"""

WELCOME_TEXT = "👋 ¡Hola! Soy la IA de Salu, tu asistente virtual para agendar citas médicas."

MENU_TEXT = (
    "¿Qué te gustaría hacer hoy? \n\n"
    "*1.* Ver especialidades \n"
    "*2.* Agendar una cita"
)

MENU_RETRY_TEXT = "No entendí tu respuesta.\n\n" + MENU_TEXT

IDLE_CLOSED_TEXT = (
    "Se ha cerrado la sesión por inactividad. "
    "Para empezar de nuevo, escribe *Hola*."
)

START_HINT_TEXT = "Para empezar, escribe *Hola*."

SEARCHING_SPECIALTIES_TEXT = "Buscando especialidades..."

SPECIALTY_PROMPT_TEXT = "Responde con el número de la especialidad para tu cita."

CATALOG_RETRY_TEXT = "Envía cualquier mensaje para intentarlo de nuevo."

SPECIALTY_CHOSEN_TEXT = "Perfecto, agendaremos tu cita en *{specialty}*."

CATALOG_TEXT = "Las especialidades disponibles son: {specialties}"

CATALOG_HINT_TEXT = 'Para agendar una cita, escribe "2" o "agendar".'

FIELD_PROMPTS = {
    "full_name": "¿Cuál es tu nombre completo?",
    "date": "¿Para qué fecha quieres la cita? (por ejemplo: mañana, el lunes, 20/08)",
    "time": "¿A qué hora te gustaría? (por ejemplo: 4 de la tarde)",
}

PROCESSING_TEXT = "Gracias, estoy revisando tus datos..."

SUMMARY_TEXT = (
    "*Resumen de la Cita:*\n"
    "*Nombre:* {full_name}\n"
    "*Fecha:* {date}\n"
    "*Hora:* {time}\n"
    "*Especialidad:* {specialty}\n"
    "*Teléfono:* {phone}"
)

CONFIRM_QUESTION_TEXT = "¿Es correcta la información para agendar la cita? (Sí/No)"

CONFIRM_RETRY_TEXT = "Por favor responde *Sí* o *No*."

MISSING_VALUE = "No indicado"

BOOKED_TEXT = (
    "✅ Tu cita ha sido registrada exitosamente.\n\n"
    "Fecha: {date}\n"
    "Hora: {time}\n"
    "Especialidad: {specialty}\n\n"
    "Para agendar otra cita, escribe *Hola*."
)

RESTART_TEXT = "De acuerdo, volvamos a tomar tus datos. La especialidad elegida se mantiene."
