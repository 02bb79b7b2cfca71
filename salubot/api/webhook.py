import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse

from salubot.agents.session import ConversationService

logger = logging.getLogger(__name__)

# Router principal (usado en /api/webhook)
router = APIRouter()


def get_conversation_service(request: Request) -> ConversationService:
    return request.app.state.conversations


async def process_message(
    service: ConversationService, user_phone: str, body: str, sender: str
):
    """Procesa el mensaje en background para no bloquear a Twilio"""
    try:
        await service.handle_message(user_phone, body, sender)
    except Exception as e:
        # Nada debe tumbar el worker: el usuario puede reenviar su mensaje
        logger.exception("Error processing %s: %s", user_phone, e)


# --------------------------
# Ruta oficial (API REST)
# --------------------------
@router.post("/webhook")
async def whatsapp_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    service: ConversationService = Depends(get_conversation_service),
):
    form = await request.form()
    sender = form.get("From")
    body = form.get("Body", "")

    if not sender or not body:
        return PlainTextResponse("No content")

    user_phone = sender.replace("whatsapp:", "")

    # Procesar en Background (Respuesta inmediata a Twilio)
    background_tasks.add_task(process_message, service, user_phone, body, sender)

    return PlainTextResponse("OK")


# -----------------------------------
# Ruta duplicada (para Twilio /webhook)
# -----------------------------------
legacy_router = APIRouter()


@legacy_router.post("/webhook")
async def legacy_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    service: ConversationService = Depends(get_conversation_service),
):
    """Versión sin prefix /api, para Twilio"""
    return await whatsapp_webhook(request, background_tasks, service)
