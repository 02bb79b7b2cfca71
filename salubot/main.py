import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salubot.config import settings
from salubot.agents.nodes import FlowServices
from salubot.agents.session import ConversationService
from salubot.api.webhook import router, legacy_router
from salubot.core.business import BookingClient
from salubot.core.catalog import SpecialtyCatalogClient
from salubot.core.channel import TwilioChannel
from salubot.core.llm import build_extraction_client
from salubot.core.store import build_state_store

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_conversation_service() -> ConversationService:
    channel = TwilioChannel()
    services = FlowServices(
        catalog=SpecialtyCatalogClient(),
        extractor=build_extraction_client(),
        booking=BookingClient(),
        presence=channel.send_presence,
    )
    return ConversationService(services, build_state_store(), channel)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.conversations = create_conversation_service()

    sweeper = None
    if settings.IDLE_TIMEOUT_SECONDS > 0:
        sweeper = asyncio.create_task(
            app.state.conversations.run_idle_sweeper(settings.IDLE_SWEEP_SECONDS)
        )
    logger.info("🤖 Salu bot listo (LLM: %s)", settings.LLM_PROVIDER)
    yield

    if sweeper:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(title="Salu Appointment Bot", lifespan=lifespan)

# CORS Config
origins = ["*"]  # Ajustar en producción

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rutas oficiales de la API
app.include_router(router, prefix="/api")

# Ruta espejo para Twilio (sin /api)
app.include_router(legacy_router)


@app.get("/")
def home():
    return {"status": "Salu Bot Online"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
