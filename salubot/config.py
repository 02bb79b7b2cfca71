# salubot/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _csv(value: str):
    return [item.strip() for item in value.split(",") if item.strip()]


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "si", "sí")


class Settings:
    # APIs de negocio
    SPECIALTIES_API_URL = os.getenv(
        "SPECIALTIES_API_URL", "https://api.finsalu.com/api/get-specialtys"
    )
    BOOKING_API_URL = os.getenv("BOOKING_API_URL")
    HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

    # Modelo de lenguaje ("ollama" | "azure")
    LLM_PROVIDER = os.getenv("LLM_PROVIDER", "ollama")
    OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434/api/generate")
    OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3")
    LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

    # Azure Chat
    AZURE_API_KEY = os.getenv("AZURE_OPENAI_API_KEY")
    AZURE_ENDPOINT = os.getenv("AZURE_OPENAI_ENDPOINT")
    AZURE_API_VERSION = os.getenv("AZURE_OPENAI_API_VERSION")
    AZURE_DEPLOYMENT = os.getenv("AZURE_DEPLOYMENT_NAME")

    # Twilio
    TWILIO_SID = os.getenv("TWILIO_SID")
    TWILIO_TOKEN = os.getenv("TWILIO_TOKEN")
    TWILIO_FROM = os.getenv("TWILIO_WHATSAPP_NUMBER")

    # Persistencia (vacío = memoria del proceso)
    REDIS_URL = os.getenv("REDIS_URL")
    SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "86400"))

    # Flujo
    IDLE_TIMEOUT_SECONDS = float(os.getenv("IDLE_TIMEOUT_SECONDS", "300"))
    IDLE_SWEEP_SECONDS = float(os.getenv("IDLE_SWEEP_SECONDS", "30"))
    GREETING_KEYWORDS = _csv(os.getenv("GREETING_KEYWORDS", "Hola"))
    GREETING_CASE_SENSITIVE = _flag(os.getenv("GREETING_CASE_SENSITIVE", "true"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
