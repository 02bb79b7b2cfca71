# salubot/core/llm.py
import json
import logging
from typing import Any, Dict

import requests
from langchain_core.messages import HumanMessage
from langchain_openai import AzureChatOpenAI

from salubot.config import settings
from salubot.core.errors import InferenceUnavailable

logger = logging.getLogger(__name__)


def build_prompt(instructions: str, context: Dict[str, Any], user_utterance: str) -> str:
    return (
        f"{instructions}\n\n"
        f"Datos actuales: {json.dumps(context, ensure_ascii=False)}\n"
        f'Mensaje del usuario: "{user_utterance}"'
    )


class OllamaExtractionClient:
    """Modelo local expuesto con la API /api/generate de Ollama."""

    def __init__(self, url: str = None, model: str = None, timeout: float = None):
        self.url = url or settings.OLLAMA_URL
        self.model = model or settings.OLLAMA_MODEL
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS

    def extract(self, instructions: str, context: Dict[str, Any], user_utterance: str) -> str:
        payload = {
            "model": self.model,
            "prompt": build_prompt(instructions, context, user_utterance),
            "stream": False,
        }
        try:
            logger.info("🚀 POST → %s | model=%s", self.url, self.model)
            res = requests.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise InferenceUnavailable(f"Sin conexión con {self.url}: {e}") from e

        if not res.ok:
            raise InferenceUnavailable(f"Status {res.status_code} en {self.url}")

        try:
            text = res.json().get("response")
        except ValueError as e:
            raise InferenceUnavailable("Respuesta no JSON del modelo") from e

        if not isinstance(text, str):
            raise InferenceUnavailable("El modelo no devolvió el campo 'response'")
        logger.debug("🔙 Respuesta del modelo: %s", text)
        return text


class AzureExtractionClient:
    def __init__(self, llm=None):
        if llm is None:
            llm = AzureChatOpenAI(
                azure_deployment=settings.AZURE_DEPLOYMENT,
                openai_api_version=settings.AZURE_API_VERSION,
                azure_endpoint=settings.AZURE_ENDPOINT,
                api_key=settings.AZURE_API_KEY,
                temperature=0,  # Extracción determinista
            )
        self.llm = llm

    def extract(self, instructions: str, context: Dict[str, Any], user_utterance: str) -> str:
        prompt = build_prompt(instructions, context, user_utterance)
        try:
            resp = self.llm.invoke([HumanMessage(content=prompt)])
        except Exception as e:
            # El SDK lanza errores propios (red, cuota, auth); para el flujo son lo mismo
            raise InferenceUnavailable(f"Azure OpenAI no disponible: {e}") from e
        return resp.content if isinstance(resp.content, str) else str(resp.content)


def build_extraction_client(provider: str = None):
    provider = (provider or settings.LLM_PROVIDER).lower()
    if provider == "azure":
        return AzureExtractionClient()
    if provider == "ollama":
        return OllamaExtractionClient()
    raise ValueError(f"LLM_PROVIDER desconocido: {provider}")
