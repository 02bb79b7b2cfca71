import asyncio
import logging
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from salubot.agents.flow import Step
from salubot.agents.graph import app_graph
from salubot.agents.nodes import FlowServices
from salubot.agents.state import persistable

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20


class ConversationService:
    """
    Ejecuta un turno por mensaje entrante:
    cargar estado → grafo → guardar estado → enviar respuestas en orden.

    Los turnos de una misma conversación se serializan con un lock propio;
    conversaciones distintas avanzan en paralelo.
    """

    def __init__(self, services: FlowServices, store, channel, graph=None):
        self.services = services
        self.store = store
        self.channel = channel
        self.graph = graph or app_graph
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        # Turnos en curso o esperando el lock, por conversación
        self._holders: Dict[str, int] = defaultdict(int)

    def _initial_state(self, conversation_id: str, contact_phone: Optional[str]) -> Dict[str, Any]:
        return {
            "conversation_id": conversation_id,
            "contact_phone": contact_phone,
            "step": None,
            "awaiting": None,
            "appointment_data": {},
            "specialty_index": {},
            "idle_deadline": None,
            "history": [],
        }

    def run_turn(
        self,
        conversation_id: str,
        body: str,
        contact_phone: Optional[str] = None,
        idle: bool = False,
        now: Optional[float] = None,
    ) -> List[str]:
        """Turno síncrono. Devuelve los mensajes a enviar, en orden."""
        state = self.store.get(conversation_id) or self._initial_state(
            conversation_id, contact_phone
        )
        if contact_phone and not state.get("contact_phone"):
            state["contact_phone"] = contact_phone

        state.update({
            "user_message": body,
            "received_at": now or time.time(),
            "idle": idle,
            "reply": None,
            "redirect": None,
            "outbox": [],
        })

        result = self.graph.invoke(
            state, config={"configurable": {"services": self.services}}
        )
        outbox = list(result.get("outbox") or [])

        saved = persistable(result)
        if not idle:
            saved["history"] = (saved.get("history") or []) + [f"User: {body}"]
        saved["history"] = ((saved.get("history") or []) + [f"AI: {m}" for m in outbox])[-HISTORY_LIMIT:]
        self.store.save(conversation_id, saved)

        logger.info(
            "💬 %s | paso=%s esperando=%s evento=%s",
            conversation_id, saved.get("step"), saved.get("awaiting"), saved.get("last_event"),
        )
        return outbox

    def _deliver(self, to: str, messages: List[str]) -> None:
        for message in messages:
            self.channel.send_text(to, message)

    def _is_closed(self, conversation_id: str) -> bool:
        state = self.store.get(conversation_id) or {}
        return state.get("step") == Step.SESSION_CLOSED.value

    @asynccontextmanager
    async def _conversation_lock(self, conversation_id: str):
        """
        Lock por conversación. Al soltarlo, si nadie más lo espera y la
        sesión quedó cerrada, se descarta para no acumular un lock por número.
        """
        self._holders[conversation_id] += 1
        try:
            async with self._locks[conversation_id]:
                yield
        finally:
            self._holders[conversation_id] -= 1
            if not self._holders[conversation_id]:
                del self._holders[conversation_id]
                closed = await run_in_threadpool(self._is_closed, conversation_id)
                # Pudo llegar otro mensaje mientras consultábamos el store
                if closed and not self._holders.get(conversation_id):
                    self._locks.pop(conversation_id, None)

    async def handle_message(self, conversation_id: str, body: str, sender: str) -> List[str]:
        async with self._conversation_lock(conversation_id):
            outbox = await run_in_threadpool(
                self.run_turn, conversation_id, body, conversation_id
            )
            await run_in_threadpool(self._deliver, sender, outbox)
            return outbox

    @staticmethod
    def _idle_expired(state: Dict[str, Any], now: float) -> bool:
        deadline = state.get("idle_deadline")
        return bool(
            state.get("step") == Step.GREETING.value
            and state.get("awaiting")
            and deadline
            and now > deadline
        )

    def expired_conversations(self, now: float) -> List[str]:
        return [
            conversation_id
            for conversation_id in self.store.conversation_ids()
            if self._idle_expired(self.store.get(conversation_id) or {}, now)
        ]

    async def sweep_idle(self, now: Optional[float] = None) -> int:
        """Cierra por inactividad los saludos que vencieron. Devuelve cuántos."""
        now = now or time.time()
        closed = 0
        expired = await run_in_threadpool(self.expired_conversations, now)
        for conversation_id in expired:
            async with self._conversation_lock(conversation_id):
                # Puede haber llegado un mensaje mientras esperábamos el lock
                state = await run_in_threadpool(self.store.get, conversation_id)
                if not self._idle_expired(state or {}, now):
                    continue
                outbox = await run_in_threadpool(
                    self.run_turn, conversation_id, "", None, True, now
                )
                await run_in_threadpool(self._deliver, conversation_id, outbox)
                closed += 1
        return closed

    async def run_idle_sweeper(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                closed = await self.sweep_idle()
                if closed:
                    logger.info("⏱️ %s sesiones cerradas por inactividad", closed)
            except Exception as e:
                logger.exception("Error en el barrido de inactividad: %s", e)
