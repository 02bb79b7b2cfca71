from langgraph.graph import StateGraph, END
from salubot.agents.state import ConversationState
from salubot.agents.flow import Step, route, successors
from salubot.agents.nodes import (
    dispatch_node,
    greeting_node,
    specialty_catalog_node,
    specialty_selection_node,
    field_capture_node,
    extraction_node,
    summary_node,
    confirmation_node,
    restart_node,
    session_closed_node,
)


# ==========================================================
# NODOS POR PASO
# ==========================================================

STEP_NODES = {
    Step.GREETING: greeting_node,
    Step.SPECIALTY_CATALOG: specialty_catalog_node,
    Step.SPECIALTY_SELECTION: specialty_selection_node,
    Step.FIELD_CAPTURE: field_capture_node,
    Step.EXTRACTION: extraction_node,
    Step.SUMMARY: summary_node,
    Step.CONFIRMATION: confirmation_node,
    Step.RESTART: restart_node,
    Step.SESSION_CLOSED: session_closed_node,
}


# ==========================================================
# DEFINICIÓN DEL WORKFLOW
# ==========================================================

def build_graph():
    """
    Un turno = una invocación del grafo:

        dispatch ──► paso actual / paso activado por palabra clave
                        │
                        ├─ redirección → otro paso en el mismo turno
                        └─ END → el turno termina (el paso puede quedar
                                 esperando la respuesta del usuario)

    Las aristas de cada paso salen de la tabla TRANSITIONS.
    """
    workflow = StateGraph(ConversationState)

    workflow.add_node("dispatch", dispatch_node)
    for step, node in STEP_NODES.items():
        workflow.add_node(step.value, node)

    # Punto de entrada
    workflow.set_entry_point("dispatch")

    # Desde dispatch se puede entrar a cualquier paso (respuesta o palabra clave)
    workflow.add_conditional_edges(
        "dispatch",
        route,
        {**{step.value: step.value for step in STEP_NODES}, END: END},
    )

    for step in STEP_NODES:
        workflow.add_conditional_edges(step.value, route, successors(step))

    return workflow.compile()


# Grafo compilado
app_graph = build_graph()
