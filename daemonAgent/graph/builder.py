"""Factory for assembling the turn-loop state machine."""

from __future__ import annotations

from typing import Callable

from langgraph.graph import END, START, StateGraph

from daemonAgent.graph.nodes import build_execute_node, build_respond_node, build_understand_node
from daemonAgent.graph.prompts import build_system_prompt
from daemonAgent.graph.routing import understand_route
from daemonAgent.graph.state import TurnState
from daemonAgent.interfaces import ModelClient, SettingsStore
from daemonAgent.persistence.audit import AuditTrail
from daemonAgent.runtime.actions import ActionRunner
from daemonAgent.runtime.cancellation import CancellationToken
from daemonAgent.tools.catalog import ToolCatalog


def build_turn_graph(
    *,
    model_client: ModelClient,
    catalog: ToolCatalog,
    settings_store: SettingsStore,
    runner: ActionRunner,
    audit: AuditTrail,
    token: CancellationToken,
    governance,
    system_prompt_builder: Callable = build_system_prompt,
):
    """Compose the turn loop.

        START → understand ──actions──→ execute
                    ↑    │                 │
                    │    └──final──→ respond → END
                    └──────────────────────┘

    One pass through ``understand`` is one round: a single model request
    whose reply is validated and handed to ``execute``. ``execute`` runs the
    round through the policy gate and feeds results back as tool messages.
    The round budget is enforced in ``understand``.
    """

    # ========== Build nodes ==========
    understand_node = build_understand_node(
        model_client=model_client,
        catalog=catalog,
        settings_store=settings_store,
        token=token,
        governance=governance,
        system_prompt_builder=system_prompt_builder,
    )
    execute_node = build_execute_node(runner=runner, audit=audit)
    respond_node = build_respond_node()

    # ========== Build graph ==========
    graph = StateGraph(TurnState)

    graph.add_node("understand", understand_node)
    graph.add_node("execute", execute_node)
    graph.add_node("respond", respond_node)

    graph.add_edge(START, "understand")
    graph.add_conditional_edges(
        "understand",
        understand_route,
        {
            "execute": "execute",  # Tool calls proposed
            "respond": "respond",  # Text only, the turn is done
        },
    )
    graph.add_edge("execute", "understand")
    graph.add_edge("respond", END)

    return graph.compile()
