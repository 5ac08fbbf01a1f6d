from support_mas.runtime.collaborators import (
    ResponseGenerationError,
    ResponseGenerator,
    ToolClient,
)
from support_mas.runtime.memory import SessionMemory, SessionNotFoundError
from support_mas.runtime.orchestrator import Orchestrator, OrchestratorReply, build_orchestrator
from support_mas.runtime.tracing import Tracer

__all__ = [
    "Orchestrator",
    "OrchestratorReply",
    "build_orchestrator",
    "SessionMemory",
    "SessionNotFoundError",
    "Tracer",
    "ResponseGenerator",
    "ResponseGenerationError",
    "ToolClient",
]
