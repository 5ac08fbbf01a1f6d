"""
HTTP surface for the orchestration engine.

    POST   /session/start            start a session for a customer
    POST   /session/{id}/message     send one customer message
    GET    /session/{id}             session snapshot
    GET    /session/{id}/trace       ordered timeline
    GET    /session/{id}/summary     escalation summary (404 until escalated)
    POST   /mas/update               add a dynamic rule from a prompt
    GET    /mas/rules                list rules
    DELETE /mas/rules/{id}           deactivate a rule

Request bodies use camelCase keys. Errors are returned as envelopes
(see ``support_mas.api.errors``).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from pydantic import BaseModel, ConfigDict, Field

from support_mas.api.errors import error_response, register_error_handlers
from support_mas.runtime.orchestrator import Orchestrator, build_orchestrator
from support_mas.schemas.session_schema import CustomerInfo
from support_mas.utils import normalize_email

logger = logging.getLogger(__name__)


class StartSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_email: str = Field(alias="customerEmail", min_length=3)
    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str = Field(alias="lastName", default="")
    shopify_customer_id: str = Field(alias="shopifyCustomerId", min_length=1)


class MessageRequest(BaseModel):
    message: str = Field(min_length=1)


class RuleRequest(BaseModel):
    prompt: str = Field(min_length=1)


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def create_app(orchestrator: Optional[Orchestrator] = None) -> FastAPI:
    """Build the API around an orchestrator (the default graph if omitted)."""
    app = FastAPI(title="Support MAS Orchestrator")
    app.state.orchestrator = orchestrator or build_orchestrator()
    register_error_handlers(app)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/session/start")
    async def start_session(
        payload: StartSessionRequest,
        orch: Orchestrator = Depends(get_orchestrator),
    ) -> dict[str, str]:
        customer = CustomerInfo(
            email=normalize_email(payload.customer_email),
            first_name=payload.first_name.strip(),
            last_name=payload.last_name.strip(),
            shopify_customer_id=payload.shopify_customer_id.strip(),
        )
        session_id = orch.start_session(customer)
        logger.info("Session started via API: %s", session_id)
        return {"sessionId": session_id}

    @app.post("/session/{session_id}/message")
    async def send_message(
        session_id: str,
        payload: MessageRequest,
        orch: Orchestrator = Depends(get_orchestrator),
    ) -> dict[str, Any]:
        reply = await orch.handle_message(session_id, payload.message)
        return {
            "message": reply.message,
            "escalated": reply.escalated,
            "toolsCalled": reply.tools_called,
            "blocked": reply.blocked,
            "tags": reply.tags,
        }

    @app.get("/session/{session_id}")
    async def get_session(
        session_id: str,
        orch: Orchestrator = Depends(get_orchestrator),
    ) -> dict[str, Any]:
        return orch.get_session(session_id).model_dump(mode="json")

    @app.get("/session/{session_id}/trace")
    async def get_trace(
        session_id: str,
        orch: Orchestrator = Depends(get_orchestrator),
    ) -> list[dict[str, Any]]:
        return [event.model_dump(mode="json") for event in orch.get_trace(session_id)]

    @app.get("/session/{session_id}/summary")
    async def get_summary(
        session_id: str,
        orch: Orchestrator = Depends(get_orchestrator),
    ) -> dict[str, Any]:
        summary = orch.get_escalation_summary(session_id)
        if summary is None:
            raise error_response(
                code="summary.not_found",
                message=f"Session '{session_id}' has no escalation summary",
                status_code=404,
                details={"session_id": session_id},
            )
        return summary.model_dump(mode="json")

    @app.post("/mas/update")
    async def add_rule(
        payload: RuleRequest,
        orch: Orchestrator = Depends(get_orchestrator),
    ) -> dict[str, Any]:
        rule = orch.add_rule(payload.prompt)
        return rule.model_dump(mode="json")

    @app.get("/mas/rules")
    async def list_rules(orch: Orchestrator = Depends(get_orchestrator)) -> list[dict[str, Any]]:
        return [rule.model_dump(mode="json") for rule in orch.list_rules()]

    @app.delete("/mas/rules/{rule_id}")
    async def deactivate_rule(
        rule_id: str,
        orch: Orchestrator = Depends(get_orchestrator),
    ) -> dict[str, Any]:
        if not orch.deactivate_rule(rule_id):
            raise error_response(
                code="rule.not_found",
                message=f"Rule '{rule_id}' not found",
                status_code=404,
                details={"rule_id": rule_id},
            )
        return {"id": rule_id, "active": False}

    return app
