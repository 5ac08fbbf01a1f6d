"""
Judge harness: scores the orchestrator against four requirement suites.

    R1  Session start       sessions are created with customer info and unique ids
    R2  Continuous memory   history, entities and intents survive across turns
    R3  Observable actions  routing, tool calls and timestamps appear in the trace
    R4  Escalation          explicit requests escalate, auto-replies stop, a summary exists

Each scenario runs against a fresh orchestrator built by the supplied
factory, so scenarios never share sessions or rules. A requirement's
score is the fraction of its scenarios that passed; the total score is
the mean of the four requirement scores.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from support_mas.config import settings
from support_mas.runtime.orchestrator import Orchestrator, OrchestratorReply, build_orchestrator
from support_mas.schemas.session_schema import CustomerInfo, MessageRole
from support_mas.schemas.trace_schema import TraceEventType
from support_mas.utils import utc_now

logger = logging.getLogger(__name__)

REQUIREMENTS: dict[str, str] = {
    "R1": "Session Start",
    "R2": "Continuous Memory",
    "R3": "Observable Actions",
    "R4": "Escalation",
}


@dataclass(frozen=True)
class JudgeScenario:
    requirement: str
    name: str
    email: str
    messages: tuple[str, ...]
    check: str


@dataclass
class JudgeResult:
    requirement: str
    scenario: str
    passed: bool
    details: str
    improvement: Optional[str] = None


@dataclass
class RequirementScore:
    passed: int = 0
    total: int = 0

    @property
    def score(self) -> float:
        return self.passed / self.total if self.total else 0.0


@dataclass
class JudgeReport:
    timestamp: datetime
    results: list[JudgeResult] = field(default_factory=list)
    requirements: dict[str, RequirementScore] = field(default_factory=dict)

    @property
    def total_score(self) -> float:
        if not self.requirements:
            return 0.0
        return sum(r.score for r in self.requirements.values()) / len(self.requirements)

    @property
    def failures(self) -> list[JudgeResult]:
        return [r for r in self.results if not r.passed]

    @property
    def improvements(self) -> list[str]:
        return list(dict.fromkeys(r.improvement for r in self.results if r.improvement))


JUDGE_SCENARIOS: tuple[JudgeScenario, ...] = (
    JudgeScenario("R1", "Basic session start", "baki@lookfor.ai", (), "session_created"),
    JudgeScenario("R1", "Customer info stored", "ebrar@lookfor.ai", (), "customer_info"),
    JudgeScenario("R1", "Unique session ID", "baki@lookfor.ai", (), "unique_id"),
    JudgeScenario("R2", "Message history", "baki@lookfor.ai",
                  ("Hello", "My order is #NP2001001"), "history"),
    JudgeScenario("R2", "Entity extraction", "baki@lookfor.ai",
                  ("Order #NP2001002 is late",), "entities"),
    JudgeScenario("R2", "Context preserved", "ebrar@lookfor.ai",
                  ("I need help", "With order #NP3001001", "Can I get refund?"), "context"),
    JudgeScenario("R2", "Intent history", "baki@lookfor.ai",
                  ("Where is my order?", "I want to cancel my subscription"), "intents"),
    JudgeScenario("R3", "Tool calls logged", "baki@lookfor.ai",
                  ("Where is my order?",), "tool_logged"),
    JudgeScenario("R3", "Routing traced", "ebrar@lookfor.ai",
                  ("Cancel my subscription",), "routing_traced"),
    JudgeScenario("R3", "Timestamps present", "baki@lookfor.ai",
                  ("Help me",), "timestamps"),
    JudgeScenario("R3", "Unrecognized text traced", "ebrar@lookfor.ai",
                  ("asdfasdf random text",), "events_traced"),
    JudgeScenario("R4", '"human" keyword', "baki@lookfor.ai",
                  ("I want to speak to a human",), "escalated"),
    JudgeScenario("R4", '"manager" keyword', "ebrar@lookfor.ai",
                  ("Let me talk to your manager",), "escalated"),
    JudgeScenario("R4", '"supervisor" keyword', "baki@lookfor.ai",
                  ("Transfer me to a supervisor",), "escalated"),
    JudgeScenario("R4", "Auto-reply stops", "ebrar@lookfor.ai",
                  ("I need a human", "Are you there?"), "auto_stopped"),
    JudgeScenario("R4", "Summary generated", "baki@lookfor.ai",
                  ("I need to speak to a real person",), "summary"),
)


def _customer_for(email: str) -> CustomerInfo:
    handle = email.split("@")[0]
    return CustomerInfo(
        email=email,
        first_name=handle.capitalize(),
        last_name="Test",
        shopify_customer_id=f"cust_{handle}",
    )


_Check = Callable[[Orchestrator, str, JudgeScenario, list[OrchestratorReply]], JudgeResult]


class JudgeHarness:
    """Runs every judge scenario and aggregates a report."""

    def __init__(
        self,
        orchestrator_factory: Callable[[], Orchestrator] = build_orchestrator,
        scenarios: tuple[JudgeScenario, ...] = JUDGE_SCENARIOS,
    ) -> None:
        self._factory = orchestrator_factory
        self._scenarios = scenarios
        self._checks: dict[str, _Check] = {
            "session_created": self._check_session_created,
            "customer_info": self._check_customer_info,
            "unique_id": self._check_unique_id,
            "history": self._check_history,
            "entities": self._check_entities,
            "context": self._check_context,
            "intents": self._check_intents,
            "tool_logged": self._check_tool_logged,
            "routing_traced": self._check_routing_traced,
            "timestamps": self._check_timestamps,
            "events_traced": self._check_events_traced,
            "escalated": self._check_escalated,
            "auto_stopped": self._check_auto_stopped,
            "summary": self._check_summary,
        }

    async def run(self) -> JudgeReport:
        report = JudgeReport(
            timestamp=utc_now(),
            requirements={key: RequirementScore() for key in REQUIREMENTS},
        )
        for scenario in self._scenarios:
            result = await self.run_scenario(scenario)
            report.results.append(result)
            score = report.requirements.setdefault(scenario.requirement, RequirementScore())
            score.total += 1
            if result.passed:
                score.passed += 1
            logger.debug(
                "[%s] %s: %s", scenario.requirement, scenario.name,
                "PASS" if result.passed else "FAIL",
            )
        logger.info("Judge run complete: total score %.1f%%", report.total_score * 100)
        return report

    async def run_scenario(self, scenario: JudgeScenario) -> JudgeResult:
        check = self._checks.get(scenario.check)
        if check is None:
            raise ValueError(f"Unknown judge check: {scenario.check}")
        orchestrator = self._factory()
        session_id = orchestrator.start_session(_customer_for(scenario.email))
        replies = [
            await orchestrator.handle_message(session_id, text) for text in scenario.messages
        ]
        return check(orchestrator, session_id, scenario, replies)

    # --- R1 ---

    @staticmethod
    def _check_session_created(orch, session_id, scenario, replies) -> JudgeResult:
        passed = bool(session_id) and orch.memory.exists(session_id)
        return JudgeResult(
            scenario.requirement, scenario.name, passed,
            f"Session ID: {session_id}" if passed else "No session ID returned",
        )

    @staticmethod
    def _check_customer_info(orch, session_id, scenario, replies) -> JudgeResult:
        email = orch.get_session(session_id).customer.email
        passed = email == scenario.email
        return JudgeResult(
            scenario.requirement, scenario.name, passed,
            f"Email stored: {email}" if passed else "Customer info not stored",
        )

    @staticmethod
    def _check_unique_id(orch, session_id, scenario, replies) -> JudgeResult:
        second = orch.start_session(_customer_for(scenario.email))
        passed = second != session_id
        return JudgeResult(
            scenario.requirement, scenario.name, passed,
            "Unique IDs generated" if passed else "Duplicate session IDs",
        )

    # --- R2 ---

    @staticmethod
    def _check_history(orch, session_id, scenario, replies) -> JudgeResult:
        count = len(orch.get_session(session_id).messages)
        return JudgeResult(
            scenario.requirement, scenario.name, count >= len(scenario.messages),
            f"{count} messages stored",
        )

    @staticmethod
    def _check_entities(orch, session_id, scenario, replies) -> JudgeResult:
        orders = orch.get_session(session_id).context.mentioned_order_numbers
        passed = bool(orders)
        return JudgeResult(
            scenario.requirement, scenario.name, passed,
            f"Extracted: {', '.join(orders) or 'none'}",
            None if passed else "Entity extraction missing order numbers",
        )

    @staticmethod
    def _check_context(orch, session_id, scenario, replies) -> JudgeResult:
        session = orch.get_session(session_id)
        passed = (
            len(session.messages) >= len(scenario.messages)
            and bool(session.context.mentioned_order_numbers)
        )
        return JudgeResult(
            scenario.requirement, scenario.name, passed,
            "Context preserved across turns" if passed else "Context lost",
        )

    @staticmethod
    def _check_intents(orch, session_id, scenario, replies) -> JudgeResult:
        history = orch.get_session(session_id).context.intent_history
        return JudgeResult(
            scenario.requirement, scenario.name, len(history) >= len(scenario.messages),
            f"Intents: {' -> '.join(i.value for i in history)}",
        )

    # --- R3 ---

    @staticmethod
    def _check_tool_logged(orch, session_id, scenario, replies) -> JudgeResult:
        tool_events = [e for e in orch.get_trace(session_id) if e.type == TraceEventType.TOOL_CALL]
        passed = bool(tool_events)
        return JudgeResult(
            scenario.requirement, scenario.name, passed,
            f"{len(tool_events)} tool calls logged",
            None if passed else "Handlers should call a lookup tool for order questions",
        )

    @staticmethod
    def _check_routing_traced(orch, session_id, scenario, replies) -> JudgeResult:
        routes = [e for e in orch.get_trace(session_id) if e.type == TraceEventType.ROUTING]
        passed = bool(routes)
        return JudgeResult(
            scenario.requirement, scenario.name, passed,
            f"Routing to: {routes[0].data.get('to')}" if passed else "No routing trace",
        )

    @staticmethod
    def _check_timestamps(orch, session_id, scenario, replies) -> JudgeResult:
        events = orch.get_trace(session_id)
        passed = bool(events) and all(e.timestamp is not None for e in events)
        return JudgeResult(
            scenario.requirement, scenario.name, passed,
            "All events timestamped" if passed else "Missing timestamps",
        )

    @staticmethod
    def _check_events_traced(orch, session_id, scenario, replies) -> JudgeResult:
        events = orch.get_trace(session_id)
        return JudgeResult(
            scenario.requirement, scenario.name, bool(events),
            f"{len(events)} events traced",
        )

    # --- R4 ---

    @staticmethod
    def _check_escalated(orch, session_id, scenario, replies) -> JudgeResult:
        passed = (bool(replies) and replies[-1].escalated) or orch.memory.is_escalated(session_id)
        return JudgeResult(
            scenario.requirement, scenario.name, passed,
            "Escalation triggered" if passed else "Not escalated",
            None if passed else f'Escalation keyword not detected: "{scenario.messages[0]}"',
        )

    @staticmethod
    def _check_auto_stopped(orch, session_id, scenario, replies) -> JudgeResult:
        session = orch.get_session(session_id)
        agent_messages = [m for m in session.messages if m.role == MessageRole.AGENT]
        passed = session.context.escalated and not agent_messages
        return JudgeResult(
            scenario.requirement, scenario.name, passed,
            "Auto-reply stopped after escalation" if passed else "Auto-reply continued",
        )

    @staticmethod
    def _check_summary(orch, session_id, scenario, replies) -> JudgeResult:
        passed = orch.get_escalation_summary(session_id) is not None
        return JudgeResult(
            scenario.requirement, scenario.name, passed,
            "Summary generated for handoff" if passed else "No summary",
        )


def format_report(report: JudgeReport, verbose: bool = False) -> str:
    """Render a JudgeReport as plain text."""
    target = settings.evaluation.target_total_score
    lines = [
        "=" * 60,
        "JUDGE REPORT",
        f"  {report.timestamp.isoformat()}",
        "=" * 60,
        f"TOTAL SCORE: {report.total_score:.1%}  (target: {target:.0%})",
        "",
    ]
    for key, title in REQUIREMENTS.items():
        score = report.requirements.get(key, RequirementScore())
        lines.append(f"  {key} {title:<20} {score.passed}/{score.total}  ({score.score:.0%})")

    if report.failures:
        lines += ["", "FAILURES"]
        lines += [f"  [{r.requirement}] {r.scenario}: {r.details}" for r in report.failures]

    if report.improvements:
        lines += ["", "IMPROVEMENT SUGGESTIONS"]
        lines += [f"  - {imp}" for imp in report.improvements]

    if verbose:
        lines += ["", "DETAILED RESULTS"]
        for r in report.results:
            lines.append(f"  {'PASS' if r.passed else 'FAIL'} [{r.requirement}] {r.scenario}")
            lines.append(f"       {r.details}")

    lines.append("=" * 60)
    return "\n".join(lines)
