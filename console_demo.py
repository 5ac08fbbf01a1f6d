"""
Offline console playground: chat with the orchestrator without any API keys.

Runs the real orchestration pipeline (entity extraction, intent
classification, dynamic rules, escalation, routing, memory and tracing)
against the keyword response generator and the mock commerce client.
No LLM, no network calls.

Usage:
    python console_demo.py
    python console_demo.py --email ebrar@lookfor.ai
    python console_demo.py --scenario escalation

Commands inside the playground:
    /new [email]      start a new session
    /status           session status and current handler
    /memory           extracted context (orders, emails, intents)
    /trace            the session timeline
    /rule <prompt>    add a dynamic rule
    /rules            list dynamic rules
    /scenarios        list scripted scenarios
    /run <name>       play a scripted scenario in a new session
    /quit             exit
"""

import argparse
import asyncio
import sys
from typing import Optional

from support_mas.config import settings
from support_mas.conversation.dynamic_rules import RuleRejectedError
from support_mas.runtime.orchestrator import Orchestrator, build_orchestrator
from support_mas.schemas.session_schema import CustomerInfo

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEFAULT_EMAIL = "baki@lookfor.ai"


class ConsoleSession:
    """Interactive terminal front-end over one orchestrator."""

    SCENARIOS: dict[str, dict[str, list[str]]] = {
        "wismo": {
            "rules": [],
            "messages": [
                "Hi there",
                "Where is my order #NP2001002?",
                "Thanks, and can you track it again?",
            ],
        },
        "subscription": {
            "rules": [],
            "messages": [
                "I want to pause my subscription",
                "Actually, cancel my subscription",
            ],
        },
        "escalation": {
            "rules": [],
            "messages": [
                "My order #NP2001001 arrived damaged",
                "I want to speak to a human",
                "Hello? Anyone there?",
            ],
        },
        "diversity": {
            "rules": [],
            "messages": [
                "Cancel my subscription",
                "Where is my order?",
                "I want a refund",
            ],
        },
        "rules": {
            "rules": [
                "Block all refund requests over $500",
                "If customer wants to update address, mark as NEEDS_ATTENTION and escalate",
            ],
            "messages": [
                "I want a refund for #NP2001001",
                "Please update my address",
            ],
        },
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self, orchestrator: Optional[Orchestrator] = None, email: str = DEFAULT_EMAIL) -> None:
        self.orchestrator = orchestrator or build_orchestrator()
        self.email = email
        self.session_id = self.new_session(email)

    def agent_say(self, text: str, handler: Optional[str] = None) -> None:
        label = handler or "Agent"
        print(f"{GREEN}{BOLD}[{label}]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def new_session(self, email: str) -> str:
        handle = email.split("@")[0]
        customer = CustomerInfo(
            email=email,
            first_name=handle.capitalize(),
            last_name="Demo",
            shopify_customer_id=f"cust_{handle}",
        )
        self.email = email
        self.session_id = self.orchestrator.start_session(customer)
        self.system_log(f"Session started: {self.session_id} ({email})")
        return self.session_id

    async def send(self, text: str) -> None:
        reply = await self.orchestrator.handle_message(self.session_id, text)
        handler = reply.handler.value if reply.handler else None
        self.agent_say(reply.message, handler)

        details = [f"intent={reply.intent.value if reply.intent else '-'}"]
        if reply.tools_called:
            details.append(f"tools={', '.join(reply.tools_called)}")
        if reply.tags:
            details.append(f"tags={', '.join(reply.tags)}")
        if reply.blocked:
            details.append("blocked")
        self.system_log(" ".join(details))
        if reply.escalated:
            print(f"{YELLOW}  !! Session escalated to a human{RESET}")

    def add_rule(self, prompt: str) -> None:
        try:
            rule = self.orchestrator.add_rule(prompt)
        except RuleRejectedError as exc:
            print(f"{RED}Rule rejected: {exc.reason}{RESET}")
            return
        self.system_log(
            f"Rule {rule.id}: {rule.action.type.value} on {', '.join(rule.trigger.keywords)}"
            + (f" [{rule.action.tag}]" if rule.action.tag else "")
        )

    def show_status(self) -> None:
        session = self.orchestrator.get_session(self.session_id)
        handler = session.context.current_handler
        print(f"{BOLD}Status:{RESET} {session.status.value}")
        print(f"{BOLD}Handler:{RESET} {handler.value if handler else '-'}")
        if session.context.escalation_reason:
            print(f"{BOLD}Reason:{RESET} {session.context.escalation_reason}")

    def show_memory(self) -> None:
        context = self.orchestrator.get_session(self.session_id).context
        print(f"{BOLD}Orders:{RESET}  {', '.join(context.mentioned_order_numbers) or '-'}")
        print(f"{BOLD}Emails:{RESET}  {', '.join(context.mentioned_emails) or '-'}")
        print(f"{BOLD}Intents:{RESET} {' -> '.join(i.value for i in context.intent_history) or '-'}")
        print(f"{BOLD}Tool failures:{RESET} {context.tool_failure_count}")

    def show_trace(self) -> None:
        for event in self.orchestrator.get_trace(self.session_id):
            stamp = event.timestamp.strftime("%H:%M:%S.%f")[:-3]
            print(f"{DIM}{stamp}{RESET} {BOLD}{event.type.value:<11}{RESET} {event.data}")

    def show_rules(self) -> None:
        rules = self.orchestrator.list_rules()
        if not rules:
            self.system_log("No rules")
        for rule in rules:
            state = "active" if rule.active else "inactive"
            print(f"  {rule.id} [{state}] {rule.action.type.value}: {rule.prompt}")

    async def run_scenario(self, name: str) -> None:
        """Play a scripted scenario in a fresh session."""
        scenario = self.SCENARIOS.get(name)
        if scenario is None:
            print(f"{RED}Unknown scenario: {name}{RESET}")
            return

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  SUPPORT ORCHESTRATOR - Scenario: {name}{RESET}")
        print(f"{BOLD}  Brand: {settings.brand_name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        self.new_session(self.email)
        for prompt in scenario["rules"]:
            self.add_rule(prompt)
        for text in scenario["messages"]:
            print(f"\n{BLUE}[Customer] {RESET}{text}")
            await self.send(text)

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        self.show_status()
        self.show_memory()
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def handle_command(self, line: str) -> bool:
        """Run a slash command. Returns False when the playground should exit."""
        command, _, arg = line.partition(" ")
        arg = arg.strip()
        if command in ("/quit", "/exit"):
            return False
        if command == "/new":
            self.new_session(arg or self.email)
        elif command == "/status":
            self.show_status()
        elif command == "/memory":
            self.show_memory()
        elif command == "/trace":
            self.show_trace()
        elif command == "/rule":
            if arg:
                self.add_rule(arg)
            else:
                print(f"{RED}Usage: /rule <prompt>{RESET}")
        elif command == "/rules":
            self.show_rules()
        elif command == "/scenarios":
            for name, scenario in self.SCENARIOS.items():
                print(f"  {name}: {len(scenario['messages'])} messages")
        elif command == "/run":
            await self.run_scenario(arg)
        else:
            print(f"{RED}Unknown command: {command}{RESET}")
        return True

    async def run(self) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  SUPPORT ORCHESTRATOR - Console Playground{RESET}")
        print(f"{BOLD}  Brand: {settings.brand_name}{RESET}")
        print(f"{BOLD}  Type /quit to exit, /scenarios for scripted runs{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

        while True:
            try:
                line = input(f"\n{BLUE}[Customer] {RESET}").strip()
            except EOFError:
                break
            if not line:
                continue
            if line.startswith("/"):
                if not await self.handle_command(line):
                    break
                continue
            if len(line) > self.MAX_INPUT_LENGTH:
                self.agent_say("That was quite long. Could you keep it brief for me?")
                continue
            await self.send(line)

        print(f"\n{DIM}Session ended.{RESET}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Offline support orchestrator playground")
    parser.add_argument("--email", default=DEFAULT_EMAIL, help="Customer email for the session.")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Play a scripted scenario and exit.",
    )
    args = parser.parse_args(argv)

    session = ConsoleSession(email=args.email)
    try:
        if args.scenario:
            asyncio.run(session.run_scenario(args.scenario))
        else:
            asyncio.run(session.run())
    except KeyboardInterrupt:
        print(f"\n{DIM}Interrupted.{RESET}")
        sys.exit(130)


if __name__ == "__main__":
    main()
