"""Tests for swarmflow.agent.loop (the turn loop, driven by a scripted model)."""

from __future__ import annotations

import io
import json
from typing import Any, Sequence
from unittest.mock import MagicMock, patch

import pytest

from swarmflow import (
    Agent,
    AgentRef,
    FixedOrder,
    FixedPrerequisites,
    RepeatCheck,
    add_rules,
    add_tools,
    new_session,
    register_agent,
    run_full_turn,
    run_turn,
    transfer_tool,
)
from swarmflow.agent.loop import (
    TurnOutcome,
    available_tools,
    handle_tool_calls,
    update_system_message,
)
from swarmflow.errors import (
    AgentNotFoundError,
    DuplicateToolError,
    ToolExecutionError,
    ToolNotFoundError,
)
from swarmflow.flow import get_used_tools
from swarmflow.llm.message import (
    AnyMessage,
    AssistantMessage,
    Message,
    PrivateMessage,
    SystemMessage,
    ToolCall,
    ToolResultMessage,
    UserMessage,
)
from swarmflow.privacy import is_visible, unwrap
from swarmflow.session.wire import EventType
from swarmflow.tool.base import Tool


class ScriptedProvider:
    """Completion service replaying canned responses and recording requests."""

    def __init__(self, *responses: Message | list[Message]) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def complete(
        self,
        messages: Sequence[AnyMessage],
        tools: Sequence[Tool],
        model: str,
        *,
        tool_choice: str | None = None,
        name: str | None = None,
    ) -> list[Message]:
        self.calls.append(
            {
                "messages": list(messages),
                "tools": [t.name for t in tools],
                "model": model,
                "tool_choice": tool_choice,
                "name": name,
            }
        )
        if not self.responses:
            return [AssistantMessage(content="done")]
        response = self.responses.pop(0)
        return list(response) if isinstance(response, list) else [response]


def _call(name: str, call_id: str = "tc1", **arguments: Any) -> AssistantMessage:
    return AssistantMessage(tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)])


def _tool_results(messages: Sequence[AnyMessage]) -> list[ToolResultMessage]:
    return [unwrap(m) for m in messages if isinstance(unwrap(m), ToolResultMessage)]


def ping() -> str:
    """Ping."""
    return "pong"


def check_stock(sku: str) -> str:
    """Check stock for a SKU."""
    return f"{sku}: 3 in stock"


def search(query: str) -> str:
    """Search the archive."""
    return f"results for {query}"


def explode() -> str:
    """Always fails."""
    raise RuntimeError("boom")


def remember(key: str, value: str, context: dict) -> str:
    """Store a value in the session context."""
    context[key] = value
    return "stored"


# ---------------------------------------------------------------------------
# update_system_message
# ---------------------------------------------------------------------------


class TestUpdateSystemMessage:
    def test_prepends(self) -> None:
        history: list[AnyMessage] = [UserMessage("hi")]
        update_system_message(history, Agent(name="A", instructions="Be brief."))
        assert history == [SystemMessage("Be brief."), UserMessage("hi")]

    def test_replaces(self) -> None:
        history: list[AnyMessage] = [SystemMessage("old"), UserMessage("hi")]
        update_system_message(history, Agent(name="A", instructions="new"))
        assert history == [SystemMessage("new"), UserMessage("hi")]

    def test_no_agent(self) -> None:
        history: list[AnyMessage] = [UserMessage("hi")]
        assert update_system_message(history, None) == [UserMessage("hi")]


# ---------------------------------------------------------------------------
# Basic turns
# ---------------------------------------------------------------------------


class TestBasicTurn:
    def test_plain_answer(self) -> None:
        provider = ScriptedProvider(AssistantMessage(content="hello"))
        agent = Agent(name="Greeter", instructions="Greet.")
        session = new_session(agent, provider=provider)

        run_turn(session, "hi")

        assert session.history == [UserMessage("hi"), AssistantMessage(content="hello")]
        assert session.agent is agent
        request = provider.calls[0]
        assert request["messages"] == [SystemMessage("Greet."), UserMessage("hi")]
        assert request["tools"] == []
        assert request["tool_choice"] is None
        assert request["model"] == "gpt-4o"

    def test_tool_then_answer(self) -> None:
        provider = ScriptedProvider(_call("check_stock", sku="A1"), AssistantMessage("yes"))
        agent = add_tools(Agent(name="Sales Team", tool_choice="auto"), check_stock)
        session = new_session(agent, provider=provider)

        run_turn(session, "any A1?")

        (result,) = _tool_results(session.history)
        assert result.content == "A1: 3 in stock"
        assert result.tool_call_id == "tc1"
        assert session.artifacts == ["A1: 3 in stock"]
        assert provider.calls[0]["tools"] == ["check_stock"]
        assert provider.calls[0]["tool_choice"] == "auto"
        assert provider.calls[0]["name"] == "Sales_Team"

    def test_session_history_has_no_system_message(self) -> None:
        provider = ScriptedProvider(AssistantMessage("hello"))
        session = new_session(Agent(name="A"), provider=provider)
        run_turn(session, "hi")
        run_turn(session, "again")
        assert not any(isinstance(unwrap(m), SystemMessage) for m in session.history)
        assert provider.calls[1]["messages"][0] == SystemMessage("You are a helpful agent.")

    def test_empty_response_completes(self) -> None:
        provider = ScriptedProvider([])
        session = new_session(Agent(name="A"), provider=provider)
        resp = run_full_turn(session.agent, [UserMessage("hi")], session, provider=provider)
        assert resp.outcome is TurnOutcome.COMPLETE
        assert resp.messages == []

    def test_context_passed_to_tools(self) -> None:
        provider = ScriptedProvider(
            _call("remember", key="color", value="blue"), AssistantMessage("ok")
        )
        agent = add_tools(Agent(name="A"), remember)
        session = new_session(agent, context={"user": "u1"}, provider=provider)

        run_turn(session, "remember blue")

        assert session.context == {"user": "u1", "color": "blue"}

    def test_input_messages_not_modified(self) -> None:
        provider = ScriptedProvider(_call("ping"), AssistantMessage("done"))
        agent = add_tools(Agent(name="A"), ping)
        session = new_session(agent, provider=provider)
        messages: list[AnyMessage] = [UserMessage("go")]

        resp = run_full_turn(agent, messages, session, provider=provider)

        assert messages == [UserMessage("go")]
        assert len(resp.messages) == 3
        assert resp.outcome is TurnOutcome.COMPLETE

    def test_no_active_agent_rejected(self) -> None:
        session = new_session(Agent(name="A"), provider=ScriptedProvider())
        session.agent = None
        with pytest.raises(ValueError, match="no active agent"):
            run_turn(session, "hi")

    def test_default_provider_from_config(self) -> None:
        fake = MagicMock()
        fake.complete.return_value = [AssistantMessage("hi")]
        session = new_session(Agent(name="A"))
        with patch("swarmflow.agent.loop.create_provider", return_value=fake) as factory:
            run_turn(session, "hello")
            run_turn(session, "again")
        factory.assert_called_once_with("gpt-4o", temperature=None, max_tokens=None)
        assert session.provider is fake
        assert fake.complete.call_count == 2


# ---------------------------------------------------------------------------
# Budget and termination
# ---------------------------------------------------------------------------


class TestBudgetAndTermination:
    def _pinging(self, n: int) -> ScriptedProvider:
        return ScriptedProvider(*[_call("ping", call_id=f"tc{i}") for i in range(n)])

    def test_max_turns(self) -> None:
        provider = self._pinging(10)
        agent = add_tools(Agent(name="A"), ping)
        session = new_session(agent, provider=provider)

        resp = run_full_turn(
            agent, [UserMessage("go")], session, provider=provider, max_turns=4
        )

        assert resp.outcome is TurnOutcome.MAX_TURNS
        assert len(resp.messages) == 4
        assert resp.agent is agent
        assert len(provider.calls) == 2

    def test_max_turns_from_config(self) -> None:
        provider = self._pinging(10)
        agent = add_tools(Agent(name="A"), ping)
        session = new_session(agent, provider=provider)
        session.config.run.max_turns = 2

        run_turn(session, "go")

        assert len(session.history) == 3
        assert len(provider.calls) == 1

    def test_repeat_check_terminates(self) -> None:
        provider = self._pinging(10)
        stream = io.StringIO()
        agent = add_tools(Agent(name="A"), ping)
        session = add_rules(new_session(agent, provider=provider, stream=stream), RepeatCheck(n=2))

        resp = run_full_turn(
            agent, [UserMessage("go")], session, provider=provider, max_turns=20
        )

        assert resp.outcome is TurnOutcome.TERMINATED
        assert resp.agent is None
        assert len(resp.messages) == 4
        assert session.wire.events[-1].type is EventType.TERMINATION
        assert "Termination condition triggered: Tool repeated 2 times" in stream.getvalue()

    def test_terminated_session_has_no_agent(self) -> None:
        provider = self._pinging(10)
        agent = add_tools(Agent(name="A"), ping)
        session = add_rules(new_session(agent, provider=provider), [RepeatCheck(n=2)])

        run_turn(session, "go", max_turns=20)

        assert session.agent is None
        with pytest.raises(ValueError):
            run_turn(session, "again")

    def test_add_rules_rejects_non_rules(self) -> None:
        session = new_session(Agent(name="A"))
        with pytest.raises(TypeError):
            add_rules(session, ["not a rule"])  # type: ignore[list-item]


# ---------------------------------------------------------------------------
# Tool failures
# ---------------------------------------------------------------------------


class TestToolFailures:
    def test_missing_tool_is_not_fatal(self) -> None:
        provider = ScriptedProvider(_call("nope"), AssistantMessage("sorry"))
        agent = add_tools(Agent(name="A"), ping)
        session = new_session(agent, provider=provider)

        run_turn(session, "go")

        (result,) = _tool_results(session.history)
        assert result.is_error is True
        assert result.content == "Unknown tool: nope. Available tools: ping"
        assert isinstance(session.artifacts[0], ToolNotFoundError)
        assert session.history[-1] == AssistantMessage("sorry")

    def test_tool_exception_is_not_fatal(self) -> None:
        provider = ScriptedProvider(
            _call("explode"), _call("ping", call_id="tc2"), AssistantMessage("done")
        )
        agent = add_tools(Agent(name="A"), [explode, ping])
        stream = io.StringIO()
        session = new_session(agent, provider=provider, stream=stream)

        run_turn(session, "go", max_turns=10)

        failed, ok = _tool_results(session.history)
        assert failed.is_error is True
        assert failed.content == "Error executing explode: RuntimeError: boom"
        assert ok.content == "pong"
        assert isinstance(session.artifacts[0], ToolExecutionError)
        assert session.artifacts[1] == "pong"
        assert ">> Tool Error: Error executing explode" in stream.getvalue()

    def test_batch_continues_after_failure(self) -> None:
        batch = AssistantMessage(
            tool_calls=[
                ToolCall(id="tc1", name="explode"),
                ToolCall(id="tc2", name="ping"),
            ]
        )
        provider = ScriptedProvider(batch, AssistantMessage("done"))
        agent = add_tools(Agent(name="A"), [explode, ping])
        session = new_session(agent, provider=provider)

        run_turn(session, "go")

        assert [r.tool_call_id for r in _tool_results(session.history)] == ["tc1", "tc2"]

    def test_early_exit_without_agent(self) -> None:
        session = new_session(Agent(name="A"))
        history: list[AnyMessage] = [_call("ping")]

        assert handle_tool_calls(None, history, session) is None

        assert len(history) == 1
        assert session.artifacts == []
        assert session.wire.events[-1].type is EventType.EARLY_EXIT


# ---------------------------------------------------------------------------
# Flow rules
# ---------------------------------------------------------------------------


def step_a() -> str:
    """Step A."""
    return "a done"


def step_b() -> str:
    """Step B."""
    return "b done"


def step_c() -> str:
    """Step C."""
    return "c done"


class TestFlowRulesInLoop:
    def test_fixed_order_gates_offered_tools(self) -> None:
        provider = ScriptedProvider(
            _call("step_b"), _call("step_a", call_id="tc2"), AssistantMessage("done")
        )
        agent = add_tools(Agent(name="A", tool_choice="required"), [step_a, step_b, step_c])
        session = add_rules(new_session(agent, provider=provider), FixedOrder(("step_b", "step_a")))

        run_turn(session, "go", max_turns=10)

        assert [c["tools"] for c in provider.calls] == [["step_b"], ["step_a"], []]
        assert provider.calls[2]["tool_choice"] is None

    def test_prerequisites_gate_offered_tools(self) -> None:
        provider = ScriptedProvider(_call("step_a"), AssistantMessage("done"))
        agent = add_tools(Agent(name="A"), [step_a, step_b, step_c])
        rule = FixedPrerequisites({"step_b": ["step_a"], "step_c": ["step_a", "step_b"]})
        session = add_rules(new_session(agent, provider=provider), rule)

        run_turn(session, "go")

        assert provider.calls[0]["tools"] == ["step_a"]
        assert provider.calls[1]["tools"] == ["step_a", "step_b"]

    def test_used_tools_carry_across_turns(self) -> None:
        provider = ScriptedProvider(
            _call("step_a"), AssistantMessage("half"), AssistantMessage("rest")
        )
        agent = add_tools(Agent(name="A"), [step_a, step_b, step_c])
        session = add_rules(
            new_session(agent, provider=provider), FixedOrder(("step_a", "step_b"))
        )

        run_turn(session, "first")
        run_turn(session, "second")

        assert provider.calls[2]["tools"] == ["step_b"]


# ---------------------------------------------------------------------------
# Session tools
# ---------------------------------------------------------------------------


def lookup_order(order_id: str) -> str:
    """Look up an order."""
    return f"order {order_id}: shipped"


def lookup_order_locally(order_id: str) -> str:
    """Look up an order in the local cache."""
    return f"order {order_id}: cached"


class TestSessionTools:
    def test_offered_after_agent_tools_and_dispatched(self) -> None:
        provider = ScriptedProvider(
            _call("lookup_order", order_id="42"), AssistantMessage("It shipped.")
        )
        agent = add_tools(Agent(name="A"), ping)
        session = add_rules(new_session(agent, provider=provider), Tool.from_function(lookup_order))

        run_turn(session, "where is 42?")

        assert provider.calls[0]["tools"] == ["ping", "lookup_order"]
        (result,) = _tool_results(session.history)
        assert result.content == "order 42: shipped"
        assert result.is_error is False
        assert session.artifacts == ["order 42: shipped"]
        assert "lookup_order" not in agent.tool_map

    def test_plain_callable_is_wrapped(self) -> None:
        session = add_rules(new_session(Agent(name="A")), lookup_order)
        assert isinstance(session.tools["lookup_order"], Tool)
        assert session.rules == []

    def test_duplicate_rejected(self) -> None:
        session = add_rules(new_session(Agent(name="A")), lookup_order)
        with pytest.raises(DuplicateToolError, match="lookup_order"):
            add_rules(session, Tool.from_function(lookup_order))

    def test_mixed_list(self) -> None:
        session = add_rules(new_session(Agent(name="A")), [RepeatCheck(n=3), lookup_order])
        assert len(session.rules) == 1
        assert isinstance(session.rules[0], RepeatCheck)
        assert session.tools.names() == ["lookup_order"]

    def test_offered_to_every_agent(self) -> None:
        sales = add_tools(Agent(name="Sales"), check_stock)
        triage = add_tools(Agent(name="Triage"), transfer_tool(sales))
        provider = ScriptedProvider(_call("transfer_to_sales"), AssistantMessage("hi"))
        session = add_rules(new_session(triage, provider=provider), lookup_order)

        run_turn(session, "shoes")

        assert provider.calls[0]["tools"] == ["transfer_to_sales", "lookup_order"]
        assert provider.calls[1]["tools"] == ["check_stock", "lookup_order"]

    def test_agent_tool_shadows_session_tool(self) -> None:
        provider = ScriptedProvider(
            _call("lookup_order", order_id="7"), AssistantMessage("ok")
        )
        agent = add_tools(
            Agent(name="A"), Tool.from_function(lookup_order_locally, name="lookup_order")
        )
        session = add_rules(new_session(agent, provider=provider), lookup_order)

        assert available_tools(agent, session) == ["lookup_order"]
        run_turn(session, "where is 7?")

        assert provider.calls[0]["tools"] == ["lookup_order"]
        assert session.artifacts == ["order 7: cached"]

    def test_flow_rules_gate_session_tools(self) -> None:
        provider = ScriptedProvider(
            _call("lookup_order", order_id="1"),
            _call("ping", call_id="tc2"),
            AssistantMessage("done"),
        )
        agent = add_tools(Agent(name="A"), [ping, step_a])
        session = add_rules(
            new_session(agent, provider=provider),
            [lookup_order, FixedOrder(("lookup_order", "ping"))],
        )

        run_turn(session, "go", max_turns=10)

        assert [c["tools"] for c in provider.calls] == [["lookup_order"], ["ping"], []]
        assert session.artifacts == ["order 1: shipped", "pong"]

    def test_missing_tool_lists_agent_tools(self) -> None:
        provider = ScriptedProvider(_call("nope"), AssistantMessage("sorry"))
        agent = add_tools(Agent(name="A"), ping)
        session = add_rules(new_session(agent, provider=provider), lookup_order)

        run_turn(session, "go")

        assert isinstance(session.artifacts[0], ToolNotFoundError)
        assert _tool_results(session.history)[0].content == (
            "Unknown tool: nope. Available tools: ping"
        )


# ---------------------------------------------------------------------------
# Handoffs and privacy
# ---------------------------------------------------------------------------


class TestHandoff:
    def _agents(self) -> tuple[Agent, Agent]:
        sales = add_tools(
            Agent(name="Sales", instructions="Sell shoes.", model="sales-model"),
            check_stock,
        )
        triage = Agent(name="Triage", instructions="Route the user.", model="triage-model")
        add_tools(triage, transfer_tool(sales))
        return triage, sales

    def test_handoff_switches_agent(self) -> None:
        triage, sales = self._agents()
        provider = ScriptedProvider(
            _call("transfer_to_sales", reason="wants shoes"),
            _call("check_stock", call_id="tc2", sku="A1"),
            AssistantMessage("We have A1."),
        )
        stream = io.StringIO()
        session = new_session(triage, provider=provider, stream=stream)

        run_turn(session, "I want shoes", max_turns=10)

        assert session.agent is sales
        first, second, _ = provider.calls
        assert first["model"] == "triage-model"
        assert first["messages"][0] == SystemMessage("Route the user.")
        assert first["tools"] == ["transfer_to_sales"]
        assert second["model"] == "sales-model"
        assert second["messages"][0] == SystemMessage("Sell shoes.")
        assert second["tools"] == ["check_stock"]

        handoffs = [e for e in session.wire.events if e.type is EventType.HANDOFF]
        assert len(handoffs) == 1
        assert ">> Handoff: Triage -> Sales" in stream.getvalue()

        ack = _tool_results(session.history)[0]
        assert json.loads(ack.content) == {"assistant": "Sales", "reason": "wants shoes"}
        assert is_visible(ack, triage)
        assert is_visible(ack, sales)

    def test_handoff_by_reference(self) -> None:
        sales = Agent(name="Sales", instructions="Sell shoes.")
        triage = add_tools(Agent(name="Triage"), transfer_tool("Sales"))
        provider = ScriptedProvider(_call("transfer_to_sales"), AssistantMessage("hi"))
        session = register_agent(new_session(triage, provider=provider), sales)

        run_turn(session, "shoes")

        assert session.agent is sales
        assert session.artifacts == [AgentRef("Sales")]
        assert provider.calls[1]["messages"][0] == SystemMessage("Sell shoes.")

    def test_unregistered_reference_is_fatal(self) -> None:
        triage = add_tools(Agent(name="Triage"), transfer_tool("Ghost"))
        provider = ScriptedProvider(_call("transfer_to_ghost"))
        session = new_session(triage, provider=provider)

        with pytest.raises(AgentNotFoundError):
            run_turn(session, "hi")

    def test_starting_agent_by_reference(self) -> None:
        sales = Agent(name="Sales")
        provider = ScriptedProvider(AssistantMessage("hi"))
        session = register_agent(new_session(AgentRef("Sales"), provider=provider), sales)

        run_turn(session, "hello")

        assert session.agent is sales

    def test_transfer_to_self_is_not_a_handoff(self) -> None:
        agent = Agent(name="Solo")
        add_tools(agent, transfer_tool(agent))
        provider = ScriptedProvider(_call("transfer_to_solo"), AssistantMessage("ok"))
        session = new_session(agent, provider=provider)

        run_turn(session, "hi")

        assert session.agent is agent
        assert not any(e.type is EventType.HANDOFF for e in session.wire.events)


class TestPrivacyInLoop:
    def _setup(self) -> tuple[Agent, Agent, ScriptedProvider]:
        writer = Agent(name="Writer", instructions="Write it up.")
        researcher = add_tools(
            Agent(name="Researcher", private=True), [search, transfer_tool(writer)]
        )
        provider = ScriptedProvider(
            _call("search", query="shoes"),
            _call("transfer_to_writer", call_id="tc2", reason="notes ready"),
            AssistantMessage("Report: shoes."),
        )
        return researcher, writer, provider

    def test_private_chatter_hidden_after_handoff(self) -> None:
        researcher, writer, provider = self._setup()
        session = new_session(researcher, provider=provider)

        run_turn(session, "research shoes", max_turns=10)

        # Researcher sees its own search result before handing off
        assert [r.name for r in _tool_results(provider.calls[1]["messages"])] == ["search"]

        # Writer sees only the handoff, not the search
        writer_view = provider.calls[2]["messages"]
        assert writer_view[0] == SystemMessage("Write it up.")
        assert [r.name for r in _tool_results(writer_view)] == ["transfer_to_writer"]
        assert writer_view[2] == _call("transfer_to_writer", call_id="tc2", reason="notes ready")

        private = [m for m in session.history if isinstance(m, PrivateMessage)]
        assert len(private) == 2
        assert all(m.visible == frozenset({"Researcher"}) for m in private)
        assert session.history[-1] == AssistantMessage("Report: shoes.")

    def test_usage_tracking_ignores_privacy(self) -> None:
        researcher, _, provider = self._setup()
        session = new_session(researcher, provider=provider)
        run_turn(session, "research shoes", max_turns=10)

        raw_history = [unwrap(m) for m in session.history]
        assert get_used_tools(session.history) == get_used_tools(raw_history)
        assert get_used_tools(session.history) == ["search", "transfer_to_writer"]

    def test_private_rules_still_see_private_tools(self) -> None:
        researcher, _, provider = self._setup()
        session = add_rules(
            new_session(researcher, provider=provider),
            FixedPrerequisites({"transfer_to_writer": ["search"]}),
        )

        run_turn(session, "research shoes", max_turns=10)

        assert provider.calls[0]["tools"] == ["search"]
        assert provider.calls[1]["tools"] == ["search", "transfer_to_writer"]
