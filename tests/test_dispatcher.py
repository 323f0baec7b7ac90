import asyncio
import unittest

from clip_gpt.actions import StatefulAction, StatelessAction, build_action_table
from clip_gpt.app_config import AppConfig
from clip_gpt.chat_client import MAX_ATTEMPTS
from clip_gpt.dispatcher import Dispatcher, Outcome
from clip_gpt.errors import ConfigurationError
from clip_gpt.invocation import ActionKind, CallerContext, Invocation, Modifiers
from clip_gpt.prompts import PromptLanguageMode
from clip_gpt.session import Message, SessionStore


class _Clock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class _RecordingHost:
    def __init__(self) -> None:
        self.shown: list[str] = []
        self.copied: list[str] = []
        self.successes = 0

    def show_text(self, text: str, *, preview: bool = True) -> None:
        self.shown.append(text)

    def show_success(self) -> None:
        self.successes += 1

    def copy_text(self, text: str) -> None:
        self.copied.append(text)


class _ScriptedClient:
    """Plays back a list of replies/exceptions, one per call."""

    def __init__(self, outcomes: list) -> None:
        self._outcomes = list(outcomes)
        self.requests: list = []
        self.closed = False

    async def complete(self, request):
        self.requests.append(request)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


class _ClientFactory:
    def __init__(self, client: _ScriptedClient) -> None:
        self.client = client
        self.calls = 0

    def __call__(self, config: AppConfig) -> _ScriptedClient:
        self.calls += 1
        return self.client


def _invocation(action: ActionKind, text: str, *, app: str = "com.editor", shift: bool = False) -> Invocation:
    return Invocation(
        action=action,
        text=text,
        context=CallerContext(app_identifier=app, app_name="Editor"),
        modifiers=Modifiers(shift=shift),
    )


class DispatcherTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock()
        self.store = SessionStore(clock=self.clock)
        self.host = _RecordingHost()
        self.config = AppConfig(api_key="sk-test", temperature="0.7")

    def _dispatcher(self, outcomes: list) -> tuple[Dispatcher, _ClientFactory]:
        factory = _ClientFactory(_ScriptedClient(outcomes))
        dispatcher = Dispatcher(build_action_table(self.store), self.host, client_factory=factory)
        return dispatcher, factory

    def _run(self, dispatcher: Dispatcher, invocation: Invocation):
        return asyncio.run(dispatcher.run(invocation, self.config))


class ChatDispatchTests(DispatcherTestCase):
    def test_success_commits_user_turn_then_reply(self) -> None:
        dispatcher, factory = self._dispatcher([Message.assistant("  Hello there \n")])

        result = self._run(dispatcher, _invocation(ActionKind.CHAT, "Hi"))

        self.assertEqual(Outcome.SUCCEEDED, result.outcome)
        self.assertEqual("Hello there", result.text)
        self.assertEqual(["Hello there"], self.host.copied)
        self.assertEqual(["Hello there"], self.host.shown)
        self.assertEqual(
            (Message.user("Hi"), Message.assistant("  Hello there \n")),
            self.store.get("com.editor").snapshot(),
        )
        self.assertTrue(factory.client.closed)

    def test_request_carries_history_and_newest_turn(self) -> None:
        dispatcher, factory = self._dispatcher([Message.assistant("first"), Message.assistant("second")])

        self._run(dispatcher, _invocation(ActionKind.CHAT, "one"))
        self._run(dispatcher, _invocation(ActionKind.CHAT, "two"))

        last_request = factory.client.requests[-1]
        self.assertEqual(
            (
                Message.user("one"),
                Message.assistant("first"),
                Message.user("two"),
            ),
            last_request.messages,
        )
        self.assertEqual(0.7, last_request.temperature)

    def test_success_on_last_attempt(self) -> None:
        failures = [RuntimeError(f"boom {i}") for i in range(MAX_ATTEMPTS - 1)]
        dispatcher, factory = self._dispatcher(failures + [Message.assistant("finally")])

        result = self._run(dispatcher, _invocation(ActionKind.CHAT, "Hi"))

        self.assertEqual(Outcome.SUCCEEDED, result.outcome)
        self.assertEqual("finally", result.text)
        self.assertEqual(MAX_ATTEMPTS, len(factory.client.requests))
        self.assertEqual(2, len(self.store.get("com.editor")))

    def test_retries_reuse_the_same_request(self) -> None:
        dispatcher, factory = self._dispatcher([TimeoutError(), Message.assistant("ok")])

        self._run(dispatcher, _invocation(ActionKind.CHAT, "Hi"))

        first, second = factory.client.requests
        self.assertIs(first, second)
        self.assertEqual((Message.user("Hi"),), first.messages)

    def test_exhausted_retries_roll_back_user_turn(self) -> None:
        session = self.store.get("com.editor")
        session.append(Message.user("before"), now=0.0)
        session.append(Message.assistant("answer"), now=0.0)
        dispatcher, factory = self._dispatcher([ConnectionError("down")] * MAX_ATTEMPTS)

        result = self._run(dispatcher, _invocation(ActionKind.CHAT, "lost"))

        self.assertEqual(Outcome.FAILED, result.outcome)
        self.assertEqual("down", result.text)
        self.assertEqual(["down"], self.host.shown)
        self.assertEqual([], self.host.copied)
        self.assertEqual(MAX_ATTEMPTS, len(factory.client.requests))
        self.assertEqual(
            (Message.user("before"), Message.assistant("answer")),
            self.store.get("com.editor").snapshot(),
        )

    def test_shift_clears_history_without_network_call(self) -> None:
        self.store.get("com.editor").append(Message.user("old"), now=0.0)
        dispatcher, factory = self._dispatcher([Message.assistant("fresh")])

        result = self._run(dispatcher, _invocation(ActionKind.CHAT, "ignored", shift=True))

        self.assertEqual(Outcome.DENIED, result.outcome)
        self.assertEqual("Editor(com.editor)'s chat history has been cleared", result.text)
        self.assertEqual([result.text], self.host.shown)
        self.assertEqual(1, self.host.successes)
        self.assertEqual(0, factory.calls)
        self.assertNotIn("com.editor", self.store)

        self._run(dispatcher, _invocation(ActionKind.CHAT, "new start"))
        self.assertEqual((Message.user("new start"),), factory.client.requests[0].messages)

    def test_sessions_are_partitioned_by_app(self) -> None:
        dispatcher, factory = self._dispatcher([Message.assistant("a"), Message.assistant("b")])

        self._run(dispatcher, _invocation(ActionKind.CHAT, "from a", app="com.a"))
        self._run(dispatcher, _invocation(ActionKind.CHAT, "from b", app="com.b"))

        self.assertEqual((Message.user("from b"),), factory.client.requests[1].messages)
        self.assertEqual(2, len(self.store.get("com.a")))

    def test_stale_sessions_are_evicted_at_start_of_invocation(self) -> None:
        dispatcher, factory = self._dispatcher([Message.assistant("one"), Message.assistant("two")])
        self._run(dispatcher, _invocation(ActionKind.CHAT, "first"))

        self.clock.now = 20 * 60
        self._run(dispatcher, _invocation(ActionKind.CHAT, "second"))

        self.assertEqual((Message.user("second"),), factory.client.requests[1].messages)

    def test_active_sessions_survive_cleanup(self) -> None:
        dispatcher, factory = self._dispatcher([Message.assistant("one"), Message.assistant("two")])
        self._run(dispatcher, _invocation(ActionKind.CHAT, "first"))

        self.clock.now = 19 * 60 + 59
        self._run(dispatcher, _invocation(ActionKind.CHAT, "second"))

        self.assertEqual(3, len(factory.client.requests[1].messages))

    def test_configuration_error_is_surfaced_before_any_commit(self) -> None:
        def factory(config: AppConfig):
            raise ConfigurationError("unsupported api type: bogus")

        dispatcher = Dispatcher(build_action_table(self.store), self.host, client_factory=factory)

        result = self._run(dispatcher, _invocation(ActionKind.CHAT, "Hi"))

        self.assertEqual(Outcome.FAILED, result.outcome)
        self.assertEqual("unsupported api type: bogus", result.text)
        self.assertNotIn("com.editor", self.store)


class OneTimeDispatchTests(DispatcherTestCase):
    def test_spell_builds_single_turn_request(self) -> None:
        dispatcher, factory = self._dispatcher([Message.assistant(" fixed text ")])

        result = self._run(dispatcher, _invocation(ActionKind.SPELL, "teh txt"))

        self.assertEqual("fixed text", result.text)
        request = factory.client.requests[0]
        self.assertEqual("system", request.messages[0].role)
        self.assertTrue(request.messages[1].content.endswith(" teh txt"))
        self.assertEqual(2, len(request.messages))

    def test_one_time_actions_never_touch_sessions(self) -> None:
        outcomes = [Message.assistant(str(i)) for i in range(4)]
        dispatcher, factory = self._dispatcher(outcomes)

        for action, text in (
            (ActionKind.SPELL, "alpha"),
            (ActionKind.TRANSLATE, "beta"),
            (ActionKind.SPELL, "gamma"),
            (ActionKind.TRANSLATE, "delta"),
        ):
            self._run(dispatcher, _invocation(action, text))

        self.assertEqual(0, len(self.store))
        for request in factory.client.requests:
            self.assertEqual(2, len(request.messages))
        self.assertNotIn("alpha", factory.client.requests[-1].messages[1].content)

    def test_disabled_action_is_denied_silently(self) -> None:
        self.config.action_options(ActionKind.WRITING).enabled = False
        dispatcher, factory = self._dispatcher([Message.assistant("never")])

        result = self._run(dispatcher, _invocation(ActionKind.WRITING, "text"))

        self.assertEqual(Outcome.DENIED, result.outcome)
        self.assertIsNone(result.text)
        self.assertEqual([], self.host.shown)
        self.assertEqual(0, factory.calls)

    def test_custom_prompt_is_used_verbatim(self) -> None:
        self.config.custom_prompt = "Summarise:"
        dispatcher, factory = self._dispatcher([Message.assistant("short")])

        self._run(dispatcher, _invocation(ActionKind.CUSTOM, "long text"))

        self.assertEqual("Summarise: long text", factory.client.requests[0].messages[1].content)

    def test_shift_selects_secondary_language_in_language_mode(self) -> None:
        self.config.prompt_language_mode = PromptLanguageMode.LANGUAGE
        dispatcher, factory = self._dispatcher([Message.assistant("x"), Message.assistant("y")])

        self._run(dispatcher, _invocation(ActionKind.TRANSLATE, "hello"))
        self._run(dispatcher, _invocation(ActionKind.TRANSLATE, "hello", shift=True))

        primary, secondary = (r.messages[1].content for r in factory.client.requests)
        self.assertIn("into Chinese Simplified", primary)
        self.assertIn("into English", secondary)

    def test_failure_after_retries_is_surfaced(self) -> None:
        dispatcher, factory = self._dispatcher([ValueError("bad temperature")] * MAX_ATTEMPTS)

        result = self._run(dispatcher, _invocation(ActionKind.DIALOGUE, "text"))

        self.assertEqual(Outcome.FAILED, result.outcome)
        self.assertEqual("bad temperature", result.text)
        self.assertEqual(MAX_ATTEMPTS, len(factory.client.requests))


class _GatedClient:
    """Holds its first call open until released; later calls answer at once."""

    def __init__(self, replies: list[str]) -> None:
        self._replies = list(replies)
        self.requests: list = []
        self.first_call_started = asyncio.Event()
        self.release = asyncio.Event()

    async def complete(self, request):
        self.requests.append(request)
        reply = Message.assistant(self._replies.pop(0))
        if len(self.requests) == 1:
            self.first_call_started.set()
            await self.release.wait()
        return reply

    async def close(self) -> None:
        pass


class OverlappingChatTests(DispatcherTestCase):
    def _gated_dispatcher(self, replies: list[str]) -> tuple[Dispatcher, _GatedClient]:
        client = _GatedClient(replies)
        return Dispatcher(build_action_table(self.store), self.host, client_factory=lambda config: client), client

    def test_clear_during_in_flight_chat_leaves_no_orphan_reply(self) -> None:
        async def scenario():
            dispatcher, client = self._gated_dispatcher(["late reply"])
            chat = asyncio.create_task(dispatcher.run(_invocation(ActionKind.CHAT, "question", app="com.x"), self.config))
            await client.first_call_started.wait()
            clear = asyncio.create_task(
                dispatcher.run(_invocation(ActionKind.CHAT, "", app="com.x", shift=True), self.config)
            )
            for _ in range(5):
                await asyncio.sleep(0)
            self.assertFalse(clear.done())
            client.release.set()
            return await chat, await clear

        chat_result, clear_result = asyncio.run(scenario())

        self.assertEqual(Outcome.SUCCEEDED, chat_result.outcome)
        self.assertEqual(Outcome.DENIED, clear_result.outcome)
        self.assertNotIn("com.x", self.store)
        self.assertEqual((), self.store.get("com.x").snapshot())

    def test_overlapping_chats_for_one_app_run_one_after_another(self) -> None:
        async def scenario() -> _GatedClient:
            dispatcher, client = self._gated_dispatcher(["first answer", "second answer"])
            first = asyncio.create_task(dispatcher.run(_invocation(ActionKind.CHAT, "one", app="com.x"), self.config))
            await client.first_call_started.wait()
            second = asyncio.create_task(dispatcher.run(_invocation(ActionKind.CHAT, "two", app="com.x"), self.config))
            for _ in range(5):
                await asyncio.sleep(0)
            self.assertEqual(1, len(client.requests))
            client.release.set()
            await asyncio.gather(first, second)
            return client

        client = asyncio.run(scenario())

        self.assertEqual(
            (Message.user("one"), Message.assistant("first answer"), Message.user("two")),
            client.requests[1].messages,
        )
        self.assertEqual(
            (
                Message.user("one"),
                Message.assistant("first answer"),
                Message.user("two"),
                Message.assistant("second answer"),
            ),
            self.store.get("com.x").snapshot(),
        )

    def test_chats_for_different_apps_do_not_wait_for_each_other(self) -> None:
        async def scenario() -> _GatedClient:
            dispatcher, client = self._gated_dispatcher(["slow", "fast"])
            slow = asyncio.create_task(dispatcher.run(_invocation(ActionKind.CHAT, "a", app="com.a"), self.config))
            await client.first_call_started.wait()
            fast = await dispatcher.run(_invocation(ActionKind.CHAT, "b", app="com.b"), self.config)
            self.assertEqual(Outcome.SUCCEEDED, fast.outcome)
            self.assertFalse(slow.done())
            client.release.set()
            await slow
            return client

        asyncio.run(scenario())
        self.assertEqual(2, len(self.store.get("com.a")))
        self.assertEqual(2, len(self.store.get("com.b")))


class ActionTableTests(unittest.TestCase):
    def test_table_covers_every_action_and_is_read_only(self) -> None:
        store = SessionStore()
        table = build_action_table(store)

        self.assertEqual(set(ActionKind), set(table))
        self.assertIsInstance(table[ActionKind.CHAT], StatefulAction)
        self.assertIs(store, table[ActionKind.CHAT].store)
        for kind in ActionKind:
            if kind is not ActionKind.CHAT:
                self.assertIsInstance(table[kind], StatelessAction)
                self.assertEqual(kind, table[kind].kind)
        with self.assertRaises(TypeError):
            table[ActionKind.CHAT] = StatelessAction(ActionKind.SPELL)  # type: ignore[index]

    def test_stateless_action_rejects_chat(self) -> None:
        with self.assertRaises(ValueError):
            StatelessAction(ActionKind.CHAT)


if __name__ == "__main__":
    unittest.main()
