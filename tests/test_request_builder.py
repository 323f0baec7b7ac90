import math
import unittest

from clip_gpt.request_builder import (
    ChatRequest,
    build_chat_request,
    build_one_time_request,
    parse_temperature,
)
from clip_gpt.session import Message, Session


class ParseTemperatureTests(unittest.TestCase):
    def test_numeric_strings_become_floats(self) -> None:
        self.assertEqual(1.0, parse_temperature("1"))
        self.assertEqual(0.25, parse_temperature(" 0.25 "))

    def test_out_of_range_is_not_clamped(self) -> None:
        self.assertEqual(7.5, parse_temperature("7.5"))
        self.assertEqual(-1.0, parse_temperature("-1"))

    def test_non_numeric_is_passed_through(self) -> None:
        self.assertEqual("warm", parse_temperature("warm"))

    def test_nan_stays_a_float(self) -> None:
        self.assertTrue(math.isnan(parse_temperature("nan")))


class BuildChatRequestTests(unittest.TestCase):
    def test_new_user_turn_is_committed_before_snapshot(self) -> None:
        session = Session("com.app", now=0.0)
        session.append(Message.user("earlier"), now=1.0)
        session.append(Message.assistant("reply"), now=2.0)

        request = build_chat_request(session, "latest", model="m", temperature="0.5", now=3.0)

        self.assertEqual(
            (Message.user("earlier"), Message.assistant("reply"), Message.user("latest")),
            request.messages,
        )
        self.assertEqual(3, len(session))
        self.assertEqual(3.0, session.last_active_at)
        self.assertEqual(0.5, request.temperature)


class BuildOneTimeRequestTests(unittest.TestCase):
    def test_system_and_prompted_user_message(self) -> None:
        request = build_one_time_request("Fix this:", "teh text", model="gpt", temperature="1")

        self.assertEqual(
            ChatRequest(
                model="gpt",
                messages=(Message.system("Be precise and concise."), Message.user("Fix this: teh text")),
                temperature=1.0,
            ),
            request,
        )

    def test_payload_shape(self) -> None:
        payload = build_one_time_request("P", "T", model="gpt", temperature="0").to_payload()
        self.assertEqual(
            {
                "model": "gpt",
                "messages": [
                    {"role": "system", "content": "Be precise and concise."},
                    {"role": "user", "content": "P T"},
                ],
                "temperature": 0.0,
            },
            payload,
        )


if __name__ == "__main__":
    unittest.main()
