from chat_sync.api_client import MalformedResponseError
from chat_sync.notifications import Notifier
from chat_sync.send import ComposeBuffer, SendPipeline
from chat_sync.timeline import MessageTimelineSynchronizer
from tests.helpers.cases import ADMIN, CAROL, ChatServerTestCase


class RecordingTarget:
    def __init__(self):
        self.invalidations = 0

    def invalidate(self):
        self.invalidations += 1


class SendPipelineTests(ChatServerTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.selected = "dm-u_carol"
        self.notifier = Notifier()
        self.compose = ComposeBuffer()
        self.target = RecordingTarget()
        self.pipeline = SendPipeline(
            self.client,
            selected_conversation=lambda: self.selected,
            compose=self.compose,
            targets=[self.target],
            notifier=self.notifier,
        )

    async def test_empty_or_blank_text_is_rejected_without_request(self):
        for text in ("", "   ", "\n\t"):
            result = await self.pipeline.send(text)
            self.assertFalse(result.ok)
            self.assertEqual(result.reason, "empty_message")

        self.compose.text = "  "
        result = await self.pipeline.send()
        self.assertEqual(result.reason, "empty_message")

        self.assertEqual(self.state.count("POST", "/messages"), 0)
        self.assertEqual(self.target.invalidations, 0)

    async def test_missing_conversation_is_rejected_without_request(self):
        self.selected = None

        result = await self.pipeline.send("hello")

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "no_conversation")
        self.assertEqual(self.state.count("POST", "/messages"), 0)

    async def test_unknown_message_type_is_rejected(self):
        with self.assertRaises(ValueError):
            await self.pipeline.send("hello", "sticker")

    async def test_success_clears_compose_and_invalidates_targets(self):
        self.compose.text = "hello carol"

        result = await self.pipeline.send()

        self.assertTrue(result.ok)
        self.assertEqual(result.message.message, "hello carol")
        self.assertEqual(self.compose.text, "")
        self.assertEqual(self.target.invalidations, 1)
        self.assertEqual(self.state.messages[-1].recipient_id, CAROL)

    async def test_sent_message_appears_only_through_refetch(self):
        timeline = MessageTimelineSynchronizer(self.client, 3600)
        timeline.select("dm-u_carol")
        self.pipeline.add_target(timeline)
        await timeline.refresh()
        self.assertEqual(timeline.messages, ())

        result = await self.pipeline.send("hello")
        self.assertTrue(result.ok)
        await timeline.wait_idle()

        self.assertEqual([m.message for m in timeline.messages], ["hello"])
        self.assertEqual(timeline.messages[0].sender_id, ADMIN)
        await timeline.stop()

    async def test_failure_keeps_compose_and_notifies(self):
        self.compose.text = "draft"
        self.state.fail.add("send")

        with self.assertLogs("chat_sync.send", level="WARNING"):
            result = await self.pipeline.send()

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "error")
        self.assertEqual(result.error.status, 500)
        self.assertEqual(self.compose.text, "draft")
        self.assertEqual(self.target.invalidations, 0)
        notices = self.notifier.snapshot()
        self.assertEqual([n.title for n in notices], ["Failed to send message"])
        self.assertEqual(notices[0].description, "failed to store message")

    async def test_unparseable_created_message_becomes_failed_result(self):
        message_json = self.state.message_json

        def far_future(message, conversation_id=None):
            payload = message_json(message, conversation_id)
            payload["createdAt"] = 10**20
            return payload

        self.state.message_json = far_future
        self.compose.text = "draft"

        with self.assertLogs("chat_sync.send", level="WARNING"):
            result = await self.pipeline.send()

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "error")
        self.assertIsInstance(result.error, MalformedResponseError)
        self.assertEqual(self.compose.text, "draft")

    async def test_explicit_conversation_overrides_selection(self):
        self.selected = None

        result = await self.pipeline.send("hi dan", conversation_id="dm-u_dan")

        self.assertTrue(result.ok)
        self.assertEqual(self.state.messages[-1].recipient_id, "u_dan")
