import asyncio

from chat_sync.config import ChatSyncConfig
from chat_sync.session import ChatSession
from tests.helpers.cases import ADMIN, CAROL, DAN, ChatServerTestCase


class ChatSessionTests(ChatServerTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        config = ChatSyncConfig(conversations_interval_s=3600, timeline_interval_s=3600, unread_interval_s=3600)
        self.session = ChatSession(self.client, ADMIN, config=config)

    async def asyncTearDown(self):
        await self.session.stop()
        await super().asyncTearDown()

    async def _settle(self):
        await asyncio.sleep(0)
        await self.session.timeline.wait_idle()
        await self.session.reconciler.wait_idle()
        await self.session.conversation_list.wait_idle()
        await self.session.unread.wait_idle()

    async def test_opening_conversation_marks_incoming_messages_read(self):
        self.state.add_message(CAROL, ADMIN, "are you there?")
        self.state.add_message(CAROL, ADMIN, "ping")
        self.state.add_message(DAN, ADMIN, "unrelated")

        self.session.start()
        await self._settle()
        self.assertEqual(self.session.unread_count, 3)
        self.assertEqual(self.session.conversation_list.find("dm-u_carol").unread_count, 2)
        self.assertIsNone(self.session.selected_conversation)

        self.session.select("dm-u_carol")
        await self._settle()

        self.assertEqual(self.state.count("PUT", "/messages/"), 2)
        self.assertEqual(self.session.selected_conversation.participant_id, CAROL)

        await self.session.timeline.refresh()
        self.assertTrue(all(m.is_read for m in self.session.messages))
        await self.session.conversation_list.refresh()
        self.assertEqual(self.session.selected_conversation.unread_count, 0)
        await self.session.unread.refresh()
        self.assertEqual(self.session.unread_count, 1)

    async def test_send_refreshes_every_dependent_cache(self):
        self.state.add_message(CAROL, ADMIN, "hello")
        self.session.start()
        self.session.select("dm-u_carol")
        await self._settle()

        self.session.compose.text = "hi carol"
        result = await self.session.send()
        await self._settle()

        self.assertTrue(result.ok)
        self.assertEqual(self.session.compose.text, "")
        self.assertEqual([m.message for m in self.session.messages], ["hello", "hi carol"])
        self.assertEqual(self.session.conversations[0].last_message.message, "hi carol")

    async def test_switching_conversation_empties_timeline_first(self):
        self.state.add_message(CAROL, ADMIN, "for carol")
        self.state.add_message(DAN, ADMIN, "for dan")
        self.session.start()
        self.session.select("dm-u_carol")
        await self._settle()
        self.assertEqual(len(self.session.messages), 1)

        self.session.select("dm-u_dan")
        self.assertEqual(self.session.messages, ())
        self.assertEqual(self.session.selected_conversation_id, "dm-u_dan")
        await self._settle()
        self.assertEqual([m.message for m in self.session.messages], ["for dan"])

    async def test_search_filters_loaded_conversations(self):
        self.state.add_message(CAROL, ADMIN, "a")
        self.state.add_message(DAN, ADMIN, "b")
        await self.session.conversation_list.refresh()

        self.assertEqual([c.participant_id for c in self.session.filtered_conversations("car")], [CAROL])
        self.assertEqual(len(self.session.filtered_conversations("")), 2)

    async def test_label_uses_relative_time(self):
        stored = self.state.add_message(CAROL, ADMIN, "a")
        self.session.select("dm-u_carol")
        await self.session.timeline.refresh()

        message = self.session.messages[0]
        self.assertEqual(self.session.label(message, now=stored.created_at), "just now")
