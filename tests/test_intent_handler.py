import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from fakes import FakeGemini

from flovo.confirmation import OrderConfirmationRenderer
from flovo.intent_handler import (
    ASK_WHICH_ORDER_REPLY,
    CREATE_FAILED_REPLY,
    FETCH_FAILED_REPLY,
    NO_ORDERS_REPLY,
    NOT_CANCELLABLE_REPLY,
    ORDER_NOT_FOUND_REPLY,
    IntentDispatcher,
    build_orders_list_message,
    extract_order_id,
)
from flovo.models import (
    CancelOrderIntent,
    CreateOrderIntent,
    FetchOrdersIntent,
    OrderDraft,
    PlainReply,
)
from flovo.order_store import OrderStatus, OrderStore


class DispatcherTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.store = OrderStore(Path(self.tmp.name) / "orders.json")
        self.gemini = FakeGemini()
        self.dispatcher = IntentDispatcher(self.store, OrderConfirmationRenderer(self.gemini))

    def tearDown(self):
        self.tmp.cleanup()


class TestCreateAndPlain(DispatcherTestCase):
    def test_plain_reply_passes_through(self):
        reply = self.dispatcher.process(PlainReply(text="Hello", images=["a.jpg"]), "c1")

        self.assertEqual(reply.text, "Hello")
        self.assertEqual(reply.images, ["a.jpg"])
        self.assertFalse(reply.order_created)

    def test_create_order_stores_and_confirms(self):
        self.gemini.outputs.append("✅ Order #1 confirmed")
        intent = CreateOrderIntent(
            text="Placing it now",
            order=OrderDraft(customerName="Ali", customerContact="+998901112233", items="Case x2"),
        )

        reply = self.dispatcher.process(intent, "c1", "yes please")

        self.assertTrue(reply.order_created)
        self.assertEqual(reply.order_id, 1)
        self.assertEqual(reply.text, "✅ Order #1 confirmed")
        stored = self.store.get_order(1)
        self.assertEqual(stored.customer_id, "c1")
        self.assertEqual(stored.phone, "+998901112233")
        self.assertEqual(stored.status, OrderStatus.NEW)
        self.assertIn("yes please", self.gemini.prompts[0])

    def test_create_order_falls_back_when_generator_fails(self):
        self.gemini.outputs.append(RuntimeError("down"))
        intent = CreateOrderIntent(text="ok", order=OrderDraft(items="Charger"))

        reply = self.dispatcher.process(intent, "c1")

        self.assertTrue(reply.order_created)
        self.assertIn("<b>Order #1</b>", reply.text)
        self.assertIn("Charger", reply.text)

    def test_store_failure_returns_apology(self):
        intent = CreateOrderIntent(text="ok", order=OrderDraft(items="Charger"))

        with patch.object(self.store, "create_order", side_effect=OSError("disk full")):
            reply = self.dispatcher.process(intent, "c1")

        self.assertEqual(reply.text, CREATE_FAILED_REPLY)
        self.assertFalse(reply.order_created)

    def test_unexpected_error_keeps_model_text(self):
        intent = CreateOrderIntent(text="Working on it", order=OrderDraft(items="Charger"))

        with patch.object(self.store, "create_order", side_effect=KeyError("boom")):
            reply = self.dispatcher.process(intent, "c1")

        self.assertEqual(reply.text, "Working on it")


class TestFetchOrders(DispatcherTestCase):
    def test_no_orders(self):
        reply = self.dispatcher.process(FetchOrdersIntent(text="checking"), "c1")

        self.assertTrue(reply.orders_fetched)
        self.assertEqual(reply.text, NO_ORDERS_REPLY)

    def test_lists_only_own_orders_newest_first(self):
        self.store.create_order("c1", OrderDraft(items="Case"))
        self.store.create_order("c2", OrderDraft(items="Phone"))
        self.store.create_order("c1", OrderDraft(items="Charger"))

        reply = self.dispatcher.process(FetchOrdersIntent(text="checking"), "c1")

        self.assertIn("Order #3", reply.text)
        self.assertIn("Order #1", reply.text)
        self.assertNotIn("Order #2", reply.text)
        self.assertLess(reply.text.index("Order #3"), reply.text.index("Order #1"))

    def test_orders_limit(self):
        dispatcher = IntentDispatcher(self.store, OrderConfirmationRenderer(self.gemini), orders_limit=2)
        for item in ("a", "b", "c"):
            self.store.create_order("c1", OrderDraft(items=item))

        reply = dispatcher.process(FetchOrdersIntent(text="checking"), "c1")

        self.assertNotIn("Order #1", reply.text)
        self.assertIn("2. ", reply.text)

    def test_store_failure_returns_apology(self):
        with patch.object(self.store, "get_orders_for_customer", side_effect=OSError("unreadable")):
            reply = self.dispatcher.process(FetchOrdersIntent(text="checking"), "c1")

        self.assertEqual(reply.text, FETCH_FAILED_REPLY)
        self.assertFalse(reply.orders_fetched)

    def test_message_format(self):
        order = self.store.create_order("c1", OrderDraft(items="Case"))

        text = build_orders_list_message([order])

        self.assertTrue(text.startswith("📋 <b>Your Recent Orders</b>"))
        self.assertIn("1. 🆕 <b>Order #1</b>", text)
        self.assertIn("🛍️ Case", text)
        self.assertIn("💰 $0", text)


class TestCancelOrder(DispatcherTestCase):
    def test_cancel_by_payload_id(self):
        self.store.create_order("c1", OrderDraft(items="Case"))

        reply = self.dispatcher.process(CancelOrderIntent(text="ok", order_id=1), "c1")

        self.assertTrue(reply.order_cancelled)
        self.assertEqual(reply.order_id, 1)
        self.assertIn("Order Cancelled", reply.text)
        self.assertEqual(self.store.get_order(1).status, OrderStatus.CANCELLED)

    def test_cancel_by_reference_in_text(self):
        self.store.create_order("c1", OrderDraft(items="Case"))

        reply = self.dispatcher.process(CancelOrderIntent(text="Cancelling order #1 for you"), "c1")

        self.assertTrue(reply.order_cancelled)

    def test_missing_id_asks_which_order(self):
        reply = self.dispatcher.process(CancelOrderIntent(text="Which one?"), "c1")

        self.assertEqual(reply.text, ASK_WHICH_ORDER_REPLY)

    def test_other_customers_order_is_not_found(self):
        self.store.create_order("c2", OrderDraft(items="Case"))

        reply = self.dispatcher.process(CancelOrderIntent(text="ok", order_id=1), "c1")

        self.assertEqual(reply.text, ORDER_NOT_FOUND_REPLY)
        self.assertEqual(self.store.get_order(1).status, OrderStatus.NEW)

    def test_shipped_order_cannot_be_cancelled(self):
        self.store.create_order("c1", OrderDraft(items="Case"))
        self.store.update_status(1, OrderStatus.SHIPPED)

        reply = self.dispatcher.process(CancelOrderIntent(text="ok", order_id=1), "c1")

        self.assertEqual(reply.text, NOT_CANCELLABLE_REPLY)
        self.assertFalse(reply.order_cancelled)


class TestExtractOrderId(unittest.TestCase):
    def test_patterns(self):
        self.assertEqual(extract_order_id("order #12"), 12)
        self.assertEqual(extract_order_id("Your Order 7 is on the way"), 7)
        self.assertIsNone(extract_order_id("no number here"))
        self.assertIsNone(extract_order_id(""))


if __name__ == "__main__":
    unittest.main()
