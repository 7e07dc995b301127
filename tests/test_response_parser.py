import logging
import unittest
from unittest.mock import MagicMock

from flovo.models import CancelOrderIntent, CreateOrderIntent, FetchOrdersIntent, PlainReply
from flovo.response_parser import (
    CANCEL_ORDER_FALLBACK,
    CREATE_ORDER_FALLBACK,
    EMPTY_REPLY_FALLBACK,
    FETCH_ORDERS_FALLBACK,
    ResponseParser,
)


class TestStructuredReplies(unittest.TestCase):
    def setUp(self):
        self.parser = ResponseParser()

    def test_bare_json_reply_with_images(self):
        result = self.parser.parse('{"text":"Here you go","images":["http://x/a.png"]}')

        self.assertIsInstance(result, PlainReply)
        self.assertEqual(result.text, "Here you go")
        self.assertEqual(result.images, ["http://x/a.png"])

    def test_non_string_images_are_dropped_in_order(self):
        result = self.parser.parse('{"text":"hi","images":["a.jpg", 42, "b.jpg"]}')

        self.assertEqual(result.images, ["a.jpg", "b.jpg"])

    def test_absent_images_stay_none(self):
        result = self.parser.parse('{"text": "Just text"}')

        self.assertIsInstance(result, PlainReply)
        self.assertIsNone(result.images)

    def test_invalid_images_field_is_omitted(self):
        result = self.parser.parse('{"text": "hi", "images": "a.jpg"}')

        self.assertIsNone(result.images)

    def test_fenced_block_inside_prose(self):
        raw = 'Sure, take a look:\n```json\n{"text": "iPhone 15 costs 900 USD", "images": ["p1.jpg"]}\n```\nAnything else?'
        result = self.parser.parse(raw)

        self.assertIsInstance(result, PlainReply)
        self.assertEqual(result.text, "iPhone 15 costs 900 USD")
        self.assertEqual(result.images, ["p1.jpg"])

    def test_fence_tag_is_case_insensitive(self):
        result = self.parser.parse('```JSON\n{"text": "ok"}\n```')

        self.assertEqual(result.text, "ok")

    def test_json_before_create_order_marker(self):
        raw = (
            '```json\n{"text": "Here are the photos", "images": ["a.jpg"]}\n```\n'
            '[INTENT:CREATE_ORDER] {"customerName": "Ali", "items": "phone"}'
        )
        result = self.parser.parse(raw)

        self.assertIsInstance(result, PlainReply)
        self.assertEqual(result.text, "Here are the photos")

    def test_json_without_text_falls_through_to_raw(self):
        raw = '{"images": ["a.jpg"]}'
        result = self.parser.parse(raw)

        self.assertIsInstance(result, PlainReply)
        self.assertEqual(result.text, raw)
        self.assertIsNone(result.images)

    def test_json_with_empty_text_falls_through(self):
        raw = '{"text": "   "}'

        self.assertEqual(self.parser.parse(raw).text, raw)

    def test_broken_leading_json_falls_through(self):
        raw = '{"text": "unterminated'

        result = self.parser.parse(raw)

        self.assertIsInstance(result, PlainReply)
        self.assertEqual(result.text, raw)

    def test_broken_fenced_json_still_reaches_markers(self):
        raw = "```json\n{oops}\n```\nOne moment [INTENT:FETCH_ORDERS]"
        result = self.parser.parse(raw)

        self.assertIsInstance(result, FetchOrdersIntent)

    def test_deeply_nested_json_reply_falls_through(self):
        raw = '{"a":[' + "[" * 5000

        result = self.parser.parse(raw)

        self.assertIsInstance(result, PlainReply)
        self.assertEqual(result.text, raw)


class TestCreateOrderMarker(unittest.TestCase):
    def setUp(self):
        self.parser = ResponseParser()

    def test_order_payload_and_preceding_text(self):
        raw = (
            "Great, I'll place that for you!\n"
            "[INTENT:CREATE_ORDER]\n"
            '{"customerName": "Dilnoza", "customerContact": "+998901234567", '
            '"items": "iPhone 15 128GB x1", "notes": "Deliver to Chilonzor"}'
        )
        result = self.parser.parse(raw)

        self.assertIsInstance(result, CreateOrderIntent)
        self.assertEqual(result.text, "Great, I'll place that for you!")
        self.assertEqual(result.order.customer_name, "Dilnoza")
        self.assertEqual(result.order.customer_contact, "+998901234567")
        self.assertEqual(result.order.items, "iPhone 15 128GB x1")
        self.assertEqual(result.order.notes, "Deliver to Chilonzor")

    def test_text_after_payload_is_discarded(self):
        raw = 'Done! [INTENT:CREATE_ORDER] {"items": "case"} Thanks again!'
        result = self.parser.parse(raw)

        self.assertEqual(result.text, "Done!")

    def test_empty_preceding_text_uses_fallback(self):
        result = self.parser.parse('[INTENT:CREATE_ORDER] {"items": "case"}')

        self.assertEqual(result.text, CREATE_ORDER_FALLBACK)

    def test_missing_fields_get_defaults(self):
        result = self.parser.parse('[INTENT:CREATE_ORDER] {"items": "case"}')

        self.assertEqual(result.order.customer_name, "Not provided")
        self.assertEqual(result.order.customer_contact, "Not provided")
        self.assertEqual(result.order.notes, "")

    def test_nested_braces_in_payload(self):
        raw = '[INTENT:CREATE_ORDER] {"items": "set {a, b}", "notes": "x", "extra": {"gift": true}}'
        result = self.parser.parse(raw)

        self.assertIsInstance(result, CreateOrderIntent)
        self.assertEqual(result.order.items, "set {a, b}")

    def test_structured_items_are_described(self):
        raw = '[INTENT:CREATE_ORDER] {"items": [{"name": "Case", "quantity": 2}, "Charger"]}'
        result = self.parser.parse(raw)

        self.assertEqual(result.order.items, "Case x2, Charger")

    def test_malformed_payload_degrades_to_plain_reply(self):
        raw = "[INTENT:CREATE_ORDER] {not valid json"
        result = self.parser.parse(raw)

        self.assertIsInstance(result, PlainReply)
        self.assertEqual(result.text, raw)

    def test_malformed_payload_logs_warning(self):
        logger = MagicMock(spec=logging.Logger)
        parser = ResponseParser(logger=logger)

        parser.parse("[INTENT:CREATE_ORDER] {not valid json")

        logger.warning.assert_called_once()

    def test_malformed_payload_continues_to_fetch_marker(self):
        raw = "Checking! [INTENT:CREATE_ORDER] {bad [INTENT:FETCH_ORDERS]"
        result = self.parser.parse(raw)

        self.assertIsInstance(result, FetchOrdersIntent)

    def test_marker_without_payload_is_not_an_order(self):
        raw = "[INTENT:CREATE_ORDER] please send your phone"

        self.assertIsInstance(self.parser.parse(raw), PlainReply)

    def test_wrong_field_type_is_treated_as_malformed(self):
        raw = '[INTENT:CREATE_ORDER] {"customerName": {"first": "A"}}'

        self.assertIsInstance(self.parser.parse(raw), PlainReply)

    def test_deeply_nested_payload_is_skipped(self):
        raw = "Sure [INTENT:CREATE_ORDER] " + '{"a":' * 5000 + "1" + "}" * 5000

        result = self.parser.parse(raw)

        self.assertIsInstance(result, PlainReply)
        self.assertEqual(result.text, raw)

    def test_invalid_first_payload_uses_next_marker(self):
        raw = (
            '[INTENT:CREATE_ORDER] {"customerName": {"x": 1}} ok '
            '[INTENT:CREATE_ORDER] {"customerName": "Ann", "items": "tea"}'
        )

        result = self.parser.parse(raw)

        self.assertIsInstance(result, CreateOrderIntent)
        self.assertEqual(result.order.customer_name, "Ann")
        self.assertEqual(result.order.items, "tea")
        self.assertIn("ok", result.text)


class TestFetchAndCancelMarkers(unittest.TestCase):
    def setUp(self):
        self.parser = ResponseParser()

    def test_fetch_orders_with_text(self):
        result = self.parser.parse("Sure! [INTENT:FETCH_ORDERS]")

        self.assertIsInstance(result, FetchOrdersIntent)
        self.assertEqual(result.text, "Sure!")

    def test_fetch_orders_alone_uses_fallback(self):
        result = self.parser.parse("[INTENT:FETCH_ORDERS]")

        self.assertEqual(result.text, FETCH_ORDERS_FALLBACK)

    def test_fetch_orders_keeps_text_around_marker(self):
        result = self.parser.parse("One sec [INTENT:FETCH_ORDERS] checking now")

        self.assertEqual(result.text, "One sec  checking now")

    def test_cancel_order_with_string_id(self):
        result = self.parser.parse('[INTENT:CANCEL_ORDER] {"orderId": "42"}')

        self.assertIsInstance(result, CancelOrderIntent)
        self.assertEqual(result.order_id, 42)
        self.assertEqual(result.text, CANCEL_ORDER_FALLBACK)

    def test_cancel_order_with_null_id(self):
        result = self.parser.parse('No problem. [INTENT:CANCEL_ORDER] {"orderId": null}')

        self.assertEqual(result.text, "No problem.")
        self.assertIsNone(result.order_id)

    def test_cancel_order_with_numeric_and_hash_ids(self):
        self.assertEqual(self.parser.parse('[INTENT:CANCEL_ORDER] {"orderId": 7}').order_id, 7)
        self.assertEqual(self.parser.parse('[INTENT:CANCEL_ORDER] {"orderId": "#8"}').order_id, 8)
        self.assertIsNone(self.parser.parse('[INTENT:CANCEL_ORDER] {"orderId": "the blue one"}').order_id)

    def test_fetch_marker_wins_over_cancel_marker(self):
        raw = '[INTENT:FETCH_ORDERS] [INTENT:CANCEL_ORDER] {"orderId": "3"}'

        self.assertIsInstance(self.parser.parse(raw), FetchOrdersIntent)

    def test_malformed_cancel_payload_degrades(self):
        raw = "[INTENT:CANCEL_ORDER] {orderId: 3"

        result = self.parser.parse(raw)

        self.assertIsInstance(result, PlainReply)
        self.assertEqual(result.text, raw)


class TestFallback(unittest.TestCase):
    def setUp(self):
        self.parser = ResponseParser()

    def test_plain_text_is_returned_unmodified(self):
        raw = "  Hello! We have Apple and Samsung. Which brand do you like?\n"

        self.assertEqual(self.parser.parse(raw).text, raw)

    def test_unknown_marker_is_plain_text(self):
        raw = "Okay [INTENT:REFUND] {}"

        self.assertEqual(self.parser.parse(raw).text, raw)

    def test_empty_output_gets_canned_text(self):
        self.assertEqual(self.parser.parse("").text, EMPTY_REPLY_FALLBACK)
        self.assertEqual(self.parser.parse("   ").text, EMPTY_REPLY_FALLBACK)
        self.assertEqual(self.parser.parse(None).text, EMPTY_REPLY_FALLBACK)

    def test_parsing_is_deterministic(self):
        raw = 'Hi [INTENT:CREATE_ORDER] {"items": "x"}'

        self.assertEqual(self.parser.parse(raw), self.parser.parse(raw))


if __name__ == "__main__":
    unittest.main()
