from datetime import datetime, timezone
from test.base import AwsBaseTest
from test.lambda_awsutils.base import s3_message, s3_record, sns_event
from unittest import mock

import boto3
from aws_lambda_powertools.utilities.data_classes import SNSEvent
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    NoRegionError,
)

from lambda_awsutils.exceptions import (
    CardinalityError,
    FingerprintError,
    SessionError,
    StoreError,
    ValidationError,
)
from lambda_awsutils.lock.clock import FixedClock
from lambda_awsutils.lock.deduplication import (
    CLAIM_CONDITION,
    MAX_CLAIM_ATTEMPTS,
    DeduplicationLock,
)
from lambda_awsutils.lock.fingerprint import s3_object_fingerprint, sha256_fingerprint

NOW = datetime(2009, 11, 10, 23, 0, 0, tzinfo=timezone.utc)


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "test fail"}}, "PutItem")


class DeduplicationLockTestCase(AwsBaseTest):
    def setUp(self) -> None:
        super().setUp()
        self.set_aws_credentials()
        self.clock = FixedClock(NOW)
        self.client = mock.MagicMock()
        self.client.put_item.return_value = {}

    def get_lock(self, ttl: int = 900, retry_wait: int = 0, **kwargs) -> DeduplicationLock:
        kwargs.setdefault("client_factory", lambda region: self.client)
        return DeduplicationLock.create(
            "r1", "t1", ttl=ttl, retry_wait=retry_wait, clock=self.clock, **kwargs
        )


class DeduplicationLockConstructionTests(DeduplicationLockTestCase):
    def test__create__applies_defaults(self):
        lock = DeduplicationLock.create("r", "t")

        self.assertEqual(lock.region, "r")
        self.assertEqual(lock.table, "t")
        self.assertEqual(lock.ttl, 300)
        self.assertEqual(lock.retry_wait, 500)
        self.assertIs(lock.fingerprinter, sha256_fingerprint)

    def test__from_config__reads_document(self):
        lock = DeduplicationLock.from_config('{"region": "r3", "table": "t3", "retry-wait": 250}')

        self.assertEqual(lock.region, "r3")
        self.assertEqual(lock.table, "t3")
        self.assertEqual(lock.ttl, 300)
        self.assertEqual(lock.retry_wait, 250)

    def test__from_config__passes_collaborators(self):
        lock = DeduplicationLock.from_config(
            {"region": "r", "table": "t"}, clock=self.clock, fingerprinter=s3_object_fingerprint
        )

        self.assertIs(lock.clock, self.clock)
        self.assertIs(lock.fingerprinter, s3_object_fingerprint)

    def test__from_config__fails_without_region(self):
        with self.assertRaises(ValidationError):
            DeduplicationLock.from_config('{"table": "t1", "ttl": 15}')

    def test__create__logs_configuration_document(self):
        with mock.patch.object(
            DeduplicationLock, "logger", new_callable=mock.PropertyMock
        ) as logger:
            DeduplicationLock.create("r", "t", ttl=15, retry_wait=250)

        (message,), _ = logger.return_value.debug.call_args
        self.assertIn('"ttl": 15', message)
        self.assertIn('"retry-wait": 250', message)


class DeduplicationLockExpiryTests(DeduplicationLockTestCase):
    def test__current_time__is_clock_epoch(self):
        self.assertEqual(self.get_lock(ttl=15).current_time(), "1257894000")

    def test__expires_at__adds_ttl(self):
        self.assertEqual(self.get_lock(ttl=15).expires_at(), "1257894015")

    def test__build_put_item_request__is_conditional_claim(self):
        request = self.get_lock(ttl=900).build_put_item_request("1234")

        self.assertDictEqual(
            request,
            {
                "TableName": "t1",
                "Item": {"id": {"S": "1234"}, "expire": {"N": "1257894900"}},
                "ConditionExpression": "attribute_not_exists(id) OR :cur > expire",
                "ExpressionAttributeValues": {":cur": {"N": "1257894000"}},
            },
        )
        self.assertEqual(request["ConditionExpression"], CLAIM_CONDITION)


class DeduplicationLockFingerprintTests(DeduplicationLockTestCase):
    def test__compute_fingerprint__default_is_sha256(self):
        self.assertEqual(
            self.get_lock().compute_fingerprint("abc"),
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad",
        )

    def test__compute_fingerprint__is_deterministic(self):
        lock = self.get_lock(fingerprinter=s3_object_fingerprint)
        message = s3_message(s3_record())

        self.assertEqual(lock.compute_fingerprint(message), lock.compute_fingerprint(message))

    def test__compute_fingerprint__wraps_failures(self):
        lock = self.get_lock(fingerprinter=s3_object_fingerprint)

        with self.assertRaises(FingerprintError) as context:
            lock.compute_fingerprint("not an s3 event")
        self.assertIsInstance(context.exception.__cause__, ValueError)


class DeduplicationLockStubbedClientTests(DeduplicationLockTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.dynamodb = boto3.client("dynamodb", region_name=self.DEFAULT_REGION)
        self.stubber = self.stub(self.dynamodb)
        self.stubber.activate()
        self.addCleanup(self.stubber.deactivate)

    def get_lock(self, ttl: int = 900, retry_wait: int = 0, **kwargs) -> DeduplicationLock:
        return super().get_lock(
            ttl=ttl, retry_wait=retry_wait, client_factory=lambda region: self.dynamodb, **kwargs
        )

    def test__is_available_by_id__claims_fresh_id(self):
        lock = self.get_lock()
        self.stubber.add_response("put_item", {}, lock.build_put_item_request("1234"))

        self.assertTrue(lock.is_available_by_id("1234"))
        self.stubber.assert_no_pending_responses()

    def test__is_available_by_id__condition_failure_is_duplicate(self):
        lock = self.get_lock()
        self.stubber.add_client_error(
            "put_item",
            service_error_code="ConditionalCheckFailedException",
            service_message="The conditional request failed",
            http_status_code=400,
        )

        self.assertFalse(lock.is_available_by_id("1234"))

    def test__is_available_by_id__other_client_error_raises(self):
        lock = self.get_lock()
        self.stubber.add_client_error(
            "put_item",
            service_error_code="ResourceNotFoundException",
            service_message="Requested resource not found",
            http_status_code=400,
        )

        with self.assertRaises(StoreError) as context:
            lock.is_available_by_id("1234")
        self.assertEqual(context.exception.fingerprint, "1234")
        self.assertEqual(context.exception.table, "t1")
        self.assertIsInstance(context.exception.__cause__, ClientError)


class DeduplicationLockRetryTests(DeduplicationLockTestCase):
    def test__is_available__unrelated_error_is_not_retried(self):
        self.client.put_item.side_effect = ValueError("test fail")

        with self.assertRaises(StoreError):
            self.get_lock().is_available("1234")
        self.assertEqual(self.client.put_item.call_count, 1)
        self.assertListEqual(self.clock.sleeps, [])

    def test__is_available__retries_dropped_connection(self):
        self.client.put_item.side_effect = [
            ConnectionClosedError(endpoint_url="https://dynamodb.us-west-2.amazonaws.com"),
            {},
        ]

        self.assertTrue(self.get_lock(retry_wait=250).is_available("1234"))
        self.assertEqual(self.client.put_item.call_count, 2)
        self.assertListEqual(self.clock.sleeps, [0.25])

    def test__is_available__retries_connection_reset_then_sees_duplicate(self):
        self.client.put_item.side_effect = [
            RuntimeError("read tcp: connection reset by peer"),
            ConnectionResetError(104, "Connection reset by peer"),
            client_error("ConditionalCheckFailedException"),
        ]

        self.assertFalse(self.get_lock().is_available("1234"))
        self.assertEqual(self.client.put_item.call_count, 3)
        self.assertListEqual(self.clock.sleeps, [0.5, 0.5])

    def test__is_available__retries_throttling(self):
        self.client.put_item.side_effect = [
            client_error("ProvisionedThroughputExceededException"),
            {},
        ]

        self.assertTrue(self.get_lock().is_available("1234"))

    def test__is_available__retry_reuses_request(self):
        self.client.put_item.side_effect = [
            EndpointConnectionError(endpoint_url="https://dynamodb.us-west-2.amazonaws.com"),
            {},
        ]
        lock = self.get_lock(ttl=900)

        lock.is_available("1234")

        first, second = self.client.put_item.call_args_list
        self.assertEqual(first, second)
        self.assertEqual(first.kwargs["Item"]["expire"], {"N": "1257894900"})

    def test__is_available__exhausted_retries_raise(self):
        error = ConnectionClosedError(endpoint_url="https://dynamodb.us-west-2.amazonaws.com")
        self.client.put_item.side_effect = error

        with self.assertRaises(StoreError) as context:
            self.get_lock().is_available("1234")

        self.assertIs(context.exception.__cause__, error)
        self.assertEqual(context.exception.fingerprint, "1234")
        self.assertIn("failed put 1234 to t1", str(context.exception))
        self.assertEqual(self.client.put_item.call_count, MAX_CLAIM_ATTEMPTS)
        self.assertListEqual(self.clock.sleeps, [0.5] * (MAX_CLAIM_ATTEMPTS - 1))

    def test__is_available__timeout_stops_retries(self):
        self.client.put_item.side_effect = ConnectionResetError("Connection reset by peer")

        with self.assertRaises(StoreError) as context:
            self.get_lock(retry_wait=500).is_available("1234", timeout=1.2)

        self.assertIn("timed out", str(context.exception))
        self.assertEqual(self.client.put_item.call_count, 3)
        self.assertListEqual(self.clock.sleeps, [0.5, 0.5])

    def test__is_available__session_failure(self):
        def client_factory(region: str):
            raise NoRegionError()

        with self.assertRaises(SessionError) as context:
            self.get_lock(client_factory=client_factory).is_available("1234")
        self.assertIsInstance(context.exception.__cause__, NoRegionError)
        self.client.put_item.assert_not_called()


class DeduplicationLockMessageTests(DeduplicationLockTestCase):
    def test__is_available_for_message__claims_message_fingerprint(self):
        lock = self.get_lock()

        self.assertTrue(lock.is_available_for_message(sns_event("abc")))

        kwargs = self.client.put_item.call_args.kwargs
        self.assertEqual(kwargs["Item"]["id"], {"S": sha256_fingerprint("abc")})

    def test__is_available_for_message__accepts_powertools_event(self):
        self.assertTrue(self.get_lock().is_available_for_message(SNSEvent(sns_event("abc"))))

    def test__is_available_for_message__uses_configured_fingerprinter(self):
        lock = self.get_lock(fingerprinter=s3_object_fingerprint)
        message = s3_message(s3_record())

        lock.is_available_for_message(sns_event(message))

        kwargs = self.client.put_item.call_args.kwargs
        self.assertEqual(kwargs["Item"]["id"], {"S": s3_object_fingerprint(message)})

    def test__is_available_for_message__duplicate(self):
        self.client.put_item.side_effect = client_error("ConditionalCheckFailedException")

        self.assertFalse(self.get_lock().is_available_for_message(sns_event("abc")))

    def test__is_available_for_message__requires_single_record(self):
        lock = self.get_lock()

        for event in [sns_event(), sns_event("abc", "abc"), {}]:
            with self.assertRaises(CardinalityError):
                lock.is_available_for_message(event)
        self.client.put_item.assert_not_called()

    def test__is_available_for_message__cardinality_message(self):
        with self.assertRaises(CardinalityError) as context:
            self.get_lock().is_available_for_message(sns_event("a", "b"))
        self.assertIn("expected only 1 event, received: 2", str(context.exception))

    def test__is_available_for_message__fingerprint_failure(self):
        lock = self.get_lock(fingerprinter=s3_object_fingerprint)

        with self.assertRaises(FingerprintError):
            lock.is_available_for_message(sns_event("not json"))
        self.client.put_item.assert_not_called()
