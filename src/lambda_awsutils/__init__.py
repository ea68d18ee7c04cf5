"""Lambda AWS utilities.

Building blocks for AWS Lambda functions that process asynchronous cloud
events: a DynamoDB backed deduplication lock for at-least-once delivered
messages, invocation metadata, S3-over-SNS event unwrapping and a small
API Gateway HTTP proxy router.
"""
