"""Common utilities shared across lambda_awsutils.

Provides the logging mixins and the invocation metadata helpers.
"""
