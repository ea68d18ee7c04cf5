"""Event payload helpers.

Contains utilities for unwrapping S3 event notifications delivered through SNS.
"""
