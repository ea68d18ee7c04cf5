__all__ = [
    "HttpMethod",
    "ProxyResponse",
    "RouteContext",
    "decode_body",
]

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from aws_lambda_powertools.utilities.data_classes import APIGatewayProxyEventV2
from aws_lambda_powertools.utilities.typing import LambdaContext

from lambda_awsutils.exceptions import RequestParseError


class HttpMethod(str, Enum):
    """The standard HTTP methods."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    CONNECT = "CONNECT"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    PATCH = "PATCH"

    def __str__(self) -> str:
        return self.value


@dataclass
class ProxyResponse:
    """Response returned to API Gateway by a proxy integration.

    Attributes:
        status_code: HTTP status code.
        body: Response body.
        headers: Response headers.
        is_base64_encoded: Whether `body` is base64 encoded binary content.
    """

    status_code: int = 200
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    is_base64_encoded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "headers": dict(self.headers),
            "body": self.body,
            "isBase64Encoded": self.is_base64_encoded,
        }


def decode_body(event: APIGatewayProxyEventV2) -> str:
    """Get the request body as a string, base64 decoding it when flagged.

    Raises:
        RequestParseError: If the body is flagged as base64 but cannot be decoded.
    """
    body = event.body or ""
    if not event.is_base64_encoded:
        return body
    try:
        return base64.b64decode(body, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise RequestParseError(f"unable to decode request body for {event.raw_path}") from e


@dataclass
class RouteContext:
    """Everything a route handler needs about a matched request.

    Attributes:
        event: The API Gateway v2 (HTTP API) proxy event.
        params: Parameters extracted from the request.
        lambda_context: The Lambda context of the invocation, if available.
    """

    event: APIGatewayProxyEventV2
    params: Dict[str, str] = field(default_factory=dict)
    lambda_context: Optional[LambdaContext] = None

    @property
    def body(self) -> str:
        return decode_body(self.event)
