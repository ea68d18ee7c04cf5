__all__ = [
    "FORM_CONTENT_TYPE",
    "Route",
    "RouteHandler",
]

import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union
from urllib.parse import parse_qsl

from aws_lambda_powertools.utilities.data_classes import APIGatewayProxyEventV2
from aws_lambda_powertools.utilities.typing import LambdaContext

from lambda_awsutils.exceptions import RequestParseError, RouteBuildError
from lambda_awsutils.proxy.context import HttpMethod, ProxyResponse, RouteContext, decode_body

RouteHandler = Callable[[RouteContext], ProxyResponse]

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass
class Route:
    """An HTTP method and path regex that select a handler.

    The path pattern is anchored at both ends and tolerates a trailing slash,
    so `/items` matches `/items` and `/items/` but not `/items/1`. Named groups
    (`(?P<item_id>[^/]+)`) become request parameters.

    Attributes:
        method: HTTP method the route answers.
        regex: Compiled, anchored path pattern.
        handler: Called with the RouteContext when the route matches.
    """

    method: HttpMethod
    regex: "re.Pattern[str]"
    handler: RouteHandler

    @classmethod
    def build(cls, method: Union[HttpMethod, str], pattern: str, handler: RouteHandler) -> "Route":
        """Compile `pattern` into a route.

        Raises:
            RouteBuildError: If the pattern is not a valid regular expression
                or the method is unknown.
        """
        try:
            method = HttpMethod(method.upper() if isinstance(method, str) else method)
        except ValueError as e:
            raise RouteBuildError(f"unknown HTTP method '{method}'") from e
        try:
            regex = re.compile(f"^{pattern}/?$")
        except re.error as e:
            raise RouteBuildError(f"failed compiling regex pattern '{pattern}': {e}") from e
        return cls(method=method, regex=regex, handler=handler)

    def __str__(self) -> str:
        return f"{self.method} {self.regex.pattern}"

    def match(self, event: APIGatewayProxyEventV2) -> Optional["re.Match[str]"]:
        """Match the request method and raw path against this route."""
        if event.request_context.http.method.upper() != self.method.value:
            return None
        return self.regex.fullmatch(event.raw_path or "")

    def context(
        self,
        event: APIGatewayProxyEventV2,
        match: "re.Match[str]",
        lambda_context: Optional[LambdaContext] = None,
    ) -> RouteContext:
        """Build the RouteContext for a matched request.

        Parameters are merged so that later sources override earlier ones:

            1. API Gateway path parameters
            2. Query string
            3. Named groups of the route pattern (non-empty only)
            4. Form POST body (`application/x-www-form-urlencoded`)

        Raises:
            RequestParseError: If a form POST body cannot be decoded or parsed.
        """
        params: Dict[str, str] = {}
        params.update(event.path_parameters or {})
        params.update(event.query_string_parameters or {})
        params.update({k: v for k, v in match.groupdict().items() if v})
        params.update(self._form_params(event))
        return RouteContext(event=event, params=params, lambda_context=lambda_context)

    def follow(
        self,
        event: APIGatewayProxyEventV2,
        match: "re.Match[str]",
        lambda_context: Optional[LambdaContext] = None,
    ) -> ProxyResponse:
        """Build the route context and invoke the handler."""
        return self.handler(self.context(event, match, lambda_context))

    @staticmethod
    def _form_params(event: APIGatewayProxyEventV2) -> Dict[str, str]:
        if event.request_context.http.method.upper() != HttpMethod.POST.value:
            return {}
        content_type = next(
            (v for k, v in (event.headers or {}).items() if k.lower() == "content-type"), ""
        )
        if (content_type or "").split(";")[0].strip().lower() != FORM_CONTENT_TYPE:
            return {}

        body = decode_body(event)
        if not body:
            return {}
        try:
            return dict(parse_qsl(body, keep_blank_values=True, strict_parsing=True))
        except ValueError as e:
            raise RequestParseError(
                f"invalid key/value pair in form post to {event.raw_path}"
            ) from e
