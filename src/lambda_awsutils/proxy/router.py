"""API Gateway HTTP API (v2) proxy router.

Routes are matched in the order they were added; the first route whose
method and path pattern match the request handles it.
"""

__all__ = [
    "CatchAllHandler",
    "ErrorHandler",
    "Router",
]

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from aws_lambda_powertools.utilities.data_classes import APIGatewayProxyEventV2
from aws_lambda_powertools.utilities.typing import LambdaContext

from lambda_awsutils.common.logging import LoggingMixins
from lambda_awsutils.exceptions import RouteNotFoundError
from lambda_awsutils.proxy.context import HttpMethod, ProxyResponse
from lambda_awsutils.proxy.route import Route, RouteHandler

CatchAllHandler = Callable[[APIGatewayProxyEventV2, Optional[LambdaContext]], ProxyResponse]
ErrorHandler = Callable[
    [APIGatewayProxyEventV2, Optional[LambdaContext], Exception], ProxyResponse
]

ProxyEventLike = Union[APIGatewayProxyEventV2, Mapping[str, Any]]


@dataclass
class Router(LoggingMixins):
    """Routes API Gateway v2 proxy events to handlers.

    If a catch-all handler is set, requests matching no route are passed to
    it. If an error handler is set, any exception raised while routing or
    handling is passed to it and its response returned instead.

    Example:
        ```python
        router = Router()

        @router.get("/items/(?P<item_id>[^/]+)")
        def get_item(ctx: RouteContext) -> ProxyResponse:
            return ProxyResponse(200, json.dumps({"id": ctx.params["item_id"]}))

        def handler(event, context):
            return router.route(event, context)
        ```
    """

    routes: List[Route] = field(default_factory=list)
    catch_all: Optional[CatchAllHandler] = None
    catch_error: Optional[ErrorHandler] = None

    def add_route(self, route: Route) -> Route:
        self.routes.append(route)
        return route

    def add(self, method: Union[HttpMethod, str], pattern: str, handler: RouteHandler) -> Route:
        """Build and append a route.

        Raises:
            RouteBuildError: If the pattern or method is invalid.
        """
        return self.add_route(Route.build(method, pattern, handler))

    def route_for(
        self, method: Union[HttpMethod, str], pattern: str
    ) -> Callable[[RouteHandler], RouteHandler]:
        """Decorator form of `add`."""

        def decorator(handler: RouteHandler) -> RouteHandler:
            self.add(method, pattern, handler)
            return handler

        return decorator

    def get(self, pattern: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route_for(HttpMethod.GET, pattern)

    def head(self, pattern: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route_for(HttpMethod.HEAD, pattern)

    def post(self, pattern: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route_for(HttpMethod.POST, pattern)

    def put(self, pattern: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route_for(HttpMethod.PUT, pattern)

    def delete(self, pattern: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route_for(HttpMethod.DELETE, pattern)

    def connect(self, pattern: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route_for(HttpMethod.CONNECT, pattern)

    def options(self, pattern: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route_for(HttpMethod.OPTIONS, pattern)

    def trace(self, pattern: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route_for(HttpMethod.TRACE, pattern)

    def patch(self, pattern: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route_for(HttpMethod.PATCH, pattern)

    def resolve(
        self, event: ProxyEventLike, lambda_context: Optional[LambdaContext] = None
    ) -> ProxyResponse:
        """Route a request and return the handler's response.

        Raises:
            RouteNotFoundError: If no route matches and no catch-all is set
                (and no error handler is set).
        """
        proxy_event = (
            event
            if isinstance(event, APIGatewayProxyEventV2)
            else APIGatewayProxyEventV2(dict(event))
        )
        if self.catch_error is None:
            return self._resolve(proxy_event, lambda_context)

        try:
            return self._resolve(proxy_event, lambda_context)
        except Exception as e:
            self.logger.exception(f"Failed handling {self._describe(proxy_event)}: {e}")
            return self.catch_error(proxy_event, lambda_context, e)

    def route(
        self, event: ProxyEventLike, lambda_context: Optional[LambdaContext] = None
    ) -> Dict[str, Any]:
        """Lambda handler entry point: route a request and return the response dict."""
        return self.resolve(event, lambda_context).to_dict()

    def _resolve(
        self, event: APIGatewayProxyEventV2, lambda_context: Optional[LambdaContext]
    ) -> ProxyResponse:
        for route in self.routes:
            match = route.match(event)
            if match is None:
                continue
            self.logger.debug(f"{self._describe(event)} matched route {route}")
            return route.follow(event, match, lambda_context)

        if self.catch_all is not None:
            self.logger.info(f"No route matched {self._describe(event)}, using catch-all")
            return self.catch_all(event, lambda_context)

        raise RouteNotFoundError(f"'{self._describe(event)}' not found")

    @staticmethod
    def _describe(event: APIGatewayProxyEventV2) -> str:
        return f"{event.request_context.http.method} {event.raw_path}"
