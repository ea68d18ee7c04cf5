"""Routing for Lambda functions integrated as API Gateway v2 (HTTP API) proxies.

The router is deliberately small: ordered regex routes, parameter extraction,
an optional catch-all and an optional error handler.
"""

__all__ = [
    "HttpMethod",
    "ProxyResponse",
    "Route",
    "RouteContext",
    "Router",
]

from lambda_awsutils.proxy.context import HttpMethod, ProxyResponse, RouteContext
from lambda_awsutils.proxy.route import Route
from lambda_awsutils.proxy.router import Router
