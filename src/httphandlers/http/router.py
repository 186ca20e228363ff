"""
=============================================================================
REGEX ROUTER
=============================================================================

Dispatches requests to handlers by matching the path against an ordered
list of regular expressions, then filtering by HTTP method.

=============================================================================
ROUTE TABLE
=============================================================================

    router = RegexRouter()
    router.handle(r"^/v1/jobs$", ["GET", "POST"], jobs_handler)
    router.handle(r"^/v1/jobs/(?P<name>[^\\s/]+)$", ["GET"], job_handler)
    router.handle(r"^/healthz$", None, health_handler)      # any method

    ┌───┬──────────────────────────────┬──────────────┬───────────────┐
    │ # │ pattern                      │ methods      │ handler       │
    ├───┼──────────────────────────────┼──────────────┼───────────────┤
    │ 0 │ ^/v1/jobs$                   │ GET, POST    │ jobs_handler  │
    │ 1 │ ^/v1/jobs/(?P<name>[^\\s/]+)$ │ GET          │ job_handler   │
    │ 2 │ ^/healthz$                   │ (any)        │ health_handler│
    └───┴──────────────────────────────┴──────────────┴───────────────┘

Patterns are searched, not anchored: write ^...$ when you mean the whole
path. Named groups of the winning pattern are exposed to the handler as
``request.path_params``.

=============================================================================
DISPATCH
=============================================================================

    for route in routes (registration order):
        pattern does not match path ─────────────────────► next route
        path matched  (remember that)
        methods is None and method != OPTIONS ───────────► DISPATCH
        method in methods, or HEAD and GET in methods ───► DISPATCH
        otherwise collect route's methods for Allow ─────► next route

    after the scan:
        OPTIONS ─► 200, Allow: <collected>, OPTIONS
                   (or every verb + OPTIONS if nothing was collected)
        path matched ─► 405 Method Not Allowed
        nothing matched ─► 404 Not Found

=============================================================================
INTERVIEW INSIGHT
=============================================================================

Q: "How do you handle route conflicts?"
A: "First match wins, full stop. No longest-match, no specificity
   scoring. Overlapping patterns are the caller's problem; the
   predictability is worth more than the cleverness."

Q: "Why does HEAD reach a GET handler?"
A: "HEAD is GET without the body. The transport drops the body bytes;
   every header the GET handler would set is exactly what HEAD should
   report."

Q: "What's the time complexity?"
A: "O(R × P) for R routes and path length P. Fine for the dozens of
   routes a service has; radix trees only pay off far beyond that."

=============================================================================
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional, Pattern, Union

from .request import HTTPRequest
from .response import not_allowed, not_found
from .writer import ResponseWriter


logger = logging.getLogger(__name__)


Handler = Callable[[HTTPRequest, ResponseWriter], None]

# Methods advertised by OPTIONS when no explicit method list applies.
ALL_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "CONNECT", "TRACE")


@dataclass(frozen=True)
class Route:
    """
    A registered (pattern, methods, handler) triple.

    ``methods`` is None for "any method except OPTIONS"; otherwise an
    upper-cased tuple in registration order.
    """

    pattern: Pattern[str]
    methods: Optional[tuple[str, ...]]
    handler: Handler

    def accepts(self, method: str) -> bool:
        """Whether this route dispatches ``method`` (already upper-cased)."""
        if self.methods is None:
            return method != "OPTIONS"
        return any(
            allowed == method or (method == "HEAD" and allowed == "GET")
            for allowed in self.methods
        )


class RegexRouter:
    """
    First-match-wins regex router.

    The router is itself a Handler, so it sits innermost in a pipeline:

        handler = all_handlers(router, "api/1.0")

    Routes must be registered before the router serves concurrent
    requests; dispatch only reads the route list.
    """

    def __init__(self):
        self._routes: List[Route] = []

    def handle(
        self,
        pattern: Union[str, Pattern[str]],
        methods: Optional[Iterable[str]],
        handler: Handler,
    ) -> Route:
        """
        Register ``handler`` for paths matching ``pattern``.

        Args:
            pattern: Regex string or compiled pattern, searched against
                     the request path.
            methods: Allowed methods (any case), or None for every
                     method except OPTIONS.
            handler: Called as handler(request, writer) on dispatch.
        """
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        allowed = None if methods is None else tuple(m.upper() for m in methods)
        route = Route(compiled, allowed, handler)
        self._routes.append(route)
        logger.debug(
            "Registered route %s %s",
            ",".join(allowed) if allowed is not None else "ANY",
            compiled.pattern,
        )
        return route

    # =========================================================================
    # DECORATOR API
    # =========================================================================
    #
    #     @router.route(r"^/v1/jobs$", methods=["GET", "POST"])
    #     def jobs(request, writer): ...
    #
    #     @router.get(r"^/v1/jobs/(?P<name>\w+)$")
    #     def job(request, writer): ...
    #
    # =========================================================================

    def route(
        self,
        pattern: Union[str, Pattern[str]],
        methods: Optional[Iterable[str]] = None,
    ) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.handle(pattern, methods, handler)
            return handler
        return decorator

    def get(self, pattern: Union[str, Pattern[str]]) -> Callable[[Handler], Handler]:
        return self.route(pattern, ["GET"])

    def post(self, pattern: Union[str, Pattern[str]]) -> Callable[[Handler], Handler]:
        return self.route(pattern, ["POST"])

    def put(self, pattern: Union[str, Pattern[str]]) -> Callable[[Handler], Handler]:
        return self.route(pattern, ["PUT"])

    def patch(self, pattern: Union[str, Pattern[str]]) -> Callable[[Handler], Handler]:
        return self.route(pattern, ["PATCH"])

    def delete(self, pattern: Union[str, Pattern[str]]) -> Callable[[Handler], Handler]:
        return self.route(pattern, ["DELETE"])

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def __call__(self, request: HTTPRequest, writer: ResponseWriter) -> None:
        method = request.method.upper()
        path_matched = False
        collected: List[str] = []

        for route in self._routes:
            match = route.pattern.search(request.path)
            if match is None:
                continue
            path_matched = True

            if route.accepts(method):
                params = match.groupdict()
                if params:
                    request = replace(request, path_params=params)
                route.handler(request, writer)
                return

            for allowed in route.methods or ():
                if allowed not in collected:
                    collected.append(allowed)

        if method == "OPTIONS":
            verbs = collected or list(ALL_METHODS)
            writer.headers.set("Allow", ", ".join(verbs + ["OPTIONS"]))
            return

        if path_matched:
            writer.headers.set("Allow", ", ".join(collected + ["OPTIONS"]))
            not_allowed(writer, request)
        else:
            not_found(writer, request)

    @property
    def routes(self) -> List[Route]:
        """Registered routes in match-priority order."""
        return list(self._routes)

    def print_routes(self) -> None:
        """
        Print the route table (useful at startup).

            Registered Routes:
            ------------------------------------------------------------
              GET,POST     ^/v1/jobs$
              ANY          ^/healthz$
            ------------------------------------------------------------
        """
        print("\nRegistered Routes:")
        print("-" * 60)
        for route in self._routes:
            methods = ",".join(route.methods) if route.methods is not None else "ANY"
            print(f"  {methods:12} {route.pattern.pattern}")
        print("-" * 60)
