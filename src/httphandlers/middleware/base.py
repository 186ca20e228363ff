"""
=============================================================================
HANDLERS, MIDDLEWARE AND THE PIPELINE
=============================================================================

Two calling conventions run through the whole package:

    Handler    = Callable[[HTTPRequest, ResponseWriter], None]
    Middleware = Callable[[Handler], Handler]

A middleware takes the next handler and returns a new handler that does
its work around the call:

    def strict_transport_security(handler: Handler) -> Handler:
        def sts_handler(request, writer):
            writer.headers.set("Strict-Transport-Security", "...")
            handler(request, writer)
        return sts_handler

Middleware that need configuration take it as extra arguments and are
adapted with functools.partial (or a lambda) when composed:

    pipeline.add(functools.partial(server, server_name="api/1.0"))

=============================================================================
ONION ORDER
=============================================================================

    pipeline.use(duration, log, request_id)
    handler = pipeline.wrap(router)

        ┌───────────────────────────────────────────────────────┐
        │ duration                                              │
        │   ┌───────────────────────────────────────────────┐   │
        │   │ log                                           │   │
        │   │   ┌───────────────────────────────────────┐   │   │
        │   │   │ request_id                            │   │   │
        │   │   │   ┌───────────────────────────────┐   │   │   │
        │   │   │   │            router             │   │   │   │
        │   │   │   └───────────────────────────────┘   │   │   │
        │   │   └───────────────────────────────────────┘   │   │
        │   └───────────────────────────────────────────────┘   │
        └───────────────────────────────────────────────────────┘

The request travels inward (first added runs first); bytes written by
the router travel outward through every writer wrapper on the way.

=============================================================================
INTERVIEW INSIGHT
=============================================================================

Q: "Why plain functions instead of a Middleware base class?"
A: "A middleware here is just Handler -> Handler. Functions compose with
   nothing but calls, are trivially testable one at a time, and the
   same function works whether it is used alone, in a pipeline, or
   inside another middleware."

=============================================================================
"""

import logging
from typing import Callable, Iterator, List

from ..http.request import HTTPRequest
from ..http.writer import ResponseWriter


logger = logging.getLogger(__name__)


Handler = Callable[[HTTPRequest, ResponseWriter], None]
Middleware = Callable[[Handler], Handler]


def _name(middleware: Middleware) -> str:
    func = getattr(middleware, "func", middleware)  # functools.partial
    return getattr(func, "__name__", repr(func))


class MiddlewarePipeline:
    """
    An ordered list of middleware applied around a final handler.

    First added = outermost:

        pipeline = MiddlewarePipeline().use(duration, log)
        handler = pipeline.wrap(app)        # duration(log(app))
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append one middleware; returns self for chaining."""
        self._middleware.append(middleware)
        logger.debug("Added middleware: %s", _name(middleware))
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        """Append several middleware in order."""
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: Handler) -> Handler:
        """
        Apply every middleware around ``handler``.

        Given [A, B, C] the result is A(B(C(handler))): wrapping runs in
        reverse so the first-added middleware ends up outermost.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = middleware(current)
        return current

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)
