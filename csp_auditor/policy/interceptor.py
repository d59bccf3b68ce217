"""Runtime call interceptor for network and dynamic-evaluation entry points.

Each wrapper captures the original callable at install time, records an
observation into the run's ``PolicyState`` and then forwards the exact
arguments to the original. The observation never changes what the call
does or returns.
"""

from __future__ import annotations

import enum
import functools
import inspect
import types
from typing import Any, Callable

import structlog

from csp_auditor.policy.directives import Directive
from csp_auditor.policy.origin import resolve_origin, to_socket_origin
from csp_auditor.policy.state import PolicyState

logger = structlog.get_logger()


class InterceptorError(Exception):
    """Raised when instrumentation is installed more than once."""


class Surface(str, enum.Enum):
    request_open = "request_open"
    fetch = "fetch"
    socket = "socket"
    eval = "eval"
    function = "function"


# Host attribute name -> instrumented surface
DEFAULT_BINDINGS: dict[str, Surface] = {
    "open": Surface.request_open,
    "fetch": Surface.fetch,
    "WebSocket": Surface.socket,
    "eval": Surface.eval,
    "Function": Surface.function,
}


def _target_url(surface: Surface, args: tuple, kwargs: dict) -> str | None:
    """Pull the request URL out of a call's arguments."""
    if "url" in kwargs:
        value = kwargs["url"]
    elif surface is Surface.request_open:
        # open(method, url, ...)
        value = args[1] if len(args) > 1 else None
    else:
        value = args[0] if args else None
    if value is None:
        return None
    # fetch(Request) style: anything carrying a .url
    url = getattr(value, "url", value)
    return str(url)


class RuntimeInterceptor:
    """Instrument a host's request/socket/eval entry points for one audit run."""

    def __init__(
        self,
        state: PolicyState,
        document_url: str,
        bindings: dict[str, Surface] | None = None,
    ) -> None:
        self._state = state
        self._document_url = document_url
        self._bindings = dict(DEFAULT_BINDINGS if bindings is None else bindings)
        self._host: Any = None
        self._originals: dict[str, Any] = {}

    @property
    def installed(self) -> bool:
        return self._host is not None

    def install(self, host: Any) -> list[str]:
        """Replace bound callables on ``host`` with observing wrappers.

        ``host`` may be an object or a class. On a class, plain functions are
        replaced with method wrappers so every instance is observed and the
        receiver is not mistaken for a call argument; other callables
        (static methods, nested classes) are wrapped as static methods.

        Returns the attribute names that were instrumented. Attributes the
        host does not expose are skipped.
        """
        if self._host is not None:
            raise InterceptorError("interceptor is already installed")
        on_class = inspect.isclass(host)
        instrumented = []
        for name, surface in self._bindings.items():
            original = getattr(host, name, None)
            if not callable(original):
                continue
            if on_class:
                raw = inspect.getattr_static(host, name)
                self._originals[name] = raw
                if isinstance(raw, types.FunctionType):
                    replacement = self.wrap(surface, original, method=True)
                else:
                    replacement = staticmethod(self.wrap(surface, original))
            else:
                self._originals[name] = original
                replacement = self.wrap(surface, original)
            setattr(host, name, replacement)
            instrumented.append(name)
        self._host = host
        logger.info("interceptor_installed", surfaces=instrumented, on_class=on_class)
        return instrumented

    def uninstall(self) -> None:
        """Restore the captured originals on the host."""
        if self._host is None:
            return
        for name, original in self._originals.items():
            setattr(self._host, name, original)
        self._originals.clear()
        self._host = None

    def wrap(self, surface: Surface, original: Callable, *, method: bool = False) -> Callable:
        """Build an observing wrapper around ``original``.

        With ``method=True`` the first positional argument is the receiver
        and is excluded from URL extraction.
        """
        observe = self._observer(surface)

        @functools.wraps(original, updated=())
        def wrapper(*args, **kwargs):
            try:
                observe(args[1:] if method else args, kwargs)
            except Exception:
                logger.exception("interceptor_observe_error", surface=surface.value)
            return original(*args, **kwargs)

        return wrapper

    def _observer(self, surface: Surface) -> Callable[[tuple, dict], None]:
        if surface in (Surface.eval, Surface.function):
            return lambda args, kwargs: self._state.mark_eval()
        if surface is Surface.socket:
            return lambda args, kwargs: self._observe_request(surface, args, kwargs, socket=True)
        return lambda args, kwargs: self._observe_request(surface, args, kwargs)

    def _observe_request(self, surface: Surface, args: tuple, kwargs: dict, socket: bool = False) -> None:
        url = _target_url(surface, args, kwargs)
        if url is None:
            return
        token = resolve_origin(url, self._document_url)
        if token is None:
            # Unresolvable targets are dropped from the policy
            logger.debug("intercepted_url_dropped", surface=surface.value, url=url[:200])
            return
        if socket:
            self._state.record(Directive.connect_src, to_socket_origin(token), f"socket to: {url}")
        else:
            self._state.record(Directive.connect_src, token, f"request to: {url}")
