"""Front-controller routing: path -> (controller, action, params).

Segment 0 names a controller from an explicit registry, segment 1 names one
of that controller's declared actions, and every segment not consumed is
passed on as a positional string parameter. Query strings and the HTTP verb
take no part in matching.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Mapping, Optional

from backend.app.db.gateway import parse_int

logger = logging.getLogger(__name__)

DEFAULT_CONTROLLER = "dashboard"
DEFAULT_ACTION = "index"


class RouterConfigError(RuntimeError):
    """The controller registry is unusable; raised at startup, never per request."""


def action(name: Optional[str] = None, *, aliases: Iterable[str] = (), login_required: bool = True):
    """Expose a controller method as a routable action."""

    def decorator(func):
        func._route_names = tuple([name or func.__name__, *aliases])
        func._login_required = login_required
        return func

    return decorator


class RouteParams(Sequence):
    """Ordered positional URL parameters with explicit bounds checks."""

    def __init__(self, values: Iterable[str] = ()):
        self._values = tuple(values)

    def __len__(self) -> int:
        return len(self._values)

    def __getitem__(self, index):
        return self._values[index]

    def __eq__(self, other) -> bool:
        if isinstance(other, RouteParams):
            return self._values == other._values
        if isinstance(other, (list, tuple)):
            return list(self._values) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"RouteParams({list(self._values)!r})"

    def get(self, index: int, default: Optional[str] = None) -> Optional[str]:
        if 0 <= index < len(self._values):
            return self._values[index]
        return default

    def get_int(self, index: int, default: Optional[int] = None) -> Optional[int]:
        value = parse_int(self.get(index))
        return default if value is None else value


@dataclass(frozen=True)
class Route:
    controller: str
    action: str
    params: RouteParams = field(default_factory=RouteParams)


class Router:
    def __init__(
        self,
        registry: Mapping[str, Callable],
        default_controller: str = DEFAULT_CONTROLLER,
        default_action: str = DEFAULT_ACTION,
    ):
        self.registry: Dict[str, Callable] = {name.lower(): factory for name, factory in registry.items()}
        self.default_controller = default_controller.lower()
        self.default_action = default_action.lower()
        self.validate()

    def validate(self) -> None:
        if self.default_controller not in self.registry:
            raise RouterConfigError(f"Default controller '{self.default_controller}' is not registered")
        for name, factory in self.registry.items():
            if not callable(factory):
                raise RouterConfigError(f"Controller '{name}' is not callable")
            actions = getattr(factory, "actions", None)
            if actions is None or self.default_action not in actions:
                raise RouterConfigError(f"Controller '{name}' has no '{self.default_action}' action")

    def factory_for(self, controller: str) -> Callable:
        try:
            return self.registry[controller]
        except KeyError as exc:
            raise RouterConfigError(f"Controller '{controller}' is not registered") from exc

    def resolve(self, path: str) -> Route:
        trimmed = (path or "").strip("/")
        segments = trimmed.split("/") if trimmed else []

        controller = self.default_controller
        if segments and segments[0].lower() in self.registry:
            controller = segments.pop(0).lower()
            action_index = 0
        else:
            # Segment 0 was not consumed, so the action still sits at position 1
            action_index = 1

        actions = self.factory_for(controller).actions
        action_name = self.default_action
        if len(segments) > action_index and segments[action_index].lower() in actions:
            action_name = segments.pop(action_index).lower()

        return Route(controller=controller, action=action_name, params=RouteParams(segments))
