from typing import Annotated, Any, Callable, TypeVar

from fastapi import Depends, FastAPI, Request

T = TypeVar("T")

_providers: dict[Any, Callable[[Request], Any]] = {}


def _provider(tp: Any) -> Callable[[Request], Any]:
    if tp not in _providers:

        def provide(request: Request) -> Any:
            return request.app.state.bindings[tp]

        _providers[tp] = provide
    return _providers[tp]


def bind(app: FastAPI, tp: type[T], value: T) -> None:
    """Make `value` the instance injected wherever `Injected[tp]` is declared."""
    if not hasattr(app.state, "bindings"):
        app.state.bindings = {}
    app.state.bindings[tp] = value


class Injected:
    def __class_getitem__(cls, tp: Any) -> Any:
        return Annotated[tp, Depends(_provider(tp))]
