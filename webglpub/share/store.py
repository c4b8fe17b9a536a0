import threading
from collections import deque
from typing import Any, Callable, Deque, Generic, Optional, Sequence, TypeVar

S = TypeVar("S")

Dispatcher = Callable[[Any], Any]
Reducer = Callable[[S, Any], S]
Middleware = Callable[["Store[S]"], Callable[[Dispatcher], Dispatcher]]
StateChangedHandler = Callable[[S], None]


class Store(Generic[S]):
    """Owns the current state and threads every action through the middleware chain.

    Dispatches are serialized: an action dispatched while another one is being
    processed (typically from inside a middleware) is queued and handled once
    the current one has been reduced and observed. All dispatches must come
    from the thread that created the store.
    """

    def __init__(
        self,
        reducer: Reducer,
        initial_state: S,
        *middlewares: Middleware,
        state_changed: Optional[StateChangedHandler] = None,
    ) -> None:
        self.state_changed = state_changed
        self._reducer = reducer
        self._state = initial_state
        self._owner = threading.get_ident()
        self._queue: Deque[Any] = deque()
        self._dispatching = False
        self._dispatcher = self._apply_middlewares(middlewares)

    @property
    def state(self) -> S:
        return self._state

    def dispatch(self, action: Any) -> Any:
        if threading.get_ident() != self._owner:
            raise RuntimeError("Store.dispatch called outside the store's thread")
        self._queue.append(action)
        if self._dispatching:
            return action
        self._dispatching = True
        try:
            while self._queue:
                self._dispatcher(self._queue.popleft())
        except BaseException:
            self._queue.clear()
            raise
        finally:
            self._dispatching = False
        return action

    def _apply_middlewares(self, middlewares: Sequence[Middleware]) -> Dispatcher:
        dispatcher: Dispatcher = self._inner_dispatch
        for middleware in reversed(middlewares):
            dispatcher = middleware(self)(dispatcher)
        return dispatcher

    def _inner_dispatch(self, action: Any) -> Any:
        self._state = self._reducer(self._state, action)
        if self.state_changed is not None:
            self.state_changed(self._state)
        return action
