from __future__ import annotations

import logging
from typing import Callable, List, Optional

logger = logging.getLogger("koala_wiki.navigation")

RouteListener = Callable[[str], None]


class Navigator:
    """
    Route history for the front-end. Operations that end on another screen
    (login, page creation, access denial) push the target path here.
    """

    def __init__(self, initial: str = "/"):
        self.history: List[str] = [initial]
        self._listener: Optional[RouteListener] = None

    @property
    def current(self) -> str:
        return self.history[-1]

    def on_change(self, listener: Optional[RouteListener]) -> None:
        self._listener = listener

    def push(self, path: str) -> None:
        if not path.startswith("/"):
            path = "/" + path
        self.history.append(path)
        logger.debug("navigate -> %s", path)
        if self._listener is not None:
            self._listener(path)

    def replace(self, path: str) -> None:
        self.history[-1] = path
        if self._listener is not None:
            self._listener(path)

    def back(self) -> str:
        if len(self.history) > 1:
            self.history.pop()
        return self.current
