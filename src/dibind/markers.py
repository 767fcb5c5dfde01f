from __future__ import annotations

from typing import Any, NamedTuple


class Inject(NamedTuple):
    """Wire a parameter to an explicit identifier.

    Attach ``Inject`` metadata to ``typing.Annotated`` when the dependency is
    registered under a string key, or under a different class than the one
    used for type checking.

    Examples:
        .. code-block:: python

            from typing import Annotated


            class Mailer:
                def __init__(self, transport: Annotated[Transport, Inject("smtp")]) -> None:
                    self.transport = transport

    """

    key: Any
