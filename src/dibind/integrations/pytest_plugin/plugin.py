from __future__ import annotations

from collections.abc import Iterator

import pytest

from dibind.container import Container
from dibind.container_context import container_context


@pytest.fixture()
def dibind_container() -> Iterator[Container]:
    """Provide a fresh container installed as the process default for one test.

    The previously installed default container, if any, is restored when the
    test finishes, so ``get_instance()`` calls made by code under test see
    this container and nothing leaks between tests.

    Yields:
        A new ``Container`` instance.

    """
    previous = container_context.peek()
    container = Container()
    container_context.set_current(container)
    try:
        yield container
    finally:
        container.flush()
        container_context.set_current(previous, replay=False)
