"""Shared pytest fixtures for dibind tests."""

import pytest

from dibind.container import Container
from dibind.dependencies import ParametersExtractor


@pytest.fixture()
def container() -> Container:
    """Default container with implicit binding of unregistered classes."""
    return Container()


@pytest.fixture()
def container_no_autowire() -> Container:
    """Container that only resolves registered identifiers."""
    return Container(autowire=False)


@pytest.fixture()
def parameters_extractor() -> ParametersExtractor:
    """ParametersExtractor instance."""
    return ParametersExtractor()
