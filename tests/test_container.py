import argparse
from abc import ABC, abstractmethod
from typing import Annotated

import pytest

from dibind.container import Container
from dibind.exceptions import (
    DIBindNotInstantiableError,
    DIBindSelfReferentialAliasError,
)
from dibind.markers import Inject


class Logger(ABC):
    @abstractmethod
    def log(self, message: str) -> None: ...


class ConsoleLogger(Logger):
    def __init__(self) -> None:
        self.messages: list[str] = []

    def log(self, message: str) -> None:
        self.messages.append(message)


class Service:
    def __init__(self, logger: Logger) -> None:
        self.logger = logger


class KeyedService:
    def __init__(self, logger: Annotated[Logger, Inject("Logger")]) -> None:
        self.logger = logger


class Plain:
    pass


class Greeter:
    def __init__(self, greeting: str = "hello") -> None:
        self.greeting = greeting


class Channel(ABC):
    @abstractmethod
    def send(self) -> None: ...


class Notifier:
    def __init__(self, channel: Channel | None = None) -> None:
        self.channel = channel


class Clock:
    def __init__(self, label: str = "system") -> None:
        self.label = label


class Wrapper:
    def __init__(self, inner: object) -> None:
        self.inner = inner


class Settings:
    def __init__(self, *, debug: bool = False, level: int = 0) -> None:
        self.debug = debug
        self.level = level


def test_shared_logger_is_injected_into_every_service(container: Container) -> None:
    container.bind(Logger, lambda c: ConsoleLogger(), shared=True)

    first = container.make(Service)
    second = container.make(Service)

    assert first is not second
    assert isinstance(first.logger, ConsoleLogger)
    assert first.logger is second.logger


def test_string_keyed_logger_injected_through_inject_marker(container: Container) -> None:
    container.bind("Logger", lambda c: ConsoleLogger(), shared=True)

    first = container.make(KeyedService)
    second = container.make(KeyedService)

    assert first.logger is second.logger


def test_implicit_binding_builds_unregistered_class(container: Container) -> None:
    first = container.make(Plain)
    second = container.make(Plain)

    assert isinstance(first, Plain)
    assert first is not second


def test_implicit_binding_resolves_nested_dependencies(container: Container) -> None:
    class Repository:
        pass

    class UseCase:
        def __init__(self, repository: Repository) -> None:
            self.repository = repository

    use_case = container.make(UseCase)

    assert isinstance(use_case.repository, Repository)


def test_make_resolves_dotted_import_path(container: Container) -> None:
    assert isinstance(container.make("argparse.Namespace"), argparse.Namespace)


def test_shared_binding_returns_identical_object(container: Container) -> None:
    container.singleton(Plain)

    assert container.make(Plain) is container.make(Plain)
    assert container.is_shared(Plain)


def test_transient_binding_returns_new_objects(container: Container) -> None:
    container.bind(Plain)

    assert container.make(Plain) is not container.make(Plain)
    assert not container.is_shared(Plain)


def test_explicit_parameters_force_fresh_build_of_shared_binding(container: Container) -> None:
    container.singleton(Greeter)
    cached = container.make(Greeter)

    custom = container.make(Greeter, {"greeting": "hi"})

    assert custom is not cached
    assert custom.greeting == "hi"
    assert container.make(Greeter) is cached


def test_parameters_forwarded_through_binding_chain(container: Container) -> None:
    container.bind("greeter", Greeter)

    greeter = container.make("greeter", {"greeting": "hey"})

    assert isinstance(greeter, Greeter)
    assert greeter.greeting == "hey"


def test_keyword_only_parameters_use_overrides_and_defaults(container: Container) -> None:
    settings = container.make(Settings, {"level": 3})

    assert settings.debug is False
    assert settings.level == 3


def test_factory_receives_container_and_parameters(container: Container) -> None:
    received = {}

    def make_greeter(c: Container, parameters: dict) -> Greeter:
        received["container"] = c
        return Greeter(parameters.get("greeting", "default"))

    container.bind(Greeter, make_greeter)

    greeter = container.make(Greeter, {"greeting": "yo"})

    assert received["container"] is container
    assert greeter.greeting == "yo"


@pytest.mark.parametrize(
    "factory",
    [
        lambda: Clock("zero-args"),
        lambda c: Clock("zero-args"),
        lambda c, parameters: Clock("zero-args"),
    ],
)
def test_factory_arity_is_respected(container: Container, factory: object) -> None:
    container.bind(Clock, factory)

    assert container.make(Clock).label == "zero-args"


def test_optional_unbound_interface_resolves_to_default(container: Container) -> None:
    notifier = container.make(Notifier)

    assert notifier.channel is None


def test_optional_interface_uses_binding_when_present(container: Container) -> None:
    class EmailChannel(Channel):
        def send(self) -> None:
            pass

    container.bind(Channel, EmailChannel)

    assert isinstance(container.make(Notifier).channel, EmailChannel)


class TestAliases:
    def test_alias_resolves_like_canonical(self, container: Container) -> None:
        container.singleton(Plain)
        container.alias(Plain, "plain")

        assert container.make("plain") is container.make(Plain)
        assert container.is_alias("plain")
        assert container.get_alias("plain") is Plain

    def test_alias_chain_is_transitive(self, container: Container) -> None:
        container.singleton(Plain)
        container.alias(Plain, "plain")
        container.alias("plain", "p")

        assert container.get_alias("p") is Plain
        assert container.make("p") is container.make(Plain)

    def test_alias_to_itself_raises(self, container: Container) -> None:
        with pytest.raises(DIBindSelfReferentialAliasError):
            container.alias("plain", "plain")

    def test_alias_cycle_raises_instead_of_looping(self, container: Container) -> None:
        container.alias("b", "a")
        container.alias("a", "b")

        with pytest.raises(DIBindSelfReferentialAliasError) as exc_info:
            container.make("a")

        assert exc_info.value.abstract == "a"

    def test_bind_drops_alias(self, container: Container) -> None:
        container.alias(Plain, "plain")

        container.bind("plain", Greeter)

        assert not container.is_alias("plain")
        assert isinstance(container.make("plain"), Greeter)


class TestBindIf:
    def test_bind_if_keeps_existing_binding(self, container: Container) -> None:
        container.bind("clock", lambda: Clock("first"))
        container.bind_if("clock", lambda: Clock("second"))

        assert container.make("clock").label == "first"

    def test_bind_if_registers_when_unbound(self, container: Container) -> None:
        container.bind_if("clock", lambda: Clock("only"))

        assert container.make("clock").label == "only"

    def test_singleton_if_and_scoped_if(self, container: Container) -> None:
        container.instance("clock", Clock("instance"))
        container.singleton_if("clock", lambda: Clock("singleton"))
        container.scoped_if("clock", lambda: Clock("scoped"))

        assert container.make("clock").label == "instance"
        assert not container.is_scoped("clock")


class TestInstances:
    def test_instance_is_returned_as_is(self, container: Container) -> None:
        config = {"debug": True}

        assert container.instance("config", config) is config
        assert container.make("config") is config
        assert container.bound("config")
        assert container.resolved("config")
        assert container.is_shared("config")

    def test_instance_replaces_alias(self, container: Container) -> None:
        container.alias(Plain, "plain")
        replacement = Clock()

        container.instance("plain", replacement)

        assert not container.is_alias("plain")
        assert container.make("plain") is replacement

    def test_forget_instance(self, container: Container) -> None:
        container.singleton(Plain)
        first = container.make(Plain)

        container.forget_instance(Plain)

        assert container.make(Plain) is not first

    def test_forget_instances(self, container: Container) -> None:
        container.instance("a", Plain())
        container.instance("b", Plain())

        container.forget_instances()

        assert not container.bound("a")
        assert not container.bound("b")


class TestRebinding:
    def test_rebind_fires_listener_with_new_instance(self, container: Container) -> None:
        container.singleton(Clock, lambda: Clock("first"))
        container.make(Clock)
        seen: list[Clock] = []
        container.rebinding(Clock, lambda c, instance: seen.append(instance))

        container.singleton(Clock, lambda: Clock("second"))

        assert [clock.label for clock in seen] == ["second"]
        assert container.make(Clock) is seen[0]

    def test_rebinding_returns_current_instance_when_bound(self, container: Container) -> None:
        container.singleton(Clock)

        current = container.rebinding(Clock, lambda c, instance: None)

        assert current is container.make(Clock)

    def test_rebinding_returns_none_when_unbound(self, container: Container) -> None:
        assert container.rebinding(Clock, lambda c, instance: None) is None

    def test_unresolved_binding_does_not_fire_listener(self, container: Container) -> None:
        seen: list[Clock] = []
        container.rebinding("clock", lambda c, instance: seen.append(instance))

        container.bind("clock", Clock)

        assert seen == []

    def test_instance_over_bound_identifier_fires_listener(self, container: Container) -> None:
        container.bind("clock", Clock)
        seen: list[Clock] = []
        container.rebinding("clock", lambda c, instance: seen.append(instance))
        replacement = Clock("replacement")

        container.instance("clock", replacement)

        assert seen == [replacement]


class TestExtenders:
    def test_extender_wraps_future_builds(self, container: Container) -> None:
        container.singleton(Plain)
        container.extend(Plain, lambda obj, c: Wrapper(obj))

        wrapped = container.make(Plain)

        assert isinstance(wrapped, Wrapper)
        assert isinstance(wrapped.inner, Plain)
        assert container.make(Plain) is wrapped

    def test_extenders_apply_in_registration_order(self, container: Container) -> None:
        container.bind("value", lambda: 1)
        container.extend("value", lambda value, c: value + 1)
        container.extend("value", lambda value, c: value * 10)

        assert container.make("value") == 20

    def test_extend_existing_instance_decorates_immediately(self, container: Container) -> None:
        original = Plain()
        container.instance(Plain, original)

        container.extend(Plain, lambda obj, c: Wrapper(obj))

        wrapped = container.make(Plain)
        assert isinstance(wrapped, Wrapper)
        assert wrapped.inner is original

    def test_extend_through_alias(self, container: Container) -> None:
        container.bind(Plain)
        container.alias(Plain, "plain")

        container.extend("plain", lambda obj, c: Wrapper(obj))

        assert isinstance(container.make(Plain), Wrapper)

    def test_forget_extenders(self, container: Container) -> None:
        container.extend(Plain, lambda obj, c: Wrapper(obj))

        container.forget_extenders(Plain)

        assert isinstance(container.make(Plain), Plain)


class TestScoped:
    def test_scoped_instance_is_shared_until_scope_ends(self, container: Container) -> None:
        container.scoped(Plain)

        with container.scope():
            first = container.make(Plain)
            assert container.make(Plain) is first

        assert container.make(Plain) is not first
        assert container.is_scoped(Plain)

    def test_forget_scoped_instances_keeps_singletons(self, container: Container) -> None:
        container.scoped("request", Plain)
        container.singleton("app", Plain)
        request = container.make("request")
        app = container.make("app")

        container.forget_scoped_instances()

        assert container.make("request") is not request
        assert container.make("app") is app


class TestLifecycleQueries:
    def test_bound_and_resolved(self, container: Container) -> None:
        assert not container.bound(Plain)
        assert not container.resolved(Plain)

        container.bind(Plain)
        assert container.bound(Plain)
        assert not container.resolved(Plain)

        container.make(Plain)
        assert container.resolved(Plain)

    def test_get_bindings_is_read_only_view(self, container: Container) -> None:
        container.singleton(Plain)

        bindings = container.get_bindings()

        assert bindings[Plain].shared is True
        with pytest.raises(TypeError):
            bindings["other"] = bindings[Plain]  # type: ignore[index]

    def test_flush_during_resolution_keeps_stacks_balanced(self, container: Container) -> None:
        def flushing_factory(c: Container) -> Logger:
            c.flush()
            return ConsoleLogger()

        container.bind(Logger, flushing_factory)

        service = container.make(Service)

        assert isinstance(service.logger, ConsoleLogger)
        assert container.build_stack == ()
        assert container.parameter_override_depth == 0
        assert not container.bound(Logger)

    def test_flush_resets_everything(self, container: Container) -> None:
        container.singleton("logger", ConsoleLogger)
        container.alias("logger", "log")
        container.scoped(Plain)
        container.make("logger")

        container.flush()

        assert not container.bound("logger")
        assert not container.bound("log")
        assert not container.resolved("logger")
        assert not container.is_scoped(Plain)
        assert container.get_bindings() == {}
        with pytest.raises(DIBindNotInstantiableError):
            container.make("logger")


def test_factory_defers_resolution(container: Container) -> None:
    make_plain = container.factory(Plain)

    assert isinstance(make_plain(), Plain)
    assert make_plain() is not make_plain()


def test_autowire_disabled_rejects_unregistered_class(container_no_autowire: Container) -> None:
    with pytest.raises(DIBindNotInstantiableError):
        container_no_autowire.make(Plain)

    container_no_autowire.bind(Plain)
    assert isinstance(container_no_autowire.make(Plain), Plain)
