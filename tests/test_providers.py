import pytest

from dibind.providers import Binding, Concrete, ConcreteKind, PrimitiveKey, invoke_factory
from dibind.resolution_stack import BuildStack, ParameterOverrideStack


class Service:
    pass


class OtherService:
    pass


class TestConcreteClassification:
    def test_none_and_identity_self_bind(self) -> None:
        assert Concrete.from_user(Service, None) == Concrete(ConcreteKind.CLASS, Service)
        assert Concrete.from_user(Service, Service) == Concrete(ConcreteKind.CLASS, Service)
        assert Concrete.from_user("svc", "svc") == Concrete(ConcreteKind.CLASS, "svc")

    def test_class_and_string_chain(self) -> None:
        assert Concrete.from_user(Service, OtherService).kind is ConcreteKind.REFERENCE
        assert Concrete.from_user("svc", "other").kind is ConcreteKind.REFERENCE

    def test_callable_is_factory(self) -> None:
        concrete = Concrete.from_user(Service, lambda c: Service())

        assert concrete.kind is ConcreteKind.FACTORY
        assert concrete.is_factory

    def test_plain_value(self) -> None:
        assert Concrete.from_user("port", 8080) == Concrete(ConcreteKind.VALUE, 8080)

    def test_primitive_classification(self) -> None:
        assert Concrete.for_primitive(Service).kind is ConcreteKind.VALUE
        assert Concrete.for_primitive(lambda c: 1).kind is ConcreteKind.FACTORY
        assert Concrete.for_primitive("text").kind is ConcreteKind.VALUE

    def test_binding_defaults_to_transient(self) -> None:
        assert Binding(Concrete(ConcreteKind.CLASS, Service)).shared is False


class TestPrimitiveKey:
    def test_parse_shorthand(self) -> None:
        assert PrimitiveKey.parse("$port") == PrimitiveKey("port")
        assert str(PrimitiveKey("port")) == "$port"

    @pytest.mark.parametrize("value", ["port", "$", Service])
    def test_parse_leaves_other_keys(self, value: object) -> None:
        assert PrimitiveKey.parse(value) is value


class TestInvokeFactory:
    def test_arguments_trimmed_to_arity(self) -> None:
        assert invoke_factory(lambda: "none", 1, 2) == "none"
        assert invoke_factory(lambda a: a, 1, 2) == 1
        assert invoke_factory(lambda a, b: (a, b), 1, 2) == (1, 2)

    def test_var_positional_receives_everything(self) -> None:
        assert invoke_factory(lambda *args: args, 1, 2) == (1, 2)


class TestResolutionStacks:
    def test_build_stack_pops_on_error(self) -> None:
        stack = BuildStack()

        with pytest.raises(RuntimeError), stack.building(Service):
            assert stack.current is Service
            raise RuntimeError

        assert len(stack) == 0
        assert stack.current is None

    def test_build_stack_snapshot_is_outermost_first(self) -> None:
        stack = BuildStack()

        with stack.building(Service), stack.building(OtherService):
            assert stack.snapshot() == (Service, OtherService)
            assert list(stack) == [Service, OtherService]

    def test_override_stack_exposes_only_top_frame(self) -> None:
        stack = ParameterOverrideStack()
        assert dict(stack.current) == {}

        with stack.pushed({"a": 1}):
            with stack.pushed({}):
                assert dict(stack.current) == {}
                assert len(stack) == 2
            assert stack.current == {"a": 1}

        assert len(stack) == 0
