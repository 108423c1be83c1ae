import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

import pytest

from ovframework import (
    MetadataStore,
    PredicateError,
    ValidationErrorOptions,
    ValidationFailed,
    ValidationManager,
    ValidationOptions,
    ValidationTypes,
    analyze,
    declare,
    is_array,
    is_defined,
    is_not_empty,
    is_optional,
    is_type,
    max_value,
    min_value,
    validate,
    validate_by,
    validate_if,
    validate_nested,
    validate_or_reject_sync,
    validate_promise,
)


@dataclass
class Address:
    city: str
    zip_code: str = "00000"


@dataclass
class User:
    name: Optional[str]
    address: Optional[Address] = None
    previous_addresses: list[Address] = field(default_factory=list)


@pytest.fixture
def user_store(store: MetadataStore) -> MetadataStore:
    declare(Address, "city", is_not_empty(), store=store)
    declare(User, "name", is_defined(), store=store)
    return store


class TestValidation:
    async def test_object_without_declarations_is_valid(self, manager: ValidationManager):
        class Anything:
            def __init__(self):
                self.a = 1
                self.b = "two"

        assert await manager.validate(Anything()) == []
        assert await manager.validate({"x": 1}) == []

    async def test_valid_object(self, user_store: MetadataStore, manager: ValidationManager):
        assert await manager.validate(User(name="Jane", address=Address(city="Berlin"))) == []

    async def test_failed_constraint(self, user_store: MetadataStore, manager: ValidationManager):
        user = User(name=None)

        errors = await manager.validate(user)

        assert len(errors) == 1
        assert errors[0].property == "name"
        assert errors[0].target is user
        assert errors[0].value is None
        assert errors[0].constraints == {"is_defined": "name should not be null or undefined"}
        assert errors[0].children == []

    async def test_nested_object_is_validated_automatically(
        self, user_store: MetadataStore, manager: ValidationManager
    ):
        user = User(name="Jane", address=Address(city=""))

        errors = await manager.validate(user)

        assert len(errors) == 1
        assert errors[0].property == "address"
        assert errors[0].constraints == {}
        assert len(errors[0].children) == 1
        assert errors[0].children[0].property == "city"
        assert errors[0].children[0].target is user.address
        assert errors[0].children[0].constraints == {"is_not_empty": "city should not be empty"}

    async def test_nested_collection_is_indexed(self, user_store: MetadataStore, manager: ValidationManager):
        declare(User, "previous_addresses", validate_nested(), store=user_store)
        user = User(name="Jane", previous_addresses=[Address(city="Berlin"), Address(city="")])

        errors = await manager.validate(user)

        assert len(errors) == 1
        assert errors[0].property == "previous_addresses"
        element_errors = errors[0].children
        assert [element_error.property for element_error in element_errors] == ["1"]
        assert element_errors[0].value is user.previous_addresses[1]
        assert element_errors[0].children[0].property == "city"

    async def test_nested_primitive_is_reported(self, user_store: MetadataStore, manager: ValidationManager):
        declare(User, "address", validate_nested(), store=user_store)
        user = User(name="Jane", address="Main Street 1")  # type: ignore[arg-type]

        errors = await manager.validate(user)

        assert errors[0].constraints == {
            ValidationTypes.NESTED_VALIDATION.value: "nested property address must be either object or array"
        }

    async def test_nested_mapping_with_schema(self, store: MetadataStore, manager: ValidationManager):
        declare("Address", "city", is_not_empty(), store=store)
        declare("Order", "shipping", validate_nested(schema="Address"), store=store)
        payload: dict[str, Any] = {"shipping": {"city": ""}}

        errors = await manager.validate(payload, schema="Order")

        assert errors[0].property == "shipping"
        assert errors[0].children[0].property == "city"
        assert errors[0].children[0].target is payload["shipping"]

    async def test_cyclic_graph_terminates(self, store: MetadataStore, manager: ValidationManager):
        class Parent:
            def __init__(self, name: str):
                self.name = name
                self.child: Optional["Child"] = None

        class Child:
            def __init__(self, parent: Parent):
                self.parent = parent

        declare(Parent, "name", is_not_empty(), store=store)
        declare(Parent, "child", validate_nested(), store=store)
        declare(Child, "parent", validate_nested(), store=store)
        parent = Parent("root")
        parent.child = Child(parent)

        assert await manager.validate(parent) == []

        parent.name = ""
        errors = await manager.validate(parent)
        assert [error.property for error in errors] == ["name"]

    async def test_self_containing_collection_terminates(self, store: MetadataStore, manager: ValidationManager):
        class Node:
            def __init__(self):
                self.neighbours: list[Any] = []

        declare(Node, "neighbours", is_array(), store=store)
        node = Node()
        node.neighbours.append(node)
        node.neighbours.append(node.neighbours)

        assert await manager.validate(node) == []

    @pytest.mark.parametrize(
        "groups, expected_errors",
        [
            pytest.param({"update"}, 0, id="other group"),
            pytest.param({"create"}, 1, id="matching group"),
            pytest.param(None, 1, id="no groups"),
        ],
    )
    async def test_groups(self, store: MetadataStore, manager: ValidationManager, groups, expected_errors: int):
        class Post:
            def __init__(self):
                self.title = ""

        declare(Post, "title", is_not_empty(groups={"create"}), store=store)

        errors = await manager.validate(Post(), groups=groups)

        assert len(errors) == expected_errors

    async def test_groups_propagate_into_nested_objects(self, store: MetadataStore, manager: ValidationManager):
        declare(Address, "city", is_not_empty(groups={"strict"}), store=store)
        declare(User, "address", validate_nested(always=True), store=store)
        user = User(name="Jane", address=Address(city=""))

        assert await manager.validate(user, groups={"lenient"}) == []
        assert len(await manager.validate(user, groups={"strict"})) == 1

    async def test_skip_missing_properties(self, store: MetadataStore, manager: ValidationManager):
        class Filter:
            def __init__(self):
                self.limit = None

        declare(Filter, "limit", min_value(1), store=store)
        declare(Filter, "offset", min_value(0), store=store)
        declare(Filter, "query", is_defined(), store=store)

        errors = await manager.validate(Filter(), skip_missing_properties=True)

        assert [error.property for error in errors] == ["query"]

    @pytest.mark.parametrize(
        "options, expected_properties",
        [
            pytest.param(ValidationOptions(skip_null_properties=True), ["offset"], id="skip null"),
            pytest.param(ValidationOptions(skip_undefined_properties=True), ["limit"], id="skip undefined"),
            pytest.param(ValidationOptions(), ["limit", "offset"], id="skip nothing"),
        ],
    )
    async def test_skip_null_and_undefined(
        self, store: MetadataStore, manager: ValidationManager, options: ValidationOptions, expected_properties
    ):
        class Filter:
            def __init__(self):
                self.limit = None

        declare(Filter, "limit", min_value(1), store=store)
        declare(Filter, "offset", min_value(0), store=store)

        errors = await manager.validate(Filter(), options)

        assert [error.property for error in errors] == expected_properties

    async def test_is_optional(self, store: MetadataStore, manager: ValidationManager):
        class Profile:
            def __init__(self, nickname):
                self.nickname = nickname

        declare(Profile, "nickname", is_optional(), is_not_empty(), store=store)

        assert await manager.validate(Profile(None)) == []
        assert len(await manager.validate(Profile(""))) == 1

    async def test_validate_if(self, store: MetadataStore, manager: ValidationManager):
        class Payment:
            def __init__(self, method: str, iban: Optional[str]):
                self.method = method
                self.iban = iban

        declare(Payment, "iban", validate_if(lambda obj, value: obj.method == "sepa"), is_defined(), store=store)

        assert await manager.validate(Payment("cash", None)) == []
        errors = await manager.validate(Payment("sepa", None))
        assert errors[0].constraints == {"is_defined": "iban should not be null or undefined"}

    async def test_raising_condition_is_recorded(self, store: MetadataStore, manager: ValidationManager):
        class Payment:
            def __init__(self):
                self.iban = "DE00"

        declare(Payment, "iban", validate_if(lambda obj, value: obj.method == "sepa"), store=store)

        errors = await manager.validate(Payment())

        assert ValidationTypes.CONDITIONAL_VALIDATION.value in errors[0].constraints

    async def test_each(self, store: MetadataStore, manager: ValidationManager):
        class Scores:
            def __init__(self, values):
                self.values = values

        declare(Scores, "values", min_value(0, each=True), store=store)

        assert await manager.validate(Scores([1, 2, 3])) == []
        assert await manager.validate(Scores({"a": 1})) == []
        errors = await manager.validate(Scores([1, -1]))
        assert errors[0].constraints == {"min": "each value in values must not be less than 0"}
        errors = await manager.validate(Scores(5))
        assert errors[0].constraints == {
            "min": "values must be an array, a set or a mapping to validate each of its values"
        }

    async def test_forbid_unknown_values(self, manager: ValidationManager):
        class Unknown:
            pass

        errors = await manager.validate(Unknown(), forbid_unknown_values=True)

        assert len(errors) == 1
        assert errors[0].constraints == {
            ValidationTypes.UNKNOWN_VALUE.value: "an unknown value was passed to the validate function"
        }
        assert await manager.validate({"a": 1}, forbid_unknown_values=True) == []
        assert await manager.validate(Unknown()) == []

    async def test_forbid_unknown_values_precedes_whitelist(self, manager: ValidationManager):
        class Unknown:
            def __init__(self):
                self.payload = 1

        instance = Unknown()
        errors = await manager.validate(instance, forbid_unknown_values=True, whitelist=True)

        assert len(errors) == 1
        assert instance.payload == 1

    async def test_stop_at_first_error(self, store: MetadataStore, manager: ValidationManager):
        class Form:
            def __init__(self):
                self.name = ""
                self.age = -1

        declare(Form, "name", is_not_empty(), is_type(int), store=store)
        declare(Form, "age", min_value(0), store=store)

        complete = await manager.validate(Form())
        partial = await manager.validate(Form(), stop_at_first_error=True)

        assert [(error.property, list(error.constraints)) for error in complete] == [
            ("name", ["is_not_empty", "is_type"]),
            ("age", ["min"]),
        ]
        assert [(error.property, list(error.constraints)) for error in partial] == [("name", ["is_not_empty"])]

    async def test_error_options(self, store: MetadataStore, manager: ValidationManager):
        declare(User, "name", is_defined(), store=store)
        options = ValidationOptions(validation_error=ValidationErrorOptions(target=False, value=False))

        errors = await manager.validate(User(name=None), options)

        assert errors[0].target is None
        assert errors[0].value is None
        assert errors[0].constraints

    async def test_contexts(self, store: MetadataStore, manager: ValidationManager):
        class Reading:
            def __init__(self):
                self.temperature = 120

        declare(Reading, "temperature", max_value(100, context={"severity": "high"}), store=store)

        errors = await manager.validate(Reading())

        assert errors[0].contexts == {"max": {"severity": "high"}}

    async def test_promise_validation(self, store: MetadataStore, manager: ValidationManager):
        async def load_count() -> int:
            await asyncio.sleep(0)
            return -1

        class Counter:
            def __init__(self):
                self.count = load_count()

        declare(Counter, "count", validate_promise(), min_value(0), store=store)

        errors = await manager.validate(Counter())

        assert errors[0].constraints == {"min": "count must not be less than 0"}
        assert errors[0].value == -1

    async def test_failing_promise_is_recorded(self, store: MetadataStore, manager: ValidationManager):
        async def load_count() -> int:
            raise ConnectionError("offline")

        class Counter:
            def __init__(self):
                self.count = load_count()

        declare(Counter, "count", validate_promise(), min_value(0), store=store)

        errors = await manager.validate(Counter())

        assert list(errors[0].constraints) == [ValidationTypes.PROMISE_VALIDATION.value]

    async def test_async_constraints_keep_declaration_order(self, store: MetadataStore, manager: ValidationManager):
        completed: list[str] = []

        async def slow_fail(value) -> bool:
            await asyncio.sleep(0.05)
            completed.append("slow")
            return False

        async def fast_fail(value) -> bool:
            completed.append("fast")
            return False

        class Model:
            def __init__(self):
                self.first = 1
                self.second = 2

        declare(Model, "first", validate_by(slow_fail), store=store)
        declare(Model, "second", validate_by(fast_fail), store=store)

        errors = await manager.validate(Model())

        assert completed == ["fast", "slow"]
        assert [error.property for error in errors] == ["first", "second"]
        assert errors[0].constraints == {"slow_fail": "first failed the constraint slow_fail"}

    async def test_predicate_fault_is_recorded(self, store: MetadataStore, manager: ValidationManager):
        def exploding(value) -> bool:
            raise ZeroDivisionError("boom")

        class Model:
            def __init__(self):
                self.value = 1

        declare(Model, "value", validate_by(exploding), store=store)

        errors = await manager.validate(Model())
        assert errors[0].constraints == {"exploding": "value failed the constraint exploding"}

        with pytest.raises(PredicateError) as error_info:
            await manager.validate(Model(), surface_predicate_faults=True)
        assert isinstance(error_info.value.error, ZeroDivisionError)

    async def test_validate_or_reject(self, user_store: MetadataStore, manager: ValidationManager):
        await manager.validate_or_reject(User(name="Jane"))
        with pytest.raises(ValidationFailed) as error_info:
            await manager.validate_or_reject(User(name=None))
        assert error_info.value.errors[0].property == "name"

    async def test_process_wide_store(self):
        class Ticket:
            def __init__(self):
                self.seats = 0

        declare(Ticket, "seats", min_value(1))

        errors = await validate(Ticket())

        assert errors[0].constraints == {"min": "seats must not be less than 1"}

    async def test_manager_default_options(self, store: MetadataStore):
        class Post:
            def __init__(self):
                self.title = "hello"
                self.extra = 1

        declare(Post, "title", is_defined(), store=store)
        manager = ValidationManager(ValidationOptions(whitelist=True, forbid_non_whitelisted=True), store=store)

        assert [error.property for error in await manager.validate(Post())] == ["extra"]
        assert await manager.validate(Post(), forbid_non_whitelisted=False) == []

    async def test_async_elements_keep_collection_order(self, store: MetadataStore, manager: ValidationManager):
        completed: list[float] = []

        async def never_done(value: float) -> bool:
            await asyncio.sleep(value)
            completed.append(value)
            return False

        class Step:
            def __init__(self, delay: float):
                self.delay = delay

        class Plan:
            def __init__(self, delays: list[float]):
                self.steps = [Step(delay) for delay in delays]

        declare(Step, "delay", validate_by(never_done), store=store)
        declare(Plan, "steps", validate_nested(), store=store)

        errors = await manager.validate(Plan([0.05, 0.0, 0.02]))

        assert completed == [0.0, 0.02, 0.05]
        assert [child.property for child in errors[0].children] == ["0", "1", "2"]
        assert [child.children[0].value for child in errors[0].children] == [0.05, 0.0, 0.02]

    async def test_surfaced_predicate_fault_cancels_pending_constraints(
        self, store: MetadataStore, manager: ValidationManager
    ):
        cancelled: list[bool] = []

        async def slow(value) -> bool:
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise
            return True

        def exploding(value) -> bool:
            raise ZeroDivisionError("boom")

        class Model:
            def __init__(self):
                self.value = 1

        declare(Model, "value", validate_by(slow), validate_by(exploding), store=store)

        with pytest.raises(PredicateError):
            await manager.validate(Model(), surface_predicate_faults=True)
        assert cancelled == [True]

    async def test_process_wide_shortcuts(self):
        class Voucher:
            def __init__(self, amount: int):
                self.amount = amount

        declare(Voucher, "amount", min_value(1))

        result = await analyze(Voucher(0))

        assert result.failed_paths == ["amount"]
        validate_or_reject_sync(Voucher(5))
        with pytest.raises(ValidationFailed):
            validate_or_reject_sync(Voucher(0))
