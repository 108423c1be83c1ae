import pytest

from ovframework import (
    Constraint,
    MetadataStore,
    ValidationArguments,
    ValidationManager,
    build_message,
    declare,
    equals_property,
    is_type,
    min_value,
    validate_by,
)
from ovframework.validator import replace_message_tokens


class Post:
    def __init__(self, views: int = -1):
        self.views = views


class TestMessages:
    async def test_template_tokens(self, store: MetadataStore, manager: ValidationManager):
        declare(
            Post,
            "views",
            min_value(0, message="$property of $target must be at least $constraint1 (got $value)"),
            store=store,
        )

        errors = await manager.validate(Post())

        assert errors[0].constraints == {"min": "views of Post must be at least 0 (got -1)"}

    async def test_message_builder(self, store: MetadataStore, manager: ValidationManager):
        declare(
            Post,
            "views",
            min_value(0, message=lambda args: f"{args.property} is {args.value}, expected >= {args.constraints[0]}"),
            store=store,
        )

        errors = await manager.validate(Post())

        assert errors[0].constraints == {"min": "views is -1, expected >= 0"}

    async def test_dismiss_default_messages(self, store: MetadataStore, manager: ValidationManager):
        declare(Post, "views", min_value(0), store=store)

        errors = await manager.validate(Post(), dismiss_default_messages=True)

        assert errors[0].constraints == {"min": ""}

    async def test_custom_constraint_with_arguments(self, store: MetadataStore, manager: ValidationManager):
        def divisible_by(value, arguments: ValidationArguments) -> bool:
            return value % arguments.constraints[0] == 0

        constraint = Constraint(
            divisible_by,
            default_message=build_message(
                lambda each_prefix: each_prefix + "$property must be divisible by $constraint1"
            ),
        )
        declare(Post, "views", validate_by(constraint, 3), store=store)

        errors = await manager.validate(Post(views=4))

        assert errors[0].constraints == {"divisible_by": "views must be divisible by 3"}
        assert await manager.validate(Post(views=9)) == []

    async def test_is_type(self, store: MetadataStore, manager: ValidationManager):
        declare(Post, "views", is_type(int), store=store)

        errors = await manager.validate(Post(views="many"))  # type: ignore[arg-type]

        assert errors[0].constraints == {"is_type": "views must be of type int"}

    async def test_equals_property(self, store: MetadataStore, manager: ValidationManager):
        class SignUp:
            def __init__(self, password: str, confirmation: str):
                self.credentials = {"password": password}
                self.confirmation = confirmation

        declare(SignUp, "confirmation", equals_property("credentials.password"), store=store)

        assert await manager.validate(SignUp("secret", "secret")) == []
        errors = await manager.validate(SignUp("secret", "typo"))
        assert errors[0].constraints == {"equals_property": "confirmation must match credentials.password"}

    @pytest.mark.parametrize(
        "each, expected",
        [
            pytest.param(False, "tags: ", id="single"),
            pytest.param(True, "each value in tags: ", id="each"),
        ],
    )
    def test_each_prefix_token(self, each: bool, expected: str):
        arguments = ValidationArguments(
            value=[], constraints=(), target_name="Post", object=None, property="tags", each=each
        )

        assert replace_message_tokens("$each_prefix$property: $unknown", arguments) == expected + "$unknown"

    def test_constraint_needs_a_value_parameter(self):
        with pytest.raises(ValueError):
            Constraint(lambda: True)
