from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AdditionalArgument(BaseModel):
    """A server-side value merged into the params of matching methods.

    The rule matches every method when ``all_methods`` is set, otherwise only
    the methods named in ``methods``. A rule with neither matches nothing.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    arg: Any
    all_methods: bool = False
    methods: list[str] | None = None

    def applies_to(self, method: str) -> bool:
        if self.all_methods:
            return True
        return self.methods is not None and method in self.methods


class RespondOptions(BaseModel):
    """Options shared by every request handled for a session.

    Fields:
        additional_arguments: Rules applied in order when building the
            argument passed to a handler
        public_error_stack: Attach a traceback string as ``data`` to
            internal errors
        enable_internal_methods: Expose the ``rpc.subscribe``,
            ``rpc.unsubscribe`` and ``rpc.emit`` methods
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    additional_arguments: list[AdditionalArgument] = Field(default_factory=list)
    public_error_stack: bool = False
    enable_internal_methods: bool = False

    def arguments_for(self, method: str) -> list[Any]:
        return [
            rule.arg for rule in self.additional_arguments if rule.applies_to(method)
        ]
