from stackhealth.stack.registry import (
    DEFAULT_STACK,
    ProbeDef,
    StackConfigError,
    StackDefinition,
    default_stack,
    load_stack,
)

__all__ = [
    "DEFAULT_STACK",
    "ProbeDef",
    "StackConfigError",
    "StackDefinition",
    "default_stack",
    "load_stack",
]
