"""Prompt Builder Registry.

Maps prompt kinds to builder callables and guarantees that whatever a builder
returns leaves the registry as a canonical PromptResult.

Usage:
    registry = get_prompt_registry()
    result = await registry.build("evaluation", {"challenge": ..., "userResponse": ...})
    result.input, result.instructions
"""

import inspect
import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping

from personalized_eval.modules.prompts.interface import PromptKind, PromptResult
from personalized_eval.shared.exceptions import (
    BuilderNotFoundError,
    InvalidBuilderError,
    PromptConstructionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

BuilderFn = Callable[[dict[str, Any]], Any]

# Legacy dict keys, in lookup order
_LEGACY_INPUT_KEYS = ("prompt", "content")
_LEGACY_INSTRUCTION_KEYS = ("systemMessage", "system_message", "system")


def _canonical(kind: str, input_value: Any, instructions: Any, raw: Any) -> PromptResult:
    if isinstance(input_value, str):
        if not input_value.strip():
            raise PromptConstructionError(
                f"Builder for '{kind}' returned empty input",
                kind=kind,
                raw_result=raw,
            )
    elif isinstance(input_value, list):
        if not input_value:
            raise PromptConstructionError(
                f"Builder for '{kind}' returned an empty message list",
                kind=kind,
                raw_result=raw,
            )
    else:
        raise PromptConstructionError(
            f"Builder for '{kind}' returned invalid input type: "
            f"{type(input_value).__name__}. Must be string or list.",
            kind=kind,
            raw_result=raw,
        )

    if instructions is not None and not isinstance(instructions, str):
        raise PromptConstructionError(
            f"Builder for '{kind}' returned invalid instructions type: "
            f"{type(instructions).__name__}. Must be string or None.",
            kind=kind,
            raw_result=raw,
        )
    if instructions is not None and not instructions.strip():
        instructions = None

    if isinstance(raw, PromptResult) and raw.instructions == instructions:
        return raw
    return PromptResult(input=input_value, instructions=instructions)


def normalize_prompt_result(kind: str, raw: Any) -> PromptResult:
    """Coerce a builder's return value into a PromptResult.

    Accepted shapes, in order:
        1. PromptResult, or a mapping with ``input`` (and optional ``instructions``)
        2. A plain string, used as input without instructions
        3. A mapping with ``prompt``/``content`` and ``systemMessage``/``system``

    Applying this to its own output returns an equal result.

    Args:
        kind: Prompt kind, for diagnostics
        raw: Builder return value

    Returns:
        Canonical PromptResult

    Raises:
        PromptConstructionError: If the shape is not recognized or invalid
    """
    if isinstance(raw, PromptResult):
        return _canonical(kind, raw.input, raw.instructions, raw)

    if isinstance(raw, str):
        logger.warning(f"Builder for '{kind}' returned legacy string format")
        return _canonical(kind, raw, None, raw)

    if isinstance(raw, Mapping):
        if "input" in raw:
            return _canonical(kind, raw["input"], raw.get("instructions"), raw)

        input_value = next((raw[k] for k in _LEGACY_INPUT_KEYS if raw.get(k)), None)
        if input_value is not None:
            logger.warning(f"Builder for '{kind}' returned legacy object format")
            instructions = next((raw[k] for k in _LEGACY_INSTRUCTION_KEYS if raw.get(k)), None)
            return _canonical(kind, input_value, instructions, raw)

    raise PromptConstructionError(
        f"Builder for '{kind}' returned unrecognized format: {type(raw).__name__}",
        kind=kind,
        raw_result=raw,
    )


class PromptBuilderRegistry:
    """Registry of prompt builders keyed by prompt kind.

    Kinds are matched case-insensitively. Builders may be plain functions or
    coroutines; their output is normalized before it is returned.
    """

    def __init__(self, register_defaults: bool = True) -> None:
        """Initialize the registry.

        Args:
            register_defaults: Register the built-in builders for every PromptKind
        """
        self._builders: dict[str, BuilderFn] = {}
        if register_defaults:
            self._register_defaults()

    def _register_defaults(self) -> None:
        from personalized_eval.modules.prompts.builders import default_builders

        for builder in default_builders():
            self.register_instance(builder.kind, builder)

        logger.debug(
            "Registered default prompt builders",
            extra={"kinds": self.available_kinds()},
        )

    @staticmethod
    def _key(kind: "str | PromptKind") -> str:
        if isinstance(kind, PromptKind):
            return kind.value
        if not isinstance(kind, str) or not kind.strip():
            raise ValidationError("kind", "Prompt kind must be a non-empty string")
        return kind.strip().lower()

    @property
    def builders(self) -> Mapping[str, BuilderFn]:
        """Read-only view of the registered builders."""
        return MappingProxyType(self._builders)

    def register(self, kind: "str | PromptKind", builder_fn: BuilderFn) -> None:
        """Register a builder function for a kind, replacing any existing one.

        Raises:
            InvalidBuilderError: If builder_fn is not callable
        """
        key = self._key(kind)
        if not callable(builder_fn):
            raise InvalidBuilderError(key, "builder must be callable")
        self._builders[key] = builder_fn
        logger.debug(f"Registered prompt builder for '{key}'")

    def register_instance(self, kind: "str | PromptKind", builder: Any) -> None:
        """Register an object exposing a callable ``build`` method."""
        key = self._key(kind)
        build = getattr(builder, "build", None)
        if not callable(build):
            raise InvalidBuilderError(key, "builder instance must have a build method")
        self._builders[key] = build
        logger.debug(f"Registered prompt builder instance for '{key}'")

    def unregister(self, kind: "str | PromptKind") -> bool:
        return self._builders.pop(self._key(kind), None) is not None

    def has_builder(self, kind: "str | PromptKind") -> bool:
        try:
            return self._key(kind) in self._builders
        except ValidationError:
            return False

    def available_kinds(self) -> list[str]:
        return list(self._builders.keys())

    def reset(self) -> None:
        """Drop custom registrations and restore the built-in builders."""
        self._builders.clear()
        self._register_defaults()

    def _get_builder(self, key: str) -> BuilderFn:
        builder = self._builders.get(key)
        if builder is None:
            raise BuilderNotFoundError(key)
        return builder

    async def build(self, kind: "str | PromptKind", params: dict[str, Any] | None) -> PromptResult:
        """Build a prompt with the builder registered for ``kind``.

        Args:
            kind: Prompt kind, case-insensitive
            params: Builder parameters

        Returns:
            Canonical PromptResult

        Raises:
            BuilderNotFoundError: If no builder is registered for kind
            ValidationError: If the builder rejects its parameters
            PromptConstructionError: If the builder fails or returns an invalid shape
        """
        key = self._key(kind)
        builder = self._get_builder(key)
        logger.debug(
            f"Building prompt using builder for '{key}'",
            extra={"param_keys": sorted((params or {}).keys())},
        )

        try:
            raw = builder(params)
            if inspect.isawaitable(raw):
                raw = await raw
            return normalize_prompt_result(key, raw)
        except (ValidationError, BuilderNotFoundError, PromptConstructionError):
            raise
        except Exception as e:
            logger.error(f"Error building prompt for '{key}': {e}", exc_info=True)
            raise PromptConstructionError(
                f"Failed to build prompt for '{key}': {e}",
                kind=key,
            ) from e

    def create_builder(
        self,
        kind: "str | PromptKind",
    ) -> Callable[[dict[str, Any]], Awaitable[PromptResult]]:
        """Return a callable bound to one kind.

        Raises:
            BuilderNotFoundError: If no builder is registered for kind
        """
        key = self._key(kind)
        self._get_builder(key)

        async def build(params: dict[str, Any]) -> PromptResult:
            return await self.build(key, params)

        return build


# Global registry instance
_registry: PromptBuilderRegistry | None = None


def get_prompt_registry() -> PromptBuilderRegistry:
    """Get the global prompt builder registry."""
    global _registry
    if _registry is None:
        _registry = PromptBuilderRegistry()
    return _registry


async def build_prompt(kind: "str | PromptKind", params: dict[str, Any] | None) -> PromptResult:
    """Build a prompt with the global registry."""
    return await get_prompt_registry().build(kind, params)
