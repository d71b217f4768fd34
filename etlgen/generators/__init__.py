"""Test generators for the ETL mapping engine.

The mapping-driven generator always runs. The generators in this registry are
optional add-ons the engine runs when enabled in configuration:

    data_quality        rule-triggered whitespace/mandatory/range/cardinality checks
    schema_validation   column count and data type consistency
    audit               pipeline audit and reject-table checks
    comprehensive       the 30-test nine-category catalog

Usage:
    from etlgen.generators import get_generator

    generator = get_generator("audit")
    tests = generator.generate_all(context)
"""

from __future__ import annotations

from etlgen.generators.base import GenerationContext, Generator

__all__ = [
    "GenerationContext",
    "Generator",
    "get_generator",
    "list_generators",
    "register_generator",
]

# Registry of optional generators -- can be extended at runtime
_REGISTRY: dict[str, type[Generator]] = {}
_BUILTINS_REGISTERED = False


def register_generator(name: str, generator_cls: type[Generator]) -> None:
    """Register a generator class under a name."""
    _REGISTRY[name] = generator_cls


def get_generator(name: str) -> Generator:
    """Instantiate a registered generator by name.

    Raises:
        KeyError: when no generator is registered under ``name``.
    """
    _ensure_builtins()
    return _REGISTRY[name]()


def list_generators() -> list[str]:
    """List registered generator names in registration order."""
    _ensure_builtins()
    return list(_REGISTRY)


def _ensure_builtins() -> None:
    global _BUILTINS_REGISTERED
    if _BUILTINS_REGISTERED:
        return
    _BUILTINS_REGISTERED = True

    from etlgen.generators.audit import AuditGenerator
    from etlgen.generators.comprehensive import ComprehensiveTestGenerator
    from etlgen.generators.quality import DataQualityGenerator
    from etlgen.generators.structure import SchemaValidationGenerator

    register_generator("data_quality", DataQualityGenerator)
    register_generator("schema_validation", SchemaValidationGenerator)
    register_generator("audit", AuditGenerator)
    register_generator("comprehensive", ComprehensiveTestGenerator)
