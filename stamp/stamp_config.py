"""
Session configuration: custom functions, exposed interfaces, comment
processors, and the few scalar settings that can come from YAML.
"""

import itertools
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Literal, Mapping, Optional, Union

import yaml

from stamp.stamp_datatypes import CustomFunction, ConfigError
from stamp.stamp_invokers import Invoker, stream_invokers, of_custom_function
from stamp.stamp_processors import (
    RepeatCommands, RepeatProcessor,
    ConditionalCommands, ConditionalProcessor,
    ReplaceCommands, ReplaceProcessor,
)

OnError = Literal['abort', 'skip']
ON_ERROR_VALUES = ('abort', 'skip')


class CustomFunctionBuilder:
    """Second half of `add_custom_function(name, *types).with_implementation(fn)`."""

    def __init__(self, configuration: 'StamperConfiguration', name: str, parameter_types: tuple):
        self.configuration = configuration
        self.name = name
        self.parameter_types = parameter_types

    def with_implementation(self, implementation: Callable[..., Any]) -> 'StamperConfiguration':
        arity = len(self.parameter_types)
        if arity not in (1, 2, 3):
            raise ConfigError(f"Custom function {self.name} must take 1, 2 or 3 arguments, not {arity}")

        def function(args: List[Any]) -> Any:
            return implementation(*args)

        return self.configuration.register_function(CustomFunction(self.name, self.parameter_types, function))


@dataclass
class StamperConfiguration:
    on_error: OnError = 'abort'
    remove_tags: bool = False
    log_level: Optional[str] = None
    custom_functions: List[CustomFunction] = field(default_factory=list)
    expression_functions: Dict[type, Any] = field(default_factory=dict)
    comment_processors: Dict[type, Callable] = field(default_factory=dict)

    def add_custom_function(self, name: str, *parameter_types: Any) -> CustomFunctionBuilder:
        return CustomFunctionBuilder(self, name, parameter_types)

    def register_function(self, custom_function: CustomFunction) -> 'StamperConfiguration':
        self.custom_functions.append(custom_function)
        return self

    def expose_interface(self, interface: type, implementation: Any) -> 'StamperConfiguration':
        """Makes every public function declared on interface callable from expressions."""
        if not isinstance(implementation, interface):
            raise ConfigError(f"{implementation!r} does not implement {interface.__name__}")
        self.expression_functions[interface] = implementation
        return self

    def add_comment_processor(self, interface: type, factory: Callable) -> 'StamperConfiguration':
        self.comment_processors[interface] = factory
        return self

    def reset_comment_processors(self) -> 'StamperConfiguration':
        self.comment_processors.clear()
        return self

    def stream_invokers(self) -> Iterator[Invoker]:
        """Exposed interfaces first, in exposure order, then custom functions."""
        return itertools.chain(
            stream_invokers(self.expression_functions),
            (of_custom_function(cf) for cf in self.custom_functions),
        )

    # --- Loading ---

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'StamperConfiguration':
        config = standard_configuration()
        data = dict(data or {})
        unknown = set(data) - {'on_error', 'remove_tags', 'log_level'}
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        if 'on_error' in data:
            if data['on_error'] not in ON_ERROR_VALUES:
                raise ConfigError(f"on_error must be one of {ON_ERROR_VALUES}, not {data['on_error']!r}")
            config.on_error = data['on_error']
        if 'remove_tags' in data:
            if not isinstance(data['remove_tags'], bool):
                raise ConfigError("remove_tags must be a boolean")
            config.remove_tags = data['remove_tags']
        if data.get('log_level') is not None:
            config.log_level = str(data['log_level'])
        return config

    @classmethod
    def from_yaml(cls, text: str) -> 'StamperConfiguration':
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML configuration: {e}") from e
        if data is not None and not isinstance(data, Mapping):
            raise ConfigError("Configuration must be a mapping")
        return cls.from_mapping(data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'StamperConfiguration':
        return cls.from_yaml(Path(path).read_text(encoding="utf-8"))


def standard_configuration() -> StamperConfiguration:
    """A configuration with the built-in repeat, conditional and replace processors."""
    config = StamperConfiguration()
    config.add_comment_processor(RepeatCommands, RepeatProcessor)
    config.add_comment_processor(ConditionalCommands, ConditionalProcessor)
    config.add_comment_processor(ReplaceCommands, ReplaceProcessor)
    return config
