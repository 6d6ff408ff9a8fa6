"""Command and argument descriptors, and the Command Index.

Descriptors are resolved from the triples of a validated ontology. They
are frozen and hold only tuples, so a Command Index can be shared across
threads without coordination.
"""

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

CommandKey = Tuple[str, str]


@dataclass(frozen=True)
class ArgumentDescriptor:
    """One argument of a command."""
    name: str
    type_tag: str = "string"
    required: bool = False
    default: Optional[str] = None
    validators: Tuple[str, ...] = ()
    help: Optional[str] = None
    position: Optional[int] = None

    def sort_key(self) -> Tuple[float, str]:
        return (math.inf if self.position is None else self.position, self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type_tag,
            "required": self.required,
            "default": self.default,
            "validators": list(self.validators),
            "help": self.help,
            "position": self.position,
        }


@dataclass(frozen=True)
class CommandDescriptor:
    """A resolved noun-verb command.

    ``iri`` records where the command came from; it is excluded from
    equality because blank-node subjects get document-order labels.
    """
    noun: str
    verb: str
    arguments: Tuple[ArgumentDescriptor, ...] = ()
    capabilities: Tuple[str, ...] = ()
    help: Optional[str] = None
    handler: Optional[str] = None
    handlers: Tuple[str, ...] = ()
    iri: Optional[str] = field(default=None, compare=False)

    @property
    def key(self) -> CommandKey:
        return (self.noun, self.verb)

    @property
    def qualified_name(self) -> str:
        return f"{self.noun} {self.verb}"

    def argument(self, name: str) -> Optional[ArgumentDescriptor]:
        return next((arg for arg in self.arguments if arg.name == name), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "noun": self.noun,
            "verb": self.verb,
            "iri": self.iri,
            "help": self.help,
            "handler": self.handler,
            "handlers": list(self.handlers),
            "capabilities": list(self.capabilities),
            "arguments": [arg.to_dict() for arg in self.arguments],
        }


class CommandIndex:
    """Lookup from (noun, verb) and from noun to command descriptors.

    Built once, at validation. Iteration is always sorted by (noun, verb).
    """

    def __init__(self, commands: Tuple[CommandDescriptor, ...] = ()) -> None:
        by_key: Dict[CommandKey, CommandDescriptor] = {}
        for command in commands:
            if command.key in by_key:
                raise ValueError(f"duplicate command '{command.qualified_name}'")
            by_key[command.key] = command

        ordered = tuple(by_key[key] for key in sorted(by_key))
        by_noun: Dict[str, List[CommandDescriptor]] = {}
        for command in ordered:
            by_noun.setdefault(command.noun, []).append(command)

        self._commands = ordered
        self._by_key: Mapping[CommandKey, CommandDescriptor] = MappingProxyType(
            {command.key: command for command in ordered}
        )
        self._by_noun: Mapping[str, Tuple[CommandDescriptor, ...]] = MappingProxyType(
            {noun: tuple(group) for noun, group in by_noun.items()}
        )

    @property
    def commands(self) -> Tuple[CommandDescriptor, ...]:
        return self._commands

    def get(self, noun: str, verb: str) -> Optional[CommandDescriptor]:
        return self._by_key.get((noun, verb))

    def lookup(self, noun: str, verb: str) -> CommandDescriptor:
        """Like ``get`` but raises KeyError for an unknown pair."""
        try:
            return self._by_key[(noun, verb)]
        except KeyError:
            raise KeyError(f"no command '{noun} {verb}'") from None

    def commands_for(self, noun: str) -> Tuple[CommandDescriptor, ...]:
        return self._by_noun.get(noun, ())

    def nouns(self) -> Tuple[str, ...]:
        return tuple(self._by_noun)

    def keys(self) -> Tuple[CommandKey, ...]:
        return tuple(command.key for command in self._commands)

    def __getitem__(self, key: CommandKey) -> CommandDescriptor:
        return self._by_key[key]

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[CommandDescriptor]:
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CommandIndex):
            return NotImplemented
        return self._commands == other._commands

    def __hash__(self) -> int:
        return hash(self._commands)

    def __repr__(self) -> str:
        return f"CommandIndex({', '.join(c.qualified_name for c in self._commands)})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commands": [command.to_dict() for command in self._commands],
            "nouns": {noun: [c.verb for c in group] for noun, group in self._by_noun.items()},
        }
