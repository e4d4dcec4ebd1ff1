"""Predicates recognising command-id enums nested in messages.

Game protocols often nest an enum inside each message that maps the message
to its wire command id (``enum CmdId { None = 0; CmdId = 1234; }``). These
enums rarely compile with protoc and are filtered out unless requested.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional, Sequence, Tuple

from ..config import DumperConfig
from ..metadata.base import TypeInfo

# (enum type, enum members, nearest enclosing message or None) -> is command-id enum
CommandIdPredicate = Callable[[TypeInfo, Sequence[Tuple[str, int]], Optional[TypeInfo]], bool]


def by_name(names: Iterable[str]) -> CommandIdPredicate:
    """Match enums nested in a message whose simple name is one of ``names``."""
    wanted = {name.lower() for name in names}

    def _predicate(
        enum_info: TypeInfo,
        members: Sequence[Tuple[str, int]],
        owner: Optional[TypeInfo],
    ) -> bool:
        return owner is not None and enum_info.name.lower() in wanted

    return _predicate


def single_member_wrapper(
    enum_info: TypeInfo,
    members: Sequence[Tuple[str, int]],
    owner: Optional[TypeInfo],
) -> bool:
    """Match enums nested in a message that declare exactly one member."""
    return owner is not None and len(members) == 1


def predicate_for(config: DumperConfig) -> CommandIdPredicate:
    if config.command_id_detection == "single-member":
        return single_member_wrapper
    return by_name(config.command_id_enum_names)


__all__ = ["CommandIdPredicate", "by_name", "predicate_for", "single_member_wrapper"]
