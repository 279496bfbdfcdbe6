"""Process table inspection.

hostexec runtime module v0.1.0

Every ps() call runs one fresh psutil query; nothing is cached. Filterers are
resolved into a closed set of variants before the query runs:

- AllProcesses: no filter
- ByPid: a single pid, returns one record or None
- ByFields: field/value equality on ProcessRecord fields
- ByPredicate: arbitrary callable over ProcessRecord
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from typing import Any, Union

import psutil

from ..errors import OptionsValidationError, UnsupportedFiltererError

__all__ = [
    "AllProcesses",
    "ByFields",
    "ByPid",
    "ByPredicate",
    "Filterer",
    "ProcessRecord",
    "pid_find",
    "ps",
    "to_filterer",
]

logger = logging.getLogger(__name__)

_PROCESS_ATTRS = ["pid", "username", "name", "cmdline"]


@dataclass(frozen=True)
class ProcessRecord:
    """One row of the process table.

    Attributes:
        pid: Process id
        user: Owning username
        cmd: Short command name
        full_cmd: Program and arguments joined by spaces
    """

    pid: int
    user: str
    cmd: str
    full_cmd: str

    def to_dict(self) -> dict[str, Any]:
        return {"pid": self.pid, "user": self.user, "cmd": self.cmd, "full_cmd": self.full_cmd}


_RECORD_FIELDS = frozenset(f.name for f in fields(ProcessRecord))


@dataclass(frozen=True)
class AllProcesses:
    pass


@dataclass(frozen=True)
class ByPid:
    pid: int


@dataclass(frozen=True)
class ByFields:
    criteria: Mapping[str, Any]

    def __post_init__(self) -> None:
        unknown = set(self.criteria) - _RECORD_FIELDS
        if unknown:
            raise OptionsValidationError(
                f"Unknown process fields in filterer: {', '.join(sorted(unknown))}"
            )

    def matches(self, record: ProcessRecord) -> bool:
        return all(getattr(record, key) == value for key, value in self.criteria.items())


@dataclass(frozen=True)
class ByPredicate:
    predicate: Callable[[ProcessRecord], Any]


Filterer = Union[AllProcesses, ByPid, ByFields, ByPredicate]


def to_filterer(filterer: Any) -> Filterer:
    """Resolve a caller-supplied filterer into one of the Filterer variants.

    Raises:
        UnsupportedFiltererError: For any shape other than None, int,
            mapping, callable or a Filterer variant
    """
    if isinstance(filterer, (AllProcesses, ByPid, ByFields, ByPredicate)):
        return filterer
    if filterer is None:
        return AllProcesses()
    if isinstance(filterer, int) and not isinstance(filterer, bool):
        return ByPid(filterer)
    if isinstance(filterer, Mapping):
        return ByFields(dict(filterer))
    if callable(filterer):
        return ByPredicate(filterer)
    raise UnsupportedFiltererError(filterer)


def _to_record(info: dict[str, Any]) -> ProcessRecord:
    name = info.get("name") or ""
    cmdline = info.get("cmdline") or []
    return ProcessRecord(
        pid=info["pid"],
        user=info.get("username") or "",
        cmd=name,
        full_cmd=" ".join(cmdline) if cmdline else name,
    )


def _snapshot() -> list[ProcessRecord]:
    # Vanished processes are skipped by process_iter; denied fields become None
    return [
        _to_record(proc.info)
        for proc in psutil.process_iter(_PROCESS_ATTRS, ad_value=None)
    ]


def ps(filterer: Any = None) -> ProcessRecord | list[ProcessRecord] | None:
    """Query the process table.

    Args:
        filterer: None (all processes), a pid, a mapping of field values,
            a predicate over ProcessRecord, or a Filterer variant

    Returns:
        A single ProcessRecord or None for a pid filterer, otherwise a list
    """
    resolved = to_filterer(filterer)

    if isinstance(resolved, ByPid):
        for record in _snapshot():
            if record.pid == resolved.pid:
                return record
        return None
    if isinstance(resolved, ByFields):
        return [record for record in _snapshot() if resolved.matches(record)]
    if isinstance(resolved, ByPredicate):
        return [record for record in _snapshot() if resolved.predicate(record)]
    return _snapshot()


def pid_find(pid: int) -> bool:
    """Whether `pid` is currently listed in the process table.

    Zombie processes count as present even though they can no longer be
    signalled; use kill(pid, 0) to check addressability instead.
    """
    if isinstance(pid, bool) or not isinstance(pid, int) or pid < 0:
        return False
    return pid in psutil.pids()
