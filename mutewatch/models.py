"""
Data Types for mutewatch
Plain values passed between the sound server adapter and the listener core
"""

from enum import Enum
from dataclasses import dataclass
from typing import Dict, Optional


class ContextState(Enum):
    """Connection states reported by the sound server client"""

    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    AUTHORIZING = "authorizing"
    SETTING_NAME = "setting_name"
    READY = "ready"
    FAILED = "failed"
    TERMINATED = "terminated"

    @property
    def is_transitional(self) -> bool:
        return self in (
            ContextState.UNCONNECTED,
            ContextState.CONNECTING,
            ContextState.AUTHORIZING,
            ContextState.SETTING_NAME,
        )


class Facility(Enum):
    """Kind of entity a subscription notification is about"""

    SINK = "sink"
    SOURCE = "source"
    SINK_INPUT = "sink_input"
    SOURCE_OUTPUT = "source_output"
    MODULE = "module"
    CLIENT = "client"
    SAMPLE_CACHE = "sample_cache"
    SERVER = "server"
    CARD = "card"


class Operation(Enum):
    """Kind of change a subscription notification reports"""

    NEW = "new"
    CHANGE = "change"
    REMOVE = "remove"


@dataclass(frozen=True)
class SourceRecord:
    """Cached attributes of one audio input source"""
    index: int
    name: str
    muted: bool


# Cache of sources, keyed by the server-assigned index
Sources = Dict[int, SourceRecord]


@dataclass(frozen=True)
class ServerInfo:
    default_source_name: Optional[str] = None


class ListResultKind(Enum):
    ITEM = "item"
    END = "end"
    ERROR = "error"


@dataclass(frozen=True)
class ListResult:
    """
    One delivery of a list or describe request.
    A request yields any number of ITEMs followed by exactly one END or ERROR.
    """
    kind: ListResultKind
    record: Optional[SourceRecord] = None

    @classmethod
    def item(cls, record: SourceRecord) -> "ListResult":
        return cls(ListResultKind.ITEM, record)

    @classmethod
    def end(cls) -> "ListResult":
        return cls(ListResultKind.END)

    @classmethod
    def error(cls) -> "ListResult":
        return cls(ListResultKind.ERROR)

    @property
    def is_terminal(self) -> bool:
        return self.kind is not ListResultKind.ITEM
