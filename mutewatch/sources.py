"""
Source Cache for mutewatch
Fetches source records and resolves the default source against the cache
"""

import logging
from typing import Optional

from .errors import DescribeFailed, ListFailed, ServerInfoFailed
from .events import ResponseChannel
from .models import ListResultKind, SourceRecord, Sources

log = logging.getLogger(__name__)


class SourceSynchronizer:
    """
    Keeps source records in step with the sound server.

    Each request is issued with the server's processing lock held and then
    waited on, lock released, through a private ResponseChannel.
    """

    def __init__(self, server):
        self.server = server

    def reload_all(self) -> Sources:
        """
        Fetch every source.

        Returns:
            Fresh cache keyed by source index

        Raises:
            ListFailed: The listing aborted; partial results are discarded
        """
        response = ResponseChannel()
        with self.server.lock:
            self.server.list_sources(response.put)

        sources: Sources = {}
        while True:
            result = response.get()
            if result.kind is ListResultKind.ITEM:
                sources[result.record.index] = result.record
            elif result.kind is ListResultKind.END:
                log.debug(f"Retrieved source info ({len(sources)} sources)")
                return sources
            else:
                log.error("Error retrieving sources")
                raise ListFailed()

    def refresh_one(self, index: int) -> Optional[SourceRecord]:
        """
        Fetch a single source.

        Returns:
            The record, or None if the server no longer has that source

        Raises:
            DescribeFailed: The request itself failed
        """
        response = ResponseChannel()
        with self.server.lock:
            self.server.describe_source(index, response.put)

        record = None
        while True:
            result = response.get()
            if result.kind is ListResultKind.ITEM:
                record = result.record
            elif result.kind is ListResultKind.END:
                return record
            else:
                raise DescribeFailed(index)


class DefaultSourceResolver:
    """Maps the server's default source name to a cached index"""

    def __init__(self, server):
        self.server = server

    def default_source_name(self) -> Optional[str]:
        """
        Ask the server for its default source name.

        Raises:
            ServerInfoFailed: The server info request failed
        """
        response = ResponseChannel()
        with self.server.lock:
            self.server.server_info(response.put)

        info = response.get()
        if info is None:
            raise ServerInfoFailed()
        return info.default_source_name

    def resolve(self, sources: Sources) -> Optional[int]:
        """
        Find the cached index of the default source.

        Returns:
            Index, or None when the server has no default or the default is
            not in the cache
        """
        name = self.default_source_name()
        if name is None:
            log.info("No default source")
            return None

        for index, record in sources.items():
            if record.name == name:
                log.debug(f"Default source is: '{record.name}', index: {index}")
                return index

        log.info(f"Default source '{name}' not found among {len(sources)} cached sources")
        return None
