"""Cheap reachability check. Result is cached on the SyncSession."""
import logging

from bizsync.errors import ConnectivityError

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Probes the remote on demand; it never polls on its own."""

    def __init__(self, remote, session):
        self._remote = remote
        self._session = session

    async def check_online(self) -> bool:
        """Probe the remote. Any failure means offline; nothing is raised."""
        try:
            await self._remote.probe()
        except ConnectivityError as exc:
            logger.debug("Offline: %s", exc)
            online = False
        else:
            online = True

        if online != self._session.is_online:
            logger.info("Remote is now %s", "online" if online else "offline")
        self._session.is_online = online
        return online
