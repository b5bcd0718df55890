# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Connections live at the current position of the log."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional


logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1)

# The log never shows a Connect for connection 1; it belongs to the server itself
ROOT_CONNID = 1
ROOT_USER = 'root'


@dataclass
class LiveConnection:
    connid: int
    user: str
    when: datetime
    db: Optional[str] = None


class ConnectionRegistry:
    """Maps connection ids to live connections.

    Connection ids increase monotonically until the server restarts, then start over at
    1. A Connect on an id that is still live therefore replaces the stale entry.
    """

    def __init__(self, bootstrap: bool = True):
        self._live: Dict[int, LiveConnection] = {}
        if bootstrap:
            self._live[ROOT_CONNID] = LiveConnection(ROOT_CONNID, ROOT_USER, EPOCH)

    def __contains__(self, connid: int) -> bool:
        return connid in self._live

    def __len__(self) -> int:
        return len(self._live)

    def connect(
        self, connid: int, user: str, db: Optional[str] = None, when: datetime = EPOCH
    ) -> LiveConnection:
        stale = self._live.pop(connid, None)
        if stale is not None:
            logger.info(
                f'Connection {connid} of {stale.user} forcefully removed at {when} '
                '(server restart?)'
            )

        connection = LiveConnection(connid, user, when, db)
        self._live[connid] = connection
        message = f"New connection by user '{user}' at {when} with connid {connid}"
        if db:
            message += f" on database '{db}'"
        logger.debug(message)
        return connection

    def lookup(self, connid: int) -> Optional[LiveConnection]:
        return self._live.get(connid)

    def disconnect(self, connid: int) -> Optional[LiveConnection]:
        connection = self._live.pop(connid, None)
        if connection is None:
            logger.warning(f'Connection {connid} disconnected but it is not a live connection')
        else:
            logger.debug(f'Connection {connid} of {connection.user} closed')
        return connection

    def set_database(self, connid: int, db: Optional[str]) -> Optional[LiveConnection]:
        connection = self._live.get(connid)
        if connection is None:
            logger.warning(f'Database switch to {db} on unknown connection {connid}')
            return None
        connection.db = db
        logger.debug(f'Connection {connid} connects to database {db}')
        return connection
