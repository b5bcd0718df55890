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

"""Single-slot buffer for statements spread over several log lines."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .errors import ParserStateError


logger = logging.getLogger(__name__)


@dataclass
class PendingStatement:
    text: str
    user: str
    is_prepare: bool = False
    connid: Optional[int] = None


class StatementAccumulator:
    """Collects the lines of the statement being captured.

    Open from the header that starts a statement until the next header. An open capture
    with empty text is still open.
    """

    def __init__(self):
        self._parts: Optional[List[str]] = None
        self._user: Optional[str] = None
        self._is_prepare = False
        self._connid: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self._parts is not None

    def open(
        self,
        initial_text: str,
        user: str,
        is_prepare: bool = False,
        connid: Optional[int] = None,
    ):
        if self.is_open:
            raise ParserStateError(
                f'Statement capture opened for {user} while capture for {self._user} is open'
            )
        self._parts = [initial_text]
        self._user = user
        self._is_prepare = is_prepare
        self._connid = connid

    def append(self, fragment_text: str):
        if not self.is_open:
            logger.warning(f"Could not process this line (at line start): '{fragment_text}'")
            return
        self._parts.append(fragment_text)

    def flush(self) -> Optional[PendingStatement]:
        """Close the capture and hand over what was collected; None if nothing was open"""
        if not self.is_open:
            return None
        pending = PendingStatement(
            ' '.join(self._parts), self._user, self._is_prepare, self._connid
        )
        self._reset()
        return pending

    def discard(self) -> Optional[PendingStatement]:
        """Close the capture, dropping its content"""
        pending = self.flush()
        if pending is not None:
            logger.info(f'Dropping unfinished statement by {pending.user}: {pending.text}')
        return pending

    def _reset(self):
        self._parts = None
        self._user = None
        self._is_prepare = False
        self._connid = None
