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

"""Per-user statistics collected over a run."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from .errors import ParserStateError
from .statement_filter import QUERY_VERBS


@dataclass
class UserStats:
    user: str
    conncount: int = 0
    querycount: int = 0
    verb_counts: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(QUERY_VERBS, 0))
    # mangled template text -> occurrences, fine-grained mode only
    templates: Dict[str, int] = field(default_factory=dict)

    def record_query(self, verb: str):
        if verb not in self.verb_counts:
            raise ParserStateError(f'Unknown verb {verb!r} for user {self.user}')
        self.querycount += 1
        self.verb_counts[verb] += 1

    @property
    def is_empty(self) -> bool:
        return self.conncount == 0 and self.querycount == 0


class Aggregator:
    """Owns the UserStats of every user seen, keyed by user"""

    def __init__(self):
        self._stats: Dict[str, UserStats] = {}

    def __contains__(self, user: str) -> bool:
        return user in self._stats

    def __iter__(self) -> Iterator[UserStats]:
        return iter(self._stats.values())

    def __len__(self) -> int:
        return len(self._stats)

    def get(self, user: str) -> Optional[UserStats]:
        return self._stats.get(user)

    def ensure_user(self, user: str) -> UserStats:
        stats = self._stats.get(user)
        if stats is None:
            stats = self._stats[user] = UserStats(user)
        return stats

    def record_connection(self, user: str) -> UserStats:
        stats = self.ensure_user(user)
        stats.conncount += 1
        return stats

    def require(self, user: str) -> UserStats:
        """Stats of a user that must have connected before"""
        stats = self._stats.get(user)
        if stats is None:
            raise ParserStateError(f'Statement attributed to {user} who has no statistics')
        return stats

    def sorted_users(self) -> List[UserStats]:
        """Users by descending query count; ties keep first-seen order"""
        return sorted(self._stats.values(), key=lambda stats: stats.querycount, reverse=True)
