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

"""Normalization, noise filtering and verb classification of captured statements."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence


logger = logging.getLogger(__name__)

QUERY_VERBS = ('select', 'update', 'insert', 'alter', 'delete', 'drop', 'call', 'other')

# Ordered; the first matching prefix decides the verb
VERB_PREFIXES = [
    ('SELECT', 'select'),
    ('UPDATE', 'update'),
    ('INSERT', 'insert'),
    ('ALTER', 'alter'),
    ('DELETE', 'delete'),
    ('DROP', 'drop'),
    ('CALL', 'call'),
]

# Session setup and introspection issued by drivers and consoles
UNINTERESTING_PATTERNS = [
    re.compile(
        r'^SET (NAMES|AUTOCOMMIT|CHARACTER|SESSION|OPTIMIZER|CHARACTER_SET_RESULTS|SQL_'
        r'|@@TX_ISOLATION|@@SQL_SELECT_LIMIT)'
    ),
    re.compile(r'^SELECT (DATABASE|@@TX_ISOLATION|CURRENT_USER)'),
    re.compile(r'^SHOW '),
    re.compile(r'^COMMIT'),
    re.compile(r'^USE '),
    re.compile(r'^EXPLAIN '),
    re.compile(r'^DESCRIBE '),
    re.compile(r'^(UN)?LOCK TABLES'),
]

_WHITESPACE_RE = re.compile(r'\s+')


class Disposition(Enum):
    EMPTY = 'empty'
    UNINTERESTING = 'uninteresting'
    PREPARE = 'prepare'
    COUNTED = 'counted'


@dataclass(frozen=True)
class Verdict:
    disposition: Disposition
    normalized: str
    verb: Optional[str] = None

    @property
    def counted(self) -> bool:
        return self.disposition == Disposition.COUNTED


def normalize_statement(sql: str) -> str:
    """Uppercase, collapse whitespace runs and trim"""
    return _WHITESPACE_RE.sub(' ', sql.upper()).strip()


def classify_verb(normalized: str) -> str:
    for prefix, verb in VERB_PREFIXES:
        if normalized.startswith(prefix):
            return verb
    return 'other'


def prefix_exclusion(prefixes: Iterable[str]) -> Callable[[str], bool]:
    """Build an exclusion predicate matching normalized statements by prefix"""
    normalized_prefixes = tuple(normalize_statement(prefix) for prefix in prefixes if prefix)

    def excluded(normalized: str) -> bool:
        return bool(normalized_prefixes) and normalized.startswith(normalized_prefixes)

    return excluded


class StatementFilter:
    """Decides what becomes of a captured statement.

    Exclusions are predicates over the normalized text, applied after the built-in
    session-setup patterns. Site-specific noise goes there.
    """

    def __init__(self, exclusions: Optional[Sequence[Callable[[str], bool]]] = None):
        self.exclusions: List[Callable[[str], bool]] = list(exclusions or [])

    def is_uninteresting(self, normalized: str) -> bool:
        if any(pattern.match(normalized) for pattern in UNINTERESTING_PATTERNS):
            return True
        return any(excluded(normalized) for excluded in self.exclusions)

    def classify(self, sql: str, is_prepare: bool = False, user: str = '') -> Verdict:
        normalized = normalize_statement(sql)
        if not normalized:
            return Verdict(Disposition.EMPTY, normalized)

        if self.is_uninteresting(normalized):
            return Verdict(Disposition.UNINTERESTING, normalized)

        # The matching Execute carries the statement again
        if is_prepare:
            logger.warning(f'Prepared statement by {user}: {sql}')
            return Verdict(Disposition.PREPARE, normalized)

        verb = classify_verb(normalized)
        if verb == 'other':
            logger.warning(f'Unknown query operation: {normalized}')
        return Verdict(Disposition.COUNTED, normalized, verb)
