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

"""Recognition of the line shapes found in a MySQL 5.6 general query log.

What the log looks like (column positions after tab expansion)::

    |012345678901234567890123456789
    |171215  4:17:03 124090 Query     SELECT a,
    |                123753 Query     SELECT 1
    |  WHERE n.id NOT IN (SELECT

The first line is a header carrying a timestamp and a connection id. The second is a
header with the connection id only (the log prints two tabs in place of the timestamp).
The third is a fragment of a multi-line statement. Fragments are not delimited in any
way, so a fragment that starts with whitespace, digits and an action keyword is taken
for a header. This is a heuristic and stays one.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence, Union

from .errors import MalformedLineError


class Action(Enum):
    """What a header line reports about its connection."""

    CONNECT = 'Connect'
    CONNECT_DENIED = 'Connect denied'
    QUIT = 'Quit'
    INIT_DB = 'Init DB'
    REFRESH = 'Refresh'
    CLOSE_STMT = 'Close stmt'
    QUERY = 'Query'
    EXECUTE = 'Execute'
    PREPARE = 'Prepare'
    UNKNOWN = 'Unknown'


CAPTURING_ACTIONS = (Action.QUERY, Action.EXECUTE, Action.PREPARE)


@dataclass(frozen=True)
class Ignorable:
    """Server boilerplate."""

    text: str


@dataclass(frozen=True)
class Fragment:
    """Continuation of a statement whose capture is in progress."""

    text: str


@dataclass(frozen=True)
class Header:
    """A line opening a new event for a connection.

    A timestamped header with an impossible date still opens the event; it comes with no
    timestamp and the reason in timestamp_error.
    """

    connid: int
    remainder: str
    action: Action
    argument: str = ''
    timestamp: Optional[datetime] = None
    db: Optional[str] = None
    timestamp_error: Optional[str] = None


ClassifiedLine = Union[Ignorable, Fragment, Header]


# Checked on the raw line, before tab expansion
IGNORABLE_PATTERNS = [
    re.compile(r'^\S*mysqld, Version:'),
    re.compile(r'^Tcp port: \d+\s+Unix socket:'),
    re.compile(r'^Time\s+Id\s+Command\s+Argument'),
]

TIMESTAMPED_HEADER_RE = re.compile(
    r'^(\d\d)(\d\d)(\d\d)\s+(\d{1,2}):(\d{1,2}):(\d{1,2})\s+(\d+)\s+(.*)$'
)
BARE_HEADER_RE = re.compile(
    r'^\s+(\d+)\s+((?:Query|Quit|Connect|Init|Refresh|Prepare|Execute|Close stmt)(?:.*?))\s*$'
)

# Remainder shapes, tried in order
_ACTION_PATTERNS = [
    (Action.CONNECT_DENIED, re.compile(r'^\s*Connect\s+Access denied for user (\S+)')),
    (Action.CONNECT, re.compile(r'^\s*Connect\s+(\S+)\s*on\s*(\S*)\s*$')),
    (Action.QUIT, re.compile(r'^\s*Quit\s*$')),
    (Action.INIT_DB, re.compile(r'^\s*Init DB\s+(\S*)\s*$')),
    (Action.REFRESH, re.compile(r'^\s*Refresh\s*$')),
    (Action.CLOSE_STMT, re.compile(r'^\s*Close stmt\s*$')),
    (Action.QUERY, re.compile(r'^\s*Query(?:\s+(.*))?$')),
    (Action.EXECUTE, re.compile(r'^\s*Execute(?:\s+(.*))?$')),
    (Action.PREPARE, re.compile(r'^\s*Prepare(?:\s+(.*))?$')),
]


def is_ignorable(line: str) -> bool:
    """Check whether a raw line is server boilerplate"""
    return any(pattern.match(line) for pattern in IGNORABLE_PATTERNS)


def expand_tabs(line: str, tab_width: int = 8) -> str:
    """Replace every tab with a fixed run of spaces, as the log columns assume"""
    return line.replace('\t', ' ' * tab_width)


def parse_action(remainder: str):
    """Split a header remainder into its action, argument and database.

    The argument is the user for CONNECT and CONNECT_DENIED, the database for INIT_DB and
    the statement body for the capturing actions.
    """
    for action, pattern in _ACTION_PATTERNS:
        match = pattern.match(remainder)
        if not match:
            continue
        if action == Action.CONNECT:
            return action, match.group(1), match.group(2) or None
        if action == Action.INIT_DB:
            return action, match.group(1), match.group(1) or None
        if action in CAPTURING_ACTIONS:
            return action, match.group(1) or '', None
        if action == Action.CONNECT_DENIED:
            return action, match.group(1), None
        return action, '', None
    return Action.UNKNOWN, remainder.strip(), None


def parse_header_timestamp(fields: Sequence[str]) -> datetime:
    """Build the timestamp of a header from its YY MM DD hh mm ss fields.

    Raises MalformedLineError when the fields do not form a valid date and time.
    """
    yy, month, day, hour, minute, second = (int(part) for part in fields)
    try:
        return datetime(2000 + yy, month, day, hour, minute, second)
    except ValueError as e:
        raise MalformedLineError(f'Invalid timestamp in header: {e}') from e


def classify_line(line: str, tab_width: int = 8) -> ClassifiedLine:
    """Classify one log line (without its line terminator)"""
    if is_ignorable(line):
        return Ignorable(line)

    rest = expand_tabs(line, tab_width)

    match = TIMESTAMPED_HEADER_RE.match(rest)
    if match:
        timestamp, timestamp_error = None, None
        try:
            timestamp = parse_header_timestamp(match.groups()[:6])
        except MalformedLineError as e:
            timestamp_error = str(e)
        remainder = match.group(8)
        action, argument, db = parse_action(remainder)
        return Header(
            int(match.group(7)), remainder, action, argument, timestamp, db, timestamp_error
        )

    match = BARE_HEADER_RE.match(rest)
    if match:
        remainder = match.group(2)
        action, argument, db = parse_action(remainder)
        return Header(int(match.group(1)), remainder, action, argument, None, db)

    return Fragment(rest)
