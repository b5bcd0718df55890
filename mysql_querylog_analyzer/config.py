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

"""Run configuration for the query log analyzer."""

import os
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Tuple


DEFAULT_DISTANCE_THRESHOLD = 0.15
DEFAULT_TAB_WIDTH = 8
DEFAULT_PROGRESS_INTERVAL = 5.0

# Site-specific statements that flood the log without telling anything about usage.
# Adapt to the database being analyzed.
DEFAULT_EXCLUDED_PREFIXES = (
    'UPDATE IOTLOG SET FULLREPORT =',
    'SELECT @@SESSION.AUTO_INCREMENT_INCREMENT AS AUTO_INCREMENT_INCREMENT, '
    '@@CHARACTER_SET_CLIENT AS CHARACTER_SET_CLIENT',
    'INSERT INTO LOGIN.SESSIONS (IDLOGIN,SESSION,DATESESSION) VALUES',
)

# Columns whose literal values are masked before templates are compared
DEFAULT_INTEGER_COLUMNS = ('IDSTAFF', 'IDCRM', 'IREVENUE', 'IMTOW')
DEFAULT_ID_LIST_COLUMNS = ('IDCRM', 'IDTRIP', 'IDMISSION')
DEFAULT_QUOTED_INTEGER_COLUMNS = ('IDMISSION', 'IDCRM')
DEFAULT_DATE_COLUMNS = ('DATECRM',)

_BREAKOFF_RE = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})$')


def parse_breakoff(text: str) -> date:
    """Parse a YYYY-MM-DD breakoff date.

    One-digit month and day are accepted. Days past the end of the month roll over into
    the next month, so 2017-02-29 becomes 2017-03-01.
    """
    match = _BREAKOFF_RE.match(text.strip())
    if not match:
        raise ValueError(f"Breakoff should be a date formatted like YYYY-MM-DD, got '{text}'")

    year, month, day = (int(part) for part in match.groups())
    if not 1 <= month <= 12 or not 1 <= day <= 31:
        raise ValueError(f"Breakoff '{text}' is not a valid date")

    return date(year, month, 1) + timedelta(days=day - 1)


def _split_env(name: str, default: Tuple[str, ...], separator: str = ',') -> List[str]:
    value = os.getenv(name)
    if value is None:
        return list(default)
    return [item.strip().upper() for item in value.split(separator) if item.strip()]


def _bool_env(name: str) -> bool:
    return os.getenv(name, 'false').strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class AnalyzerConfig:
    """Switches and tunables of one analyzer run."""

    verbose: bool = False
    coarse: bool = False
    breakoff: Optional[date] = None
    distance_threshold: float = DEFAULT_DISTANCE_THRESHOLD
    tab_width: int = DEFAULT_TAB_WIDTH
    progress_interval: float = DEFAULT_PROGRESS_INTERVAL
    excluded_prefixes: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_PREFIXES))
    integer_columns: List[str] = field(default_factory=lambda: list(DEFAULT_INTEGER_COLUMNS))
    id_list_columns: List[str] = field(default_factory=lambda: list(DEFAULT_ID_LIST_COLUMNS))
    quoted_integer_columns: List[str] = field(
        default_factory=lambda: list(DEFAULT_QUOTED_INTEGER_COLUMNS)
    )
    date_columns: List[str] = field(default_factory=lambda: list(DEFAULT_DATE_COLUMNS))

    def __post_init__(self):
        if not 0 < self.distance_threshold <= 1:
            raise ValueError(
                f'Distance threshold must be in (0, 1], got {self.distance_threshold}'
            )
        if self.tab_width < 1:
            raise ValueError(f'Tab width must be positive, got {self.tab_width}')

    @classmethod
    def from_env(cls) -> 'AnalyzerConfig':
        """Build a configuration from QUERYLOG_* environment variables."""
        breakoff = os.getenv('QUERYLOG_BREAKOFF')
        return cls(
            verbose=_bool_env('QUERYLOG_VERBOSE'),
            coarse=_bool_env('QUERYLOG_COARSE'),
            breakoff=parse_breakoff(breakoff) if breakoff else None,
            distance_threshold=float(
                os.getenv('QUERYLOG_DISTANCE_THRESHOLD', str(DEFAULT_DISTANCE_THRESHOLD))
            ),
            tab_width=int(os.getenv('QUERYLOG_TAB_WIDTH', str(DEFAULT_TAB_WIDTH))),
            progress_interval=float(
                os.getenv('QUERYLOG_PROGRESS_INTERVAL', str(DEFAULT_PROGRESS_INTERVAL))
            ),
            excluded_prefixes=_split_env(
                'QUERYLOG_EXCLUDED_PREFIXES', DEFAULT_EXCLUDED_PREFIXES, separator=';'
            ),
            integer_columns=_split_env('QUERYLOG_INTEGER_COLUMNS', DEFAULT_INTEGER_COLUMNS),
            id_list_columns=_split_env('QUERYLOG_ID_LIST_COLUMNS', DEFAULT_ID_LIST_COLUMNS),
            quoted_integer_columns=_split_env(
                'QUERYLOG_QUOTED_INTEGER_COLUMNS', DEFAULT_QUOTED_INTEGER_COLUMNS
            ),
            date_columns=_split_env('QUERYLOG_DATE_COLUMNS', DEFAULT_DATE_COLUMNS),
        )
