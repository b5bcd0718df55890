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

"""MySQL 5.6 general query log analysis.

Reads the log one line at a time, tracks which connections are live, attributes each
captured statement to the user of its connection and counts it per verb. Unless running
coarse, statements are also grouped into templates (see clustering).
"""

import logging
import time
from datetime import datetime
from typing import Callable, Iterable, Optional

from .accumulator import PendingStatement, StatementAccumulator
from .clustering import ClusteringEngine, DistanceFunction
from .config import AnalyzerConfig
from .connections import EPOCH, ROOT_USER, ConnectionRegistry
from .errors import ParserStateError
from .line_classifier import (
    Action,
    CAPTURING_ACTIONS,
    Fragment,
    Header,
    Ignorable,
    classify_line,
)
from .mangling_rules import Mangler, build_mangling_rules
from .report import render_report
from .stats import Aggregator
from .statement_filter import StatementFilter, prefix_exclusion


logger = logging.getLogger(__name__)


class QueryLogAnalyzer:
    """State of one pass over a general query log.

    Feed lines with process_line() or run(), then render the report. Once the breakoff
    date is reached the analyzer is halted and ignores further input.
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        distance: Optional[DistanceFunction] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or AnalyzerConfig()
        self.registry = ConnectionRegistry()
        self.aggregator = Aggregator()
        self.accumulator = StatementAccumulator()
        self.statement_filter = StatementFilter([prefix_exclusion(self.config.excluded_prefixes)])
        self.clustering = None
        if not self.config.coarse:
            self.clustering = ClusteringEngine(
                distance=distance,
                threshold=self.config.distance_threshold,
                mangler=Mangler(build_mangling_rules(self.config)),
            )

        # The bootstrap connection needs somewhere to count its statements
        self.aggregator.ensure_user(ROOT_USER)

        self.current_time: datetime = EPOCH
        self.halted = False
        self.line_number = 0
        self._line = ''
        self._clock = clock
        self._last_progress = clock()

    def run(self, lines: Iterable[str]) -> 'QueryLogAnalyzer':
        """Process lines until the input ends or the breakoff is reached"""
        for line in lines:
            if not self.process_line(line):
                break
        self.finish()
        return self

    def finish(self):
        """Count the statement still being captured at end of input"""
        if not self.halted:
            self._flush()

    def report(self) -> str:
        return render_report(self.aggregator, coarse=self.config.coarse)

    def process_line(self, raw_line: str) -> bool:
        """Process one line; False once the analyzer is halted"""
        if self.halted:
            return False

        self.line_number += 1
        self._line = raw_line.rstrip('\r\n')

        classified = classify_line(self._line, self.config.tab_width)

        if isinstance(classified, Ignorable):
            return True

        if isinstance(classified, Fragment):
            # Blank lines between statements carry nothing
            if self.accumulator.is_open or classified.text.strip():
                self.accumulator.append(classified.text)
            return True

        if classified.timestamp is not None and self._reached_breakoff(classified.timestamp):
            return False

        # A header ends the statement being captured
        self._flush()

        if classified.timestamp_error:
            # The previous statement is still ended; the clock stays put
            logger.warning(
                f'{classified.timestamp_error} - keeping time {self.current_time} '
                f"for line {self.line_number} '{self._line}'"
            )
        elif classified.timestamp is not None:
            self.current_time = classified.timestamp
            self._report_progress()

        self._handle_header(classified)
        return True

    def _reached_breakoff(self, timestamp: datetime) -> bool:
        breakoff = self.config.breakoff
        if breakoff is None or timestamp.date() < breakoff:
            return False
        logger.info(f'Breakoff {breakoff} reached at line {self.line_number}, stopping')
        # An unfinished statement is dropped, not counted
        self.accumulator.discard()
        self.halted = True
        return True

    def _report_progress(self):
        now = self._clock()
        if now - self._last_progress > self.config.progress_interval:
            logger.info(f'Now at: {self.current_time}')
            self._last_progress = now

    def _handle_header(self, header: Header):
        connid = header.connid

        if header.action == Action.CONNECT:
            self.registry.connect(connid, header.argument, header.db, self.current_time)
            self.aggregator.record_connection(header.argument)
            return

        if header.action == Action.CONNECT_DENIED:
            logger.warning(
                f'Failed connection attempt by {header.argument} at {self.current_time}'
            )
            return

        connection = self.registry.lookup(connid)
        if connection is None:
            logger.warning(
                f'Unknown connection id {connid} at {self.current_time} '
                f"- dropping line '{self._line}'"
            )
            return

        if header.action == Action.QUIT:
            self.registry.disconnect(connid)
        elif header.action == Action.INIT_DB:
            self.registry.set_database(connid, header.db)
        elif header.action in (Action.REFRESH, Action.CLOSE_STMT):
            pass
        elif header.action in CAPTURING_ACTIONS:
            self._open_capture(header, connection.user)
        else:
            logger.warning(f"Unknown: '{header.remainder.strip()}' on connection {connid}")

    def _open_capture(self, header: Header, user: str):
        try:
            self.accumulator.open(
                header.argument, user, header.action == Action.PREPARE, header.connid
            )
        except ParserStateError as e:
            raise ParserStateError(str(e), self.line_number, self._line) from e

    def _flush(self):
        pending = self.accumulator.flush()
        if pending is not None:
            self._terminate(pending)

    def _terminate(self, pending: PendingStatement):
        logger.debug(f'Captured SQL: {pending.text}')
        try:
            stats = self.aggregator.require(pending.user)
        except ParserStateError as e:
            raise ParserStateError(str(e), self.line_number, self._line) from e

        verdict = self.statement_filter.classify(pending.text, pending.is_prepare, pending.user)
        if not verdict.counted:
            return

        stats.record_query(verdict.verb)
        if self.clustering is not None:
            self.clustering.assign(verdict.normalized, stats.templates, pending.user)


def analyze_log_file(
    file_path: str, config: Optional[AnalyzerConfig] = None
) -> QueryLogAnalyzer:
    """Analyze a general query log file"""
    analyzer = QueryLogAnalyzer(config)
    with open(file_path, 'r', encoding='utf-8', errors='replace') as f:
        analyzer.run(f)
    return analyzer
