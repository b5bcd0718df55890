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

"""Command line entry point.

Usage:
  mysql-querylog-analyzer [--verbose] [--coarse] [--breakoff YYYY-MM-DD] [LOGFILE ...]

Reads the named logs in order, or standard input. The report goes to standard output,
diagnostics to standard error.
"""

import argparse
import fileinput
import logging
import sys
from typing import List, Optional

from .analyzer import QueryLogAnalyzer
from .config import AnalyzerConfig, parse_breakoff
from .errors import ParserStateError


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog='mysql-querylog-analyzer',
        description='Statistics over a MySQL 5.6 general query log: who connects, how many '
        'queries they issue and which queries.',
    )
    p.add_argument('--verbose', '-v', action='store_true', help='more diagnostics on stderr')
    p.add_argument(
        '--coarse',
        action='store_true',
        help='only count queries per user and verb instead of grouping them',
    )
    p.add_argument(
        '--breakoff',
        metavar='YYYY-MM-DD',
        help='stop reading at the first entry on or after this date',
    )
    p.add_argument('logfiles', nargs='*', help='log files to read (default: stdin)')
    return p


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(levelname)s: %(message)s',
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = AnalyzerConfig.from_env()
    except ValueError as e:
        parser.error(f'Invalid QUERYLOG_* setting: {e}')
    config.verbose = config.verbose or args.verbose
    config.coarse = config.coarse or args.coarse
    if args.breakoff:
        try:
            config.breakoff = parse_breakoff(args.breakoff)
        except ValueError as e:
            parser.error(str(e))

    configure_logging(config.verbose)
    if config.breakoff:
        logger.info(f'Breakoff is now {config.breakoff}')

    analyzer = QueryLogAnalyzer(config)
    try:
        with fileinput.input(
            files=args.logfiles or ('-',),
            openhook=fileinput.hook_encoded('utf-8', errors='replace'),
        ) as lines:
            analyzer.run(lines)
    except ParserStateError as e:
        logger.error(f'Parser state is inconsistent, giving up: {e}')
        return 2

    sys.stdout.write(analyzer.report())
    return 0


if __name__ == '__main__':
    sys.exit(main())
