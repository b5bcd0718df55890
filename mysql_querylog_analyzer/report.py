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

"""Text reports over the collected statistics."""

from typing import List

from .clustering import sort_templates
from .stats import Aggregator, UserStats
from .statement_filter import QUERY_VERBS


def format_coarse_line(stats: UserStats) -> str:
    """One line per user: totals followed by the non-zero verb counters"""
    line = (
        f'User {stats.user:<60} '
        f'({stats.querycount:>10} queries, {stats.conncount:>7} connections)'
    )
    counters = [
        f'{stats.verb_counts[verb]} {verb}s' for verb in QUERY_VERBS if stats.verb_counts[verb]
    ]
    if counters:
        line += ' ' + ', '.join(counters)
    return line


def format_fine_block(stats: UserStats) -> str:
    lines = [f'User {stats.user} ({stats.querycount} queries, {stats.conncount} connections)']
    for template in sort_templates(stats.templates):
        lines.append(f'{stats.templates[template]} occurrences:')
        lines.append(f'   {template}')
    return '\n'.join(lines)


def render_report(aggregator: Aggregator, coarse: bool = False) -> str:
    """Render the report, users with the most queries first.

    Users that never connected nor issued a query are left out.
    """
    users: List[UserStats] = [stats for stats in aggregator.sorted_users() if not stats.is_empty]
    if not users:
        return ''

    if coarse:
        return '\n'.join(format_coarse_line(stats) for stats in users) + '\n'
    return '\n\n\n\n'.join(format_fine_block(stats) for stats in users) + '\n'
