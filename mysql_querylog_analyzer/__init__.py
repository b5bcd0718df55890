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

"""MySQL 5.6 general query log analyzer."""

from .analyzer import QueryLogAnalyzer, analyze_log_file
from .config import AnalyzerConfig, parse_breakoff
from .errors import MalformedLineError, ParserStateError, QueryLogError


__version__ = '0.1.0'

__all__ = [
    'AnalyzerConfig',
    'MalformedLineError',
    'ParserStateError',
    'QueryLogAnalyzer',
    'QueryLogError',
    'analyze_log_file',
    'parse_breakoff',
]
