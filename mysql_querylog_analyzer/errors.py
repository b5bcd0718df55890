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

"""Exceptions raised while analyzing a general query log."""


class QueryLogError(Exception):
    """Base class for analyzer errors."""


class ParserStateError(QueryLogError):
    """Internal consistency failure of the parser.

    Raised when the parser state contradicts itself (a capture opened while another one
    is still open, a statement attributed to a user without statistics). Bad input never
    raises this; it is reported and skipped instead.
    """

    def __init__(self, message: str, line_number: int = 0, line: str = ''):
        if line_number:
            message = f'{message} (line {line_number}: {line!r})'
        super().__init__(message)
        self.line_number = line_number
        self.line = line


class MalformedLineError(QueryLogError, ValueError):
    """A line has the shape of a header but its fields are unusable."""
