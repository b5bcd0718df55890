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

"""Literal masking rules applied to statements before they are clustered.

Masking is approximate and tuned to the data at hand: replacing literal values with a
placeholder lets statements that differ only in their constants fall into the same
template. The column-bound rules take the column names as parameters.
"""

import re
from typing import Any, Dict, Iterable, List, Optional

from .config import AnalyzerConfig


# Rules are applied in this order. Patterns with parameters are str.format templates.
mangling_rules = {
    'hex_blobs': {
        'name': 'Hex Blobs',
        'description': 'Quoted hexadecimal strings of ten digits or more',
        'pattern': r"'[0-9A-F]{10,}'",
        'replacement': "'~'",
        'parameters': [],
    },
    'password_hashes': {
        'name': 'Password Hashes',
        'description': "MySQL native password hashes such as '*94BDCEBE19083CE2'",
        'pattern': r"'\*[0-9A-F]+'",
        'replacement': "'~'",
        'parameters': [],
    },
    'dates': {
        'name': 'Dates',
        'description': 'Quoted YYYY-M-D dates',
        'pattern': r"'\d{4}-\d{1,2}-\d{1,2}'",
        'replacement': "'~'",
        'parameters': [],
    },
    'quoted_integers': {
        'name': 'Quoted Integers',
        'description': 'Strings that look like integers',
        'pattern': r"'\d+'",
        'replacement': "'~'",
        'parameters': [],
    },
    'datetimes': {
        'name': 'Datetimes',
        'description': 'Quoted YYYY-MM-DD HH:MM:SS datetimes',
        'pattern': r"'\d\d\d\d-\d\d-\d\d \d\d:\d\d:\d\d'",
        'replacement': "'~'",
        'parameters': [],
    },
    'month_years': {
        'name': 'Month and Year',
        'description': 'Quoted MM/YYYY dates',
        'pattern': r"'\d\d/\d\d\d\d'",
        'replacement': "'~'",
        'parameters': [],
    },
    'integer_assignments': {
        'name': 'Integer Assignments',
        'description': 'Integers compared with or assigned to the given columns',
        'pattern': r'\b({columns})\s*=\s*\d+',
        'replacement': r'\1=~',
        'parameters': ['columns'],
    },
    'id_lists': {
        'name': 'Id Lists',
        'description': 'Integer lists tested with IN against the given columns',
        'pattern': r'\b({columns})\s+IN\s+\(\s*\d+(?:\s*,\s*\d+)*\s*\)',
        'replacement': r'\1 IN (~)',
        'parameters': ['columns'],
    },
    'ipv4_addresses': {
        'name': 'IPv4 Addresses',
        'description': 'Quoted dotted-quad addresses',
        'pattern': r"'\d+\.\d+\.\d+\.\d+'",
        'replacement': "'~IPv4~'",
        'parameters': [],
    },
    'quoted_integer_assignments': {
        'name': 'Quoted Integer Assignments',
        'description': 'Integer strings compared with or assigned to the given columns',
        'pattern': r"\b({columns})\s*=\s*'\d+'",
        'replacement': r"\1='~'",
        'parameters': ['columns'],
    },
    'date_comparisons': {
        'name': 'Date Comparisons',
        'description': 'Any quoted value compared with the given date columns',
        'pattern': r"\b({columns})\s*(<>|>=|<=|=|<|>)\s*'[^~']+'",
        'replacement': r"\1\2'~'",
        'parameters': ['columns'],
    },
}


def get_mangling_rule(rule_name: str, **params) -> Dict[str, Any]:
    """Get a mangling rule with parameters substituted and its pattern compiled."""
    if rule_name not in mangling_rules:
        raise ValueError(f"Mangling rule '{rule_name}' not found")

    rule_info = mangling_rules[rule_name].copy()

    missing = [name for name in rule_info['parameters'] if name not in params]
    if missing:
        raise ValueError(f"Mangling rule '{rule_name}' requires parameters: {', '.join(missing)}")

    # Substitute parameters in the pattern
    if params and rule_info['parameters']:
        rule_info['pattern'] = rule_info['pattern'].format(**params)

    rule_info['regex'] = re.compile(rule_info['pattern'])
    return rule_info


def column_alternation(columns: Iterable[str]) -> Optional[str]:
    """Regex alternation of column names, None when there are none"""
    names = [re.escape(column.strip().upper()) for column in columns if column.strip()]
    if not names:
        return None
    return '|'.join(names)


def build_mangling_rules(config: Optional[AnalyzerConfig] = None) -> List[Dict[str, Any]]:
    """Compile the rule list for a run, binding column rules to the configured columns.

    Column-bound rules whose column list is empty are left out.
    """
    config = config or AnalyzerConfig()
    columns_by_rule = {
        'integer_assignments': config.integer_columns,
        'id_lists': config.id_list_columns,
        'quoted_integer_assignments': config.quoted_integer_columns,
        'date_comparisons': config.date_columns,
    }

    rules = []
    for rule_name in mangling_rules:
        if rule_name not in columns_by_rule:
            rules.append(get_mangling_rule(rule_name))
            continue
        columns = column_alternation(columns_by_rule[rule_name])
        if columns:
            rules.append(get_mangling_rule(rule_name, columns=columns))
    return rules


class Mangler:
    """Applies each rule repeatedly until it no longer changes the text."""

    def __init__(self, rules: Optional[List[Dict[str, Any]]] = None):
        self.rules = build_mangling_rules() if rules is None else rules

    def mangle(self, normalized: str) -> str:
        mangled = normalized
        for rule in self.rules:
            while True:
                replaced = rule['regex'].sub(rule['replacement'], mangled)
                if replaced == mangled:
                    break
                mangled = replaced
        return mangled
