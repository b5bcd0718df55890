"""Test configuration and shared fixtures for the query log analyzer tests."""
import os
import sys

import pytest


# Add the project root to Python path so tests can import local modules
project_root = os.path.dirname(os.path.dirname(__file__))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from mysql_querylog_analyzer.analyzer import QueryLogAnalyzer  # noqa: E402
from mysql_querylog_analyzer.config import AnalyzerConfig  # noqa: E402


# A MySQL 5.6 general log as the server writes it, tabs included
SAMPLE_LOG = """\
/usr/sbin/mysqld, Version: 5.6.38-log (MySQL Community Server (GPL)). started with:
Tcp port: 3306  Unix socket: /var/lib/mysql/mysql.sock
Time                 Id Command    Argument
171215 10:00:00\t    5 Connect\tuser1@host on db1
\t\t    5 Query\tSET NAMES utf8
171215 10:00:00\t    5 Query\tSELECT 1
171215 10:00:01\t    5 Quit\t
171215 10:00:02\t    6 Connect\tapp@10.0.0.7 on shop
\t\t    6 Init DB\tshop
\t\t    6 Query\tSELECT name,
  price
  FROM products
  WHERE id = 17
\t\t    6 Query\tselect name, price from products where id = 18
\t\t    6 Query\tUPDATE products SET price = 3 WHERE id = 17
171215 10:00:03\t    6 Quit\t
"""


@pytest.fixture(autouse=True)
def clean_querylog_env(monkeypatch):
    """Keep QUERYLOG_* settings of the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith('QUERYLOG_'):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def analyzer():
    """Fine-grained analyzer with default settings."""
    return QueryLogAnalyzer(AnalyzerConfig())


@pytest.fixture
def coarse_analyzer():
    """Analyzer that only counts."""
    return QueryLogAnalyzer(AnalyzerConfig(coarse=True))


@pytest.fixture
def sample_lines():
    """SAMPLE_LOG as read from a file, line terminators included."""
    return SAMPLE_LOG.splitlines(keepends=True)


@pytest.fixture
def sample_log_file(tmp_path):
    """SAMPLE_LOG written to a file."""
    path = tmp_path / 'general.log'
    path.write_text(SAMPLE_LOG, encoding='utf-8')
    return path
