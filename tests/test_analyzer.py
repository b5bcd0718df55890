import logging
import pytest
from datetime import date, datetime
from mysql_querylog_analyzer.analyzer import QueryLogAnalyzer, analyze_log_file
from mysql_querylog_analyzer.config import AnalyzerConfig
from mysql_querylog_analyzer.errors import ParserStateError


def run(analyzer, text):
    """Feed a log given as text."""
    return analyzer.run(text.splitlines(keepends=True))


class TestSessions:
    """Test connection tracking through the log."""

    def test_connect_then_quit(self, coarse_analyzer):
        """After Connect and Quit the id is gone and the user has one connection."""
        run(
            coarse_analyzer,
            '171215 10:00:00\t    5 Connect\tuser1@host on db1\n'
            '171215 10:00:01\t    5 Quit\t\n',
        )

        assert 5 not in coarse_analyzer.registry
        assert coarse_analyzer.aggregator.get('user1@host').conncount == 1

    def test_server_restart_reuses_id(self, coarse_analyzer):
        """A second Connect on a live id replaces the stale session."""
        run(
            coarse_analyzer,
            '171215 10:00:00\t    5 Connect\tuserA@host on db1\n'
            '171216 08:00:00\t    5 Connect\tuserB@host on db1\n'
            '\t\t    5 Query\tSELECT 1\n',
        )

        assert coarse_analyzer.registry.lookup(5).user == 'userB@host'
        assert coarse_analyzer.aggregator.get('userB@host').querycount == 1
        assert coarse_analyzer.aggregator.get('userA@host').querycount == 0

    def test_statements_attributed_to_their_connection(self, coarse_analyzer):
        """Interleaved connections keep their own users."""
        run(
            coarse_analyzer,
            '171215 10:00:00\t    5 Connect\talice@host on db1\n'
            '171215 10:00:00\t    6 Connect\tbob@host on db1\n'
            '\t\t    5 Query\tSELECT 1\n'
            '\t\t    6 Query\tDELETE FROM t\n'
            '\t\t    5 Query\tUPDATE t SET a = 1\n',
        )

        alice = coarse_analyzer.aggregator.get('alice@host')
        bob = coarse_analyzer.aggregator.get('bob@host')
        assert (alice.querycount, alice.verb_counts['select'], alice.verb_counts['update']) == (
            2,
            1,
            1,
        )
        assert (bob.querycount, bob.verb_counts['delete']) == (1, 1)

    def test_init_db_switches_database(self, coarse_analyzer):
        run(
            coarse_analyzer,
            '171215 10:00:00\t    5 Connect\tuser1@host on db1\n\t\t    5 Init DB\tdb2\n',
        )

        assert coarse_analyzer.registry.lookup(5).db == 'db2'

    def test_root_connection_is_implicit(self, coarse_analyzer):
        """Connection 1 never connects in the log but issues statements."""
        run(coarse_analyzer, '171215 10:00:00\t    1 Query\tSELECT 1\n')

        assert coarse_analyzer.aggregator.get('root').querycount == 1

    def test_unknown_connection_is_dropped(self, coarse_analyzer, caplog):
        run(coarse_analyzer, '171215 10:00:00\t   99 Query\tSELECT 1\n')

        assert 'Unknown connection id 99' in caplog.text
        assert all(stats.querycount == 0 for stats in coarse_analyzer.aggregator)

    def test_access_denied_is_reported(self, coarse_analyzer, caplog):
        run(
            coarse_analyzer,
            "171215 10:00:00\t    7 Connect\tAccess denied for user 'bob'@'localhost' "
            '(using password: YES)\n',
        )

        assert "Failed connection attempt by 'bob'@'localhost'" in caplog.text
        assert 7 not in coarse_analyzer.registry

    def test_unknown_action_is_reported(self, coarse_analyzer, caplog):
        run(coarse_analyzer, '171215 10:00:00\t    1 Binlog Dump\t\n')

        assert "Unknown: 'Binlog Dump' on connection 1" in caplog.text


class TestStatements:
    """Test capture and counting of statements."""

    def test_uninteresting_statement_is_not_counted(self, coarse_analyzer):
        run(
            coarse_analyzer,
            '171215 10:00:00\t    5 Connect\tuser1@host on db1\n'
            '\t\t    5 Query\tSHOW TABLES\n'
            '171215 10:00:01\t    5 Quit\t\n',
        )

        assert coarse_analyzer.aggregator.get('user1@host').querycount == 0

    def test_multi_line_statement(self, analyzer):
        """Fragments up to the next header make one statement."""
        run(
            analyzer,
            '171215 10:00:00\t    5 Connect\tuser1@host on db1\n'
            '\t\t    5 Query\tSELECT a,\n'
            '  b\n'
            '\n'
            '  FROM t\n'
            '\t\t    5 Quit\t\n',
        )

        assert analyzer.aggregator.get('user1@host').templates == {'SELECT A, B FROM T': 1}

    def test_statement_at_end_of_input_is_counted(self, coarse_analyzer):
        run(
            coarse_analyzer,
            '171215 10:00:00\t    5 Connect\tuser1@host on db1\n\t\t    5 Query\tSELECT 1\n',
        )

        assert coarse_analyzer.aggregator.get('user1@host').querycount == 1

    def test_prepare_then_execute_counts_once(self, coarse_analyzer, caplog):
        run(
            coarse_analyzer,
            '171215 10:00:00\t    5 Connect\tapp@host on db1\n'
            '\t\t    5 Prepare\tSELECT * FROM t WHERE id = ?\n'
            '\t\t    5 Execute\tSELECT * FROM t WHERE id = 3\n'
            '\t\t    5 Close stmt\t\n',
        )

        assert coarse_analyzer.aggregator.get('app@host').querycount == 1
        assert 'Prepared statement by app@host' in caplog.text

    def test_stray_fragment_is_reported(self, coarse_analyzer, caplog):
        run(coarse_analyzer, '  FROM nowhere\n')

        assert "Could not process this line (at line start): '  FROM nowhere'" in caplog.text

    def test_blank_lines_outside_statements_are_skipped(self, coarse_analyzer, caplog):
        run(coarse_analyzer, '\n\n')

        assert caplog.text == ''

    def test_invalid_timestamp_keeps_the_clock(self, coarse_analyzer, caplog):
        """The header is reported but still processed; the time is not updated."""
        run(
            coarse_analyzer,
            '171215 10:00:00\t    1 Quit\t\n'
            '171315 10:00:00\t    5 Connect\tuser1@host on db1\n'
            '\t\t    5 Query\tSELECT 1\n',
        )

        assert 'Invalid timestamp in header' in caplog.text
        assert coarse_analyzer.current_time == datetime(2017, 12, 15, 10, 0, 0)
        assert coarse_analyzer.aggregator.get('user1@host').querycount == 1

    def test_invalid_timestamp_header_ends_previous_statement(self, coarse_analyzer):
        """Fragments after the bad header belong to its statement, not the previous one."""
        run(
            coarse_analyzer,
            '171215 10:00:00\t    5 Connect\tuser1@host on db1\n'
            '\t\t    5 Query\tSELECT a\n'
            '171315 10:00:00\t    5 Query\tDELETE FROM t\n'
            '  WHERE x = 1\n',
        )

        stats = coarse_analyzer.aggregator.get('user1@host')
        assert stats.querycount == 2
        assert stats.verb_counts['select'] == 1
        assert stats.verb_counts['delete'] == 1

    def test_invalid_timestamp_header_keeps_fragments_apart(self, analyzer):
        run(
            analyzer,
            '171215 10:00:00\t    5 Connect\tuser1@host on db1\n'
            '\t\t    5 Query\tSELECT a\n'
            '171315 10:00:00\t    5 Query\tDELETE FROM t\n'
            '  WHERE x = 1\n',
        )

        assert analyzer.aggregator.get('user1@host').templates == {
            'SELECT A': 1,
            'DELETE FROM T WHERE X = 1': 1,
        }

    def test_same_statement_clusters_into_one_template(self, analyzer):
        lines = ['171215 10:00:00\t    5 Connect\tuser1@host on db1\n']
        lines += [f'\t\t    5 Query\tSELECT * FROM orders WHERE id = {n}\n' for n in range(4)]
        analyzer.run(lines)

        assert analyzer.aggregator.get('user1@host').templates == {
            'SELECT * FROM ORDERS WHERE ID = 0': 4
        }

    def test_coarse_mode_does_not_cluster(self, coarse_analyzer):
        run(
            coarse_analyzer,
            '171215 10:00:00\t    5 Connect\tuser1@host on db1\n\t\t    5 Query\tSELECT 1\n',
        )

        assert coarse_analyzer.clustering is None
        assert coarse_analyzer.aggregator.get('user1@host').templates == {}

    def test_timestamp_tracked(self, coarse_analyzer):
        run(coarse_analyzer, '171215 10:00:07\t    1 Quit\t\n')

        assert coarse_analyzer.current_time == datetime(2017, 12, 15, 10, 0, 7)


class TestBreakoff:
    """Test the early stop at a given date."""

    LOG = (
        '171231 23:59:58\t    5 Connect\tuser1@host on db1\n'
        '171231 23:59:59\t    5 Query\tSELECT 1\n'
        '171231 23:59:59\t    5 Query\tSELECT 2\n'
        '180101 00:00:00\t    5 Query\tSELECT 3\n'
        '\t\t    5 Query\tSELECT 4\n'
        '180102 00:00:00\t    5 Query\tSELECT 5\n'
    )

    def test_nothing_counted_on_or_after_breakoff(self):
        """The statement still being captured at the breakoff is dropped too."""
        analyzer = QueryLogAnalyzer(AnalyzerConfig(coarse=True, breakoff=date(2018, 1, 1)))

        run(analyzer, self.LOG)

        assert analyzer.halted
        assert analyzer.aggregator.get('user1@host').querycount == 1
        assert analyzer.current_time == datetime(2017, 12, 31, 23, 59, 59)

    def test_halted_analyzer_ignores_input(self):
        analyzer = QueryLogAnalyzer(AnalyzerConfig(coarse=True, breakoff=date(2018, 1, 1)))
        run(analyzer, self.LOG)

        assert analyzer.process_line('171231 23:59:59\t    1 Query\tSELECT 1\n') is False

    def test_without_breakoff_everything_counts(self, coarse_analyzer):
        run(coarse_analyzer, self.LOG)

        assert coarse_analyzer.aggregator.get('user1@host').querycount == 5


def test_inconsistent_state_is_fatal(coarse_analyzer):
    """A capture for a user without statistics stops the run."""
    coarse_analyzer.accumulator.open('SELECT 1', 'ghost@host')

    with pytest.raises(ParserStateError, match='ghost@host') as excinfo:
        coarse_analyzer.process_line('171215 10:00:00\t    1 Quit\t\n')

    assert excinfo.value.line_number == 1


def test_coarse_report_end_to_end(coarse_analyzer):
    """One connection with one SELECT."""
    run(
        coarse_analyzer,
        '171215 10:00:00\t    5 Connect\tuser1@host on db1\n'
        '171215 10:00:00\t    5 Query\tSELECT 1\n'
        '171215 10:00:01\t    5 Quit\t\n',
    )

    report = coarse_analyzer.report()

    assert report == (
        'User ' + 'user1@host'.ljust(60) + ' (         1 queries,       1 connections) 1 selects\n'
    )


def test_sample_log_fine_report(analyzer, sample_lines):
    run(analyzer, ''.join(sample_lines))

    assert analyzer.report() == (
        'User app@10.0.0.7 (3 queries, 1 connections)\n'
        '2 occurrences:\n'
        '   SELECT NAME, PRICE FROM PRODUCTS WHERE ID = 17\n'
        '1 occurrences:\n'
        '   UPDATE PRODUCTS SET PRICE = 3 WHERE ID = 17\n'
        '\n\n\n'
        'User user1@host (1 queries, 1 connections)\n'
        '1 occurrences:\n'
        '   SELECT 1\n'
    )


def test_analyze_log_file(sample_log_file):
    analyzer = analyze_log_file(str(sample_log_file), AnalyzerConfig(coarse=True))

    app = analyzer.aggregator.get('app@10.0.0.7')
    assert (app.querycount, app.verb_counts['select'], app.verb_counts['update']) == (3, 2, 1)
    assert len(analyzer.registry) == 1


def test_progress_is_logged(caplog):
    """The current position is logged at most once per interval."""
    caplog.set_level(logging.INFO)
    ticks = iter([0.0, 10.0, 11.0])
    analyzer = QueryLogAnalyzer(AnalyzerConfig(coarse=True), clock=lambda: next(ticks))

    analyzer.process_line('171215 10:00:00\t    1 Quit\t\n')
    analyzer.process_line('171215 10:00:01\t    1 Quit\t\n')

    assert caplog.text.count('Now at:') == 1
    assert 'Now at: 2017-12-15 10:00:00' in caplog.text
