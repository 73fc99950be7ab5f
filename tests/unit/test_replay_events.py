"""Unit tests for the replay_events script."""

import json

from click.testing import CliRunner

from scripts.replay_events import cli
from tests.helpers import table_scan_plan, trino_message


def _write_lines(path, records):
    path.write_text('\n'.join(json.dumps(r) for r in records) + '\n')
    return path


def test_replays_trino_messages(tmp_path):
    events_file = _write_lines(tmp_path / 'events.jsonl', [
        trino_message(state='QUEUED', inputs=[{'catalogName': 'postgres_main', 'schema': 'public', 'table': 'orders'}]),
        trino_message(state='FINISHED', jsonPlan=table_scan_plan()),
        {'eventPayload': {}},
    ])

    result = CliRunner().invoke(cli, [str(events_file), '--query-id', '20251019_101500_00042_xk3fq'])

    assert result.exit_code == 0, result.output
    assert 'Replayed 2 events' in result.output
    assert 'postgres_main' in result.output
    assert 'TableScan' in result.output


def test_replays_decoded_events_and_skips_bad_lines(tmp_path):
    events_file = tmp_path / 'decoded.jsonl'
    events_file.write_text(
        json.dumps({'queryId': 'q1', 'eventType': 'CREATED', 'catalog': 'mongodb', 'schema': 'shop'}) + '\n'
        + 'not json\n'
        + '\n'
    )

    result = CliRunner().invoke(cli, [str(events_file), '--decoded'])

    assert result.exit_code == 0, result.output
    assert 'Replayed 1 events' in result.output
    assert '1 skipped' in result.output


def test_unknown_query_id_exits_1(tmp_path):
    events_file = _write_lines(tmp_path / 'events.jsonl', [trino_message()])

    result = CliRunner().invoke(cli, [str(events_file), '--query-id', 'missing'])

    assert result.exit_code == 1
