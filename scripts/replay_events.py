"""Replay recorded query events through the correlation core.

Reads a JSON-lines file and feeds every line to an in-process
QueryEventService, then prints the resulting queries and catalogs.

Each line is a raw Trino event-listener message by default, or an
already-decoded QueryEvent with --decoded.

Usage:
  python scripts/replay_events.py events.jsonl
  python scripts/replay_events.py --decoded --query-id 20251019_101500_00042_xk3fq events.jsonl
"""

import json
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from querylens.lib.config import Settings
from querylens.lib.dependencies import build_services
from querylens.models.query_event import QueryEvent
from querylens.models.trino_message import TrinoEventMessage

# Load environment variables from .env.local
env_path = Path(__file__).parent.parent / '.env.local'
console = Console()
if env_path.exists():
  load_dotenv(env_path)


def _decode_line(line: str, decoded: bool) -> QueryEvent | None:
  raw = json.loads(line)
  if decoded:
    return QueryEvent.model_validate(raw)
  return TrinoEventMessage.model_validate(raw).to_query_event()


def _print_queries(views) -> None:
  table = Table(title='Queries')
  table.add_column('Query ID', style='cyan')
  table.add_column('State')
  table.add_column('User')
  table.add_column('Events', justify='right')
  table.add_column('Root Operator')
  for view in views:
    table.add_row(
      view.query_id,
      view.state or '-',
      view.user or '-',
      str(len(view.events)),
      (view.root.operator_type or view.root.node_type or '-') if view.root else '-',
    )
  console.print(table)


def _print_catalogs(catalogs) -> None:
  table = Table(title='Discovered Catalogs')
  table.add_column('Catalog', style='cyan')
  table.add_column('Kind')
  table.add_column('Type')
  table.add_column('Queries', justify='right')
  table.add_column('Contents')
  for catalog in catalogs:
    if catalog.collections:
      contents = ', '.join(c.name for c in catalog.collections)
    else:
      contents = ', '.join(f'{s.name} ({len(s.tables)} tables)' for s in catalog.schemas)
    table.add_row(catalog.name, catalog.kind.value, catalog.type, str(catalog.total_queries), contents or '-')
  console.print(table)


def _print_tree(view) -> None:
  if view.root is None:
    console.print(f'[yellow]Query {view.query_id} has no operator tree[/yellow]')
    return
  console.print(f'\n[bold]Operator tree for {view.query_id}[/bold]')
  stack = [(view.root, 0)]
  while stack:
    node, depth = stack.pop()
    console.print(f'{"  " * depth}- {node.operator_type or node.node_type} [dim]({node.id})[/dim]')
    stack.extend((child, depth + 1) for child in reversed(node.children))


@click.command()
@click.argument('events_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--decoded', is_flag=True, help='Lines are decoded QueryEvent JSON instead of Trino messages')
@click.option('--query-id', default=None, help='Also print the operator tree of this query')
def cli(events_file: Path, decoded: bool, query_id: str | None):
  """Replay a JSON-lines file of query events and summarize the result."""
  services = build_services(Settings(catalog_cache_ttl_seconds=0))
  service = services.query_events

  ingested = 0
  skipped = 0
  with events_file.open() as f:
    for line_number, line in enumerate(f, start=1):
      line = line.strip()
      if not line:
        continue
      try:
        event = _decode_line(line, decoded)
      except (json.JSONDecodeError, ValidationError) as e:
        console.print(f'[yellow]Line {line_number}: skipped ({type(e).__name__})[/yellow]')
        skipped += 1
        continue
      if event is None or not event.query_id:
        skipped += 1
        continue
      service.ingest(event)
      ingested += 1

  console.print(f'[green]✓ Replayed {ingested} events[/green] ([dim]{skipped} skipped[/dim])')
  _print_queries(service.list_views())
  _print_catalogs(services.catalogs.list_catalogs())

  if query_id is not None:
    view = service.derive_view(query_id)
    if view is None:
      console.print(f'[red]Error: query {query_id} not found[/red]')
      sys.exit(1)
    _print_tree(view)


if __name__ == '__main__':
  cli()
