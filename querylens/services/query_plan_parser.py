"""Query Plan Parser

Rebuilds a query's operator tree, either from the engine's fragment-keyed
JSON plan or, when no event carries one, from the stage and operator
statistics of the events themselves.
"""

import json
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from pydantic import ValidationError

from querylens.lib.errors import MalformedPlanError
from querylens.lib.metrics import record_plan_parse_failure, record_tree_build
from querylens.lib.structured_logger import StructuredLogger
from querylens.models.operator_node import OperatorNode
from querylens.models.plan import PlanNode
from querylens.models.query_event import QueryEvent

logger = StructuredLogger(__name__)

ROOT_FRAGMENT_ID = '0'
NODE_TYPE_OPERATOR = 'OPERATOR'
NODE_TYPE_STAGE = 'STAGE'
UNKNOWN_OPERATOR = 'UNKNOWN'

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_PLAN_EXCERPT_LENGTH = 200
_NUMERIC_ID = re.compile(r'[0-9]+')


def order_events(events: Iterable[QueryEvent]) -> list[QueryEvent]:
    """Events by ascending timestamp; ties keep arrival order.

    Returns a new list, the input is left untouched.
    """
    return sorted(events, key=lambda event: event.timestamp or _EPOCH)


def fragment_order(fragment_ids: Iterable[str]) -> list[str]:
    """Fragment ids with '0' first, then numeric ids by value, then the rest lexicographically."""
    ids = list(fragment_ids)
    numeric = sorted((i for i in ids if _NUMERIC_ID.fullmatch(i)), key=int)
    other = sorted(i for i in ids if not _NUMERIC_ID.fullmatch(i))
    ordered = numeric + other
    if ROOT_FRAGMENT_ID in ordered:
        ordered.remove(ROOT_FRAGMENT_ID)
        ordered.insert(0, ROOT_FRAGMENT_ID)
    return ordered


class QueryPlanParser:
    """Converts JSON plans and event statistics into OperatorNode trees."""

    def parse(self, json_plan: str) -> OperatorNode:
        """Parse a fragment-keyed JSON plan into the root fragment's tree.

        Args:
            json_plan: Plan text such as '{"0": {...}, "1": {...}}'

        Returns:
            Root OperatorNode of the selected fragment

        Raises:
            MalformedPlanError: If the text is not JSON, not an object of
                plan nodes, has no fragments, or nests too deeply
        """
        fragments = self._load_fragments(json_plan)
        root_id = fragment_order(fragments.keys())[0]
        try:
            return self._convert(fragments[root_id], root_id, parent_id=None)
        except RecursionError as e:
            raise MalformedPlanError(
                f'Fragment {root_id} is nested too deeply',
                plan_excerpt=json_plan[:_PLAN_EXCERPT_LENGTH],
            ) from e

    def enrich(self, root: OperatorNode, event: QueryEvent) -> OperatorNode:
        """Stamp query id, state and source system from `event` on every node."""
        for node in root.walk():
            node.query_id = event.query_id
            node.state = event.state
            node.source_system = event.catalog
        return root

    def build_legacy(self, events: list[QueryEvent]) -> OperatorNode | None:
        """Best-effort tree from event statistics, for queries without a JSON plan.

        One node per distinct (query id, event type, timestamp); stage stats
        turn a node into a STAGE and `operator_stats['children']` expands into
        operator children. The first node built is the root.

        Args:
            events: Events in timestamp order

        Returns:
            Root node, or None when there are no events
        """
        nodes: dict[str, OperatorNode] = {}
        root = None

        for event in events:
            node_id = f'{event.query_id}-{event.event_type}-{_epoch_millis(event.timestamp)}'
            node = nodes.get(node_id)
            if node is None:
                node = OperatorNode(
                    id=node_id,
                    query_id=event.query_id,
                    state=event.state,
                    execution_time=event.execution_time,
                    cpu_time=event.cpu_time_value,
                    wall_time=event.wall_time_value,
                    memory_bytes=event.peak_memory_bytes,
                    input_rows=event.total_rows,
                    input_bytes=event.total_bytes,
                    error_message=event.error_message,
                    source_system=event.catalog,
                    metadata=dict(event.metadata) if event.metadata is not None else None,
                )
                nodes[node_id] = node

            if event.stage_stats is not None:
                node.operator_type = _operator_type(event.stage_stats)
                node.node_type = NODE_TYPE_STAGE

            if event.operator_stats is not None:
                self._expand_operator_children(node, event.operator_stats)

            if root is None:
                root = node

        return root

    def build_tree(self, events: list[QueryEvent]) -> OperatorNode | None:
        """Pick the tree for a query.

        The first event, in arrival order, whose JSON plan parses wins. A plan
        that fails to parse is logged and the next one is tried. Without any
        usable plan the legacy tree is built from the timestamp-ordered events.

        Args:
            events: The query's events in arrival order
        """
        for event in events:
            if not event.has_json_plan:
                continue
            try:
                root = self.parse(event.json_plan)
            except MalformedPlanError as e:
                record_plan_parse_failure()
                logger.warning(
                    f'Failed to parse JSON plan: {e.message}',
                    event_type=event.event_type,
                    plan_excerpt=e.plan_excerpt,
                )
                continue
            record_tree_build('json')
            logger.debug(f'Built tree from JSON plan with root operator {root.operator_type}')
            return self.enrich(root, event)

        record_tree_build('legacy')
        return self.build_legacy(order_events(events))

    def extract_operator_list(self, json_plan: str | None) -> list[str]:
        """Flat depth-first operator names over all fragments.

        Fragments are visited in root-selection order. Blank or malformed
        plans yield an empty list.
        """
        if not json_plan or not json_plan.strip():
            return []
        try:
            fragments = self._load_fragments(json_plan)
        except MalformedPlanError as e:
            logger.warning(f'Cannot extract operators: {e.message}')
            return []

        operators: list[str] = []
        for fragment_id in fragment_order(fragments.keys()):
            stack = [fragments[fragment_id]]
            while stack:
                node = stack.pop()
                if node.name is not None:
                    operators.append(node.name)
                stack.extend(reversed(node.children or []))
        return operators

    # ------------------------------------------------------------------

    @staticmethod
    def _load_fragments(json_plan: str) -> dict[str, PlanNode]:
        excerpt = json_plan[:_PLAN_EXCERPT_LENGTH] if json_plan else json_plan
        if not json_plan or not json_plan.strip():
            raise MalformedPlanError('JSON plan is empty', plan_excerpt=excerpt)
        try:
            # NaN and Infinity stay literal strings, as the engine sent them
            raw = json.loads(json_plan, parse_constant=lambda constant: constant)
        except (ValueError, RecursionError) as e:
            reason = e.msg if isinstance(e, json.JSONDecodeError) else str(e)
            raise MalformedPlanError(f'JSON plan is not valid JSON: {reason}', plan_excerpt=excerpt) from e

        if not isinstance(raw, dict):
            raise MalformedPlanError('JSON plan must be an object keyed by fragment id', plan_excerpt=excerpt)
        if not raw:
            raise MalformedPlanError('JSON plan has no fragments', plan_excerpt=excerpt)

        fragments: dict[str, PlanNode] = {}
        for fragment_id, fragment in raw.items():
            if not isinstance(fragment, dict):
                raise MalformedPlanError(f'Fragment {fragment_id} is not a plan node', plan_excerpt=excerpt)
            try:
                fragments[fragment_id] = PlanNode.model_validate(fragment)
            except (ValidationError, RecursionError) as e:
                raise MalformedPlanError(f'Fragment {fragment_id} is not a plan node: {e}', plan_excerpt=excerpt) from e
        return fragments

    def _convert(self, plan_node: PlanNode, fragment_id: str, parent_id: str | None) -> OperatorNode:
        metadata: dict[str, Any] = {'fragmentId': fragment_id}

        if plan_node.descriptor:
            metadata['descriptor'] = plan_node.descriptor
            if plan_node.name == 'TableScan' and 'table' in plan_node.descriptor:
                metadata['table'] = str(plan_node.descriptor['table'])

        if plan_node.outputs:
            metadata['outputs'] = [{'name': o.name, 'type': o.type} for o in plan_node.outputs]

        if plan_node.details:
            metadata['details'] = list(plan_node.details)

        if plan_node.estimates:
            metadata['estimates'] = plan_node.estimates[0].to_metadata()

        node = OperatorNode(
            id=plan_node.id,
            operator_type=plan_node.name,
            node_type=NODE_TYPE_OPERATOR,
            metadata=metadata,
            parent_id=parent_id,
        )
        node.children = [
            self._convert(child, fragment_id, parent_id=plan_node.id)
            for child in plan_node.children or []
        ]
        return node

    def _expand_operator_children(self, parent: OperatorNode, operator_stats: dict[str, Any]) -> None:
        children = operator_stats.get('children')
        if not isinstance(children, list):
            return
        for child_stats in children:
            if not isinstance(child_stats, dict):
                continue
            child = OperatorNode(
                id=f'{parent.id}-child-{len(parent.children)}',
                query_id=parent.query_id,
                parent_id=parent.id,
                operator_type=_operator_type(child_stats),
                node_type=NODE_TYPE_OPERATOR,
                metadata=dict(child_stats),
            )
            parent.children.append(child)
            self._expand_operator_children(child, child_stats)


def _operator_type(stats: dict[str, Any]) -> str:
    value = stats.get('operatorType')
    return str(value) if value is not None else UNKNOWN_OPERATOR


def _epoch_millis(timestamp: datetime | None) -> int:
    if timestamp is None:
        return 0
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return (timestamp - _EPOCH) // timedelta(milliseconds=1)
