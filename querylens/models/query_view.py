"""Query View Pydantic Model.

The consolidated, read-time projection of every event seen for one query.
"""

from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from querylens.models.operator_node import OperatorNode
from querylens.models.query_event import QueryEvent


class QueryView(BaseModel):
    """Derived view of one query aggregate.

    Attributes:
        query_id: Query identifier
        query: SQL text from the latest event
        user: User from the latest event
        state: State from the latest event
        start_time: Earliest event timestamp
        end_time: Latest event timestamp
        total_execution_time: Execution time reported by the latest event
        error_message: Error message from the latest event
        root: Root of the reconstructed operator tree
        events: Events in timestamp order (ties in arrival order)
    """

    query_id: str = Field(..., min_length=1, description='Query identifier')
    query: str | None = Field(default=None, description='SQL text')
    user: str | None = Field(default=None, description='Submitting user')
    state: str | None = Field(default=None, description='Current query state')
    start_time: datetime | None = Field(default=None, description='Earliest event time')
    end_time: datetime | None = Field(default=None, description='Latest event time')
    total_execution_time: int | None = Field(default=None, description='Execution time (ms)')
    error_message: str | None = Field(default=None, description='Latest error message')
    root: OperatorNode | None = Field(default=None, description='Operator tree root')
    events: list[QueryEvent] = Field(default_factory=list, description='Ordered events')

    model_config = {
        'alias_generator': to_camel,
        'populate_by_name': True,
        'json_schema_extra': {
            'example': {
                'queryId': '20251019_101500_00042_xk3fq',
                'query': 'SELECT * FROM postgres.public.customers',
                'user': 'analyst',
                'state': 'FINISHED',
                'startTime': '2025-10-19T10:15:00Z',
                'endTime': '2025-10-19T10:15:02Z',
                'totalExecutionTime': 1830,
                'errorMessage': None,
                'root': {'id': '0', 'operatorType': 'TableScan', 'nodeType': 'OPERATOR', 'children': []},
                'events': []
            }
        }
    }
