"""FastAPI application for QueryLens."""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from querylens.lib.config import Settings, get_settings
from querylens.lib.dependencies import build_services
from querylens.lib.distributed_tracing import generate_correlation_id, set_correlation_id
from querylens.lib.metrics import record_request_duration
from querylens.lib.structured_logger import log_event, log_request, set_log_level
from querylens.routers import router, ws_router


@asynccontextmanager
async def lifespan(app: FastAPI):
  """Manage application lifespan."""
  services = app.state.services
  log_event(
    'querylens.startup',
    context={
      'catalog_cache_ttl_seconds': services.settings.catalog_cache_ttl_seconds,
      'cors_allow_origins': services.settings.cors_allow_origins,
    },
  )
  yield
  log_event(
    'querylens.shutdown',
    context={
      'queries': len(services.query_events.list_query_ids()),
      'catalogs': services.registry.count(),
    },
  )


async def add_correlation_id(request: Request, call_next):
  """Inject correlation ID into request context.

  - Extracts X-Correlation-ID header or generates new UUID
  - Sets correlation ID in context for logging
  - Adds X-Correlation-ID to response headers
  - Logs request with performance metrics
  """
  correlation_id = request.headers.get('X-Correlation-ID') or generate_correlation_id()
  set_correlation_id(correlation_id)
  request.state.correlation_id = correlation_id

  start_time = time.time()
  response = await call_next(request)
  duration_seconds = time.time() - start_time

  response.headers['X-Correlation-ID'] = correlation_id

  # Skip health and metrics endpoints to reduce noise
  if request.url.path not in ['/health', '/metrics', '/api/health', '/api/metrics']:
    record_request_duration(
      endpoint=request.url.path,
      method=request.method,
      status=response.status_code,
      duration_seconds=duration_seconds,
    )
    log_request(
      endpoint=request.url.path,
      method=request.method,
      status_code=response.status_code,
      duration_ms=duration_seconds * 1000,
    )

  return response


def create_app(settings: Settings | None = None) -> FastAPI:
  """Build the API with its own registry, event store and publisher."""
  settings = settings or get_settings()
  set_log_level(settings.log_level)

  app = FastAPI(
    title='QueryLens API',
    description='Correlates Trino query events into operator trees and a discovered data catalog',
    version='0.1.0',
    lifespan=lifespan,
  )
  app.state.services = build_services(settings)

  app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
  )
  app.middleware('http')(add_correlation_id)

  @app.get('/health')
  async def health_root():
    """Health check endpoint at root level (for load balancers)."""
    return {'status': 'healthy'}

  # Add /api/health for consistency with API structure
  @app.get('/api/health')
  async def health_api():
    """Health check endpoint under /api prefix."""
    return {'status': 'healthy'}

  @app.get('/metrics')
  async def metrics_root():
    """Prometheus metrics endpoint at root level (for monitoring systems)."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

  @app.get('/api/metrics')
  async def metrics_api():
    """Prometheus metrics endpoint under /api prefix."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

  app.include_router(router, prefix='/api', tags=['api'])
  app.include_router(ws_router)

  return app


app = create_app()
