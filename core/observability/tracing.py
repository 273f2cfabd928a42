# core/observability/tracing.py

import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

logger = logging.getLogger(__name__)


def setup_tracing(service_name: str = "fieldsync", endpoint: str = "localhost:4317", environment: str = "development"):
  """
  Sets up OpenTelemetry tracing for a worker process.

  Args:
    service_name: The name of the service to be used in traces.
    endpoint: The endpoint for the OTLP collector (e.g., "localhost:4317").
    environment: Deployment environment recorded on every span.
  """
  logger.info(f"Setting up tracing for service: {service_name} -> {endpoint}")

  resource = Resource.create({
      "service.name": service_name,
      "environment": environment,
  })

  tracer_provider = TracerProvider(resource=resource)
  # BatchSpanProcessor is recommended for production to reduce overhead
  tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
  trace.set_tracer_provider(tracer_provider)

  logger.info("OpenTelemetry tracing setup complete.")
  return tracer_provider
