"""
Observability package: OpenTelemetry tracing and structured request logging.
"""
