"""
Observability package: tracing setup and request instrumentation.
"""
