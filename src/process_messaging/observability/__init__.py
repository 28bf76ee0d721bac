# Observability package: structured log records and their sinks.
