"""Cache, memory, metrics and advisory services."""
