"""
Service layer: domain event dispatch, database health monitoring and
outbound HTTP resilience.
"""
