# audit_core/services/__init__.py
"""
Service layer for the audit sample engine.

Import the concrete modules directly, e.g.:

    from audit_core.services.assignment import AssignmentEngine
    from audit_core.services.lifecycle import LifecycleController
"""
