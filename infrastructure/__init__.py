"""
Infrastructure Package
======================

Provides abstraction layers for external dependencies following the Dependency Inversion Principle.

Modules:
    - payments: Payment gateway abstraction (Razorpay, mock)
    - shipping: Shipping carrier abstraction (Shiprocket, mock)
    - events: Event bus abstraction (Redis pub/sub, in-memory)
    - container: Service container wiring the above into the domain services

This package enables:
    - Easy testing with mock implementations
    - Switching between providers without code changes
    - Loose coupling between business logic and infrastructure
"""
