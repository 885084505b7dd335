# src/shared/__init__.py
"""
Контракты сервиса: Pydantic-модели API (models) и события RabbitMQ (events).
"""
