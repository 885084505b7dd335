# src/services/__init__.py
"""
HTTP-сервисы. payments: заработок водителей, выплаты и платежи за бронирования.
"""
