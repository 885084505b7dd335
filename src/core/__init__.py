# src/core/__init__.py
"""
Доменный слой (Core Domain).
Заработок водителей, еженедельные выплаты и жизненный цикл платежей.
"""
