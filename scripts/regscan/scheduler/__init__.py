"""Periodic scanning with APScheduler."""
