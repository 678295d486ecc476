"""Stamjer calendar package.

Organized by feature modules (users, events, roster, attendance, client)
with a thin Flask controller layer over service/repository layers.
"""
