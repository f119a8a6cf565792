# src/web_admin/__init__.py
"""
Web интерфейс администратора на NiceGUI.
"""

from src.web_admin.app import create_app, run_web

__all__ = ["create_app", "run_web"]
