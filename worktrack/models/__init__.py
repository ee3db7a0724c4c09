"""
worktrack models package.

``db`` is the single Flask-SQLAlchemy handle shared by every model module.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
