"""
Startup Task Engine
SQLAlchemy extension instance shared by all models.

Model modules import ``db`` from here and are imported by the app factory
so that ``db.create_all()`` and Alembic see every table.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
