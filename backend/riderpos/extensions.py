# Overview: Flask extension instances for the database and schema migrations.

import os

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")

db = SQLAlchemy()
# SQLite cannot ALTER most constraints in place; batch mode rebuilds the table
migrate = Migrate(directory=MIGRATIONS_DIR, render_as_batch=True)
