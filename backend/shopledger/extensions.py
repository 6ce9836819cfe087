# Overview: Unbound extension singletons; create_app() attaches them to the app.
# Services import `db` from here, never from the app module.

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
migrate = Migrate(compare_type=True)
