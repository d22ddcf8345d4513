# Overview: Flask extension instances for database, migrations and downstream sync.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.sync_notifier import SyncNotifier

db = SQLAlchemy()
migrate = Migrate()
sync_notifier = SyncNotifier()
