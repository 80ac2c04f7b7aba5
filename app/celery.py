from celery import Celery

from app.config.settings import settings

# Worker and beat share this app; tasks live under app.tasks
celery = Celery(settings.NAME.lower().replace(" ", "_"))
celery.config_from_object("app.config.celeryconfig")
