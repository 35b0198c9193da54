# 📄 File: celery_config.py
#
# 🧭 Purpose (Layman Explanation):
# Configuration for the background worker that renews subscriptions, ends lapsed plans and sends
# failed-payment reminders on a timetable.
#
# 🧪 Purpose (Technical Summary):
# Celery configuration for scheduled billing sweeps: Redis broker and result backend, task
# execution limits, queue routing and the beat schedule.
#
# 🔗 Dependencies:
# - celery, kombu
# - Redis server (message broker)
# - app.shared.config.settings
#
# 🔄 Connected Modules / Calls From:
# - celery -A celery_config worker / beat
# - app.background_jobs.subscription_tasks

from datetime import timedelta

from celery import Celery
from kombu import Queue

from app.shared.config.settings import get_settings

settings = get_settings()


# =============================================================================
# CELERY CONFIGURATION CLASS
# =============================================================================


class CeleryConfig:
    """
    Celery configuration for the subscription service.

    Defines task execution, routing and scheduling settings.
    """

    # =========================================================================
    # BROKER AND BACKEND SETTINGS
    # =========================================================================

    broker_url = settings.CELERY_BROKER_URL
    result_backend = settings.CELERY_RESULT_BACKEND

    broker_connection_retry_on_startup = True
    broker_connection_max_retries = 10
    result_expires = timedelta(hours=24)

    # =========================================================================
    # TASK SETTINGS
    # =========================================================================

    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]
    timezone = "UTC"
    enable_utc = True

    # Sweeps call the payment processor; keep limits generous
    task_time_limit = 900
    task_soft_time_limit = 840
    task_acks_late = True
    task_reject_on_worker_lost = True
    worker_prefetch_multiplier = 1

    # =========================================================================
    # QUEUE DEFINITIONS
    # =========================================================================

    task_default_queue = "billing"
    task_queues = (
        Queue("billing", routing_key="billing"),
        Queue("notifications", routing_key="notifications"),
    )
    task_routes = {
        "subscriptions.process_renewals": {"queue": "billing"},
        "subscriptions.expire_lapsed": {"queue": "billing"},
        "subscriptions.send_failed_payment_notifications": {"queue": "notifications"},
    }

    # =========================================================================
    # BEAT SCHEDULE
    # =========================================================================

    beat_schedule = {
        "process-renewals": {
            "task": "subscriptions.process_renewals",
            "schedule": timedelta(minutes=15),
        },
        "expire-lapsed": {
            "task": "subscriptions.expire_lapsed",
            "schedule": timedelta(hours=1),
        },
        "failed-payment-notifications": {
            "task": "subscriptions.send_failed_payment_notifications",
            "schedule": timedelta(hours=6),
        },
    }

    # =========================================================================
    # LOGGING
    # =========================================================================

    worker_hijack_root_logger = False
    worker_send_task_events = True


class DevelopmentCeleryConfig(CeleryConfig):
    """Development-specific Celery configuration."""

    beat_schedule = {
        **CeleryConfig.beat_schedule,
        "process-renewals": {
            "task": "subscriptions.process_renewals",
            "schedule": timedelta(minutes=2),
        },
    }


class ProductionCeleryConfig(CeleryConfig):
    """Production-specific Celery configuration."""

    worker_max_tasks_per_child = 1000
    broker_use_ssl = settings.CELERY_BROKER_URL.startswith("rediss://")


# =============================================================================
# CONFIG FACTORY
# =============================================================================

def get_celery_config() -> CeleryConfig:
    """
    Pick the Celery configuration for the current environment.

    Returns:
        CeleryConfig: Configuration instance for current environment
    """
    config_map = {
        "development": DevelopmentCeleryConfig,
        "staging": ProductionCeleryConfig,
        "production": ProductionCeleryConfig,
    }
    config_class = config_map.get(settings.ENVIRONMENT, CeleryConfig)
    return config_class()


# =============================================================================
# CELERY APPLICATION INSTANCE
# =============================================================================

celery_app = Celery("marketplace_subscriptions")
celery_app.config_from_object(get_celery_config())
celery_app.autodiscover_tasks(["app.background_jobs"], related_name="subscription_tasks")


if __name__ == "__main__":
    celery_app.start()
