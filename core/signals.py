# core/signals.py
from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from core.models import SystemConfig
from core.services.config import invalidate_config_cache


def _drop_cached_configs():
    invalidate_config_cache()
    # a read between the write and the commit may cache the old rows again
    transaction.on_commit(invalidate_config_cache)


@receiver(post_save, sender=SystemConfig)
def system_config_saved(sender, instance, **kwargs):
    _drop_cached_configs()


@receiver(post_delete, sender=SystemConfig)
def system_config_deleted(sender, instance, **kwargs):
    _drop_cached_configs()
