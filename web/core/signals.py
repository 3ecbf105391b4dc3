from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import UserStudyStats
from .services.settings import load_settings


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_defaults(sender, instance, created: bool, **kwargs):
    if created:
        load_settings(instance)
        UserStudyStats.objects.get_or_create(user=instance)
