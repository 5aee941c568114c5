"""Signal handlers for files app."""

import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from server.apps.files.logic.policy import reload_policy
from server.apps.files.models import GlobalPolicy

logger = logging.getLogger(__name__)


@receiver(post_save, sender=GlobalPolicy)
def reload_policy_on_save(
    sender: type[GlobalPolicy],
    instance: GlobalPolicy,
    **kwargs: object,
) -> None:
    """Replace the in-memory policy snapshot when the row changes.

    The policy is edited through the admin or by another broker
    instance's administrative path. A save on this process is picked
    up by the next upload; other processes notice it within
    ``CONFIG_REFRESH_INTERVAL`` seconds.

    Args:
        sender: The GlobalPolicy model class.
        instance: The saved GlobalPolicy instance.
        **kwargs: Additional signal arguments.
    """
    logger.info('Global policy saved, reloading snapshot')
    reload_policy()
