"""
Give every task without a position a spaced initial one.

Tasks are grouped by parent; inside each group they are walked by points
(highest first) and assigned 10000, 9900, 9800, ... Tasks that already have a
position keep it.
"""

import logging

from django.core.management.base import BaseCommand
from django.db import transaction

from priorities.models import Task
from priorities.positions import group_by_parent, seed_positions


logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Initialize position values for tasks that have none"

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help="Report what would change without writing",
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        tasks = Task.objects.order_by('parent_id', '-points', '-created_at')

        update_count = 0
        with transaction.atomic():
            for parent_id, siblings in group_by_parent(tasks).items():
                for task, position in seed_positions(siblings):
                    logger.info(
                        "Task %s (%r) under parent %s gets position %s",
                        task.pk, task.name, parent_id, position
                    )
                    if not dry_run:
                        task.position = position
                        task.save(update_fields=['position'])
                    update_count += 1

        verb = "Would initialize" if dry_run else "Initialized"
        self.stdout.write(self.style.SUCCESS(f"{verb} positions for {update_count} task(s)"))
