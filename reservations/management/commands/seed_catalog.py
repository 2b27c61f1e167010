from __future__ import annotations

from django.core.management.base import BaseCommand

from reservations.models import Resource
from reservations.seed import seed_catalog


class Command(BaseCommand):
    help = "Seed the lodge rooms and rental vehicles (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--update-existing",
            action="store_true",
            help="Update existing resources to match the default seed values.",
        )
        parser.add_argument(
            "--kind",
            choices=Resource.Kind.values,
            action="append",
            help="Only seed resources of this kind. May be repeated.",
        )

    def handle(self, *args, **options):
        result = seed_catalog(update_existing=options["update_existing"], kinds=options["kind"])
        self.stdout.write(
            self.style.SUCCESS(
                f"Seed completed: created={result['created']} updated={result['updated']} skipped={result['skipped']}"
            )
        )
