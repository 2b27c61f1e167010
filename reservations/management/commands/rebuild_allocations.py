from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from reservations import conflicts
from reservations.models import Resource


class Command(BaseCommand):
    help = "Recreate the occupied-range index from the reservation table."

    def add_arguments(self, parser):
        parser.add_argument("--resource", help="Only rebuild the resource with this code.")

    def handle(self, *args, **options):
        resource_id = None
        if options["resource"]:
            try:
                resource_id = Resource.objects.get(code=options["resource"]).pk
            except Resource.DoesNotExist:
                raise CommandError(f"No resource with code {options['resource']!r}.") from None

        written = conflicts.rebuild(resource_id)
        self.stdout.write(self.style.SUCCESS(f"Rebuilt {written} allocation(s)."))
