from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from reservations import conflicts


class Command(BaseCommand):
    help = "Report double bookings and reservations out of sync with the occupied-range index."

    def add_arguments(self, parser):
        parser.add_argument(
            "--fail",
            action="store_true",
            help="Exit with an error when problems are found.",
        )

    def handle(self, *args, **options):
        pairs = conflicts.find_overlapping_pairs()
        missing, orphaned = conflicts.find_drift()

        for first, second in pairs:
            self.stdout.write(
                self.style.ERROR(
                    f"Overlap on {first.resource.code}: {first.reference} ({first.interval}) "
                    f"and {second.reference} ({second.interval})"
                )
            )
        for reservation in missing:
            self.stdout.write(self.style.WARNING(f"No allocation for {reservation.reference} ({reservation.status})"))
        for allocation in orphaned:
            self.stdout.write(
                self.style.WARNING(
                    f"Stale allocation {allocation.pk} on resource {allocation.resource_id} "
                    f"({allocation.start.isoformat()} - {allocation.end.isoformat()})"
                )
            )

        problems = len(pairs) + len(missing) + len(orphaned)
        if not problems:
            self.stdout.write(self.style.SUCCESS("No problems found."))
            return

        summary = f"{len(pairs)} overlap(s), {len(missing)} missing and {len(orphaned)} stale allocation(s)."
        if options["fail"]:
            raise CommandError(summary)
        self.stdout.write(self.style.WARNING(summary))
