from django.core.management.base import BaseCommand

from cms.assets import cleanup_orphans


class Command(BaseCommand):
    help = "Delete stored images that no post references (main image or <img> in content)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List orphan images without deleting them.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        names = cleanup_orphans(dry_run=dry_run)

        for name in names:
            self.stdout.write(name)

        if dry_run:
            self.stdout.write(self.style.WARNING(f"{len(names)} orphan image(s) would be deleted."))
        else:
            self.stdout.write(self.style.SUCCESS(f"Orphan image cleanup completed. Deleted {len(names)}."))
