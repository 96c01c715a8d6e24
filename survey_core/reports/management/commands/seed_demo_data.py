# survey_core/reports/management/commands/seed_demo_data.py

from django.core.management.base import BaseCommand

from survey_core.reports.fixtures import seed_reports, seed_users


class Command(BaseCommand):
    help = "Create the demo users (reader / editor / admin) and sample survey reports (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--skip-users", action="store_true", help="Only seed reports.")

    def handle(self, *args, **options):
        if not options["skip_users"]:
            users = seed_users()
            self.stdout.write(f"Users ensured: {', '.join(u.email for u in users)}")

        created = seed_reports()
        self.stdout.write(self.style.SUCCESS(f"Sample reports ensured. Newly created: {created}"))
