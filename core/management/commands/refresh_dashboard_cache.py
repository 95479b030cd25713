from django.core.management.base import BaseCommand, CommandError

from core.models import Profile
from core.services.dashboard import get_dashboard_service


class Command(BaseCommand):
    help = "Invalidates cached dashboard views so the next request fetches fresh data."

    def add_arguments(self, parser):
        parser.add_argument(
            "--username",
            action="append",
            default=[],
            help="User whose views are invalidated (repeatable).",
        )
        parser.add_argument(
            "--all",
            action="store_true",
            help="Invalidates the views of every user with a profile.",
        )
        parser.add_argument(
            "--warm-totals",
            action="store_true",
            help="Also refetches the shared LeetCode per-difficulty totals.",
        )

    def handle(self, *args, **options):
        usernames = options.get("username") or []
        refresh_all = options.get("all")
        warm_totals = options.get("warm_totals")

        if not usernames and not refresh_all and not warm_totals:
            raise CommandError("Pass --username, --all or --warm-totals.")

        service = get_dashboard_service()

        qs = Profile.objects.select_related("user")
        if not refresh_all:
            qs = qs.filter(user__username__in=usernames)
            missing = set(usernames) - set(qs.values_list("user__username", flat=True))
            for username in sorted(missing):
                self.stdout.write(self.style.WARNING(f"No profile for {username}; skipped."))

        total = 0
        failures = 0
        if usernames or refresh_all:
            for profile in qs.iterator(chunk_size=200):
                if service.cache.invalidate_identity(str(profile.user_id)):
                    failures += 1
                total += 1

        if warm_totals:
            totals = service.refresh_leetcode_totals()
            if totals is None:
                self.stdout.write(self.style.WARNING("LeetCode totals could not be fetched."))
            else:
                self.stdout.write(f"LeetCode totals: {totals['easy']}/{totals['medium']}/{totals['hard']}")

        if failures:
            self.stdout.write(self.style.WARNING(f"{failures} user(s) could not be fully invalidated."))
        self.stdout.write(self.style.SUCCESS(f"Dashboard cache refreshed for {total} user(s)."))
