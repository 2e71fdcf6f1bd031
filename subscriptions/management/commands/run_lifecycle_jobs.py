from datetime import date

from django.core.management.base import BaseCommand, CommandError

from subscriptions.clock import FixedClock
from subscriptions.exceptions import InvalidArgument
from subscriptions.jobs import JOB_CLASSES, build_job
from subscriptions.scheduler import JobRunner


class Command(BaseCommand):
    """Run the subscription lifecycle jobs."""

    help = (
        "Run subscription lifecycle jobs (overdue detection, expiration, reminders, "
        "pending notification delivery). Run this command from cron or a scheduled job "
        "if Celery beat is not available."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "jobs",
            nargs="*",
            help=f"Jobs to run (default: all). Choices: {', '.join(JOB_CLASSES)}",
        )
        parser.add_argument(
            "--date",
            help="Run as if today were this date (YYYY-MM-DD).",
        )
        parser.add_argument(
            "--loop",
            action="store_true",
            help="Keep running the jobs on their configured intervals until interrupted.",
        )

    def handle(self, *args, **options):
        job_names = options["jobs"] or list(JOB_CLASSES)
        run_date = options["date"]
        loop: bool = options["loop"]

        if run_date and loop:
            raise CommandError("--date cannot be combined with --loop.")

        overrides = {}
        if run_date:
            try:
                overrides["clock"] = FixedClock(date.fromisoformat(run_date))
            except ValueError:
                raise CommandError(f"Invalid date: {run_date}. Use YYYY-MM-DD.")

        try:
            jobs = [build_job(name, **overrides) for name in job_names]
        except InvalidArgument as e:
            raise CommandError(str(e))

        if loop:
            self._run_forever(jobs)
            return

        for job in jobs:
            result = job.run()
            style = self.style.SUCCESS if result.failed == 0 else self.style.WARNING
            self.stdout.write(
                style(
                    f"{result.job}: {result.candidates} candidates, {result.processed} processed, "
                    f"{result.skipped} skipped, {result.failed} failed"
                )
            )

    def _run_forever(self, jobs):
        runner = JobRunner.from_settings(jobs)
        runner.start()
        self.stdout.write(self.style.SUCCESS(f"Started {len(jobs)} lifecycle jobs. Press Ctrl+C to stop."))
        try:
            while not runner.wait(1):
                pass
        except KeyboardInterrupt:
            self.stdout.write("Stopping lifecycle jobs...")
        finally:
            runner.stop()
