from django.core.management.base import BaseCommand, CommandError

from ipd.errors import PartialDischargeFailure
from ipd.services.discharge import incomplete_discharges, resume_discharge


class Command(BaseCommand):
    help = "Resume every discharge that stopped part way and report the outcome of each."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="only list incomplete discharges")

    def handle(self, *args, **opts):
        pending = list(incomplete_discharges())
        if not pending:
            self.stdout.write("no incomplete discharges")
            return
        failed = 0
        for admission in pending:
            label = f"{admission.ipd_number} ({admission.pk})"
            if opts["dry_run"]:
                self.stdout.write(f"incomplete: {label}")
                continue
            try:
                outcome = resume_discharge(admission.pk)
            except PartialDischargeFailure as exc:
                failed += 1
                self.stderr.write(self.style.ERROR(f"still incomplete: {label} at step {exc.step}: {exc.context.get('reason')}"))
                continue
            self.stdout.write(self.style.SUCCESS(f"discharged: {label} bill {outcome.bill.bill_number}"))
        if failed:
            raise CommandError(f"{failed} discharge(s) could not be completed")
