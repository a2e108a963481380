import random

from django.core.management.base import BaseCommand, CommandError

from audit_core.models import AuditSample
from audit_core.services.assignment import STRATEGIES, AssignmentEngine
from audit_core.services.directory import AuditorDirectory
from audit_core.workflows import AVAILABLE


class Command(BaseCommand):
    help = "Distribute every available sample across every eligible auditor"

    def add_arguments(self, parser):
        parser.add_argument("--form-type", help="Only samples of this form")
        parser.add_argument("--batch", help="Only samples of this upload batch")
        parser.add_argument("--strategy", choices=sorted(STRATEGIES))
        parser.add_argument("--seed", type=int, help="Seed the shuffle for a reproducible run")
        parser.add_argument("--dry-run", action="store_true")

    def handle(self, *args, **options):
        qs = AuditSample.objects.filter(status=AVAILABLE).order_by("id")
        if options.get("form_type"):
            qs = qs.filter(form_type=options["form_type"])
        if options.get("batch"):
            qs = qs.filter(batch_id=options["batch"])

        sample_ids = list(qs.values_list("sample_id", flat=True))
        auditors = AuditorDirectory().list_eligible()

        if not sample_ids:
            self.stdout.write("No available samples.")
            return
        if not auditors:
            raise CommandError("No eligible auditors.")

        if options["dry_run"]:
            self.stdout.write(f"Would distribute {len(sample_ids)} samples across {len(auditors)} auditors.")
            return

        seed = options.get("seed")
        rng = random.Random(seed) if seed is not None else None
        result = AssignmentEngine(rng=rng).bulk_assign(
            sample_ids,
            [a.user_id for a in auditors],
            strategy=options.get("strategy"),
        )

        names = {a.user_id: a.username for a in auditors}
        for user_id, count in sorted(result.per_auditor().items()):
            self.stdout.write(f"  {names.get(user_id, user_id)}: {count}")

        for err in result.errors:
            self.stderr.write(f"  {err.get('sample_id', '-')}: {err.get('detail') or err.get('message')}")

        self.stdout.write(
            self.style.SUCCESS(
                f"Assigned {result.assigned_count} samples ({result.strategy}), {len(result.errors)} errors."
            )
        )
