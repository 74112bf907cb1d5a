from django.core.management.base import BaseCommand, CommandError
from inventory.models import Inventory
from inventory.selectors import verify_movement_chain


class Command(BaseCommand):
    help = "Verify that every cell's movement history chains up to its stored quantity."

    def add_arguments(self, parser):
        parser.add_argument("--warehouse", type=int, help="Only check cells of this warehouse id")

    def handle(self, *args, **options):
        qs = Inventory.objects.order_by("warehouse_id", "product_id")
        if options.get("warehouse"):
            qs = qs.filter(warehouse_id=options["warehouse"])
        checked = 0
        broken = []
        for warehouse_id, product_id in qs.values_list("warehouse_id", "product_id").iterator():
            checked += 1
            result = verify_movement_chain(warehouse_id, product_id)
            if result is not None:
                broken.append(result)
                self.stderr.write(
                    f"Broken chain at warehouse={result.warehouse_id} product={result.product_id} "
                    f"movement={result.movement_id} expected={result.expected} found={result.found}"
                )
        if broken:
            raise CommandError(f"{len(broken)} of {checked} cells failed verification")
        self.stdout.write(self.style.SUCCESS(f"Cells verified: {checked}"))
