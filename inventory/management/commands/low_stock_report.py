from django.core.management.base import BaseCommand
from inventory.selectors import low_stock


class Command(BaseCommand):
    help = "Print cells at or below their minimum stock level."

    def add_arguments(self, parser):
        parser.add_argument("--warehouse", type=int, help="Only report this warehouse id")

    def handle(self, *args, **options):
        rows = low_stock(warehouse_id=options.get("warehouse"))
        for row in rows:
            threshold = row["min_stock_level"] if row["min_stock_level"] is not None else "default"
            self.stdout.write(
                f"{row['warehouse_name']}\t{row['sku']}\tqty={row['quantity']}\t"
                f"available={row['available']}\tmin={threshold}"
            )
        self.stdout.write(self.style.SUCCESS(f"Low-stock cells: {len(rows)}"))
