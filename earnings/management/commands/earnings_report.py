from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from earnings.services import get_vendor_balance, get_vendor_earnings
from earnings.utils import PERIODS, get_date_range

User = get_user_model()


class Command(BaseCommand):
    help = "Print earnings and withdrawable balance per vendor"

    def add_arguments(self, parser):
        parser.add_argument(
            "--vendor-id",
            type=int,
            help="Report on a specific vendor only",
        )
        parser.add_argument(
            "--period",
            default="this_month",
            choices=PERIODS,
            help="Reporting window for the earnings figures",
        )

    def handle(self, *args, **options):
        vendors = User.objects.vendors().select_related("vendor_profile").order_by("id")
        if options["vendor_id"]:
            vendors = vendors.filter(pk=options["vendor_id"])

        start_date, end_date = get_date_range(options["period"])
        self.stdout.write(f"Earnings for {options['period']} ({start_date:%Y-%m-%d} to {end_date:%Y-%m-%d})")

        count = 0
        for vendor in vendors:
            summary = get_vendor_earnings(vendor, start_date, end_date).as_dict()
            balance = get_vendor_balance(vendor).as_dict()
            self.stdout.write(
                f"{vendor.username}: gross={summary['gross_sales']} "
                f"commission={summary['commission']} ({summary['commission_source']} "
                f"{summary['commission_rate']}) net={summary['total']} "
                f"pending={summary['pending']} completed={summary['completed']} "
                f"available={balance['available']}"
            )
            count += 1

        self.stdout.write(self.style.SUCCESS(f"Reported on {count} vendor(s)"))
