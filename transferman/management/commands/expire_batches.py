"""
Management command to mark past-expiry batches as EXPIRED.

Usage:
    python manage.py expire_batches
    python manage.py expire_batches --dry-run
"""

from django.core.management.base import BaseCommand

from transferman.models import StockBatch
from transferman.services.ledger import StockLedger


class Command(BaseCommand):
    """Expire batches command."""

    help = 'Marca como vencidos os lotes com validade expirada'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Mostra o que seria marcado sem executar'
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            expired = StockBatch.objects.expired().filter(reserved_quantity=0).count()
            held = StockBatch.objects.expired().filter(reserved_quantity__gt=0).count()

            self.stdout.write(f'{expired} lote(s) seria(m) marcado(s) como vencido(s)')
            if held:
                self.stdout.write(f'{held} lote(s) vencido(s) com reserva seria(m) mantido(s)')
        else:
            count = StockLedger.expire_batches()
            self.stdout.write(
                self.style.SUCCESS(f'{count} lote(s) marcado(s) como vencido(s)')
            )
