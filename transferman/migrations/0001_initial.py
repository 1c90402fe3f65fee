"""
Initial migration for Transferman models.
"""

from decimal import Decimal
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


ITEM_STATUS_CHOICES = [
    ('PENDING', 'Pendente'),
    ('APPROVED', 'Aprovado'),
    ('PREPARED', 'Separado'),
    ('DELIVERED', 'Entregue'),
    ('CANCELLED', 'Cancelado'),
]


class Migration(migrations.Migration):
    """Create Transferman models: organizations, stock batches, transfers and history."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Organization',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200, verbose_name='Nome')),
                ('slug', models.SlugField(max_length=100, unique=True, verbose_name='Identificador')),
                ('is_active', models.BooleanField(default=True, verbose_name='Ativa')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Organização',
                'verbose_name_plural': 'Organizações',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Department',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200, verbose_name='Nome')),
                ('slug', models.SlugField(max_length=100, verbose_name='Identificador')),
                ('is_active', models.BooleanField(default=True, verbose_name='Ativo')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='departments', to='transferman.organization', verbose_name='Organização')),
            ],
            options={
                'verbose_name': 'Departamento',
                'verbose_name_plural': 'Departamentos',
                'ordering': ['name'],
                'constraints': [
                    models.UniqueConstraint(fields=('organization', 'slug'), name='unique_department_slug_per_organization'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=50, verbose_name='Código')),
                ('name', models.CharField(max_length=200, verbose_name='Nome')),
                ('generic_name', models.CharField(blank=True, default='', max_length=200, verbose_name='Nome Genérico')),
                ('base_unit', models.CharField(default='un', max_length=30, verbose_name='Unidade Base')),
                ('is_active', models.BooleanField(default=True, verbose_name='Ativo')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='products', to='transferman.organization', verbose_name='Organização')),
            ],
            options={
                'verbose_name': 'Produto',
                'verbose_name_plural': 'Produtos',
                'ordering': ['code'],
                'constraints': [
                    models.UniqueConstraint(fields=('organization', 'code'), name='unique_product_code_per_organization'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OrganizationMember',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('MEMBER', 'Membro'), ('ADMIN', 'Administrador'), ('OWNER', 'Proprietário')], default='MEMBER', max_length=10, verbose_name='Papel')),
                ('is_active', models.BooleanField(default=True, verbose_name='Ativo')),
                ('joined_at', models.DateTimeField(auto_now_add=True)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='members', to='transferman.organization', verbose_name='Organização')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transferman_memberships', to=settings.AUTH_USER_MODEL, verbose_name='Usuário')),
            ],
            options={
                'verbose_name': 'Membro',
                'verbose_name_plural': 'Membros',
                'constraints': [
                    models.UniqueConstraint(fields=('organization', 'user'), name='unique_member_per_organization'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DepartmentStock',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('min_stock_level', models.DecimalField(blank=True, decimal_places=3, help_text='Estoque baixo quando disponível < este valor', max_digits=12, null=True, verbose_name='Estoque Mínimo')),
                ('max_stock_level', models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True, verbose_name='Estoque Máximo')),
                ('reorder_point', models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True, verbose_name='Ponto de Reposição')),
                ('default_withdrawal_qty', models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True, verbose_name='Quantidade Padrão de Retirada')),
                ('location', models.CharField(blank=True, default='', max_length=100, verbose_name='Localização')),
                ('last_movement_at', models.DateTimeField(blank=True, null=True, verbose_name='Última movimentação')),
                ('created_by_snapshot', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Criado por')),
                ('department', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='stocks', to='transferman.department', verbose_name='Departamento')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stocks', to='transferman.product', verbose_name='Produto')),
            ],
            options={
                'verbose_name': 'Estoque do Departamento',
                'verbose_name_plural': 'Estoques dos Departamentos',
                'constraints': [
                    models.UniqueConstraint(fields=('department', 'product'), name='unique_stock_per_department_product'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockBatch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('lot_number', models.CharField(max_length=50, verbose_name='Número do Lote')),
                ('expiry_date', models.DateField(blank=True, db_index=True, null=True, verbose_name='Data de Validade')),
                ('manufacture_date', models.DateField(blank=True, null=True, verbose_name='Data de Fabricação')),
                ('supplier', models.CharField(blank=True, default='', max_length=200, verbose_name='Fornecedor')),
                ('cost_price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name='Preço de Custo')),
                ('selling_price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name='Preço de Venda')),
                ('total_quantity', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=12, verbose_name='Quantidade Total')),
                ('available_quantity', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=12, verbose_name='Disponível')),
                ('reserved_quantity', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=12, verbose_name='Reservado')),
                ('incoming_quantity', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=12, verbose_name='Em Trânsito')),
                ('status', models.CharField(choices=[('AVAILABLE', 'Disponível'), ('RESERVED', 'Reservado'), ('QUARANTINE', 'Quarentena'), ('DAMAGED', 'Danificado'), ('EXPIRED', 'Vencido')], db_index=True, default='AVAILABLE', max_length=20, verbose_name='Status')),
                ('is_active', models.BooleanField(default=True, verbose_name='Ativo')),
                ('location', models.CharField(blank=True, default='', max_length=100, verbose_name='Localização')),
                ('received_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Recebido em')),
                ('created_by_snapshot', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Criado por')),
                ('stock', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='batches', to='transferman.departmentstock', verbose_name='Estoque')),
            ],
            options={
                'verbose_name': 'Lote',
                'verbose_name_plural': 'Lotes',
                'ordering': ['received_at', 'pk'],
                'indexes': [
                    models.Index(fields=['stock', 'status', 'received_at'], name='tm_batch_fifo_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('stock', 'lot_number'), name='unique_lot_per_stock'),
                    models.CheckConstraint(condition=models.Q(('available_quantity__gte', 0)), name='batch_available_non_negative'),
                    models.CheckConstraint(condition=models.Q(('reserved_quantity__gte', 0)), name='batch_reserved_non_negative'),
                    models.CheckConstraint(condition=models.Q(('total_quantity', models.F('available_quantity') + models.F('reserved_quantity'))), name='batch_total_is_available_plus_reserved'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Transfer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=50, verbose_name='Código')),
                ('title', models.CharField(max_length=200, verbose_name='Título')),
                ('status', models.CharField(choices=[('PENDING', 'Pendente'), ('APPROVED', 'Aprovado'), ('PREPARED', 'Separado'), ('PARTIAL', 'Parcial'), ('COMPLETED', 'Concluído'), ('CANCELLED', 'Cancelado')], db_index=True, default='PENDING', max_length=20, verbose_name='Status')),
                ('priority', models.CharField(choices=[('NORMAL', 'Normal'), ('URGENT', 'Urgente'), ('CRITICAL', 'Crítico')], default='NORMAL', max_length=10, verbose_name='Prioridade')),
                ('request_reason', models.TextField(blank=True, default='', verbose_name='Motivo da Solicitação')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Observações')),
                ('requested_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Solicitado em')),
                ('approved_at', models.DateTimeField(blank=True, null=True, verbose_name='Aprovado em')),
                ('prepared_at', models.DateTimeField(blank=True, null=True, verbose_name='Separado em')),
                ('delivered_at', models.DateTimeField(blank=True, null=True, verbose_name='Entregue em')),
                ('cancelled_at', models.DateTimeField(blank=True, null=True, verbose_name='Cancelado em')),
                ('cancel_reason', models.TextField(blank=True, default='', verbose_name='Motivo do Cancelamento')),
                ('requested_by_snapshot', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transfers', to='transferman.organization', verbose_name='Organização')),
                ('requested_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Solicitado por')),
                ('requesting_department', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='incoming_transfers', to='transferman.department', verbose_name='Departamento Solicitante')),
                ('supplying_department', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='outgoing_transfers', to='transferman.department', verbose_name='Departamento Fornecedor')),
            ],
            options={
                'verbose_name': 'Transferência',
                'verbose_name_plural': 'Transferências',
                'ordering': ['-requested_at'],
                'indexes': [
                    models.Index(fields=['organization', 'status'], name='tm_transfer_org_status_idx'),
                    models.Index(fields=['supplying_department', 'status'], name='tm_transfer_supplying_idx'),
                    models.Index(fields=['requesting_department', 'status'], name='tm_transfer_requesting_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('organization', 'code'), name='unique_transfer_code_per_organization'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TransferItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('requested_quantity', models.DecimalField(decimal_places=3, max_digits=12, verbose_name='Solicitado')),
                ('approved_quantity', models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True, verbose_name='Aprovado')),
                ('prepared_quantity', models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True, verbose_name='Separado')),
                ('received_quantity', models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True, verbose_name='Recebido')),
                ('status', models.CharField(choices=ITEM_STATUS_CHOICES, db_index=True, default='PENDING', max_length=20, verbose_name='Status')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Observações')),
                ('cancel_reason', models.TextField(blank=True, default='', verbose_name='Motivo do Cancelamento')),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('prepared_at', models.DateTimeField(blank=True, null=True)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='transferman.product', verbose_name='Produto')),
                ('transfer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='transferman.transfer', verbose_name='Transferência')),
            ],
            options={
                'verbose_name': 'Item da Transferência',
                'verbose_name_plural': 'Itens da Transferência',
                'ordering': ['pk'],
                'constraints': [
                    models.UniqueConstraint(fields=('transfer', 'product'), name='unique_product_per_transfer'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TransferBatch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=12, verbose_name='Separado')),
                ('received_quantity', models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True, verbose_name='Recebido')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('batch', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='transfer_picks', to='transferman.stockbatch', verbose_name='Lote')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='batches', to='transferman.transferitem', verbose_name='Item')),
            ],
            options={
                'verbose_name': 'Lote da Transferência',
                'verbose_name_plural': 'Lotes da Transferência',
                'ordering': ['pk'],
                'constraints': [
                    models.UniqueConstraint(fields=('item', 'batch'), name='unique_batch_per_transfer_item'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TransferHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[('CREATED', 'Criado'), ('APPROVED', 'Aprovado'), ('PREPARED', 'Separado'), ('DELIVERED', 'Entregue'), ('CANCELLED', 'Cancelado'), ('STATUS_CHANGED', 'Status alterado')], max_length=20, verbose_name='Ação')),
                ('from_status', models.CharField(blank=True, default='', max_length=20, verbose_name='De')),
                ('to_status', models.CharField(max_length=20, verbose_name='Para')),
                ('changed_by_snapshot', models.JSONField(blank=True, default=dict)),
                ('notes', models.TextField(blank=True, default='', verbose_name='Observações')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Data/Hora')),
                ('changed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Alterado por')),
                ('item', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='history', to='transferman.transferitem', verbose_name='Item')),
                ('transfer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='history', to='transferman.transfer', verbose_name='Transferência')),
            ],
            options={
                'verbose_name': 'Histórico',
                'verbose_name_plural': 'Históricos',
                'ordering': ['created_at', 'pk'],
            },
        ),
    ]
