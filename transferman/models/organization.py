"""
Organization models — tenant, members, departments and products.

These are the reference entities the transfer engine points to. Managing
them (CRUD screens, invites, categories, units) lives outside Transferman;
here they only carry what the engine validates against: organization
scope and the is_active flag.
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from transferman.models.enums import OrganizationRole


class Organization(models.Model):
    """Tenant. Every department, product and transfer belongs to exactly one."""

    name = models.CharField(max_length=200, verbose_name=_('Nome'))
    slug = models.SlugField(unique=True, max_length=100, verbose_name=_('Identificador'))
    is_active = models.BooleanField(default=True, verbose_name=_('Ativa'))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Organização')
        verbose_name_plural = _('Organizações')
        ordering = ['name']

    def __str__(self) -> str:
        return self.name


class OrganizationMember(models.Model):
    """User membership with a role inside an organization."""

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='members',
        verbose_name=_('Organização'),
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='transferman_memberships',
        verbose_name=_('Usuário'),
    )
    role = models.CharField(
        max_length=10,
        choices=OrganizationRole.choices,
        default=OrganizationRole.MEMBER,
        verbose_name=_('Papel'),
    )
    is_active = models.BooleanField(default=True, verbose_name=_('Ativo'))
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Membro')
        verbose_name_plural = _('Membros')
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'user'],
                name='unique_member_per_organization',
            )
        ]

    def __str__(self) -> str:
        return f"{self.user} @ {self.organization} ({self.role})"


class Department(models.Model):
    """A department holding its own stock ledger."""

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='departments',
        verbose_name=_('Organização'),
    )
    name = models.CharField(max_length=200, verbose_name=_('Nome'))
    slug = models.SlugField(max_length=100, verbose_name=_('Identificador'))
    is_active = models.BooleanField(default=True, verbose_name=_('Ativo'))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Departamento')
        verbose_name_plural = _('Departamentos')
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'slug'],
                name='unique_department_slug_per_organization',
            )
        ]

    def __str__(self) -> str:
        return self.name


class Product(models.Model):
    """
    Item type. Immutable once referenced by stock (FKs use PROTECT).
    """

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='products',
        verbose_name=_('Organização'),
    )
    code = models.CharField(max_length=50, verbose_name=_('Código'))
    name = models.CharField(max_length=200, verbose_name=_('Nome'))
    generic_name = models.CharField(
        max_length=200,
        blank=True,
        default='',
        verbose_name=_('Nome Genérico'),
    )
    base_unit = models.CharField(max_length=30, default='un', verbose_name=_('Unidade Base'))
    is_active = models.BooleanField(default=True, verbose_name=_('Ativo'))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Produto')
        verbose_name_plural = _('Produtos')
        ordering = ['code']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'code'],
                name='unique_product_code_per_organization',
            )
        ]

    def __str__(self) -> str:
        return f"{self.code} — {self.name}"
