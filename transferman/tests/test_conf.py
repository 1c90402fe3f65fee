"""
Tests for TRANSFERMAN settings.
"""

import pytest
from django.core.exceptions import ImproperlyConfigured

from transferman.conf import get_transferman_settings, transferman_settings


class TestSettings:
    """Defaults, overrides and rejected values."""

    def test_defaults(self, settings):
        settings.TRANSFERMAN = {}

        conf = get_transferman_settings()
        assert conf.ELEVATED_ROLES == ('ADMIN', 'OWNER')
        assert conf.EXPIRED_BATCH_SIZE == 200
        assert conf.NEAR_EXPIRY_DAYS == 90

    def test_overrides_apply_immediately(self, settings):
        settings.TRANSFERMAN = {'NEAR_EXPIRY_DAYS': 30, 'SOMETHING_ELSE': True}

        assert transferman_settings.NEAR_EXPIRY_DAYS == 30

    def test_single_role_becomes_tuple(self, settings):
        settings.TRANSFERMAN = {'ELEVATED_ROLES': 'OWNER'}

        assert transferman_settings.ELEVATED_ROLES == ('OWNER',)

    @pytest.mark.parametrize('overrides', [
        {'ELEVATED_ROLES': ()},
        {'EXPIRED_BATCH_SIZE': 0},
        {'NEAR_EXPIRY_DAYS': -1},
    ])
    def test_bad_values_rejected(self, settings, overrides):
        settings.TRANSFERMAN = overrides

        with pytest.raises(ImproperlyConfigured):
            get_transferman_settings()
