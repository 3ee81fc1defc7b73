"""
System settings tests.
"""

import pytest

from mdesk.services import settings_service
from mdesk.services.settings_service import SettingsError


class TestSettings:

    def test_defaults_created_on_first_read(self, db_session):
        row = settings_service.get_settings_row()

        assert row.id == 1
        assert row.automatic_invoicing is False

    def test_update_refreshes_snapshot(self, db_session, admin_user):
        assert settings_service.current_settings().automatic_invoicing is False

        settings_service.update_settings({"automatic_invoicing": True}, user_id=admin_user.id)

        assert settings_service.current_settings().automatic_invoicing is True

    def test_rejects_non_boolean(self, db_session):
        with pytest.raises(SettingsError):
            settings_service.update_settings({"automatic_invoicing": "yes"}, user_id=None)

    def test_api_round_trip(self, client, db_session, admin_headers):
        resp = client.put("/api/settings", headers=admin_headers, json={"automatic_invoicing": True})
        assert resp.status_code == 200

        resp = client.get("/api/settings", headers=admin_headers)
        assert resp.json["settings"]["automatic_invoicing"] is True
