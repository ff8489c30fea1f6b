"""
Tests for /user-settings (Crystal personalisation).
"""
import pytest

from crystal.persona import build_personality_modifier


class TestUserSettings:
    def test_defaults_when_never_saved(self, client, auth_headers):
        resp = client.get("/user-settings", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["user_id"] == "test_user_id"
        assert body["personality_safada"] == 50
        assert body["behavior_humor"] is True
        assert body["behavior_palavrao"] is False

    def test_save_and_reload(self, client, auth_headers):
        resp = client.put("/user-settings", json={
            "personality_safada": 80, "behavior_direta": True, "custom_prompt": "Seja breve",
        }, headers=auth_headers)
        assert resp.status_code == 200

        body = client.get("/user-settings", headers=auth_headers).json()
        assert body["personality_safada"] == 80
        assert body["behavior_direta"] is True
        assert body["custom_prompt"] == "Seja breve"
        assert body["updated_at"] is not None

    def test_second_save_overwrites(self, client, auth_headers):
        client.put("/user-settings", json={"personality_calma": 10}, headers=auth_headers)
        client.put("/user-settings", json={"personality_calma": 95}, headers=auth_headers)
        assert client.get("/user-settings", headers=auth_headers).json()["personality_calma"] == 95

    def test_slider_range(self, client, auth_headers):
        resp = client.put("/user-settings", json={"personality_fofa": 120}, headers=auth_headers)
        assert resp.status_code == 422


@pytest.mark.unit
class TestPersonalityModifier:
    def test_no_settings(self):
        assert build_personality_modifier(None) == ""

    def test_traits_above_threshold_only(self):
        modifier = build_personality_modifier({
            "personality_safada": 71, "personality_fofa": 70,
            "behavior_humor": True, "behavior_romantica": False,
        })
        assert "mais safada e provocante" in modifier
        assert "mais fofa" not in modifier
        assert "COMPORTAMENTOS: usar humor." in modifier
