"""
API tests for campaigns, batches, conversations and stats
"""
from callwave.core.exceptions import ConfigurationError, VoiceAPIError
from callwave.models.campaign import BatchCall, Campaign, CampaignStatus
from callwave.models.conversation import Conversation, Transcript

USER_ID = "user-1"


def _create_campaign(client, **overrides):
    body = {"name": "Spring recall", "agent_id": "agent_123", "phone_number_id": "phnum_456"}
    body.update(overrides)
    response = client.post("/api/campaigns/", json=body)
    assert response.status_code == 200
    return response.json()


# ============================================================================
# TEST: auth
# ============================================================================

class TestAuth:

    def test_missing_identity(self, client):
        response = client.get("/api/campaigns/", headers={"X-User-Id": ""})

        assert response.status_code == 401

    def test_jwt_user(self, client):
        import jwt
        from callwave.core.config import JWT_ALGORITHM, JWT_SECRET_KEY

        _create_campaign(client)
        token = jwt.encode({"user_id": USER_ID}, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)

        response = client.get("/api/campaigns/", headers={"Authorization": f"Bearer {token}", "X-User-Id": ""})

        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_invalid_jwt(self, client):
        response = client.get("/api/campaigns/", headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == 401


# ============================================================================
# TEST: campaigns
# ============================================================================

class TestCampaigns:

    def test_create_and_get(self, client):
        created = _create_campaign(client)

        assert created["status"] == "Draft"
        assert created["user_id"] == USER_ID
        fetched = client.get(f"/api/campaigns/{created['campaign_id']}").json()
        assert fetched["name"] == "Spring recall"

    def test_campaigns_are_scoped_to_user(self, client):
        _create_campaign(client)

        response = client.get("/api/campaigns/", headers={"X-User-Id": "someone-else"})

        assert response.json() == []

    def test_invalid_campaign_start(self, client):
        response = client.post("/api/campaigns/", json={"name": "x", "agent_id": "a", "campaign_start": "Later"})

        assert response.status_code == 422


class TestLaunch:

    def test_launch(self, client, voice_client, db):
        """Test launch submits the batch, stores it and starts polling"""
        campaign = _create_campaign(client)

        response = client.post(
            f"/api/campaigns/{campaign['campaign_id']}/launch",
            json={"recipients": [{"phone": "+15551234567", "name": "Ann", "clinic": "Acme"}]}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["batch_id"] == "batch_abc"
        assert body["polling_started"] is True
        assert db.query(BatchCall).filter_by(batch_id="batch_abc").count() == 1
        # Background poll ran once against the fake and saw "completed"
        voice_client.get_batch.assert_awaited_with("batch_abc")
        db.expire_all()
        assert db.query(Campaign).filter_by(campaign_id=campaign["campaign_id"]).one().status == CampaignStatus.COMPLETED

    def test_unknown_campaign(self, client):
        response = client.post("/api/campaigns/nope/launch", json={"recipients": [{"phone": "+1555"}]})

        assert response.status_code == 404

    def test_launch_twice(self, client):
        campaign = _create_campaign(client)
        url = f"/api/campaigns/{campaign['campaign_id']}/launch"

        assert client.post(url, json={"recipients": [{"phone": "+1555"}]}).status_code == 200
        assert client.post(url, json={"recipients": [{"phone": "+1555"}]}).status_code == 409

    def test_voice_api_rejection(self, client, voice_client, db):
        """Test an upstream rejection maps to 502 and writes no batch"""
        campaign = _create_campaign(client)
        voice_client.submit_batch.side_effect = VoiceAPIError(422, "bad phone number id")

        response = client.post(f"/api/campaigns/{campaign['campaign_id']}/launch", json={"recipients": [{"phone": "+1555"}]})

        assert response.status_code == 502
        assert "422" in response.json()["detail"]
        assert db.query(BatchCall).count() == 0
        voice_client.get_batch.assert_not_awaited()

    def test_rejected_launch_can_be_retried(self, client, voice_client):
        """Test a launch the voice API refused leaves the campaign launchable"""
        campaign = _create_campaign(client)
        url = f"/api/campaigns/{campaign['campaign_id']}/launch"
        voice_client.submit_batch.side_effect = [VoiceAPIError(503, "busy"), {"id": "batch_abc", "status": "pending"}]

        assert client.post(url, json={"recipients": [{"phone": "+1555"}]}).status_code == 502
        assert client.post(url, json={"recipients": [{"phone": "+1555"}]}).status_code == 200
        assert voice_client.submit_batch.await_count == 2

    def test_missing_api_key(self, client, voice_client, db):
        campaign = _create_campaign(client)
        voice_client.submit_batch.side_effect = ConfigurationError("ElevenLabs API key not configured")

        response = client.post(f"/api/campaigns/{campaign['campaign_id']}/launch", json={"recipients": [{"phone": "+1555"}]})

        assert response.status_code == 500
        assert db.query(BatchCall).count() == 0

    def test_recipient_without_phone(self, client):
        campaign = _create_campaign(client)

        response = client.post(f"/api/campaigns/{campaign['campaign_id']}/launch", json={"recipients": [{"name": "Ann"}]})

        assert response.status_code == 422


# ============================================================================
# TEST: batches
# ============================================================================

class TestBatches:

    def test_poll(self, client, voice_client, make_campaign):
        make_campaign(status=CampaignStatus.LAUNCHED, batch_id="batch_1")
        voice_client.get_batch.side_effect = [
            {"id": "batch_1", "status": "in_progress"},
            {"id": "batch_1", "status": "completed"},
        ]

        response = client.post("/api/batches/poll", json={"batch_id": "batch_1"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "batch_id": "batch_1", "completed": True, "poll_count": 2}

    def test_poll_unknown_batch(self, client):
        response = client.post("/api/batches/poll", json={"batch_id": "missing"})

        assert response.status_code == 404

    def test_poll_without_api_key(self, client, voice_client, make_campaign):
        make_campaign(status=CampaignStatus.LAUNCHED, batch_id="batch_1")
        voice_client.configured = False

        response = client.post("/api/batches/poll", json={"batch_id": "batch_1"})

        assert response.status_code == 500
        voice_client.get_batch.assert_not_awaited()

    def test_status_check(self, client, voice_client, make_campaign, db):
        campaign = make_campaign(status=CampaignStatus.LAUNCHED, batch_id="batch_1")
        voice_client.get_batch.return_value = {"id": "batch_1", "status": "in_progress", "total_calls_dispatched": 3}

        response = client.post("/api/batches/batch_1/status")

        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"
        db.expire_all()
        assert db.query(BatchCall).filter_by(batch_id="batch_1").one().total_calls_dispatched == 3
        assert db.query(Campaign).filter_by(campaign_id=campaign.campaign_id).one().status == CampaignStatus.LAUNCHED

    def test_status_check_upstream_error(self, client, voice_client, make_campaign):
        make_campaign(status=CampaignStatus.LAUNCHED, batch_id="batch_1")
        voice_client.get_batch.side_effect = VoiceAPIError(500, "boom")

        response = client.post("/api/batches/batch_1/status")

        assert response.status_code == 502

    def test_recipients_listing(self, client, voice_client, make_campaign):
        make_campaign(status=CampaignStatus.LAUNCHED, batch_id="batch_1")
        voice_client.get_batch.return_value = {
            "id": "batch_1",
            "status": "completed",
            "recipients": [{"id": "rcpt_1", "phone_number": "+1555", "status": "completed"}],
        }
        client.post("/api/batches/poll", json={"batch_id": "batch_1"})

        recipients = client.get("/api/batches/batch_1/recipients").json()

        assert [r["external_recipient_id"] for r in recipients] == ["rcpt_1"]


# ============================================================================
# TEST: conversations & stats
# ============================================================================

class TestConversations:

    def test_detail_includes_transcript(self, client, db):
        db.add(Conversation(user_id=USER_ID, conversation_id="conv_1", status="done"))
        db.add(Transcript(user_id=USER_ID, conversation_id="conv_1", full_transcript=[{"role": "agent", "message": "Hi"}]))
        db.commit()

        body = client.get("/api/conversations/conv_1").json()

        assert body["transcript"] == [{"role": "agent", "message": "Hi"}]

    def test_refresh_stores_details(self, client, voice_client, db):
        voice_client.get_conversation.return_value = {
            "conversation_id": "conv_9",
            "status": "done",
            "metadata": {"call_duration_secs": 30, "charging": {"call_charge": 55}},
            "analysis": {"call_successful": "failure"},
            "transcript": [{"role": "user", "message": "Wrong number"}],
        }

        response = client.post("/api/conversations/conv_9/refresh")

        assert response.status_code == 200
        conversation = db.query(Conversation).filter_by(conversation_id="conv_9").one()
        assert conversation.call_successful == "failure"
        assert conversation.total_cost == 55
        assert db.query(Transcript).filter_by(conversation_id="conv_9").one().full_transcript[0]["message"] == "Wrong number"

    def test_refresh_other_users_conversation(self, client, voice_client, db):
        """Test refreshing a conversation owned by another user is a 404 and keeps the owner"""
        db.add(Conversation(user_id="victim", conversation_id="conv_x", campaign_id="camp_v"))
        db.commit()
        voice_client.get_conversation.return_value = {"conversation_id": "conv_x", "status": "done"}

        response = client.post("/api/conversations/conv_x/refresh", headers={"X-User-Id": "attacker"})

        assert response.status_code == 404
        voice_client.get_conversation.assert_not_awaited()
        db.expire_all()
        conversation = db.query(Conversation).filter_by(conversation_id="conv_x").one()
        assert conversation.user_id == "victim"
        assert conversation.campaign_id == "camp_v"


class TestStats:

    def test_dashboard_metrics(self, client, make_campaign, db):
        campaign = make_campaign(status=CampaignStatus.COMPLETED, batch_id="batch_1")
        for idx, outcome in enumerate(["success", "success", "failure", None]):
            db.add(Conversation(
                user_id=USER_ID,
                conversation_id=f"conv_{idx}",
                campaign_id=campaign.campaign_id,
                call_successful=outcome,
                call_duration_secs=60,
                total_cost=10
            ))
        db.commit()

        body = client.get("/api/stats").json()

        assert body["overall"]["total_calls"] == 4
        assert body["overall"]["total_connected"] == 2
        assert body["overall"]["success_rate"] == 50.0
        assert body["overall"]["total_minutes"] == 4.0
        assert body["overall"]["total_cost"] == 40.0
        assert body["campaigns"][0]["campaign_id"] == campaign.campaign_id
        assert body["campaigns"][0]["status"] == "Completed"

    def test_empty_stats(self, client):
        body = client.get("/api/stats").json()

        assert body["overall"]["total_calls"] == 0
        assert body["overall"]["success_rate"] == 0.0
        assert body["campaigns"] == []


def test_healthz(client):
    body = client.get("/healthz").json()

    assert body["database_ok"] is True
    assert body["active_polls"] == 0
