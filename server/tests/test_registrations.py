"""
Registration lifecycle tests: creation, capacity, transitions, check-in, feedback
"""
from datetime import timedelta

from conftest import volunteer_body, partner_body
from helpers.TimeUtils import utcnow


def register(client, headers, body):
    return client.post("/api/registrations", json=body, headers=headers)


def get_event(client, event_id, headers=None):
    response = client.get(f"/api/events/{event_id}", headers=headers or {})
    assert response.status_code == 200
    return response.json()


def test_volunteer_registration_is_auto_approved(client, login, create_event):
    event = create_event()
    headers, user = login()

    response = register(client, headers, volunteer_body(event["event_id"]))
    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Registration successful"
    registration = data["registration"]
    assert registration["status"] == "approved"
    assert registration["user"]["user_id"] == user["id"]
    assert registration["event"]["event_id"] == event["event_id"]
    assert len(registration["statusHistory"]) == 1

    stored = get_event(client, event["event_id"])
    assert stored["volunteerOpportunities"]["currentVolunteers"] == 1
    assert stored["volunteerOpportunities"]["roles"][0]["filled"] == 1
    assert stored["stats"]["totalRegistrations"] == 1
    summary = stored["registrations"]["volunteers"][0]
    assert summary["status"] == "registered"
    assert summary["role"] == "Collector"
    assert summary["user"]["name"] == user["name"]


def test_partner_registration_starts_pending(client, login, create_event):
    event = create_event()
    headers, _ = login()

    response = register(client, headers, partner_body(event["event_id"]))
    assert response.status_code == 201
    assert response.json()["registration"]["status"] == "pending"

    stored = get_event(client, event["event_id"])
    assert stored["registrations"]["partners"][0]["status"] == "pending"
    assert stored["partnershipOpportunities"]["currentFunding"] == 0
    assert stored["partnershipOpportunities"]["types"][0]["currentPartners"] == 0


def test_duplicate_registration_conflicts(client, login, create_event):
    event = create_event()
    headers, _ = login()

    assert register(client, headers, volunteer_body(event["event_id"])).status_code == 201
    response = register(client, headers, partner_body(event["event_id"]))
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


def test_volunteer_capacity_is_enforced(client, login, create_event, organizer):
    event = create_event(volunteerOpportunities={"isAcceptingVolunteers": True, "maxVolunteers": 2})

    for _ in range(2):
        headers, _ = login()
        assert register(client, headers, volunteer_body(event["event_id"])).status_code == 201

    headers, _ = login()
    response = register(client, headers, volunteer_body(event["event_id"]))
    assert response.status_code == 409
    assert response.json()["error"] == "capacity_exceeded"

    organizer_headers, _ = organizer
    rows = client.get(f"/api/events/{event['event_id']}/registrations", headers=organizer_headers).json()
    assert len(rows["registrations"]) == 2
    assert get_event(client, event["event_id"])["volunteerOpportunities"]["currentVolunteers"] == 2


def test_cancelling_frees_a_volunteer_slot(client, login, create_event):
    event = create_event(volunteerOpportunities={"isAcceptingVolunteers": True, "maxVolunteers": 1})
    first_headers, _ = login()
    registration = register(client, first_headers, volunteer_body(event["event_id"])).json()["registration"]

    response = client.delete(f"/api/registrations/{registration['registration_id']}", headers=first_headers)
    assert response.status_code == 200
    assert response.json()["registration"]["status"] == "cancelled"
    stored = get_event(client, event["event_id"])
    assert stored["volunteerOpportunities"]["currentVolunteers"] == 0
    assert stored["registrations"]["volunteers"] == []

    second_headers, _ = login()
    assert register(client, second_headers, volunteer_body(event["event_id"])).status_code == 201


def test_cancelling_twice_is_invalid(client, login, create_event):
    event = create_event()
    headers, _ = login()
    registration = register(client, headers, volunteer_body(event["event_id"])).json()["registration"]
    url = f"/api/registrations/{registration['registration_id']}"

    assert client.delete(url, headers=headers).status_code == 200
    response = client.delete(url, headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_state"


def test_registration_requires_open_event(client, login, create_event):
    draft = create_event(status="draft")
    headers, _ = login()
    response = register(client, headers, volunteer_body(draft["event_id"]))
    assert response.status_code == 400


def test_registration_requires_accepting_volunteers(client, login, create_event):
    event = create_event(volunteerOpportunities={"isAcceptingVolunteers": False, "maxVolunteers": 10})
    headers, _ = login()
    response = register(client, headers, volunteer_body(event["event_id"]))
    assert response.status_code == 400
    assert "not accepting volunteers" in response.json()["message"]


def test_registration_for_unknown_event(client, login):
    headers, _ = login()
    response = register(client, headers, volunteer_body("missing-event"))
    assert response.status_code == 404


def test_partnership_type_must_be_offered(client, login, create_event):
    event = create_event()
    headers, _ = login()
    response = register(client, headers, partner_body(event["event_id"], partnership_type="venue"))
    assert response.status_code == 400


def test_partner_registration_requires_details(client, login, create_event):
    event = create_event()
    headers, _ = login()
    body = partner_body(event["event_id"])
    del body["partnershipDetails"]
    response = register(client, headers, body)
    assert response.status_code == 422


def test_consent_is_required(client, login, create_event):
    event = create_event()
    headers, _ = login()
    response = register(client, headers, volunteer_body(event["event_id"], consent={"dataProcessing": False}))
    assert response.status_code == 422


def test_partner_funding_follows_approval_and_cancellation(client, login, create_event, organizer):
    event = create_event()
    organizer_headers, _ = organizer
    headers, _ = login()
    registration = register(client, headers, partner_body(event["event_id"], value=500)).json()["registration"]
    registration_id = registration["registration_id"]

    response = client.post(f"/api/registrations/{registration_id}/approve",
                           json={"notes": "Welcome aboard"}, headers=organizer_headers)
    assert response.status_code == 200
    approved = response.json()["registration"]
    assert approved["status"] == "approved"
    assert approved["approvedAt"] is not None
    assert approved["statusHistory"][-1]["notes"] == "Welcome aboard"

    stored = get_event(client, event["event_id"])
    assert stored["partnershipOpportunities"]["currentFunding"] == 500
    assert stored["partnershipOpportunities"]["types"][0]["currentPartners"] == 1
    assert stored["registrations"]["partners"][0]["status"] == "approved"

    assert client.delete(f"/api/registrations/{registration_id}", headers=headers).status_code == 200
    stored = get_event(client, event["event_id"])
    assert stored["partnershipOpportunities"]["currentFunding"] == 0
    assert stored["registrations"]["partners"] == []


def test_rejecting_an_approved_partner_is_invalid(client, login, create_event, organizer):
    event = create_event()
    organizer_headers, _ = organizer
    headers, _ = login()
    registration_id = register(client, headers, partner_body(event["event_id"])).json()["registration"]["registration_id"]

    client.post(f"/api/registrations/{registration_id}/approve", headers=organizer_headers)
    response = client.post(f"/api/registrations/{registration_id}/reject",
                           json={"reason": "Changed our minds"}, headers=organizer_headers)
    assert response.status_code == 400
    assert get_event(client, event["event_id"])["partnershipOpportunities"]["currentFunding"] == 500


def test_reject_pending_partner(client, login, create_event, organizer):
    event = create_event()
    organizer_headers, _ = organizer
    headers, _ = login()
    registration_id = register(client, headers, partner_body(event["event_id"])).json()["registration"]["registration_id"]

    response = client.post(f"/api/registrations/{registration_id}/reject",
                           json={"reason": "Not a fit"}, headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["registration"]["status"] == "rejected"
    assert get_event(client, event["event_id"])["registrations"]["partners"][0]["status"] == "rejected"


def test_waitlisted_partner_can_be_approved(client, login, create_event, organizer):
    event = create_event()
    organizer_headers, _ = organizer
    headers, _ = login()
    registration_id = register(client, headers, partner_body(event["event_id"])).json()["registration"]["registration_id"]

    response = client.post(f"/api/registrations/{registration_id}/waitlist", headers=organizer_headers)
    assert response.json()["registration"]["status"] == "waitlisted"
    assert get_event(client, event["event_id"])["registrations"]["partners"][0]["status"] == "pending"

    response = client.post(f"/api/registrations/{registration_id}/approve", headers=organizer_headers)
    assert response.status_code == 200
    assert [entry["status"] for entry in response.json()["registration"]["statusHistory"]] == [
        "pending", "waitlisted", "approved"
    ]


def test_max_partners_enforced_at_approval(client, login, create_event, organizer):
    event = create_event(partnershipOpportunities={
        "isAcceptingPartners": True,
        "types": [{"type": "sponsor", "maxPartners": 1}],
    })
    organizer_headers, _ = organizer
    ids = []
    for _ in range(2):
        headers, _ = login()
        response = register(client, headers, partner_body(event["event_id"]))
        assert response.status_code == 201
        ids.append(response.json()["registration"]["registration_id"])

    assert client.post(f"/api/registrations/{ids[0]}/approve", headers=organizer_headers).status_code == 200
    response = client.post(f"/api/registrations/{ids[1]}/approve", headers=organizer_headers)
    assert response.status_code == 409

    headers, _ = login()
    response = register(client, headers, partner_body(event["event_id"]))
    assert response.status_code == 409


def test_only_partners_need_approval(client, login, create_event, organizer):
    event = create_event()
    organizer_headers, _ = organizer
    headers, _ = login()
    registration_id = register(client, headers, volunteer_body(event["event_id"])).json()["registration"]["registration_id"]

    response = client.post(f"/api/registrations/{registration_id}/approve", headers=organizer_headers)
    assert response.status_code == 400


def test_only_organizer_can_approve(client, login, create_event):
    event = create_event()
    headers, _ = login()
    registration_id = register(client, headers, partner_body(event["event_id"])).json()["registration"]["registration_id"]

    response = client.post(f"/api/registrations/{registration_id}/approve", headers=headers)
    assert response.status_code == 403


def test_confirm_then_check_in_records_hours(client, login, create_event, organizer):
    event = create_event()
    organizer_headers, _ = organizer
    headers, _ = login()
    registration_id = register(client, headers, volunteer_body(event["event_id"])).json()["registration"]["registration_id"]

    response = client.post(f"/api/registrations/{registration_id}/confirm", headers=headers)
    assert response.status_code == 200
    confirmed = response.json()["registration"]
    assert confirmed["status"] == "confirmed"
    assert confirmed["confirmation"]["isConfirmed"] is True
    assert get_event(client, event["event_id"])["registrations"]["volunteers"][0]["status"] == "confirmed"

    response = client.post(f"/api/registrations/{registration_id}/checkin",
                           json={"actualRole": "Team Lead", "hoursContributed": 3.5}, headers=organizer_headers)
    assert response.status_code == 200
    attended = response.json()["registration"]
    assert attended["status"] == "attended"
    assert attended["checkin"]["checkedIn"] is True
    assert len(attended["statusHistory"]) == 3

    summary = get_event(client, event["event_id"])["registrations"]["volunteers"][0]
    assert summary["status"] == "attended"
    assert summary["role"] == "Team Lead"

    stats = client.get("/api/users/profile", headers=headers).json()["user"]["stats"]
    assert stats["totalVolunteerHours"] == 3.5
    assert stats["eventsAttended"] == 1
    assert stats["impactScore"] == 10


def test_repeat_check_in_updates_hours_without_history(client, login, create_event, organizer):
    event = create_event()
    organizer_headers, _ = organizer
    headers, _ = login()
    registration_id = register(client, headers, volunteer_body(event["event_id"])).json()["registration"]["registration_id"]
    url = f"/api/registrations/{registration_id}/checkin"

    client.post(url, json={"hoursContributed": 2}, headers=organizer_headers)
    response = client.post(url, json={"hoursContributed": 4}, headers=organizer_headers)
    assert response.status_code == 200
    registration = response.json()["registration"]
    assert len(registration["statusHistory"]) == 2
    assert registration["checkin"]["hoursContributed"] == 4

    stats = client.get("/api/users/profile", headers=headers).json()["user"]["stats"]
    assert stats["totalVolunteerHours"] == 4


def test_check_in_overrides_cancellation(client, login, create_event, organizer):
    event = create_event()
    organizer_headers, _ = organizer
    headers, _ = login()
    registration_id = register(client, headers, volunteer_body(event["event_id"])).json()["registration"]["registration_id"]
    assert client.delete(f"/api/registrations/{registration_id}", headers=headers).status_code == 200
    assert get_event(client, event["event_id"])["volunteerOpportunities"]["currentVolunteers"] == 0

    response = client.post(f"/api/registrations/{registration_id}/checkin",
                           json={"hoursContributed": 2}, headers=organizer_headers)
    assert response.status_code == 200
    registration = response.json()["registration"]
    assert registration["status"] == "attended"
    assert [entry["status"] for entry in registration["statusHistory"]] == ["approved", "cancelled", "attended"]

    stored = get_event(client, event["event_id"])
    assert stored["volunteerOpportunities"]["currentVolunteers"] == 1
    assert stored["registrations"]["volunteers"][0]["status"] == "attended"
    assert client.get("/api/users/profile", headers=headers).json()["user"]["stats"]["eventsAttended"] == 1


def test_check_in_requires_organizer(client, login, create_event):
    event = create_event()
    headers, _ = login()
    registration_id = register(client, headers, volunteer_body(event["event_id"])).json()["registration"]["registration_id"]

    response = client.post(f"/api/registrations/{registration_id}/checkin", headers=headers)
    assert response.status_code == 403


def test_no_show_from_confirmed(client, login, create_event, organizer):
    event = create_event()
    organizer_headers, _ = organizer
    headers, _ = login()
    registration_id = register(client, headers, volunteer_body(event["event_id"])).json()["registration"]["registration_id"]

    response = client.post(f"/api/registrations/{registration_id}/no-show", headers=organizer_headers)
    assert response.status_code == 400

    client.post(f"/api/registrations/{registration_id}/confirm", headers=headers)
    response = client.post(f"/api/registrations/{registration_id}/no-show", headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["registration"]["status"] == "no-show"

    stored = get_event(client, event["event_id"])
    assert stored["registrations"]["volunteers"][0]["status"] == "no-show"
    assert stored["volunteerOpportunities"]["currentVolunteers"] == 0


def test_feedback_only_after_event_ends(client, login, create_event):
    event = create_event()
    headers, _ = login()
    registration_id = register(client, headers, volunteer_body(event["event_id"])).json()["registration"]["registration_id"]

    response = client.post(f"/api/registrations/{registration_id}/feedback", json={"rating": 5}, headers=headers)
    assert response.status_code == 400


def test_feedback_is_write_once(client, login, create_event):
    start = utcnow() - timedelta(days=2)
    event = create_event(startDate=start.isoformat(), endDate=(start + timedelta(hours=3)).isoformat())
    headers, _ = login()
    registration_id = register(client, headers, volunteer_body(event["event_id"])).json()["registration"]["registration_id"]
    url = f"/api/registrations/{registration_id}/feedback"

    response = client.post(url, json={"rating": 4, "comments": "Great day", "wouldRecommend": True}, headers=headers)
    assert response.status_code == 200
    feedback = response.json()["registration"]["feedback"]
    assert feedback["rating"] == 4
    assert feedback["submittedAt"] is not None

    response = client.post(url, json={"rating": 1}, headers=headers)
    assert response.status_code == 400

    response = client.post(url, json={"rating": 6}, headers=headers)
    assert response.status_code == 422


def test_registration_visibility(client, login, create_event, organizer):
    event = create_event()
    organizer_headers, _ = organizer
    headers, _ = login()
    other_headers, _ = login()
    registration_id = register(client, headers, volunteer_body(event["event_id"])).json()["registration"]["registration_id"]
    url = f"/api/registrations/{registration_id}"

    assert client.get(url, headers=headers).status_code == 200
    assert client.get(url, headers=organizer_headers).status_code == 200
    assert client.get(url, headers=other_headers).status_code == 403
    assert client.get("/api/registrations/unknown", headers=headers).status_code == 404


def test_owner_updates_registration(client, login, create_event):
    event = create_event()
    headers, _ = login()
    other_headers, _ = login()
    registration_id = register(client, headers, volunteer_body(event["event_id"])).json()["registration"]["registration_id"]
    url = f"/api/registrations/{registration_id}"

    response = client.put(url, json={"notes": {"user": "Bringing gloves"}}, headers=headers)
    assert response.status_code == 200
    assert response.json()["registration"]["notes"]["user"] == "Bringing gloves"

    assert client.put(url, json={"notes": {"user": "x"}}, headers=other_headers).status_code == 403
    assert client.put(url, json={}, headers=headers).status_code == 422

    response = client.put(url, json={"partnershipDetails": {"partnershipType": "sponsor"}}, headers=headers)
    assert response.status_code == 422
