from datetime import date

from futuresync.crud import daily_action as crud_action
from futuresync.crud import subscription as crud_subscription
from futuresync.crud import vision as crud_vision

VISION = {
    "category": "health",
    "description": "Run a half marathon by the end of the year",
    "title": "Runner",
    "priority": 3,
    "timeAllocation": 45,
}

def test_create_vision(client, auth_headers):
    response = client.post("/visions", json=VISION, headers=auth_headers)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["category"] == "health"
    assert data["priority"] == 3
    assert data["time_allocation_minutes"] == 45
    assert data["is_active"] is True

def test_create_vision_defaults(client, auth_headers):
    response = client.post("/visions", json={
        "category": "career", "description": "Become a staff engineer",
    }, headers=auth_headers)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["priority"] == 1
    assert data["time_allocation_minutes"] == 30

def test_create_vision_validation(client, auth_headers):
    response = client.post("/visions", json={**VISION, "category": "wealth", "description": "short"},
                           headers=auth_headers)
    assert response.status_code == 400
    fields = {d["field"] for d in response.json()["details"]}
    assert fields == {"category", "description"}

    response = client.post("/visions", json={**VISION, "priority": 11}, headers=auth_headers)
    assert response.status_code == 400

def test_create_vision_requires_auth(client):
    assert client.post("/visions", json=VISION).status_code == 401

def test_free_plan_vision_limit(client, auth_headers):
    for _ in range(2):
        assert client.post("/visions", json=VISION, headers=auth_headers).status_code == 201

    response = client.post("/visions", json=VISION, headers=auth_headers)
    assert response.status_code == 403
    body = response.json()
    assert body["upgradeRequired"] is True
    assert body["currentCount"] == 2
    assert body["limit"] == 2

def test_inactive_visions_do_not_count_toward_limit(client, db, user, auth_headers):
    first = crud_vision.create_vision(db, user.id, "health", "Sleep eight hours a night")
    crud_vision.create_vision(db, user.id, "career", "Ship a side project this year")
    crud_vision.update_vision(db, first, {"is_active": False})
    assert client.post("/visions", json=VISION, headers=auth_headers).status_code == 201

def test_pro_plan_allows_more_visions(client, db, user, auth_headers):
    crud_subscription.upsert_from_stripe(db, user.id, "pro", {
        "id": "sub_1", "customer": "cus_1", "status": "active",
        "current_period_start": 1700000000, "current_period_end": 1702592000,
        "cancel_at_period_end": False,
    })
    for _ in range(3):
        assert client.post("/visions", json=VISION, headers=auth_headers).status_code == 201

def test_list_visions_ordering_and_filters(client, db, user, auth_headers):
    low = crud_vision.create_vision(db, user.id, "health", "Walk every single day", priority=1)
    high = crud_vision.create_vision(db, user.id, "career", "Lead a team of engineers", priority=5)
    hidden = crud_vision.create_vision(db, user.id, "relationships", "Call my family weekly", priority=9)
    crud_vision.update_vision(db, hidden, {"is_active": False})

    response = client.get("/visions", headers=auth_headers)
    assert [v["id"] for v in response.json()["data"]] == [high.id, low.id]

    response = client.get("/visions", params={"active": "false"}, headers=auth_headers)
    assert [v["id"] for v in response.json()["data"]] == [hidden.id, high.id, low.id]

    response = client.get("/visions", params={"category": "health"}, headers=auth_headers)
    assert response.json()["count"] == 1

    assert client.get("/visions", params={"category": "wealth"}, headers=auth_headers).status_code == 400

def test_get_vision_with_analysis(client, db, user, auth_headers):
    vision = crud_vision.create_vision(db, user.id, "health", "Run a half marathon this year")
    response = client.get(f"/visions/{vision.id}", params={"includeAiAnalysis": "true"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["aiAnalysis"] is None

    crud_vision.upsert_ai_analysis(db, vision.id, {
        "themes": ["fitness"], "keyGoals": ["finish a race"], "suggestedActions": ["run 3x a week"],
        "timeComplexity": "high", "feasibilityScore": 0.7, "improvements": [],
    })
    response = client.get(f"/visions/{vision.id}", params={"includeAiAnalysis": "true"}, headers=auth_headers)
    analysis = response.json()["data"]["aiAnalysis"]
    assert analysis["themes"] == ["fitness"]
    assert analysis["time_complexity"] == "high"
    assert analysis["feasibility_score"] == 0.7

    response = client.get(f"/visions/{vision.id}", headers=auth_headers)
    assert "aiAnalysis" not in response.json()["data"]

def test_other_users_vision_is_not_found(client, db, other_user, auth_headers):
    vision = crud_vision.create_vision(db, other_user.id, "health", "Someone else's vision")
    assert client.get(f"/visions/{vision.id}", headers=auth_headers).status_code == 404
    assert client.put(f"/visions/{vision.id}", json={"priority": 2}, headers=auth_headers).status_code == 404
    assert client.delete(f"/visions/{vision.id}", headers=auth_headers).status_code == 404

def test_update_vision_partial(client, db, user, auth_headers):
    vision = crud_vision.create_vision(db, user.id, "health", "Run a half marathon this year", priority=2)
    response = client.put(f"/visions/{vision.id}", json={"priority": 7, "isActive": False}, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["priority"] == 7
    assert data["is_active"] is False
    assert data["description"] == "Run a half marathon this year"

def test_update_vision_validation(client, db, user, auth_headers):
    vision = crud_vision.create_vision(db, user.id, "health", "Run a half marathon this year")
    response = client.put(f"/visions/{vision.id}", json={"category": "fame"}, headers=auth_headers)
    assert response.status_code == 400

def test_delete_vision_keeps_actions(client, db, user, auth_headers):
    vision = crud_vision.create_vision(db, user.id, "health", "Run a half marathon this year")
    action = crud_action.create_action(db, user.id, "Run 5k", 30, date(2025, 3, 10), vision_id=vision.id)

    response = client.delete(f"/visions/{vision.id}", headers=auth_headers)
    assert response.status_code == 200

    db.refresh(action)
    assert action.vision_id is None
    assert crud_vision.get_vision_for_user(db, vision.id, user.id) is None

def test_vision_stats(db, user):
    crud_vision.create_vision(db, user.id, "health", "Run a half marathon", priority=2, time_allocation_minutes=30)
    crud_vision.create_vision(db, user.id, "health", "Eat more vegetables", priority=4, time_allocation_minutes=15)
    stats = crud_vision.get_vision_stats(db, user.id)
    assert stats["totalVisions"] == 2
    assert stats["totalTimeAllocated"] == 45
    assert stats["averagePriority"] == 3
    assert stats["byCategory"] == {"health": 2}
