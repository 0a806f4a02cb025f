"""
End-to-end: a landing page on WordPress goes from an empty project to a
deliverable checklist through the HTTP API.
"""

API = "/api/v1"


def _items(client, pid, headers, view="all"):
    body = client.get(f"{API}/projects/{pid}/checklist?view={view}", headers=headers).get_json()
    return [i for phase in body["phases"] for i in phase["items"]]


def test_landing_page_reaches_deliverable_state(client, headers_for):
    leader = headers_for("web_leader", "lead@example.com")

    res = client.post(f"{API}/projects", json={
        "name": "Campaña Primavera", "client": "ACME", "site_type": "landing", "technology": "wordpress",
    })
    assert res.status_code == 201
    pid = res.get_json()["id"]

    assert client.post(f"{API}/projects/{pid}/checklist").status_code == 201

    cta = next(i for i in _items(client, pid, leader) if i["title"] == "CTA claros y destacados")
    assert cta["weight"] == "critical"
    assert cta["status"] == "pending"

    res = client.patch(f"{API}/checklist-items/{cta['id']}/status", json={"status": "completed"}, headers=leader)
    assert res.status_code == 200
    completed = res.get_json()
    assert completed["completed_by"] == "lead@example.com"
    assert completed["completed_by_role"] == "web_leader"
    assert completed["completed_at"] is not None

    risk = client.get(f"{API}/projects/{pid}/checklist/risk").get_json()
    assert risk["can_deliver"] is False

    for item in _items(client, pid, leader, view="critical"):
        if item["status"] != "completed":
            client.patch(f"{API}/checklist-items/{item['id']}/status", json={"status": "completed"}, headers=leader)

    risk = client.get(f"{API}/projects/{pid}/checklist/risk").get_json()
    assert risk["critical_pending"] == 0
    assert risk["conflicts"] == 0
    assert risk["can_deliver"] is True

    project = client.get(f"{API}/projects/{pid}").get_json()
    assert project["critical_pending"] == 0
    assert project["has_conflicts"] is False


def test_open_conflict_blocks_delivery(client, headers_for):
    leader = headers_for("web_leader")
    pid = client.post(f"{API}/projects", json={"name": "Blog", "site_type": "blog"}).get_json()["id"]
    client.post(f"{API}/projects/{pid}/checklist")

    for item in _items(client, pid, leader, view="critical"):
        client.patch(f"{API}/checklist-items/{item['id']}/status", json={"status": "completed"}, headers=leader)

    qa_item = next(i for i in _items(client, pid, leader, view="pending") if i["phase"] == "qa")
    cid = client.post(
        f"{API}/checklist-items/{qa_item['id']}/conflicts",
        json={"description": "Links rotos en el footer"}, headers=headers_for("qa"),
    ).get_json()["id"]
    assert client.get(f"{API}/projects/{pid}/checklist/risk").get_json()["can_deliver"] is False

    client.post(f"{API}/conflicts/{cid}/resolve", json={"resolution": "Corregidos"}, headers=leader)
    risk = client.get(f"{API}/projects/{pid}/checklist/risk").get_json()
    assert risk["conflicts"] == 0
    assert risk["can_deliver"] is True
