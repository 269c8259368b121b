import uuid
import pytest

from balchhi.models.claim import Claim
from balchhi.models.item import Item


@pytest.fixture
def owner(make_user):
    return make_user("finder")


@pytest.fixture
def claimant(make_user):
    return make_user("loser")


@pytest.fixture
def item(make_item, owner):
    return make_item(owner)


def file_claim(client, auth, user, item, **overrides):
    payload = {
        "item_id": str(item.id),
        "secret_info": "There is a Nepal Telecom SIM card behind the cards",
        "evidence": [{"type": "image", "url": "evidence/wallet-1700000000.webp"}],
    }
    payload.update(overrides)
    return client.post("/claims", json=payload, headers=auth(user))


def test_root(client):
    assert client.get("/").json() == {"status": "ok"}


def test_create_claim(client, auth, claimant, item):
    res = file_claim(client, auth, claimant, item)

    assert res.status_code == 201
    claim = res.json()["claim"]
    assert claim["status"] == "pending"
    assert claim["item_id"] == str(item.id)


def test_create_claim_requires_token(client, item):
    res = client.post("/claims", json={"item_id": str(item.id), "secret_info": "details"})

    assert res.status_code == 401
    assert res.json() == {"error": "Unauthorized"}


def test_invalid_token(client, item):
    res = client.post(
        "/claims",
        json={"item_id": str(item.id), "secret_info": "details"},
        headers={"Authorization": "Bearer not-a-token"},
    )

    assert res.status_code == 401


def test_empty_secret_info_is_a_bad_request(client, auth, claimant, item):
    res = file_claim(client, auth, claimant, item, secret_info="")

    assert res.status_code == 400
    assert res.json()["error"].startswith("secret_info")


def test_duplicate_claim_conflicts(client, auth, claimant, item):
    file_claim(client, auth, claimant, item)

    res = file_claim(client, auth, claimant, item)

    assert res.status_code == 409
    assert res.json() == {"error": "You already have a pending claim for this item"}


def test_owner_cannot_claim(client, auth, owner, item):
    res = file_claim(client, auth, owner, item)

    assert res.status_code == 403


def test_unknown_item(client, auth, claimant):
    res = client.post(
        "/claims",
        json={"item_id": str(uuid.uuid4()), "secret_info": "details"},
        headers=auth(claimant),
    )

    assert res.status_code == 404
    assert res.json() == {"error": "Item not found"}


def test_approve_via_patch(client, auth, session, make_user, owner, claimant, item):
    first = file_claim(client, auth, claimant, item).json()["claim"]
    second = file_claim(client, auth, make_user("other"), item).json()["claim"]

    res = client.patch(f"/claims/{first['id']}", json={"status": "approved"}, headers=auth(owner))

    assert res.status_code == 200
    assert res.json()["claim"]["status"] == "approved"

    other = session.get(Claim, uuid.UUID(second["id"]))
    session.refresh(other)
    assert other.status == "rejected"
    assert session.get(Item, item.id).status == "resolved"

    again = client.patch(f"/claims/{first['id']}", json={"status": "rejected"}, headers=auth(owner))
    assert again.status_code == 400
    assert "error" in again.json()


def test_claimant_cannot_approve_own_claim(client, auth, claimant, item):
    claim = file_claim(client, auth, claimant, item).json()["claim"]

    res = client.patch(f"/claims/{claim['id']}", json={"status": "approved"}, headers=auth(claimant))

    assert res.status_code == 403


def test_reject_with_reason(client, auth, owner, claimant, item):
    claim = file_claim(client, auth, claimant, item).json()["claim"]

    res = client.patch(
        f"/claims/{claim['id']}",
        json={"status": "rejected", "rejection_reason": "The SIM card detail does not match"},
        headers=auth(owner),
    )

    assert res.status_code == 200
    assert res.json()["claim"]["rejection_reason"] == "The SIM card detail does not match"


def test_withdraw(client, auth, claimant, item):
    claim = file_claim(client, auth, claimant, item).json()["claim"]

    res = client.patch(f"/claims/{claim['id']}", json={"status": "withdrawn"}, headers=auth(claimant))

    assert res.status_code == 200
    assert res.json()["claim"]["status"] == "withdrawn"


def test_unknown_status_is_rejected(client, auth, owner, claimant, item):
    claim = file_claim(client, auth, claimant, item).json()["claim"]

    res = client.patch(f"/claims/{claim['id']}", json={"status": "pending"}, headers=auth(owner))

    assert res.status_code == 400


def test_edit_via_patch(client, auth, claimant, item):
    claim = file_claim(client, auth, claimant, item).json()["claim"]

    res = client.patch(
        f"/claims/{claim['id']}",
        json={"proof_description": "Bought at Bhatbhateni, Maharajgunj"},
        headers=auth(claimant),
    )

    assert res.status_code == 200
    assert res.json()["claim"]["proof_description"] == "Bought at Bhatbhateni, Maharajgunj"

    empty = client.patch(f"/claims/{claim['id']}", json={}, headers=auth(claimant))
    assert empty.status_code == 400
    assert empty.json() == {"error": "Nothing to update"}

    blank = client.patch(f"/claims/{claim['id']}", json={"secret_info": "   "}, headers=auth(claimant))
    assert blank.status_code == 400
    assert blank.json() == {"error": "secret_info cannot be blank"}


def test_list_claims_for_claimant_and_owner(client, auth, make_user, owner, claimant, item):
    file_claim(client, auth, claimant, item)
    outsider = make_user("outsider")

    mine = client.get("/claims", headers=auth(claimant)).json()["claims"]
    theirs = client.get("/claims", headers=auth(owner)).json()["claims"]
    nobody = client.get("/claims", headers=auth(outsider)).json()["claims"]

    assert len(mine) == 1
    assert mine[0]["item"]["title"] == item.title
    assert len(mine[0]["evidence"]) == 1
    assert len(theirs) == 1
    assert nobody == []

    filtered = client.get("/claims", params={"status": "approved"}, headers=auth(owner)).json()["claims"]
    assert filtered == []


def test_get_claim_visibility(client, auth, make_user, owner, claimant, item):
    claim = file_claim(client, auth, claimant, item).json()["claim"]

    assert client.get(f"/claims/{claim['id']}", headers=auth(claimant)).status_code == 200
    assert client.get(f"/claims/{claim['id']}", headers=auth(owner)).status_code == 200

    res = client.get(f"/claims/{claim['id']}", headers=auth(make_user("outsider")))
    assert res.status_code == 403
    assert res.json() == {"error": "Not authorized to view this claim"}

    assert client.get(f"/claims/{uuid.uuid4()}", headers=auth(owner)).status_code == 404


def test_org_staff_review_through_api(client, auth, make_user, make_org, make_item, add_member, claimant):
    org_admin = make_user("org-admin")
    staff = make_user("desk-officer")
    org = make_org(org_admin, status="approved")
    add_member(org, staff, "org_staff")
    org_item = make_item(org_admin, organization=org)

    claim = file_claim(client, auth, claimant, org_item).json()["claim"]

    res = client.patch(f"/claims/{claim['id']}", json={"status": "approved"}, headers=auth(staff))

    assert res.status_code == 200
    assert res.json()["claim"]["reviewer_id"] == staff.id


def test_org_staff_list_claims_on_org_items(client, auth, make_user, make_org, make_item, add_member, claimant):
    org_admin = make_user("org-admin")
    staff = make_user("desk-officer")
    org = make_org(org_admin, status="approved")
    add_member(org, staff, "org_staff")
    org_item = make_item(org_admin, organization=org)
    file_claim(client, auth, claimant, org_item)
    file_claim(client, auth, make_user("second-claimant"), org_item)

    res = client.get(f"/items/{org_item.id}/claims", headers=auth(staff))

    assert res.status_code == 200
    claims = res.json()["claims"]
    assert len(claims) == 2
    assert {c["claimant"]["name"] for c in claims} == {"loser", "second-claimant"}
    assert all(len(c["evidence"]) == 1 for c in claims)

    filtered = client.get("/claims", params={"item_id": str(org_item.id)}, headers=auth(staff)).json()
    assert len(filtered["claims"]) == 2
    assert client.get("/claims", headers=auth(staff)).json()["claims"] == []


def test_item_claims_hidden_from_others(client, auth, make_user, make_org, make_item, add_member, claimant):
    org_admin = make_user("org-admin")
    viewer = make_user("volunteer")
    org = make_org(org_admin, status="approved")
    add_member(org, viewer, "org_viewer")
    org_item = make_item(org_admin, organization=org)
    file_claim(client, auth, claimant, org_item)

    for user in (viewer, claimant):
        res = client.get(f"/items/{org_item.id}/claims", headers=auth(user))
        assert res.status_code == 403

    mine = client.get("/claims", params={"item_id": str(org_item.id)}, headers=auth(claimant)).json()
    assert len(mine["claims"]) == 1
    assert client.get(f"/items/{uuid.uuid4()}/claims", headers=auth(viewer)).status_code == 404


def test_claim_on_missing_item_is_not_found(client, auth, session, owner, claimant):
    orphan = Claim(item_id=uuid.uuid4(), claimant_id=claimant.id, secret_info="red strap")
    session.add(orphan)
    session.commit()

    res = client.get(f"/claims/{orphan.id}", headers=auth(owner))

    assert res.status_code == 404
    assert res.json() == {"error": "Item not found"}
