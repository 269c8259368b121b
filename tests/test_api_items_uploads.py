import io
import pytest
from PIL import Image
from botocore.exceptions import EndpointConnectionError

from balchhi.routers import items as items_router
from balchhi.routers import uploads as uploads_router
from balchhi.utils import s3_service
from balchhi.utils.notification_service import emit_notification

ITEM_FORM = {
    "item_type": "found",
    "title": "Blue Samsung phone",
    "description": "Found on a microbus from Koteshwor to Ratnapark, cracked screen",
    "category": "electronics",
    "location": "Koteshwor",
    "date": "2025-03-01T10:00:00Z",
}


def png_bytes(width=32, height=24):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def fake_storage(monkeypatch):
    uploaded = []

    def upload(buffer, ext, original_name, folder="evidence"):
        key = f"{folder}/{original_name.rsplit('.', 1)[0]}-1700000000.{ext}"
        uploaded.append(key)
        return key

    def signed(key, expires_in=3600):
        return f"https://cdn.example.test/{key}?sig=abc"

    monkeypatch.setattr(s3_service, "upload_to_s3", upload)
    for module in (items_router, uploads_router):
        monkeypatch.setattr(module, "generate_signed_url", signed)

    return uploaded


class TestItems:

    def test_post_personal_item(self, client, auth, make_user, fake_storage):
        user = make_user("finder")

        res = client.post(
            "/items",
            data=ITEM_FORM,
            files={"image": ("phone.png", png_bytes(), "image/png")},
            headers=auth(user),
        )

        assert res.status_code == 201
        item = res.json()["item"]
        assert item["status"] == "active"
        assert item["image"] == fake_storage[0]
        assert fake_storage[0].startswith("items/phone-")

        detail = client.get(f"/items/{item['id']}").json()
        assert detail["item"]["image"].startswith("https://cdn.example.test/items/")
        assert detail["owner"]["public_id"] == user.public_id
        assert detail["pending_claims"] == 0

    def test_form_validation(self, client, auth, make_user):
        res = client.post("/items", data={**ITEM_FORM, "category": "furniture"}, headers=auth(make_user()))

        assert res.status_code == 400
        assert res.json()["error"].startswith("category")

    @pytest.mark.parametrize("field,value,message", [
        ("date", "2999-01-01T00:00:00Z", "date: Value error, date cannot be in the future"),
        ("date", "last tuesday", "Date not parseable"),
        ("organization_id", "not-a-uuid", "organization_id"),
        ("title", "  ab  ", "title"),
    ])
    def test_bad_fields(self, client, auth, make_user, field, value, message):
        res = client.post("/items", data={**ITEM_FORM, field: value}, headers=auth(make_user()))

        assert res.status_code == 400
        assert res.json()["error"].startswith(message)

    def test_category_is_case_insensitive(self, client, auth, make_user):
        res = client.post("/items", data={**ITEM_FORM, "category": "Electronics"}, headers=auth(make_user()))

        assert res.status_code == 201
        assert res.json()["item"]["category"] == "electronics"

    def test_org_item_needs_approved_org(self, client, auth, make_user, make_org):
        admin = make_user("org-admin")
        org = make_org(admin, status="under_review")

        res = client.post("/items", data={**ITEM_FORM, "organization_id": str(org.id)}, headers=auth(admin))

        assert res.status_code == 403
        assert res.json() == {"error": "Organization must be verified and approved to perform this action"}

    def test_org_staff_posts_for_approved_org(self, client, auth, make_user, make_org, add_member):
        org = make_org(make_user("org-admin"), status="approved")
        staff = make_user("staff")
        add_member(org, staff, "org_staff")

        res = client.post("/items", data={**ITEM_FORM, "organization_id": str(org.id)}, headers=auth(staff))

        assert res.status_code == 201
        assert res.json()["item"]["organization_id"] == str(org.id)

    def test_viewer_cannot_post(self, client, auth, make_user, make_org, add_member):
        org = make_org(make_user("org-admin"), status="approved")
        viewer = make_user("viewer")
        add_member(org, viewer, "org_viewer")

        res = client.post("/items", data={**ITEM_FORM, "organization_id": str(org.id)}, headers=auth(viewer))

        assert res.status_code == 403

    def test_pending_claims_are_counted(self, client, auth, make_user, make_item):
        item = make_item(make_user("finder"))
        client.post(
            "/claims",
            json={"item_id": str(item.id), "secret_info": "Wallpaper is a photo of Phewa lake"},
            headers=auth(make_user("claimant")),
        )

        assert client.get(f"/items/{item.id}").json()["pending_claims"] == 1

    def test_detail_for_signed_in_viewers(self, client, auth, make_user, make_item):
        owner = make_user("finder")
        claimant = make_user("claimant")
        item = make_item(owner)
        claim = client.post(
            "/claims",
            json={"item_id": str(item.id), "secret_info": "Wallpaper is a photo of Phewa lake"},
            headers=auth(claimant),
        ).json()["claim"]

        anonymous = client.get(f"/items/{item.id}").json()
        as_owner = client.get(f"/items/{item.id}", headers=auth(owner)).json()
        as_claimant = client.get(f"/items/{item.id}", headers=auth(claimant)).json()

        assert (anonymous["is_owner"], anonymous["my_claim"]) == (False, None)
        assert (as_owner["is_owner"], as_owner["my_claim"]) == (True, None)
        assert as_claimant["my_claim"] == {"id": claim["id"], "status": "pending"}

    def test_bad_token_still_sees_public_view(self, client, make_user, make_item):
        item = make_item(make_user("finder"))

        res = client.get(f"/items/{item.id}", headers={"Authorization": "Bearer expired"})

        assert res.status_code == 200
        assert res.json()["is_owner"] is False


class TestUploads:

    def test_upload_evidence(self, client, auth, make_user, fake_storage):
        res = client.post(
            "/uploads",
            files={"file": ("receipt.png", png_bytes(), "image/png")},
            headers=auth(make_user()),
        )

        assert res.status_code == 201
        assert res.json()["key"].startswith("evidence/receipt-")
        assert res.json()["url"].startswith("https://cdn.example.test/evidence/")

    def test_upload_document_folder(self, client, auth, make_user, fake_storage):
        res = client.post(
            "/uploads",
            data={"folder": "documents"},
            files={"file": ("pan.png", png_bytes(), "image/png")},
            headers=auth(make_user()),
        )

        assert res.status_code == 201
        assert res.json()["key"].startswith("documents/pan-")

    def test_unknown_folder(self, client, auth, make_user, fake_storage):
        res = client.post(
            "/uploads",
            data={"folder": "secrets"},
            files={"file": ("x.png", png_bytes(), "image/png")},
            headers=auth(make_user()),
        )

        assert res.status_code == 400
        assert fake_storage == []

    def test_not_an_image(self, client, auth, make_user, fake_storage):
        res = client.post(
            "/uploads",
            files={"file": ("notes.txt", b"definitely not an image", "text/plain")},
            headers=auth(make_user()),
        )

        assert res.status_code == 400
        assert res.json() == {"error": "Only image uploads are supported"}

    def test_storage_outage(self, client, auth, make_user, monkeypatch):
        def unavailable(*args, **kwargs):
            raise EndpointConnectionError(endpoint_url="https://account.r2.cloudflarestorage.com")

        monkeypatch.setattr(s3_service, "upload_to_s3", unavailable)

        res = client.post(
            "/uploads",
            files={"file": ("receipt.png", png_bytes(), "image/png")},
            headers=auth(make_user()),
        )

        assert res.status_code == 500
        assert res.json() == {"error": "File storage is unavailable, please try again later"}

    def test_requires_login(self, client):
        res = client.post("/uploads", files={"file": ("x.png", png_bytes(), "image/png")})

        assert res.status_code == 401


class TestNotifications:

    def test_read_flow(self, client, auth, session, make_user):
        user = make_user()
        for n in range(3):
            emit_notification(session, user.id, "claim_received", "New Claim Received", f"claim {n}")

        listed = client.get("/notifications", headers=auth(user)).json()["notifications"]
        assert len(listed) == 3
        assert client.get("/notifications/count", headers=auth(user)).json() == {"count": 3}

        res = client.post(f"/notifications/{listed[0]['id']}/mark-read", headers=auth(user))
        assert res.status_code == 200

        unread = client.get("/notifications", params={"unread_only": True}, headers=auth(user)).json()
        assert len(unread["notifications"]) == 2

        marked = client.post("/notifications/mark-all-read", headers=auth(user)).json()
        assert marked == {"updated": 2}
        assert client.get("/notifications/count", headers=auth(user)).json() == {"count": 0}

    def test_cannot_mark_someone_elses(self, client, auth, session, make_user):
        owner = make_user("owner")
        notification = emit_notification(session, owner.id, "claim_received", "New Claim Received", "claim")

        res = client.post(f"/notifications/{notification.id}/mark-read", headers=auth(make_user("other")))

        assert res.status_code == 404
        assert res.json() == {"error": "Notification not found"}
