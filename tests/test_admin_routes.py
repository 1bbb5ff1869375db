"""
Admin panel tests: dashboard, content CRUD over HTML forms and JSON,
method override, upload failures and the message inbox.
"""

import io
import re
from unittest.mock import patch

import pytest

from campuscms.core.errors import StorageError
from campuscms.modules.public.messages import MessageStore

from conftest import JPEG_BYTES, MP4_BYTES, login, make_app, uploaded_files

JSON = {"Accept": "application/json"}


def photo_form(**overrides):
    data = {
        "title": "Campus Gate",
        "description": "Main entrance",
        "is_featured": ["0", "1"],
        "image": (io.BytesIO(JPEG_BYTES), "gate.jpg", "image/jpeg"),
    }
    data.update(overrides)
    return data


def create_announcement(client, **fields):
    payload = {"title": "Open day", "content": "Visit the campus on Saturday."}
    payload.update(fields)
    response = client.post("/admin/announcements", json=payload)
    assert response.status_code == 201
    return response.get_json()["item"]


def add_message(app, **fields):
    data = {
        "name": "Ada",
        "email": "ada@example.com",
        "subject": "Admissions",
        "message": "When does the autumn term start?",
    }
    data.update(fields)
    with app.app_context():
        return MessageStore.create(data)


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------

def test_unauthenticated_upload_is_rejected_unread(client, app):
    with patch("campuscms.modules.content_admin.routes.read_upload") as read_upload:
        response = client.post("/admin/photos", data=photo_form(), content_type="multipart/form-data")
        api_response = client.post("/admin/photos", data=photo_form(),
                                   content_type="multipart/form-data", headers=JSON)

    assert response.status_code == 302
    assert "/admin/login" in response.headers["Location"]
    assert api_response.status_code == 401
    read_upload.assert_not_called()
    assert uploaded_files(app, "photos") == []


def test_every_admin_page_requires_login(client):
    for path in ("/admin/", "/admin/dashboard", "/admin/messages", "/admin/change-password",
                 "/admin/announcements", "/admin/photos/new", "/admin/videos"):
        response = client.get(path)
        assert response.status_code == 302, path
        assert "/admin/login" in response.headers["Location"]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def test_dashboard_counts(admin_client, app):
    create_announcement(admin_client)
    add_message(app)

    response = admin_client.get("/admin/dashboard", headers=JSON)
    counts = response.get_json()["counts"]
    assert counts == {"announcements": 1, "photos": 0, "videos": 0, "messages": 1}

    page = admin_client.get("/admin/")
    assert page.status_code == 200
    assert b"Announcements: 1" in page.data
    assert b"Admissions" in page.data


def test_change_password(admin_client):
    response = admin_client.post("/admin/change-password", data={
        "current_password": "wrong-password",
        "new_password": "Another-Secret-99",
        "confirm_password": "Another-Secret-99",
    }, headers=JSON)
    assert response.status_code == 400

    response = admin_client.post("/admin/change-password", data={
        "current_password": "Campus-Gate-42",
        "new_password": "Another-Secret-99",
        "confirm_password": "Something-Else-99",
    }, headers=JSON)
    assert response.status_code == 400
    assert response.get_json()["message"] == "New passwords do not match"

    response = admin_client.post("/admin/change-password", data={
        "current_password": "Campus-Gate-42",
        "new_password": "Another-Secret-99",
        "confirm_password": "Another-Secret-99",
    })
    assert response.status_code == 302

    admin_client.get("/admin/logout")
    assert login(admin_client).status_code == 401
    assert login(admin_client, password="Another-Secret-99").status_code == 302


def test_message_inbox(admin_client, app):
    message = add_message(app)

    page = admin_client.get("/admin/messages")
    assert b"When does the autumn term start?" in page.data

    response = admin_client.post(f"/admin/messages/{message['id']}", data={"_method": "DELETE"})
    assert response.status_code == 302
    assert b"Message deleted" in admin_client.get("/admin/messages").data

    response = admin_client.delete(f"/admin/messages/{message['id']}", headers=JSON)
    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Content CRUD
# ---------------------------------------------------------------------------

def test_create_photo_from_form(admin_client, app):
    response = admin_client.post("/admin/photos", data=photo_form(), content_type="multipart/form-data")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/admin/photos")

    page = admin_client.get("/admin/photos")
    assert b"Photo created successfully" in page.data
    assert b"Campus Gate" in page.data

    items = admin_client.get("/admin/photos", headers=JSON).get_json()["items"]
    assert len(items) == 1
    assert items[0]["is_featured"] is True
    assert len(uploaded_files(app, "photos")) == 1


def test_create_video_from_form(admin_client, app):
    response = admin_client.post("/admin/videos", data={
        "title": "Campus tour",
        "description": "Walk around the grounds",
        "source": "upload",
        "video": (io.BytesIO(MP4_BYTES), "tour.mp4", "video/mp4"),
    }, content_type="multipart/form-data")
    assert response.status_code == 302
    assert len(uploaded_files(app, "videos")) == 1


def test_youtube_video_skips_file_field(admin_client, app):
    response = admin_client.post("/admin/videos", data={
        "title": "Campus tour",
        "description": "Walk around the grounds",
        "source": "youtube",
        "youtube_url": "https://youtu.be/dQw4w9WgXcQ",
        "video": (io.BytesIO(b"not a video"), "notes.txt", "text/plain"),
    }, content_type="multipart/form-data", headers=JSON)
    assert response.status_code == 201
    assert response.get_json()["item"]["video_url"] == "https://www.youtube.com/embed/dQw4w9WgXcQ"
    assert uploaded_files(app, "videos") == []


def test_oversized_upload_keeps_form_data(admin_client, app):
    big = b"\xff" * (6 * 1024 * 1024)
    response = admin_client.post("/admin/photos", data=photo_form(
        title="Graduation",
        image=(io.BytesIO(big), "big.jpg", "image/jpeg"),
    ), content_type="multipart/form-data")

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/admin/photos/new")

    page = admin_client.get("/admin/photos/new")
    assert b"File too large" in page.data
    assert b'value="Graduation"' in page.data
    assert uploaded_files(app, "photos") == []

    # Form data is shown once
    assert b'value="Graduation"' not in admin_client.get("/admin/photos/new").data


def test_wrong_file_type_json(admin_client):
    response = admin_client.post("/admin/photos", data=photo_form(
        image=(io.BytesIO(b"plain text"), "notes.txt", "text/plain"),
    ), content_type="multipart/form-data", headers=JSON)
    assert response.status_code == 400
    assert response.get_json() == {
        "success": False, "message": "Only images (JPEG, JPG, PNG, GIF) are allowed",
    }


def test_json_create_and_validation(admin_client):
    item = create_announcement(admin_client, media={"url": "https://youtu.be/dQw4w9WgXcQ"})
    assert item["is_active"] is True
    assert item["media"]["type"] == "video"

    response = admin_client.post("/admin/announcements", json={"title": "", "content": "Body"})
    assert response.status_code == 400
    assert response.get_json()["message"] == "Title is required"


def test_get_item(admin_client):
    item = create_announcement(admin_client)
    response = admin_client.get(f"/admin/announcements/{item['id']}")
    assert response.get_json()["item"]["title"] == "Open day"

    assert admin_client.get("/admin/announcements/missing").status_code == 404


def test_update_via_put(admin_client):
    item = create_announcement(admin_client)
    response = admin_client.put(f"/admin/announcements/{item['id']}", json={"is_active": False})
    assert response.status_code == 200

    updated = response.get_json()["item"]
    assert updated["is_active"] is False
    assert updated["title"] == "Open day"


def test_edit_form_update(admin_client):
    item = create_announcement(admin_client)

    page = admin_client.get(f"/admin/announcements/{item['id']}/edit")
    assert b'name="_method" value="PUT"' in page.data
    assert b'value="Open day"' in page.data

    response = admin_client.post(f"/admin/announcements/{item['id']}", data={
        "_method": "PUT",
        "title": "Open day moved",
        "content": "Now on Sunday.",
        "is_active": ["0", "1"],
    })
    assert response.status_code == 302
    assert b"Announcement updated successfully" in admin_client.get("/admin/announcements").data

    stored = admin_client.get(f"/admin/announcements/{item['id']}").get_json()["item"]
    assert stored["title"] == "Open day moved"
    assert stored["is_active"] is True


def test_edit_missing_item_redirects(admin_client):
    response = admin_client.get("/admin/photos/missing/edit")
    assert response.status_code == 302
    assert b"Photo not found" in admin_client.get("/admin/photos").data


def test_update_missing_item_json(admin_client):
    response = admin_client.put("/admin/videos/missing", json={"title": "x"})
    assert response.status_code == 404


def test_photo_update_replaces_image(admin_client, app):
    admin_client.post("/admin/photos", data=photo_form(), content_type="multipart/form-data")
    item = admin_client.get("/admin/photos", headers=JSON).get_json()["items"][0]

    response = admin_client.post(f"/admin/photos/{item['id']}", data={
        "_method": "PUT",
        "title": "Campus Gate at dusk",
        "image": (io.BytesIO(JPEG_BYTES), "dusk.jpg", "image/jpeg"),
    }, content_type="multipart/form-data", headers=JSON)
    assert response.status_code == 200

    updated = response.get_json()["item"]
    assert updated["storage_key"] != item["storage_key"]
    assert uploaded_files(app, "photos") == [updated["storage_key"].split("/")[-1]]


def test_method_override_delete_from_form(admin_client):
    item = create_announcement(admin_client)

    response = admin_client.post(f"/admin/announcements/{item['id']}", data={"_method": "DELETE"})
    assert response.status_code == 302
    assert b"Announcement deleted successfully" in admin_client.get("/admin/announcements").data
    assert admin_client.get(f"/admin/announcements/{item['id']}").status_code == 404


def test_method_override_header(admin_client):
    item = create_announcement(admin_client)
    response = admin_client.post(f"/admin/announcements/{item['id']}",
                                 headers={"X-HTTP-Method-Override": "DELETE", **JSON})
    assert response.get_json() == {"success": True}


def test_delete_endpoints(admin_client, app):
    admin_client.post("/admin/photos", data=photo_form(), content_type="multipart/form-data")
    item = admin_client.get("/admin/photos", headers=JSON).get_json()["items"][0]

    response = admin_client.post(f"/admin/photos/{item['id']}/delete")
    assert response.status_code == 302
    assert uploaded_files(app, "photos") == []

    response = admin_client.delete(f"/admin/photos/{item['id']}", headers=JSON)
    assert response.status_code == 404
    assert response.get_json()["success"] is False


def test_storage_failure_is_reported(admin_client, app):
    storage = app.extensions["campuscms"].storage
    with patch.object(storage, "_put", side_effect=StorageError("disk full", details="ENOSPC")):
        response = admin_client.post("/admin/photos", data=photo_form(),
                                     content_type="multipart/form-data", headers=JSON)
        form_response = admin_client.post("/admin/photos", data=photo_form(),
                                          content_type="multipart/form-data")

    assert response.status_code == 503
    assert response.get_json()["message"] == "The file could not be stored. Please try again."
    assert b"ENOSPC" not in response.data

    assert form_response.status_code == 302
    assert b"The file could not be stored" in admin_client.get("/admin/photos/new").data
    assert admin_client.get("/admin/photos", headers=JSON).get_json()["items"] == []


def test_request_over_content_limit(tmp_dir):
    app = make_app(tmp_dir, MAX_CONTENT_LENGTH=4096)
    client = app.test_client()
    login(client)

    response = client.post("/admin/photos", data=photo_form(
        image=(io.BytesIO(b"\xff" * 8192), "big.jpg", "image/jpeg"),
    ), content_type="multipart/form-data", headers=JSON)
    assert response.status_code == 413
    assert response.get_json()["success"] is False


DELETE_FORM_RE = re.compile(
    r'<form method="post" action="([^"]+)">\s*<input type="hidden" name="_method" value="(\w+)">'
)


@pytest.mark.parametrize("kind", ["announcements", "photos", "videos"])
def test_list_page_delete_button(admin_client, app, kind):
    if kind == "announcements":
        create_announcement(admin_client)
    elif kind == "photos":
        admin_client.post("/admin/photos", data=photo_form(), content_type="multipart/form-data")
    else:
        admin_client.post("/admin/videos", data={
            "title": "Campus tour",
            "description": "Walk around the grounds",
            "video": (io.BytesIO(MP4_BYTES), "tour.mp4", "video/mp4"),
        }, content_type="multipart/form-data")
    assert len(admin_client.get(f"/admin/{kind}", headers=JSON).get_json()["items"]) == 1

    match = DELETE_FORM_RE.search(admin_client.get(f"/admin/{kind}").data.decode())
    action, method = match.groups()

    response = admin_client.post(action, data={"_method": method})
    assert response.status_code == 302
    assert admin_client.get(f"/admin/{kind}", headers=JSON).get_json()["items"] == []
    assert uploaded_files(app, kind) == []
