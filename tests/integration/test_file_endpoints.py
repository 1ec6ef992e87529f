from app.services.supabase_storage import StorageError
from tests.utils_jwt import auth_header_for

FILES_URL = "/api/v1/files"
IMAGE_KEY = "uploads/image/2024/01/photo.png"


def test_upload_complete(client, auth_header):
    response = client.post(f"{FILES_URL}/upload-complete", headers=auth_header, json={
        "file_key": IMAGE_KEY,
        "file_name": "photo.png",
        "mime_type": "IMAGE/PNG",
        "file_size": 4096,
        "file_type": "image",
    })

    assert response.status_code == 201
    data = response.json()
    assert data["file_key"] == IMAGE_KEY
    assert data["mime_type"] == "image/png"
    assert data["access_url"] == "https://signed.example.com/object"


def test_upload_complete_rejects_foreign_prefix(client, auth_header):
    response = client.post(f"{FILES_URL}/upload-complete", headers=auth_header, json={
        "file_key": "elsewhere/photo.png",
        "file_name": "photo.png",
        "mime_type": "image/png",
        "file_size": 10,
    })

    assert response.status_code == 400


def test_list_and_stats(client, auth_header, author, make_file):
    make_file(author, IMAGE_KEY, file_size=1024)
    make_file(author, "uploads/general/2024/01/cv.pdf", file_type="general", mime_type="application/pdf",
              file_size=1024)

    listing = client.get(f"{FILES_URL}/", headers=auth_header, params={"file_type": "image"})
    stats = client.get(f"{FILES_URL}/stats", headers=auth_header)

    assert listing.status_code == 200
    assert [f["file_key"] for f in listing.json()["files"]] == [IMAGE_KEY]
    assert stats.json()["total_files"] == 2
    assert stats.json()["total_size_display"] == "2 KB"


def test_get_file_ownership(client, auth_header, author, other_user, make_file):
    file_id = make_file(author, IMAGE_KEY).id

    assert client.get(f"{FILES_URL}/{file_id}", headers=auth_header).status_code == 200
    assert client.get(f"{FILES_URL}/{file_id}", headers=auth_header_for(other_user)).status_code == 403
    assert client.get(f"{FILES_URL}/999", headers=auth_header).status_code == 404


def test_proxy_streams_file(client, author, make_file, storage):
    make_file(author, IMAGE_KEY)

    response = client.get(f"{FILES_URL}/proxy/{IMAGE_KEY}")

    assert response.status_code == 200
    assert response.content == b"image-bytes"
    assert response.headers["content-type"] == "image/png"
    storage["download_object"].assert_called_once_with(IMAGE_KEY)


def test_proxy_unknown_key(client):
    assert client.get(f"{FILES_URL}/proxy/uploads/missing.png").status_code == 404


def test_proxy_storage_failure(client, author, make_file, storage):
    make_file(author, IMAGE_KEY)
    storage["download_object"].side_effect = StorageError("unreachable")

    assert client.get(f"{FILES_URL}/proxy/{IMAGE_KEY}").status_code == 502


def test_delete_file(client, auth_header, author, other_user, make_file, storage):
    file_id = make_file(author, IMAGE_KEY).id

    assert client.delete(f"{FILES_URL}/{file_id}", headers=auth_header_for(other_user)).status_code == 403
    storage["delete_object"].assert_not_called()

    assert client.delete(f"{FILES_URL}/{file_id}", headers=auth_header).status_code == 204
    storage["delete_object"].assert_called_once_with(IMAGE_KEY)
    assert client.get(f"{FILES_URL}/{file_id}", headers=auth_header).status_code == 404


def test_delete_file_storage_failure(client, auth_header, author, make_file, storage):
    file_id = make_file(author, IMAGE_KEY).id
    storage["delete_object"].side_effect = StorageError("unreachable")

    assert client.delete(f"{FILES_URL}/{file_id}", headers=auth_header).status_code == 502
    assert client.get(f"{FILES_URL}/{file_id}", headers=auth_header).status_code == 200
