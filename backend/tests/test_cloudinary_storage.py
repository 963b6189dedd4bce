import pytest

from rentals.media import extract_key
from rentals.utils.cloudinary_storage import CloudinaryStorage, resource_type_for


@pytest.fixture
def storage():
    return CloudinaryStorage(cloud_name="demo", api_key="123456", api_secret="not-a-real-secret", folder="rentals")


@pytest.mark.parametrize(
    "key",
    [
        "property-images/7/1700000000000-IMG_0001.JPG",
        "property-images/7/1700000000000-living room.jpg",
        "virtual-tour-videos/7/1700000000001-tour.mp4",
    ],
)
def test_signed_url_round_trips_to_key(storage, key):
    url = storage.signed_url(key, 3600)
    assert url.startswith("https://")
    assert extract_key(url) == key


def test_resource_type_follows_category():
    assert resource_type_for("virtual-tour-videos/1/1-a.mp4") == "video"
    assert resource_type_for("property-images/1/1-a.jpg") == "image"


def test_upload_sends_authenticated_asset_under_folder(storage, mocker):
    upload = mocker.patch("cloudinary.uploader.upload", return_value={"public_id": "rentals/property-images/7/1-a"})
    key = storage.upload("property-images/7/1-a.png", b"data", "image/png")
    assert key == "property-images/7/1-a.png"
    kwargs = upload.call_args.kwargs
    assert kwargs["public_id"] == "rentals/property-images/7/1-a"
    assert kwargs["type"] == "authenticated"
    assert kwargs["resource_type"] == "image"
