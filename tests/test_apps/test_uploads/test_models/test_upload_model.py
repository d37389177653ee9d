"""Tests for Upload and UserUpload models."""

import pytest
from django.db import IntegrityError

from server.apps.uploads.models import Upload, UserUpload

_SHA = 'ab' * 32


def _create_upload(user, **overrides):
    fields = {
        'user': user,
        'sha256': _SHA,
        'filesize': 1024,
        'extension': 'png',
        'original_filename': 'logo.png',
        'width': 64,
        'height': 48,
        'storage_key': f'original/ab/{_SHA}.png',
        'url': f'/uploads/original/ab/{_SHA}.png',
    }
    fields.update(overrides)
    return Upload.objects.create(**fields)


@pytest.mark.django_db
def test_upload_creation(user):
    """Test creating an upload."""
    upload = _create_upload(user)

    assert upload.id is not None
    assert upload.etag == ''
    assert not upload.secure
    assert upload.created_at is not None
    assert upload in user.created_uploads.all()


@pytest.mark.django_db
def test_upload_str(user):
    """Test upload string representation."""
    assert str(_create_upload(user)) == f'logo.png ({_SHA[:12]})'


@pytest.mark.django_db
def test_sha256_is_unique(user):
    """Test that content is stored at most once."""
    _create_upload(user)

    with pytest.raises(IntegrityError):
        _create_upload(user, storage_key='other')


@pytest.mark.django_db
def test_is_image(user):
    """Test image detection from dimensions."""
    assert _create_upload(user).is_image
    assert not _create_upload(
        user,
        sha256='cd' * 32,
        width=None,
        height=None,
    ).is_image


@pytest.mark.django_db
def test_get_url_extension(user):
    """Test extension extraction from the stored URL."""
    upload = _create_upload(user, url='/uploads/original/ab/x.jpeg')

    assert upload.get_url_extension() == '.jpeg'


@pytest.mark.django_db
def test_upload_survives_creator_deletion(user):
    """Test that deleting the creator keeps the artifact."""
    upload = _create_upload(user)

    user.delete()
    upload.refresh_from_db()

    assert upload.user is None


@pytest.mark.django_db
def test_user_upload_links(user, other_user):
    """Test ownership links, duplicates included."""
    upload = _create_upload(user)
    first = UserUpload.objects.create(user=user, upload=upload)
    UserUpload.objects.create(user=user, upload=upload)
    UserUpload.objects.create(user=other_user, upload=upload)

    assert str(first) == f'testuser:{upload.id}'
    assert upload.user_uploads.count() == 3
    assert user.user_uploads.count() == 2


@pytest.mark.django_db
def test_user_upload_cascade(user):
    """Test that links go away with their upload."""
    upload = _create_upload(user)
    UserUpload.objects.create(user=user, upload=upload)

    upload.delete()

    assert not UserUpload.objects.exists()
