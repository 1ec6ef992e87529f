"""
Unit tests for PostFileReconciler.

Covers linking content images to file records and cleaning up files whose
images were removed from a post, including the ownership boundaries.
"""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from app.models.post import Post
from app.services.file import OwnedFileLookup
from app.services.post_reconciler import PostFileReconciler
from app.services.supabase_storage import StorageError

OLD_KEY = "uploads/image/2024/01/old.png"
KEEP_KEY = "uploads/image/2024/01/keep.png"
NEW_KEY = "uploads/image/2024/01/new.png"


@pytest.fixture
def make_post(db_session):
    def _make_post(owner, content, slug=None):
        post = Post(
            user_id=owner.id,
            title="Post",
            slug=slug,
            content=content,
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
        )
        db_session.add(post)
        db_session.commit()
        db_session.refresh(post)
        return post
    return _make_post


class TestResolveContentKeys:
    def test_mixed_shapes_are_resolved_and_deduplicated(self):
        content = (
            f'<img src="{OLD_KEY}">'
            f'<img src="https://b.s3.ap-northeast-2.amazonaws.com/{OLD_KEY}?sig=1">'
            '<img src="https://example.com/cat.png">'
            f'<img src="http://localhost:3000/api/v1/files/proxy/{NEW_KEY}">'
        )

        assert PostFileReconciler.resolve_content_keys(content) == [OLD_KEY, NEW_KEY]

    def test_removed_keys(self):
        old = f'<img src="{OLD_KEY}"><img src="{KEEP_KEY}">'
        new = f'<img src="{KEEP_KEY}"><img src="{NEW_KEY}">'

        assert PostFileReconciler.removed_keys(old, new) == [OLD_KEY]
        assert PostFileReconciler.removed_keys(new, new) == []


class TestLinkFilesFromContent:
    def test_links_owned_files(self, db_session, author, make_file, make_post):
        db_file = make_file(author, NEW_KEY)
        post = make_post(author, f'<p>hi</p><img src="{NEW_KEY}?w=100">')

        added = PostFileReconciler.link_files_from_content(db_session, post, OwnedFileLookup(db_session, author.id))

        assert [f.id for f in added] == [db_file.id]
        db_session.refresh(post)
        assert [f.id for f in post.attached_files] == [db_file.id]

    def test_linking_twice_is_idempotent(self, db_session, author, make_file, make_post):
        make_file(author, NEW_KEY)
        post = make_post(author, f'<img src="{NEW_KEY}"><img src="{NEW_KEY}">')
        lookup = OwnedFileLookup(db_session, author.id)

        PostFileReconciler.link_files_from_content(db_session, post, lookup)
        second = PostFileReconciler.link_files_from_content(db_session, post, lookup)

        assert second == []
        db_session.refresh(post)
        assert len(post.attached_files) == 1

    def test_other_users_file_is_not_linked(self, db_session, author, other_user, make_file, make_post):
        make_file(other_user, NEW_KEY)
        post = make_post(author, f'<img src="{NEW_KEY}">')

        added = PostFileReconciler.link_files_from_content(db_session, post, OwnedFileLookup(db_session, author.id))

        assert added == []
        db_session.refresh(post)
        assert post.attached_files == []

    def test_lookup_failure_does_not_escape(self, db_session, author, make_post):
        post = make_post(author, f'<img src="{NEW_KEY}">')
        lookup = MagicMock(spec=OwnedFileLookup)
        lookup.find_by_keys.side_effect = RuntimeError("lookup exploded")

        added = PostFileReconciler.link_files_from_content(db_session, post, lookup)

        assert added == []
        lookup.find_by_keys.assert_called_once_with([NEW_KEY])
        db_session.refresh(post)
        assert post.content == f'<img src="{NEW_KEY}">'

    def test_unknown_and_external_images_are_skipped(self, db_session, author, make_post):
        post = make_post(author, f'<img src="{NEW_KEY}"><img src="https://example.com/cat.png">')

        added = PostFileReconciler.link_files_from_content(db_session, post, OwnedFileLookup(db_session, author.id))

        assert added == []


class TestAttachFiles:
    def test_foreign_ids_are_dropped(self, db_session, author, other_user, make_file, make_post):
        mine = make_file(author, NEW_KEY)
        theirs = make_file(other_user, OLD_KEY)
        post = make_post(author, "<p>text</p>")

        added = PostFileReconciler.attach_files(
            db_session, post, [mine.id, theirs.id, mine.id, 9999], OwnedFileLookup(db_session, author.id)
        )

        assert [f.id for f in added] == [mine.id]
        db_session.refresh(post)
        assert [f.id for f in post.attached_files] == [mine.id]

    def test_replace_attached_files(self, db_session, author, make_file, make_post):
        first = make_file(author, OLD_KEY)
        second = make_file(author, NEW_KEY)
        post = make_post(author, "<p>text</p>")
        lookup = OwnedFileLookup(db_session, author.id)
        PostFileReconciler.attach_files(db_session, post, [first.id], lookup)

        PostFileReconciler.replace_attached_files(db_session, post, [second.id], lookup)

        db_session.refresh(post)
        assert [f.id for f in post.attached_files] == [second.id]


class TestCleanupRemovedImages:
    def test_removed_image_is_deleted(self, db_session, author, make_file, make_post, storage):
        old_file_id = make_file(author, OLD_KEY).id
        keep_file = make_file(author, KEEP_KEY)
        old_content = f'<img src="{OLD_KEY}"><img src="{KEEP_KEY}">'
        post = make_post(author, old_content)
        lookup = OwnedFileLookup(db_session, author.id)
        PostFileReconciler.link_files_from_content(db_session, post, lookup)

        deleted = PostFileReconciler.cleanup_removed_images(
            db_session, post, old_content, f'<img src="{KEEP_KEY}">', lookup
        )

        assert deleted == [old_file_id]
        storage["delete_object"].assert_called_once_with(OLD_KEY)
        assert lookup.find_by_key(OLD_KEY) is None
        assert lookup.find_by_key(KEEP_KEY).id == keep_file.id

    def test_unchanged_content_deletes_nothing(self, db_session, author, make_file, make_post, storage):
        make_file(author, OLD_KEY)
        content = f'<img src="{OLD_KEY}">'
        post = make_post(author, content)

        deleted = PostFileReconciler.cleanup_removed_images(
            db_session, post, content, content, OwnedFileLookup(db_session, author.id)
        )

        assert deleted == []
        storage["delete_object"].assert_not_called()

    def test_key_still_present_under_another_url_shape_is_kept(
        self, db_session, author, make_file, make_post, storage
    ):
        make_file(author, OLD_KEY)
        old_content = f'<img src="{OLD_KEY}">'
        new_content = f'<img src="https://blog.example.com/api/v1/files/proxy/{OLD_KEY}">'
        post = make_post(author, old_content)

        deleted = PostFileReconciler.cleanup_removed_images(
            db_session, post, old_content, new_content, OwnedFileLookup(db_session, author.id)
        )

        assert deleted == []
        storage["delete_object"].assert_not_called()

    def test_other_users_file_is_never_deleted(self, db_session, author, other_user, make_file, make_post, storage):
        theirs = make_file(other_user, OLD_KEY)
        post = make_post(author, f'<img src="{OLD_KEY}">')

        deleted = PostFileReconciler.cleanup_removed_images(
            db_session, post, post.content, "<p>gone</p>", OwnedFileLookup(db_session, author.id)
        )

        assert deleted == []
        storage["delete_object"].assert_not_called()
        assert OwnedFileLookup(db_session, other_user.id).find_by_key(OLD_KEY).id == theirs.id

    def test_file_used_by_another_post_is_kept(self, db_session, author, make_file, make_post, storage):
        shared = make_file(author, OLD_KEY)
        content = f'<img src="{OLD_KEY}">'
        post = make_post(author, content)
        other_post = make_post(author, content)
        lookup = OwnedFileLookup(db_session, author.id)
        PostFileReconciler.link_files_from_content(db_session, post, lookup)
        PostFileReconciler.link_files_from_content(db_session, other_post, lookup)

        deleted = PostFileReconciler.cleanup_removed_images(db_session, post, content, "<p>gone</p>", lookup)

        assert deleted == []
        storage["delete_object"].assert_not_called()
        assert lookup.find_by_key(OLD_KEY).id == shared.id

    def test_one_failure_does_not_stop_the_rest(self, db_session, author, make_file, make_post, storage):
        failing = make_file(author, OLD_KEY)
        other_id = make_file(author, NEW_KEY).id
        old_content = f'<img src="{OLD_KEY}"><img src="{NEW_KEY}">'
        post = make_post(author, old_content)
        lookup = OwnedFileLookup(db_session, author.id)

        def delete_object(key):
            if key == OLD_KEY:
                raise StorageError("bucket unavailable")

        storage["delete_object"].side_effect = delete_object

        deleted = PostFileReconciler.cleanup_removed_images(db_session, post, old_content, "<p>empty</p>", lookup)

        assert deleted == [other_id]
        assert storage["delete_object"].call_count == 2
        # the record survives when its object could not be removed
        assert lookup.find_by_key(OLD_KEY).id == failing.id
        assert lookup.find_by_key(NEW_KEY) is None
