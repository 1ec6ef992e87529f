"""
Keeps a post's attached files in step with the images its content embeds.

Linking and cleanup are best effort. A URL that can't be resolved, a key with
no matching file, or a file that fails to delete is logged and skipped; none
of it fails the post operation that triggered it. All file access goes
through an OwnedFileLookup, so only files of the given owner are ever
attached or deleted.
"""

from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.models.file import File
from app.models.post import Post
from app.services.file import OwnedFileLookup
from app.utils.logger import post_logger
from app.utils.post_content import extract_image_urls, extract_storage_key


class PostFileReconciler:
    @staticmethod
    def resolve_content_keys(content: Optional[str]) -> List[str]:
        """Storage keys referenced by content, in order, without repeats."""
        keys: List[str] = []
        for url in extract_image_urls(content):
            key = extract_storage_key(url)
            if key is None:
                post_logger.debug("Skipping image URL outside storage", "RESOLVE", url=url)
                continue
            if key not in keys:
                keys.append(key)
        return keys

    @staticmethod
    def _add_missing(post: Post, files: Iterable[File]) -> List[File]:
        existing_ids = {f.id for f in post.attached_files}
        added = []
        for db_file in files:
            if db_file.id in existing_ids:
                continue
            post.attached_files.append(db_file)
            existing_ids.add(db_file.id)
            added.append(db_file)
        return added

    @staticmethod
    def attach_files(db: Session, post: Post, file_ids: Iterable[int], lookup: OwnedFileLookup) -> List[File]:
        """
        Attach the given files to the post.

        Ids that don't belong to the lookup's owner are dropped without error.
        Returns the files that were newly attached.
        """
        file_ids = list(dict.fromkeys(file_ids))
        files = lookup.find_by_ids(file_ids)
        if len(files) < len(file_ids):
            post_logger.debug("Ignoring file ids not owned by user", "ATTACH",
                              post_id=post.id, requested=len(file_ids), owned=len(files))

        added = PostFileReconciler._add_missing(post, files)
        if added:
            db.commit()
        return added

    @staticmethod
    def replace_attached_files(db: Session, post: Post, file_ids: Iterable[int], lookup: OwnedFileLookup) -> List[File]:
        """Replace the whole attachment set with the owner's files among `file_ids`."""
        file_ids = list(dict.fromkeys(file_ids))
        post.attached_files = lookup.find_by_ids(file_ids)
        db.commit()
        return list(post.attached_files)

    @staticmethod
    def link_files_from_content(db: Session, post: Post, lookup: OwnedFileLookup) -> List[File]:
        """
        Attach files whose keys appear in the post's content.

        Already attached files are left alone, so running this again on
        unchanged content attaches nothing. Returns the newly attached files.
        """
        keys = PostFileReconciler.resolve_content_keys(post.content)
        if not keys:
            return []

        try:
            files = lookup.find_by_keys(keys)
            if len(files) < len(keys):
                found = {f.file_key for f in files}
                post_logger.debug("Some content images have no file record", "LINK",
                                  post_id=post.id, missing=[k for k in keys if k not in found])

            added = PostFileReconciler._add_missing(post, files)
            if added:
                db.commit()
                post_logger.info(f"Linked {len(added)} file(s) from content", "LINK",
                                 post_id=post.id, file_ids=[f.id for f in added])
            return added
        except Exception as e:
            db.rollback()
            post_logger.exception("Linking files from content failed", e, "LINK", post_id=post.id)
            return []

    @staticmethod
    def removed_keys(old_content: Optional[str], new_content: Optional[str]) -> List[str]:
        """Keys referenced by the old content but no longer by the new one."""
        remaining = set(PostFileReconciler.resolve_content_keys(new_content))
        return [key for key in PostFileReconciler.resolve_content_keys(old_content) if key not in remaining]

    @staticmethod
    def cleanup_removed_images(
        db: Session,
        post: Post,
        old_content: Optional[str],
        new_content: Optional[str],
        lookup: OwnedFileLookup,
    ) -> List[int]:
        """
        Delete files whose images were removed from the post's content.

        Files still attached to another post are kept. Each deletion is
        independent: a failure is logged and the rest carry on.
        Returns the ids of the deleted files.
        """
        deleted: List[int] = []
        for key in PostFileReconciler.removed_keys(old_content, new_content):
            try:
                db_file = lookup.find_by_key(key)
                if db_file is None:
                    post_logger.debug("Removed image has no file record", "CLEANUP", post_id=post.id, key=key)
                    continue

                other_posts = [p.id for p in db_file.posts if p.id != post.id]
                if other_posts:
                    post_logger.info("Removed image still used by other posts, keeping file", "CLEANUP",
                                     post_id=post.id, file_id=db_file.id, other_posts=other_posts)
                    continue

                file_id = db_file.id
                lookup.delete(file_id)
                deleted.append(file_id)
                post_logger.info("Deleted file removed from content", "CLEANUP",
                                 post_id=post.id, file_id=file_id, key=key)
            except Exception as e:
                db.rollback()
                post_logger.exception("Failed to delete removed image", e, "CLEANUP", post_id=post.id, key=key)

        return deleted
