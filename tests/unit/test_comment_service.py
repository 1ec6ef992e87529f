from datetime import datetime

import pytest
from fastapi import HTTPException

from app.models.post import Post
from app.schemas.comment import CommentCreate, CommentUpdate
from app.services.comment import CommentService


@pytest.fixture
def post(db_session, author):
    post = Post(user_id=author.id, title="Commented", slug="2024-01-15-commented-800000",
                content="<p>text</p>", created_at=datetime.utcnow(), updated_at=datetime.utcnow())
    db_session.add(post)
    db_session.commit()
    db_session.refresh(post)
    return post


def comment_on(db_session, post, user, content="Nice post", parent_id=None):
    return CommentService.create_comment(
        db_session, CommentCreate(post_id=post.id, content=content, parent_comment_id=parent_id), user
    )


def test_create_and_thread_replies(db_session, post, author, other_user):
    top = comment_on(db_session, post, other_user, "First!")
    comment_on(db_session, post, author, "Thanks", parent_id=top.id)

    threads = CommentService.get_comments_for_post(db_session, post.id)

    assert len(threads) == 1
    assert threads[0].content == "First!"
    assert [r.content for r in threads[0].replies] == ["Thanks"]
    assert threads[0].author.username == "stranger"


def test_comment_on_missing_post(db_session, other_user):
    with pytest.raises(HTTPException) as exc_info:
        CommentService.create_comment(db_session, CommentCreate(post_id=999, content="hi"), other_user)

    assert exc_info.value.status_code == 404


def test_reply_must_belong_to_same_post(db_session, post, author, other_user):
    other_post = Post(user_id=author.id, title="Other", content="<p>x</p>")
    db_session.add(other_post)
    db_session.commit()
    top = comment_on(db_session, post, other_user)

    with pytest.raises(HTTPException) as exc_info:
        CommentService.create_comment(
            db_session, CommentCreate(post_id=other_post.id, content="x", parent_comment_id=top.id), author
        )

    assert exc_info.value.status_code == 400


def test_update_only_by_author(db_session, post, author, other_user):
    comment = comment_on(db_session, post, other_user)

    updated = CommentService.update_comment(db_session, comment.id, CommentUpdate(content="Edited"), other_user)
    assert updated.content == "Edited"

    with pytest.raises(HTTPException) as exc_info:
        CommentService.update_comment(db_session, comment.id, CommentUpdate(content="Nope"), author)
    assert exc_info.value.status_code == 403


def test_soft_delete_hides_comment(db_session, post, author, other_user):
    top = comment_on(db_session, post, other_user)
    reply = comment_on(db_session, post, author, "reply", parent_id=top.id)

    CommentService.delete_comment(db_session, reply.id, author)

    assert CommentService.get_comments_for_post(db_session, post.id)[0].replies == []
    assert [c.id for c in CommentService.list_comments(db_session)] == [top.id]
    with pytest.raises(HTTPException) as exc_info:
        CommentService.delete_comment(db_session, reply.id, author)
    assert exc_info.value.status_code == 404
