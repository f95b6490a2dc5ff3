"""
Forum threads

Posts hold an ordered list of top-level comment ids and every comment holds
an ordered list of reply ids. A thread is therefore a tree spread over
independent documents:

    post.comments -> comment.replies -> comment.replies -> ...

Writing a comment is two steps: insert the comment, then add its id to the
parent's child list. The store offers no multi-document transaction here, so
the second step uses $addToSet and can be re-run safely; ``reconcile_orphans``
repairs comments whose linkage step never happened.

Reading materialises whole trees level by level: one query per nesting level
for the comments and one query per author kind, however many posts there are.
"""

import logging
from typing import Any, Dict, List, Optional

import config
from auth import author_type_for
from authors import ref_of, resolve, resolve_many
from database import add_to_array, create_document, get_document, get_documents, get_documents_by_ids
from errors import NotFoundError, ValidationError
from schemas import Comment, Post

logger = logging.getLogger(__name__)

OLDEST_FIRST = [("created_at", 1), ("_id", 1)]
NEWEST_FIRST = [("created_at", -1), ("_id", -1)]


def _chrono_key(doc: dict):
    return (doc.get("created_at"), doc["_id"])


def _require_content(content: Optional[str], what: str) -> str:
    if not isinstance(content, str) or not content.strip():
        raise ValidationError(f"{what} content cannot be empty")
    return content


def _expand(parents: List[dict], field: str, max_depth: Optional[int], depth: int = 1) -> List[dict]:
    """Replace the id lists in ``field`` with comment documents, one tree level per query.

    ``depth`` is the comment level of the children being attached, counted from
    the post (top-level comments are level 1). Children are ordered oldest first
    and ids that point at nothing are dropped. Comments deeper than ``max_depth``
    are not attached, their parents keep the id lists. Returns every comment
    document attached.
    """
    attached = []
    seen = set()
    while parents:
        if max_depth is not None and depth > max_depth:
            break
        wanted = [cid for p in parents for cid in p.get(field, []) if cid not in seen]
        children = {str(c["_id"]): c for c in get_documents_by_ids("comment", wanted)}
        seen.update(children)

        for parent in parents:
            kids = [children[cid] for cid in parent.get(field, []) if cid in children]
            kids.sort(key=_chrono_key)
            parent[field] = kids

        parents = sorted(children.values(), key=_chrono_key)
        attached.extend(parents)
        field = "replies"
        depth += 1
    return attached


def _hydrate_authors(entries: List[dict]) -> None:
    authors = resolve_many(ref_of(e) for e in entries)
    for entry in entries:
        entry["author"] = authors.get(ref_of(entry))


def list_posts(max_depth: Optional[int] = None) -> List[Dict[str, Any]]:
    """All posts, newest first, each carrying its full discussion tree with authors resolved."""
    if max_depth is None:
        max_depth = config.FORUM_MAX_DEPTH
    posts = get_documents("post", sort=NEWEST_FIRST)
    comments = _expand(posts, "comments", max_depth)
    _hydrate_authors(posts + comments)
    return posts


def _level_of(comment: dict) -> int:
    """Nesting level of a comment, 1 for top-level. Walks up the parent chain."""
    level = 1
    seen = {str(comment["_id"])}
    parent_id = comment.get("parent_comment")
    while parent_id and parent_id not in seen:
        parent = get_document("comment", parent_id, projection={"parent_comment": 1})
        if parent is None:
            break
        seen.add(parent_id)
        level += 1
        parent_id = parent.get("parent_comment")
    return level


def get_comment(comment_id: str, max_depth: Optional[int] = None) -> Dict[str, Any]:
    """A single comment with its reply subtree."""
    comment = get_document("comment", comment_id)
    if comment is None:
        raise NotFoundError("Comment not found")
    if max_depth is None:
        max_depth = config.FORUM_MAX_DEPTH
    level = _level_of(comment) if max_depth is not None else 1
    replies = _expand([comment], "replies", max_depth, depth=level + 1)
    _hydrate_authors([comment] + replies)
    return comment


def create_post(author_id: str, author_role: str, content: Optional[str]) -> Dict[str, Any]:
    content = _require_content(content, "Post")
    post = Post(content=content, author=str(author_id), author_type=author_type_for(author_role))
    post_id = create_document("post", post)
    logger.info(f"Post {post_id} created by {post.author_type} {post.author}")

    created = get_document("post", post_id)
    created["author"] = resolve(ref_of(created))
    return created


def link_comment(comment: dict) -> bool:
    """Add a comment's id to its parent's child list. Safe to repeat.

    Returns False when the parent document does not exist.
    """
    comment_id = str(comment["_id"])
    if comment.get("parent_comment"):
        linked = add_to_array("comment", comment["parent_comment"], "replies", comment_id)
    else:
        linked = add_to_array("post", comment["post"], "comments", comment_id)
    if not linked:
        logger.warning(f"Comment {comment_id} could not be linked, parent missing")
    return linked


def create_comment(post_id: str, author_id: str, author_role: str, content: Optional[str],
                   parent_comment_id: Optional[str] = None) -> Dict[str, Any]:
    """Create a top-level comment on a post, or a reply when ``parent_comment_id`` is given."""
    content = _require_content(content, "Comment")

    post = get_document("post", post_id, projection={"_id": 1})
    if post is None:
        raise NotFoundError("Post not found")
    post_id = str(post["_id"])

    if parent_comment_id:
        parent = get_document("comment", parent_comment_id, projection={"post": 1})
        if parent is None or parent.get("post") != post_id:
            raise NotFoundError("Parent comment not found")
        parent_comment_id = str(parent["_id"])
    else:
        parent_comment_id = None

    comment = Comment(
        content=content,
        author=str(author_id),
        author_type=author_type_for(author_role),
        post=post_id,
        parent_comment=parent_comment_id,
    )
    comment_id = create_document("comment", comment)
    created = get_document("comment", comment_id)
    link_comment(created)
    logger.info(f"Comment {comment_id} created on post {post_id}"
                + (f" in reply to {parent_comment_id}" if parent_comment_id else ""))

    created["author"] = resolve(ref_of(created))
    return created


def reconcile_orphans() -> int:
    """Link every comment missing from its parent's child list. Returns how many were repaired."""
    linked = set()
    for post in get_documents("post", projection={"comments": 1}):
        linked.update(post.get("comments", []))
    comments = get_documents("comment", sort=OLDEST_FIRST)
    for comment in comments:
        linked.update(comment.get("replies", []))

    repaired = 0
    for comment in comments:
        if str(comment["_id"]) in linked:
            continue
        if link_comment(comment):
            repaired += 1
    if repaired:
        logger.info(f"Re-linked {repaired} orphaned comment(s)")
    return repaired
