from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union


@dataclass(eq=False)
class CommentNode:
    comment: Any
    replies: List["CommentNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return _field(self.comment, "id")

    def walk(self):
        """Depth-first iteration over this node and all of its replies."""
        yield self
        for reply in self.replies:
            yield from reply.walk()


def _field(comment: Union[Mapping, Any], name: str) -> Optional[Any]:
    if isinstance(comment, Mapping):
        return comment.get(name)
    return getattr(comment, name, None)


def build_tree(comments: Iterable[Any], parent_field: str = "parent_id") -> List[CommentNode]:
    """Nest a flat list of comments into reply trees.

    Accepts ORM rows or dicts. The input order is kept at every level, so
    callers pass comments already sorted (normally oldest first). A reply
    whose parent is not in the input becomes a root instead of being dropped.
    """
    comments = list(comments)
    nodes: Dict[str, CommentNode] = {}
    order: List[CommentNode] = []
    for comment in comments:
        comment_id = _field(comment, "id")
        if comment_id in nodes:
            continue
        nodes[comment_id] = CommentNode(comment)
        order.append(nodes[comment_id])

    roots: List[CommentNode] = []
    parents: Dict[str, CommentNode] = {}
    for node in order:
        parent_id = _field(node.comment, parent_field)
        parent = nodes.get(parent_id) if parent_id is not None else None
        if parent is not None and parent is not node:
            parent.replies.append(node)
            parents[node.id] = parent
        else:
            roots.append(node)

    # Corrupt parent links can form a cycle with no root; break it so nothing is lost
    reached = {n.id for root in roots for n in root.walk()}
    for node in order:
        if node.id in reached:
            continue
        parents[node.id].replies.remove(node)
        roots.append(node)
        reached.update(n.id for n in node.walk())
    return roots
